from django_ai_retrieval.contrib.retrieval import ModelSource, RetrievalEngine, registry

from .models import TrainingFile


@registry.register()
class TrainingFilesEngine(RetrievalEngine):
    sources = [ModelSource(model=TrainingFile)]
