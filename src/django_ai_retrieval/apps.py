from django.apps import AppConfig


class RetrievalCoreConfig(AppConfig):
    name = "django_ai_retrieval"
    label = "django_ai_retrieval"
    verbose_name = "Django AI Retrieval"
