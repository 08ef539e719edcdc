from django.apps import AppConfig


class RetrievalConfig(AppConfig):
    name = "django_ai_retrieval.contrib.retrieval"
    label = "ai_retrieval"
    verbose_name = "Django AI Retrieval Context Engine"
