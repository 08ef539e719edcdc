SECRET_KEY = "not-a-secret"

DEBUG = True

USE_TZ = True

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django_ai_retrieval",
    "django_ai_retrieval.contrib.retrieval",
    "testapp",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AI_RETRIEVAL = {
    "specific_terms": ["acme-3c", "office.adv"],
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "console": {"class": "logging.StreamHandler"},
    },
    "loggers": {
        "django_ai_retrieval": {"handlers": ["console"], "level": "WARNING"},
    },
}
