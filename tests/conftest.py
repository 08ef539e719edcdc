import pytest

from django_ai_retrieval.contrib.retrieval import RetrievalEngine, RetrievalSettings


@pytest.fixture
def retrieval_settings():
    """Default settings, independent of the test project's AI_RETRIEVAL."""
    return RetrievalSettings()


@pytest.fixture
def engine(retrieval_settings):
    return RetrievalEngine(retrieval_settings=retrieval_settings)


@pytest.fixture
def notes_engine(engine):
    engine.add_document(
        "a", "notes.txt", "Alpha team ships Friday.\n\nBeta team ships Monday."
    )
    return engine
