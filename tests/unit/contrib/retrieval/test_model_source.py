import pytest
from testapp.models import TrainingFile

from django_ai_retrieval.contrib.retrieval import ModelSource, RetrievalEngine, RetrievalSettings


def test_model_source_requires_model_or_queryset():
    with pytest.raises(ValueError):
        ModelSource()


def test_model_source_id_is_model_label():
    assert ModelSource(model=TrainingFile).source_id == "testapp.TrainingFile"


@pytest.mark.django_db
def test_model_source_returns_unique_ids():
    for i in range(5):
        TrainingFile.objects.create(name="Same name", content=f"Content {i}")

    documents = list(ModelSource(model=TrainingFile).get_documents())
    document_ids = [document.id for document in documents]

    assert len(document_ids) == 5
    assert len(document_ids) == len(set(document_ids))


@pytest.mark.django_db
def test_object_to_document():
    training_file = TrainingFile.objects.create(name="notes.txt", content="Alpha team ships Friday.")

    document = ModelSource(model=TrainingFile).object_to_document(training_file)

    assert document.id == f"testapp.TrainingFile:{training_file.pk}"
    assert document.name == "notes.txt"
    assert document.content == "Alpha team ships Friday."


@pytest.mark.django_db
def test_content_fields_are_joined_as_paragraphs():
    training_file = TrainingFile.objects.create(name="notes.txt", content="Body")
    source = ModelSource(model=TrainingFile, content_fields=["name", "content"])

    assert source.get_content(training_file) == "notes.txt\n\nBody"


@pytest.mark.django_db
def test_empty_name_falls_back_to_str():
    training_file = TrainingFile.objects.create(name="", content="Body")
    source = ModelSource(model=TrainingFile, name_field="content")

    assert source.get_name(training_file) == "Body"
    assert ModelSource(model=TrainingFile).get_name(training_file) == str(training_file)


@pytest.mark.django_db
def test_queryset_limits_documents():
    TrainingFile.objects.create(name="keep.txt", content="Kept")
    TrainingFile.objects.create(name="skip.txt", content="Skipped")
    source = ModelSource(queryset=TrainingFile.objects.filter(name="keep.txt"))

    assert [document.name for document in source.get_documents()] == ["keep.txt"]


def test_object_from_other_model_is_rejected():
    source = ModelSource(model=TrainingFile)

    with pytest.raises(ValueError):
        source.object_to_document(object())


@pytest.mark.django_db
def test_engine_builds_from_model_source():
    TrainingFile.objects.create(name="notes.txt", content="Alpha team ships Friday.\n\nBeta team ships Monday.")
    TrainingFile.objects.create(name="empty.txt", content="")

    engine = RetrievalEngine(
        retrieval_settings=RetrievalSettings(),
        sources=[ModelSource(model=TrainingFile)],
    ).build()

    assert engine.stats().as_dict() == {"documentCount": 2, "passageCount": 1}
    assert engine.search("Friday")[0].document_name == "notes.txt"
