from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from testapp.engines import TrainingFilesEngine
from testapp.models import TrainingFile

from django_ai_retrieval.contrib.retrieval.base import registry


@pytest.fixture(autouse=True)
def fresh_engines():
    """Drop shared engine instances so each test builds from its own data."""
    registry._instances.clear()
    yield
    registry._instances.clear()


@pytest.fixture
def training_files(db):
    TrainingFile.objects.create(
        name="notes.txt", content="Alpha team ships Friday.\n\nBeta team ships Monday."
    )
    TrainingFile.objects.create(name="Acme-3C manual", content="Installation steps.")


def run(*args):
    out = StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


class TestRebuildRetrievalEngines:
    def test_rebuild_all(self, training_files):
        output = run("rebuild_retrieval_engines")

        assert "TrainingFilesEngine: 2 documents, 2 passages" in output
        assert "Indexed 2 documents as 2 passages in 1 of 1 engine(s)" in output
        assert registry.get_engine("TrainingFilesEngine").is_ready()

    def test_rebuild_named_engine(self, training_files):
        output = run("rebuild_retrieval_engines", "TrainingFilesEngine")
        assert "in 1 of 1 engine(s)" in output

    def test_rebuild_drops_deleted_rows(self, training_files):
        run("rebuild_retrieval_engines")
        TrainingFile.objects.filter(name="notes.txt").delete()

        output = run("rebuild_retrieval_engines")

        engine = registry.get_engine("TrainingFilesEngine")
        assert "TrainingFilesEngine: 1 documents, 1 passages" in output
        assert engine.stats().document_count == 1
        assert engine.search("Friday") == []

    def test_rebuild_without_rows(self, db):
        output = run("rebuild_retrieval_engines")

        assert "TrainingFilesEngine: 0 documents, 0 passages" in output
        assert "nothing to search" in output

    def test_dry_run(self, training_files):
        output = run("rebuild_retrieval_engines", "--dry-run")

        assert "TrainingFilesEngine: would rebuild from testapp.TrainingFile" in output
        assert not registry.get_engine("TrainingFilesEngine").is_ready()

    def test_unknown_engine(self):
        with pytest.raises(CommandError, match="Unknown engine names"):
            run("rebuild_retrieval_engines", "MissingEngine")

    def test_failed_build_keeps_serving_engine(self, training_files, monkeypatch):
        run("rebuild_retrieval_engines")
        serving = registry.get_engine("TrainingFilesEngine")

        def broken_build(self):
            raise RuntimeError("source unavailable")

        monkeypatch.setattr(TrainingFilesEngine, "build", broken_build)

        with pytest.raises(CommandError, match="Could not rebuild: TrainingFilesEngine"):
            run("rebuild_retrieval_engines")
        assert registry.get_engine("TrainingFilesEngine") is serving
        assert serving.is_ready()


class TestRetrievalSearch:
    def test_search(self, training_files):
        output = run("retrieval_search", "TrainingFilesEngine", "Friday")

        assert output.startswith("1. notes.txt (")
        assert "Alpha team ships Friday." in output

    def test_direct_match(self, training_files):
        output = run("retrieval_search", "TrainingFilesEngine", "acme-3c")

        assert "1. Acme-3C manual (direct match)" in output

    def test_context(self, training_files):
        output = run("retrieval_search", "TrainingFilesEngine", "Friday", "--context")

        assert output.startswith("Relevant information for the query:")
        assert "### Excerpt from notes.txt" in output

    def test_context_budget(self, training_files):
        output = run(
            "retrieval_search",
            "TrainingFilesEngine",
            "Friday",
            "--context",
            "--max-chars",
            "20",
        )
        assert "No relevant context found" in output

    def test_no_results(self, training_files):
        output = run("retrieval_search", "TrainingFilesEngine", "unrelated quantum topic")
        assert "No results found" in output

    def test_unknown_engine(self):
        with pytest.raises(CommandError, match="MissingEngine"):
            run("retrieval_search", "MissingEngine", "Friday")
