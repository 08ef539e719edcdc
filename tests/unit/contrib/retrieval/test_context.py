import pytest

from django_ai_retrieval.contrib.retrieval.context import ContextAssembler
from django_ai_retrieval.contrib.retrieval.schema import SearchResult

PREAMBLE = "Relevant information for the query:\n\n"


def create_result(content, name="doc", score=0.5, document_id=None, direct_match=False):
    return SearchResult(
        content=content,
        document_name=name,
        score=score,
        document_id=document_id or name,
        passage_id=f"{name}:{content[:8]}",
        direct_match=direct_match,
    )


@pytest.fixture
def assembler():
    return ContextAssembler(condense_ratio=None)


def test_no_results_gives_empty_context(assembler):
    assert assembler.assemble([], 4000) == ""


def test_single_section(assembler):
    result = create_result("Alpha team ships Friday.", name="notes.txt", score=0.984)

    assert assembler.assemble([result], 4000) == (
        PREAMBLE
        + "### Excerpt from notes.txt (relevance: 0.98):\n"
        + "Alpha team ships Friday.\n\n"
    )


def test_direct_match_header(assembler):
    result = create_result("Wiring", name="Acme-3C manual", score=0.95, direct_match=True)

    assert assembler.assemble([result], 4000) == (
        PREAMBLE + "### Content from Acme-3C manual (direct match):\nWiring\n\n"
    )


def test_overflowing_section_is_truncated(assembler):
    results = [create_result("a" * 100, name="doc"), create_result("b" * 1000, name="doc")]

    context = assembler.assemble(results, 700)

    assert len(context) == 700
    assert context.startswith(PREAMBLE + "### Excerpt from doc (relevance: 0.50):\n" + "a" * 100)
    assert context.endswith("b" * 476 + "...\n\n")


def test_small_remainder_is_dropped(assembler):
    results = [create_result("a" * 100, name="doc"), create_result("b" * 1000, name="doc")]

    context = assembler.assemble(results, 400)

    assert context == PREAMBLE + "### Excerpt from doc (relevance: 0.50):\n" + "a" * 100 + "\n\n"


def test_first_section_is_always_truncated_to_fit(assembler):
    context = assembler.assemble([create_result("b" * 1000, name="doc")], 150)

    assert len(context) == 150
    assert context.endswith("b" * 68 + "...\n\n")


def test_nothing_fits(assembler):
    assert assembler.assemble([create_result("b" * 1000, name="doc")], 60) == ""


@pytest.mark.parametrize("condense_ratio", [None, 2.0])
def test_context_never_exceeds_budget(condense_ratio):
    assembler = ContextAssembler(condense_ratio=condense_ratio)
    results = [
        create_result(f"{i} " * 250, name=f"doc {i % 3}", score=1 - i / 10)
        for i in range(6)
    ]

    for max_chars in range(0, 4000, 37):
        context = assembler.assemble(results, max_chars)
        assert len(context) <= max_chars
        assert context == "" or context.startswith(PREAMBLE)


class TestCondensing:
    def test_condense_groups_by_document(self):
        assembler = ContextAssembler()
        results = [
            create_result("x" * 1000, name="doc one", score=0.9),
            create_result("y" * 1000, name="doc two", score=0.8),
            create_result("z", name="doc one", score=0.7),
        ]

        condensed = assembler.condense(results)

        assert [r.document_name for r in condensed] == ["doc one", "doc two"]
        assert condensed[0].score == 0.9
        assert condensed[0].content == "x" * 300 + "...\n\nz"

    def test_needs_condensing(self):
        results = [create_result("x" * 1000)]

        assert ContextAssembler().needs_condensing(results, 500)
        assert not ContextAssembler().needs_condensing(results, 4000)
        assert not ContextAssembler(condense_ratio=None).needs_condensing(results, 500)

    def test_oversized_results_are_condensed(self):
        assembler = ContextAssembler()
        results = [
            create_result("x" * 1000, name="doc one", score=0.9),
            create_result("y" * 1000, name="doc two", score=0.8),
            create_result("z" * 1000, name="doc one", score=0.7),
        ]

        context = assembler.assemble(results, 1500)

        assert context == (
            PREAMBLE
            + "### Excerpt from doc one (relevance: 0.90):\n"
            + "x" * 300
            + "...\n\n"
            + "z" * 300
            + "...\n\n"
            + "### Excerpt from doc two (relevance: 0.80):\n"
            + "y" * 300
            + "...\n\n"
        )
