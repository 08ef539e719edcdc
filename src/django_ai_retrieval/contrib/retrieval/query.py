import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from django_ai_retrieval.text import significant_tokens

from .schema import SearchResult
from .scoring import SimilarityScorer

if TYPE_CHECKING:
    from .embedding import EmbeddingTransformer
    from .storage import IndexSnapshot, InMemoryPassageStore

logger = logging.getLogger(__name__)

DEFAULT_MIN_RELEVANCE_SCORE = 0.35
DEFAULT_SHORT_QUERY_THRESHOLD_FACTOR = 0.7
DEFAULT_SHORT_QUERY_MAX_TOKENS = 3
DEFAULT_TOP_K = 5
DEFAULT_SPECIFIC_TERM_TOP_K = 8
DEFAULT_DIRECT_MATCH_SCORE = 0.95


@dataclass(frozen=True)
class QueryProfile:
    """How a query is classified before scoring."""

    short: bool
    specific_terms: tuple[str, ...] = field(default=())

    @property
    def has_specific_term(self) -> bool:
        return bool(self.specific_terms)

    @property
    def relaxed(self) -> bool:
        return self.short or self.has_specific_term


class QueryHandler:
    """Ranks indexed passages against a query.

    Every passage is scored, so cost grows linearly with the corpus. Callers
    that need a time bound wrap the call themselves.
    """

    def __init__(
        self,
        *,
        min_relevance_score: float = DEFAULT_MIN_RELEVANCE_SCORE,
        short_query_threshold_factor: float = DEFAULT_SHORT_QUERY_THRESHOLD_FACTOR,
        short_query_max_tokens: int = DEFAULT_SHORT_QUERY_MAX_TOKENS,
        specific_terms: Iterable[str] = (),
        default_top_k: int = DEFAULT_TOP_K,
        specific_term_top_k: int = DEFAULT_SPECIFIC_TERM_TOP_K,
        direct_match_score: float = DEFAULT_DIRECT_MATCH_SCORE,
    ):
        self.min_relevance_score = min_relevance_score
        self.short_query_threshold_factor = short_query_threshold_factor
        self.short_query_max_tokens = short_query_max_tokens
        self.specific_terms = tuple(
            term.lower().strip() for term in specific_terms if term.strip()
        )
        self.default_top_k = default_top_k
        self.specific_term_top_k = specific_term_top_k
        self.direct_match_score = direct_match_score

    def configure(
        self,
        *,
        storage: "InMemoryPassageStore",
        embedding_transformer: "EmbeddingTransformer",
        scorer: SimilarityScorer | None = None,
    ):
        """Configure the query handler with engine components."""

        self.storage = storage
        self.embedding_transformer = embedding_transformer
        self.scorer = scorer or SimilarityScorer()

    def classify(self, query: str) -> QueryProfile:
        normalized_query = query.lower().strip()
        return QueryProfile(
            short=len(significant_tokens(query)) <= self.short_query_max_tokens,
            specific_terms=tuple(
                term for term in self.specific_terms if term in normalized_query
            ),
        )

    def threshold(self, profile: QueryProfile) -> float:
        if profile.relaxed:
            return self.min_relevance_score * self.short_query_threshold_factor
        return self.min_relevance_score

    def resolve_top_k(self, profile: QueryProfile, top_k: int | None) -> int:
        if top_k is not None:
            return top_k
        if profile.has_specific_term:
            return self.specific_term_top_k
        return self.default_top_k

    def search(self, query: str, top_k: int | None = None) -> list[SearchResult]:
        """Return up to top_k passages scoring above the relevance threshold.

        Never raises: degenerate input or an unexpected failure yields fewer,
        or no, results.
        """
        snapshot = self.storage.snapshot()
        if not snapshot.passages:
            logger.debug("No passages in index, skipping search")
            return []

        try:
            return self._search(snapshot, query, top_k)
        except Exception:
            logger.exception(f"Search failed for query {query!r}")
            return []

    def _search(
        self, snapshot: "IndexSnapshot", query: str, top_k: int | None
    ) -> list[SearchResult]:
        profile = self.classify(query)
        limit = self.resolve_top_k(profile, top_k)
        if limit <= 0:
            return []

        threshold = self.threshold(profile)
        query_vector = self.embedding_transformer.embed_string(query)

        results = []
        for document, passage in snapshot.passages:
            score = self.scorer.score(
                query_vector,
                passage.vector,
                query,
                passage.content,
                short_query=profile.short,
            )
            if score > threshold:
                results.append(
                    SearchResult(
                        content=passage.content,
                        document_name=document.name,
                        score=score,
                        document_id=document.id,
                        passage_id=passage.id,
                    )
                )

        # sorted() is stable, so ties keep index order
        results = sorted(results, key=lambda result: result.score, reverse=True)

        if results:
            logger.debug(
                f"Top result score {results[0].score:.3f} from {results[0].document_name}"
            )
            for position, result in enumerate(results[:limit], 1):
                logger.debug(
                    f"{position}. {result.document_name} ({result.score:.3f}): "
                    f"{result.content[:100]!r}"
                )
        else:
            logger.debug(f"No results above threshold {threshold:.3f}")
            if profile.has_specific_term:
                results = self.direct_matches(snapshot, profile)

        logger.info(
            f"Found {min(len(results), limit)} relevant passages for query "
            f"({len(results)} above threshold)"
        )
        return results[:limit]

    def direct_matches(
        self, snapshot: "IndexSnapshot", profile: QueryProfile
    ) -> list[SearchResult]:
        """Match specific terms against document names.

        The hashed vectors handle acronyms and product names poorly, so when
        scoring finds nothing for such a term, the first passage of every
        document named after it is returned instead.
        """
        matches = []
        for indexed in snapshot.documents.values():
            if not indexed.passages:
                continue
            name = indexed.document.name.lower()
            if any(term in name for term in profile.specific_terms):
                first_passage = indexed.passages[0]
                logger.debug(f"Direct match found: {indexed.document.name}")
                matches.append(
                    SearchResult(
                        content=first_passage.content,
                        document_name=indexed.document.name,
                        score=self.direct_match_score,
                        document_id=indexed.document.id,
                        passage_id=first_passage.id,
                        direct_match=True,
                    )
                )
        return matches
