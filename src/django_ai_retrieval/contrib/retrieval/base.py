import asyncio
import logging
import threading
from typing import TYPE_CHECKING, ClassVar

from asgiref.sync import sync_to_async
from django.utils.text import slugify

from .chunking import ChunkTransformer, ParagraphChunkTransformer, chunk
from .conf import RetrievalSettings, get_retrieval_settings
from .context import ContextAssembler
from .embedding import EmbeddingTransformer, HashEmbeddingTransformer
from .embedding_cache import (
    CachedEmbeddingTransformer,
    EmbeddingCacheBackend,
    InMemoryEmbeddingCacheBackend,
)
from .query import QueryHandler
from .schema import Document, DocumentDetails, EmbeddedPassage, IndexStats, SearchResult
from .scoring import SimilarityScorer
from .storage import InMemoryPassageStore

if TYPE_CHECKING:
    from .source import Source


logger = logging.getLogger(__name__)

DEFAULT_SEARCH_TIMEOUT = 3.0
DEFAULT_CONTEXT_TIMEOUT = 5.0


class RetrievalEngine:
    """Selects relevant passages from a small in-memory corpus.

    Documents go in as raw text; queries come back as ranked passages or as a
    context string bounded by a character budget. Components are built from
    RetrievalSettings unless passed in explicitly, and every engine owns its
    own index and embedding cache.
    """

    sources: ClassVar[list["Source"]] = []
    retrieval_settings: ClassVar[RetrievalSettings | None] = None

    @property
    def engine_id(self):
        return slugify(self.__class__.__name__)

    def __init__(
        self,
        *,
        retrieval_settings: RetrievalSettings | None = None,
        chunk_transformer: ChunkTransformer | None = None,
        embedding_transformer: EmbeddingTransformer | None = None,
        cache_backend: EmbeddingCacheBackend | None = None,
        sources: list["Source"] | None = None,
    ):
        self.settings = (
            retrieval_settings or self.retrieval_settings or get_retrieval_settings()
        )
        if sources is not None:
            self.sources = sources

        self.chunk_transformer = chunk_transformer or ParagraphChunkTransformer(
            max_chunk_size=self.settings.chunk_size,
            chunk_overlap=self.settings.chunk_overlap,
            split_oversized=self.settings.split_oversized_paragraphs,
        )
        if cache_backend is None:
            cache_backend = InMemoryEmbeddingCacheBackend(
                max_entries=self.settings.cache_max_entries
            )
        self.cache_backend = cache_backend

        # Serialises writers; readers work from store snapshots and never wait
        self._write_lock = threading.Lock()

        self.storage = InMemoryPassageStore()
        self.scorer = SimilarityScorer(
            dimension_epsilon=self.settings.dimension_epsilon,
            dimension_bonus_divisor=self.settings.dimension_bonus_divisor,
            max_dimension_bonus=self.settings.max_dimension_bonus,
            keyword_min_length=self.settings.keyword_min_length,
            keyword_length_divisor=self.settings.keyword_length_divisor,
            max_keyword_boost=self.settings.max_keyword_boost,
            short_query_keyword_bonus=self.settings.short_query_keyword_bonus,
        )
        self.query_handler = QueryHandler(
            min_relevance_score=self.settings.min_relevance_score,
            short_query_threshold_factor=self.settings.short_query_threshold_factor,
            short_query_max_tokens=self.settings.short_query_max_tokens,
            specific_terms=self.settings.specific_terms,
            default_top_k=self.settings.default_top_k,
            specific_term_top_k=self.settings.specific_term_top_k,
            direct_match_score=self.settings.direct_match_score,
        )
        self.embedding_transformer = embedding_transformer or HashEmbeddingTransformer(
            dimensions=self.settings.vector_dimensions,
            max_token_weight=self.settings.max_token_weight,
            token_weight_divisor=self.settings.token_weight_divisor,
            neighbour_weight=self.settings.neighbour_weight,
        )
        self.context_assembler = ContextAssembler(
            min_truncated_chars=self.settings.min_truncated_chars,
            condense_ratio=self.settings.condense_ratio,
            preview_chars=self.settings.preview_chars,
        )

        self._enabled = self.settings.enabled

    @property
    def embedding_transformer(self) -> CachedEmbeddingTransformer:
        return self._embedding_transformer

    @embedding_transformer.setter
    def embedding_transformer(self, transformer: EmbeddingTransformer):
        """Use transformer for passages and queries alike.

        Plain transformers are wrapped with the engine's cache. Passages
        already in the index keep their old vectors until reindex_all().
        """
        if not isinstance(transformer, CachedEmbeddingTransformer):
            transformer = CachedEmbeddingTransformer(
                base_transformer=transformer, cache_backend=self.cache_backend
            )
        with self._write_lock:
            self._embedding_transformer = transformer
            self.query_handler.configure(
                storage=self.storage,
                embedding_transformer=transformer,
                scorer=self.scorer,
            )

    def _index_document(self, document: Document) -> list[EmbeddedPassage]:
        passages = chunk(document.id, document.content, self.chunk_transformer)
        return self.embedding_transformer.embed_passages(passages)

    def build(self):
        """
        Load every document from the configured sources into the index.

        Returns:
            Self for method chaining
        """
        count = 0
        for source in self.sources:
            logger.info(f"Getting documents from source {source.source_id}")
            for document in source.get_documents():
                self.add_document(document.id, document.name, document.content)
                count += 1

        if not count:
            logger.warning(f"No documents provided by sources for {self.engine_id}")

        return self

    def add_document(self, document_id: str, name: str, content: str) -> None:
        """Index a document, replacing any previous version with the same id."""
        document = Document(id=document_id, name=name, content=content)

        with self._write_lock:
            existing = self.storage.get(document_id)
            if existing is not None and existing.document.content == content:
                if existing.document.name != name:
                    self.storage.rename(document)
                logger.debug(f"Document {document_id} unchanged, skipping re-index")
                return

            if existing is not None:
                logger.info(f"Document {document_id} already exists in index, updating")

            passages = self._index_document(document)
            self.storage.add(document, passages)

        logger.info(
            f"Document {name} added to index with {len(passages)} passages "
            f"({len(content)} chars)"
        )

    def remove_document(self, document_id: str) -> None:
        with self._write_lock:
            removed = self.storage.delete(document_id)
        if removed:
            logger.info(f"Removed document {document_id} from index")

    def reindex_all(self) -> None:
        """Re-chunk and re-embed every document from its original content.

        Uses the engine's current chunk and embedding transformers, so it is
        the way to apply changed parameters without resupplying the text.
        """
        with self._write_lock:
            documents = [indexed.document for indexed in self.storage.documents()]
            logger.info(f"Reindexing {len(documents)} documents")
            entries = [
                (document, self._index_document(document)) for document in documents
            ]
            self.storage.replace_all(entries)

        logger.info(f"Reindexed {len(documents)} documents")

    def clear_cache(self) -> None:
        self.cache_backend.clear_cache()

    def stats(self) -> IndexStats:
        return self.storage.stats()

    def is_ready(self) -> bool:
        return self.storage.is_ready()

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = bool(enabled)
        logger.info(f"Retrieval {'enabled' if self._enabled else 'disabled'} for {self.engine_id}")

    def is_enabled(self) -> bool:
        return self._enabled

    def get_document_details(self, document_id: str) -> DocumentDetails | None:
        indexed = self.storage.get(document_id)
        if indexed is None:
            return None
        return DocumentDetails(
            name=indexed.document.name, passage_count=len(indexed.passages)
        )

    def search(self, query: str, top_k: int | None = None) -> list[SearchResult]:
        """Search the index for passages relevant to query.

        Args:
            query: The search query string
            top_k: Maximum number of results; defaults depend on the query
        """
        if not self._enabled:
            return []
        if not query or not query.strip():
            return []
        return self.query_handler.search(query, top_k)

    def get_relevant_context(self, query: str, max_chars: int | None = None) -> str:
        """Build a context block for query that is at most max_chars long.

        An empty string means no relevant context was found.
        """
        if max_chars is None:
            max_chars = self.settings.default_max_chars

        results = self.search(query)
        if not results:
            logger.debug("No relevant context found for query")
            return ""
        return self.context_assembler.assemble(results, max_chars)

    async def asearch(
        self,
        query: str,
        top_k: int | None = None,
        *,
        timeout: float | None = DEFAULT_SEARCH_TIMEOUT,
    ) -> list[SearchResult]:
        """Run search in a worker thread, giving up after timeout seconds."""
        try:
            return await asyncio.wait_for(
                sync_to_async(self.search, thread_sensitive=False)(query, top_k),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Search timed out after {timeout}s")
            return []

    async def aget_relevant_context(
        self,
        query: str,
        max_chars: int | None = None,
        *,
        timeout: float | None = DEFAULT_CONTEXT_TIMEOUT,
    ) -> str:
        """Build context in a worker thread, giving up after timeout seconds.

        A timeout is treated as "no context available".
        """
        try:
            return await asyncio.wait_for(
                sync_to_async(self.get_relevant_context, thread_sensitive=False)(
                    query, max_chars
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Context generation timed out after {timeout}s")
            return ""


class EngineRegistry:
    def __init__(self):
        self._engines: dict[str, type[RetrievalEngine]] = {}
        self._instances: dict[str, RetrievalEngine] = {}
        self._lock = threading.Lock()

    def register(self, slug: str | None = None):
        """Decorator to register an engine."""

        def decorator(cls: type[RetrievalEngine]) -> type[RetrievalEngine]:
            engine_slug = slug or cls.__name__
            self._engines[engine_slug] = cls
            self._instances.pop(engine_slug, None)
            return cls

        return decorator

    def get(self, slug: str) -> type[RetrievalEngine]:
        if slug not in self._engines:
            raise KeyError(f"Engine '{slug}' not found")
        return self._engines[slug]

    def get_engine(self, slug: str) -> RetrievalEngine:
        """Get the shared instance of a registered engine, creating it on first use."""
        engine_cls = self.get(slug)
        with self._lock:
            if slug not in self._instances:
                self._instances[slug] = engine_cls()
            return self._instances[slug]

    def rebuild_engine(self, slug: str) -> RetrievalEngine:
        """Build a fresh instance of an engine and make it the shared one.

        The current instance keeps serving searches until the new one is
        complete. Its embedding cache and enabled flag carry over, so only
        changed passages are embedded again.
        """
        engine_cls = self.get(slug)
        with self._lock:
            current = self._instances.get(slug)

        if current is None:
            engine = engine_cls().build()
        else:
            engine = engine_cls(cache_backend=current.cache_backend).build()
            engine.set_enabled(current.is_enabled())

        with self._lock:
            self._instances[slug] = engine
        return engine

    def list(self) -> dict[str, type[RetrievalEngine]]:
        return self._engines.copy()


registry = EngineRegistry()
