"""
Embedding cache abstraction for the retrieval engine.

Provides a caching layer that sits between passages and embedding generation
so identical content is only ever embedded once. Entries are keyed by a hash
of the original text plus the transformer id, and are write-once: a cached
vector is never replaced or mutated.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Iterable

import numpy as np

from django_ai_retrieval.text import content_hash

from .embedding import EmbeddingTransformer
from .schema import EmbeddedPassage, Passage

logger = logging.getLogger(__name__)


class EmbeddingCacheBackend(ABC):
    """Abstract base class for embedding cache backends."""

    @abstractmethod
    def get_embedding(self, content: str, transformer_id: str) -> np.ndarray | None:
        """Get cached embedding for content and transformer, or None if not found."""
        pass

    @abstractmethod
    def store_embedding(
        self, content: str, transformer_id: str, embedding: np.ndarray
    ) -> None:
        """Store embedding in cache."""
        pass

    @abstractmethod
    def clear_cache(self) -> None:
        """Clear all cached embeddings."""
        pass


class InMemoryEmbeddingCacheBackend(EmbeddingCacheBackend):
    """Process-local embedding cache.

    Unbounded by default. With max_entries set, the least recently used
    entry is evicted once the cache is full; losing an entry only costs a
    recomputation.
    """

    def __init__(self, max_entries: int | None = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive or None")
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple[str, str], np.ndarray] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def get_cache_key(content: str, transformer_id: str) -> tuple[str, str]:
        return content_hash(content), transformer_id

    def get_embedding(self, content: str, transformer_id: str) -> np.ndarray | None:
        key = self.get_cache_key(content, transformer_id)
        with self._lock:
            embedding = self._entries.get(key)
            if embedding is not None and self.max_entries is not None:
                self._entries.move_to_end(key)
        return embedding

    def store_embedding(
        self, content: str, transformer_id: str, embedding: np.ndarray
    ) -> None:
        key = self.get_cache_key(content, transformer_id)
        with self._lock:
            if key in self._entries:
                return
            self._entries[key] = embedding
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    self._entries.popitem(last=False)

    def clear_cache(self) -> None:
        with self._lock:
            self._entries.clear()


class CachedEmbeddingTransformer(EmbeddingTransformer):
    """
    Embedding transformer with caching functionality that inherits from EmbeddingTransformer.

    This provides a consistent interface that can be composed with other transformers.
    """

    def __init__(
        self,
        base_transformer: "EmbeddingTransformer",
        cache_backend: EmbeddingCacheBackend | None = None,
    ):
        """
        Initialize cached embedding transformer.

        Args:
            base_transformer: The actual embedding transformer to wrap
            cache_backend: Cache backend to use (defaults to a fresh in-memory backend)
        """
        self.base_transformer = base_transformer
        if cache_backend is None:
            cache_backend = InMemoryEmbeddingCacheBackend()
        self.cache_backend = cache_backend
        self.cache_hits = 0
        self.cache_misses = 0

    @property
    def transformer_id(self) -> str:
        """Get unique identifier for this transformer."""
        return f"cached_{self.base_transformer.transformer_id}"

    def embed_string(self, text: str) -> np.ndarray:
        """Embed a string, consulting the cache backend first."""
        transformer_id = self.base_transformer.transformer_id
        cached = self.cache_backend.get_embedding(text, transformer_id)
        if cached is not None:
            self.cache_hits += 1
            return cached

        self.cache_misses += 1
        result = self.base_transformer.embed_string(text)
        self.cache_backend.store_embedding(text, transformer_id, result)
        return result

    def embed_passages(self, passages: Iterable["Passage"]) -> list["EmbeddedPassage"]:
        """Transform multiple passages with caching.

        Args:
            passages: Passages to embed

        Returns:
            List of passages with embeddings added, in the original order
        """
        transformer_id = self.base_transformer.transformer_id
        embedded_passages = []

        for passage in passages:
            vector = self.cache_backend.get_embedding(passage.content, transformer_id)
            if vector is not None:
                self.cache_hits += 1
                logger.debug(f"Cache hit for passage {passage.id[:12]}")
            else:
                self.cache_misses += 1
                logger.debug(f"Cache miss for passage {passage.id[:12]}")
                vector = self.base_transformer.embed_string(passage.content)
                self.cache_backend.store_embedding(
                    passage.content, transformer_id, vector
                )
            embedded_passages.append(passage.add_embedding(vector))

        return embedded_passages
