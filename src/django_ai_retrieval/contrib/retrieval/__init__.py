from .base import (
    EngineRegistry,
    RetrievalEngine,
    registry,
)
from .chunking import (
    ChunkTransformer,
    ParagraphChunkTransformer,
    SimpleChunkTransformer,
)
from .conf import (
    RetrievalSettings,
)
from .embedding import (
    EmbeddingTransformer,
    HashEmbeddingTransformer,
)
from .embedding_cache import (
    CachedEmbeddingTransformer,
    InMemoryEmbeddingCacheBackend,
)
from .schema import (
    Document,
    SearchResult,
)
from .source import (
    ModelSource,
)

__all__ = [
    "CachedEmbeddingTransformer",
    "ChunkTransformer",
    "Document",
    "EmbeddingTransformer",
    "EngineRegistry",
    "HashEmbeddingTransformer",
    "InMemoryEmbeddingCacheBackend",
    "ModelSource",
    "ParagraphChunkTransformer",
    "RetrievalEngine",
    "RetrievalSettings",
    "SearchResult",
    "SimpleChunkTransformer",
    "registry",
]
