import logging
import re
from typing import Protocol

from .schema import Passage

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 100

PARAGRAPH_SEPARATOR = "\n\n"

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


class ChunkTransformer(Protocol):
    """Base class for chunking transformers which break a string into a list of strings."""

    def transform(self, text: "str") -> list["str"]:
        """Transform a string into chunks."""
        ...


class SimpleChunkTransformer(ChunkTransformer):
    """Simple character-based chunking transformer."""

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError("chunk_overlap must be between 0 and chunk_size")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def transform(self, text: str) -> list[str]:
        if not text:
            return []

        if len(text) <= self.chunk_size:
            return [text]

        chunks = []

        # Split into overlapping chunks
        start = 0
        while start < len(text):
            end = min(start + self.chunk_size, len(text))
            chunks.append(text[start:end])

            # Move start position, accounting for overlap
            if end >= len(text):
                break
            start = end - self.chunk_overlap

        return chunks


class ParagraphChunkTransformer(ChunkTransformer):
    """Chunks strings by paragraphs, combining small ones.

    Paragraphs are separated by blank lines. Consecutive paragraphs are joined
    while the result stays within max_chunk_size. A single paragraph longer
    than max_chunk_size is hard-split with a character overlap, unless
    split_oversized is False, in which case it becomes one oversized chunk.
    """

    def __init__(
        self,
        max_chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        split_oversized: bool = True,
    ):
        self.max_chunk_size = max_chunk_size
        self.split_oversized = split_oversized
        self.oversized_splitter = SimpleChunkTransformer(
            chunk_size=max_chunk_size, chunk_overlap=chunk_overlap
        )

    @property
    def chunk_overlap(self) -> int:
        return self.oversized_splitter.chunk_overlap

    def split_paragraphs(self, text: str) -> list[str]:
        paragraphs = (p.strip() for p in _PARAGRAPH_BREAK_RE.split(text))
        return [p for p in paragraphs if p]

    def transform(self, text: str) -> list[str]:
        paragraphs = self.split_paragraphs(text)

        if not paragraphs:
            return []

        chunks = []
        current_chunk = ""

        for paragraph in paragraphs:
            if len(paragraph) > self.max_chunk_size:
                if current_chunk:
                    chunks.append(current_chunk)
                    current_chunk = ""
                if self.split_oversized:
                    chunks.extend(self.oversized_splitter.transform(paragraph))
                else:
                    chunks.append(paragraph)
                continue

            if not current_chunk:
                current_chunk = paragraph
            elif (
                len(current_chunk) + len(PARAGRAPH_SEPARATOR) + len(paragraph)
                <= self.max_chunk_size
            ):
                current_chunk += PARAGRAPH_SEPARATOR + paragraph
            else:
                # Adding this paragraph would exceed max size, finalize current chunk
                chunks.append(current_chunk)
                current_chunk = paragraph

        if current_chunk:
            chunks.append(current_chunk)

        return chunks


def chunk(
    document_id: str, text: str, chunk_transformer: ChunkTransformer | None = None
) -> list[Passage]:
    """Split a document's text into passages, in document order.

    Chunks with identical text share a content-hash id, so only the first
    occurrence is kept.
    """
    if chunk_transformer is None:
        chunk_transformer = ParagraphChunkTransformer()

    passages = []
    seen_ids = set()
    for chunk_content in chunk_transformer.transform(text):
        if not chunk_content.strip():
            continue
        passage = Passage.for_content(document_id, chunk_content)
        if passage.id in seen_ids:
            logger.debug(f"Dropping duplicate chunk {passage.id[:12]} in {document_id}")
            continue
        seen_ids.add(passage.id)
        passages.append(passage)

    logger.debug(f"Chunked document {document_id} into {len(passages)} passages")
    return passages
