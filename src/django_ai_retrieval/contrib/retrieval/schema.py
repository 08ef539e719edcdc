"""
Schema definitions for the retrieval engine.

This module contains the core data structures used throughout the engine.
"""

from dataclasses import dataclass, field

import numpy as np

from django_ai_retrieval.text import content_hash


@dataclass(frozen=True)
class Document:
    """
    A whole source text submitted to the engine, identified by an opaque id.

    Documents are replaced wholesale; they are never partially updated.
    """

    id: str
    name: str
    content: str


@dataclass(frozen=True)
class Passage:
    """
    A bounded-size excerpt of a Document, used as the unit of retrieval.

    The id is derived from the content, so identical text always shares an id.
    """

    id: str
    document_id: str
    content: str

    @classmethod
    def for_content(cls, document_id: str, content: str) -> "Passage":
        return cls(id=content_hash(content), document_id=document_id, content=content)

    def add_embedding(self, embedding: np.ndarray) -> "EmbeddedPassage":
        """Create a new EmbeddedPassage with the given embedding."""
        return EmbeddedPassage(
            id=self.id,
            document_id=self.document_id,
            content=self.content,
            vector=embedding,
        )


@dataclass(frozen=True)
class EmbeddedPassage(Passage):
    """
    A passage with its vector attached.

    This is the form passages take once they are stored in the index.
    """

    vector: np.ndarray = field(compare=False, repr=False)


@dataclass(frozen=True)
class SearchResult:
    content: str
    document_name: str
    score: float
    document_id: str
    passage_id: str
    # Synthesised from a document name match rather than scored
    direct_match: bool = False


@dataclass(frozen=True)
class IndexStats:
    document_count: int
    passage_count: int

    def as_dict(self) -> dict[str, int]:
        return {
            "documentCount": self.document_count,
            "passageCount": self.passage_count,
        }


@dataclass(frozen=True)
class DocumentDetails:
    name: str
    passage_count: int
