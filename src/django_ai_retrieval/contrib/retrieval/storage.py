import threading
from dataclasses import dataclass
from typing import Iterator

from .schema import Document, EmbeddedPassage, IndexStats


@dataclass(frozen=True)
class IndexedDocument:
    document: Document
    passages: tuple[EmbeddedPassage, ...]


@dataclass(frozen=True)
class IndexSnapshot:
    """Immutable view of the store at one point in time."""

    documents: dict[str, IndexedDocument]
    passages: tuple[tuple[Document, EmbeddedPassage], ...]

    @classmethod
    def build(cls, documents: dict[str, IndexedDocument]) -> "IndexSnapshot":
        passages = tuple(
            (indexed.document, passage)
            for indexed in documents.values()
            for passage in indexed.passages
        )
        return cls(documents=documents, passages=passages)


EMPTY_SNAPSHOT = IndexSnapshot(documents={}, passages=())


class InMemoryPassageStore:
    """In-memory storage for documents and their embedded passages.

    Writers are serialised by a lock and publish a brand new snapshot, so a
    reader holding a snapshot never sees a document half replaced or a
    passage whose document has gone.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._snapshot = EMPTY_SNAPSHOT

    def snapshot(self) -> IndexSnapshot:
        return self._snapshot

    def add(self, document: Document, passages: list[EmbeddedPassage]):
        """Store a document, replacing any document with the same id."""
        with self._lock:
            documents = dict(self._snapshot.documents)
            # Replacing moves the document to the end of the insertion order
            documents.pop(document.id, None)
            documents[document.id] = IndexedDocument(
                document=document, passages=tuple(passages)
            )
            self._snapshot = IndexSnapshot.build(documents)

    def replace_all(self, entries: list[tuple[Document, list[EmbeddedPassage]]]):
        """Swap in a complete new set of documents in one step."""
        with self._lock:
            documents = {
                document.id: IndexedDocument(document=document, passages=tuple(passages))
                for document, passages in entries
            }
            self._snapshot = IndexSnapshot.build(documents)

    def rename(self, document: Document):
        """Swap in new metadata for a stored document.

        Its passages and its place in the insertion order are kept.
        """
        with self._lock:
            indexed = self._snapshot.documents[document.id]
            documents = dict(self._snapshot.documents)
            documents[document.id] = IndexedDocument(
                document=document, passages=indexed.passages
            )
            self._snapshot = IndexSnapshot.build(documents)

    def delete(self, document_id: str) -> bool:
        """Delete a document and its passages. Returns whether anything was removed."""
        with self._lock:
            if document_id not in self._snapshot.documents:
                return False
            documents = dict(self._snapshot.documents)
            del documents[document_id]
            self._snapshot = IndexSnapshot.build(documents)
            return True

    def clear(self):
        with self._lock:
            self._snapshot = EMPTY_SNAPSHOT

    def get(self, document_id: str) -> IndexedDocument | None:
        return self._snapshot.documents.get(document_id)

    def documents(self) -> Iterator[IndexedDocument]:
        yield from self._snapshot.documents.values()

    def passages(self) -> tuple[tuple[Document, EmbeddedPassage], ...]:
        return self._snapshot.passages

    def stats(self) -> IndexStats:
        snapshot = self._snapshot
        return IndexStats(
            document_count=len(snapshot.documents),
            passage_count=len(snapshot.passages),
        )

    def is_ready(self) -> bool:
        return bool(self._snapshot.passages)

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._snapshot.documents

    def __len__(self) -> int:
        return len(self._snapshot.documents)
