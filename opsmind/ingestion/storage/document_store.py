from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..chunking.chunk import DocumentChunk
from .keyword_scoring import keyword_score, matches_any_term, query_terms

FILTER_KEYS = ("doc_id", "file_name", "has_embedding")


@dataclass
class ScoredChunk:
    """A stored chunk returned by one of the store's query modes."""
    chunk: DocumentChunk
    score: float

    def __repr__(self) -> str:
        return f"ScoredChunk(score={self.score:.4f}, chunk_id={self.chunk.chunk_id})"


@dataclass
class IndexInfo:
    """Metadata describing one of the store's search indexes.

    Attributes:
        name: Index name.
        dimension: Vector dimension, None for text indexes.
        path: Chunk field the index covers.
        similarity: Similarity metric ("cosine" or "keyword").
    """
    name: str
    dimension: Optional[int]
    path: str
    similarity: str


class DocumentStore(ABC):
    """
    Persists chunks with their vectors and answers two kinds of query:
    approximate vector similarity and keyword matching.

    Subclasses provide chunk storage and the vector index. Filtering,
    counting and keyword search are implemented here on top of
    :meth:`iter_chunks`.
    """

    @abstractmethod
    def upsert_chunk(self, chunk: DocumentChunk) -> None:
        """
        Insert a chunk, or replace the stored chunk with the same ID.

        Chunks without an embedding are stored but never become vector
        search candidates.

        Raises:
            StoreError: If the embedding dimension does not match the index.
        """
        pass

    @abstractmethod
    def get_chunk(self, chunk_id: str) -> Optional[DocumentChunk]:
        """Get a chunk by its ID."""
        pass

    @abstractmethod
    def iter_chunks(self, filter: Optional[Dict[str, Any]] = None) -> Iterator[DocumentChunk]:
        """Iterate stored chunks in insertion order, optionally filtered."""
        pass

    @abstractmethod
    def vector_search(
        self,
        vector: Sequence[float],
        k: int,
        doc_id: Optional[str] = None,
    ) -> List[ScoredChunk]:
        """
        Find the chunks most similar to a query vector.

        Args:
            vector: Query embedding.
            k: Maximum number of candidates.
            doc_id: Restrict candidates to one document.

        Returns:
            Candidates sorted by cosine similarity, highest first.

        Raises:
            StoreError: On dimension mismatch or index failure.
        """
        pass

    @abstractmethod
    def delete_document(self, doc_id: str) -> int:
        """Delete all chunks of a document and return how many were removed."""
        pass

    @abstractmethod
    def list_indexes(self) -> List[IndexInfo]:
        """Describe the vector and keyword indexes."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove all data from the store."""
        pass

    @abstractmethod
    def save(self, path: str) -> None:
        """Save the store to disk."""
        pass

    @abstractmethod
    def load(self, path: str) -> None:
        """Load the store from disk."""
        pass

    def keyword_search(
        self,
        text: str,
        k: int,
        doc_id: Optional[str] = None,
    ) -> List[ScoredChunk]:
        """
        Find chunks whose content or file name mentions any query term.

        Args:
            text: Raw query string.
            k: Maximum number of candidates.
            doc_id: Restrict candidates to one document.

        Returns:
            Candidates sorted by normalized keyword score, highest first.
            Equal scores keep insertion order.
        """
        terms = query_terms(text)
        if not terms or k <= 0:
            return []

        flt = {"doc_id": doc_id} if doc_id else None
        candidates = []
        for chunk in self.iter_chunks(flt):
            if matches_any_term(chunk.content, terms) or matches_any_term(chunk.file_name, terms):
                candidates.append(ScoredChunk(chunk=chunk, score=keyword_score(chunk.content, text)))

        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates[:k]

    def count_chunks(self, filter: Optional[Dict[str, Any]] = None) -> int:
        """Count stored chunks matching the filter."""
        return sum(1 for _ in self.iter_chunks(filter))

    def find_by_hash(self, content_hash: str) -> Optional[DocumentChunk]:
        """Return a stored chunk with identical content, if any."""
        for chunk in self.iter_chunks():
            if chunk.content_hash == content_hash:
                return chunk
        return None

    def document_ids(self) -> List[str]:
        """Unique document IDs in the order they were first stored."""
        seen = {}
        for chunk in self.iter_chunks():
            seen.setdefault(chunk.doc_id, None)
        return list(seen)

    @property
    def vector_dimension(self) -> Optional[int]:
        """Dimension the vector index accepts, or None if it accepts any."""
        return None

    def reset_vectors(self, dimension: int) -> None:
        """
        Drop every stored embedding and accept vectors of ``dimension`` from now on.

        Chunks are kept, so a full re-embedding can refill the index after
        the embedding model changes.
        """
        for chunk in list(self.iter_chunks()):
            self.upsert_chunk(replace(chunk, embedding=None))

    @property
    def size(self) -> int:
        """Number of stored chunks."""
        return self.count_chunks()

    @staticmethod
    def _matches(chunk: DocumentChunk, filter: Optional[Dict[str, Any]]) -> bool:
        """Check a chunk against a filter on ``doc_id``, ``file_name`` or ``has_embedding``."""
        if not filter:
            return True
        for key, expected in filter.items():
            if key not in FILTER_KEYS:
                raise ValueError(
                    f"Unsupported filter key: {key}. Expected one of {', '.join(FILTER_KEYS)}"
                )
            if getattr(chunk, key) != expected:
                return False
        return True
