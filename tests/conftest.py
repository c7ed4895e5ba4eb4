"""Pytest configuration and shared fixtures."""

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence

import pytest
from pathlib import Path

from opsmind.exceptions import EmbeddingError, StoreError
from opsmind.ingestion.chunking.chunk import DocumentChunk, make_chunk_id
from opsmind.ingestion.embeddings.embedding_service import EmbeddingClient
from opsmind.ingestion.storage.document_store import DocumentStore, IndexInfo, ScoredChunk

VOCABULARY = [
    "leave", "annual", "days", "policy", "expense", "travel",
    "security", "password", "remote", "holiday",
]


class FakeEmbedder(EmbeddingClient):
    """Deterministic bag-of-words embedder over a small vocabulary.

    Texts listed in ``failing`` raise EmbeddingError, as does everything
    once ``broken`` is set.
    """

    def __init__(self, failing: Sequence[str] = ()):
        self.failing = set(failing)
        self.broken = False
        self.calls: List[str] = []

    @property
    def dimension(self) -> int:
        return len(VOCABULARY)

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.broken or text in self.failing:
            raise EmbeddingError(f"cannot embed: {text[:20]}")
        lowered = text.lower()
        vector = [float(lowered.count(word)) for word in VOCABULARY]
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return [1.0 / math.sqrt(len(VOCABULARY))] * len(VOCABULARY)
        return [v / norm for v in vector]


class InMemoryStore(DocumentStore):
    """Dict-backed store with scripted vector scores and failure switches."""

    def __init__(self):
        self.chunks: Dict[str, DocumentChunk] = {}
        self.vector_scores: Optional[Dict[str, float]] = None
        self.fail_vector = False
        self.fail_keyword = False
        self.fail_upsert_ids = set()
        self.vector_calls = []
        self.keyword_calls = []

    def upsert_chunk(self, chunk: DocumentChunk) -> None:
        if chunk.chunk_id in self.fail_upsert_ids:
            raise StoreError(f"write rejected for {chunk.chunk_id}")
        self.chunks[chunk.chunk_id] = chunk

    def get_chunk(self, chunk_id: str) -> Optional[DocumentChunk]:
        return self.chunks.get(chunk_id)

    def iter_chunks(self, filter: Optional[Dict[str, Any]] = None) -> Iterator[DocumentChunk]:
        return iter([c for c in self.chunks.values() if self._matches(c, filter)])

    def vector_search(
        self, vector: Sequence[float], k: int, doc_id: Optional[str] = None
    ) -> List[ScoredChunk]:
        self.vector_calls.append((list(vector), k, doc_id))
        if self.fail_vector:
            raise StoreError("vector index offline")
        hits = []
        for chunk in self.chunks.values():
            if doc_id and chunk.doc_id != doc_id:
                continue
            if self.vector_scores is not None:
                if chunk.chunk_id not in self.vector_scores:
                    continue
                score = self.vector_scores[chunk.chunk_id]
            elif chunk.has_embedding:
                score = sum(a * b for a, b in zip(vector, chunk.embedding))
            else:
                continue
            hits.append(ScoredChunk(chunk=chunk, score=score))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:k]

    def keyword_search(self, text: str, k: int, doc_id: Optional[str] = None) -> List[ScoredChunk]:
        self.keyword_calls.append((text, k, doc_id))
        if self.fail_keyword:
            raise StoreError("keyword index offline")
        return super().keyword_search(text, k, doc_id)

    def delete_document(self, doc_id: str) -> int:
        doomed = [cid for cid, c in self.chunks.items() if c.doc_id == doc_id]
        for cid in doomed:
            del self.chunks[cid]
        return len(doomed)

    def list_indexes(self) -> List[IndexInfo]:
        return [IndexInfo("vector_index", len(VOCABULARY), "embedding", "cosine")]

    def clear(self) -> None:
        self.chunks.clear()

    def save(self, path: str) -> None:
        pass

    def load(self, path: str) -> None:
        pass


BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_chunk(
    chunk_id: str,
    content: str = "test content",
    doc_id: str = "doc_1",
    sequence_index: int = 0,
    created_offset: int = 0,
    embedding: Optional[List[float]] = None,
    file_name: str = "handbook.pdf",
) -> DocumentChunk:
    """Helper to create a DocumentChunk for testing."""
    return DocumentChunk(
        chunk_id=chunk_id,
        doc_id=doc_id,
        content=content,
        file_name=file_name,
        sequence_index=sequence_index,
        created_at=BASE_TIME + timedelta(seconds=created_offset),
        embedding=embedding,
    )


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


def fill_leave_policy(store: InMemoryStore) -> InMemoryStore:
    """Three chunks of one document with scripted vector scores 0.5, 0.01, 0.3.

    None of the chunks mentions "leave" or "policy", so a "leave policy"
    query is answered by the vector path alone.
    """
    contents = [
        "Employees receive 25 days of annual vacation each year.",
        "The cafeteria opens at eight in the morning.",
        "Unused holiday may be carried over to the next year.",
    ]
    for i, content in enumerate(contents):
        store.upsert_chunk(make_chunk(
            make_chunk_id("doc_1", i), content, sequence_index=i, embedding=[1.0] * 10,
        ))
    store.vector_scores = {
        "doc_1_chunk_0": 0.5,
        "doc_1_chunk_1": 0.01,
        "doc_1_chunk_2": 0.3,
    }
    return store


@pytest.fixture
def leave_policy_store(store) -> InMemoryStore:
    return fill_leave_policy(store)


@pytest.fixture
def temp_index_dir(tmp_path) -> Path:
    """Temporary directory for vector index files."""
    index_dir = tmp_path / "index"
    index_dir.mkdir()
    return index_dir


@pytest.fixture
def sample_pdf_path(tmp_path) -> Path:
    """Two-page PDF generated on the fly."""
    pymupdf = pytest.importorskip("pymupdf")
    pdf_path = tmp_path / "handbook.pdf"
    doc = pymupdf.open()
    for text in ("Annual leave is 25 days per year.", "Expense claims need receipts."):
        page = doc.new_page()
        page.insert_text((72, 72), text)
    doc.save(str(pdf_path))
    doc.close()
    return pdf_path
