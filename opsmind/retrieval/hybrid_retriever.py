"""
Hybrid retrieval over the document store.

Vector similarity finds chunks that mean the same thing as the query,
keyword matching finds chunks that literally mention its terms. Both
paths run concurrently and are merged once both have settled:

    Query ─┬─ embed → vector_search (cosine) ──┐
           └─ keyword_search (term score) ─────┴→ merge (max) → floor → sort → limit

The two scores live on different scales, so a chunk found by both
paths keeps the higher score instead of an average. Either path may
fail on its own; the query only fails when both do.
"""

import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..exceptions import EmbeddingError, RetrievalUnavailableError
from ..ingestion.chunking.chunk import DocumentChunk
from ..ingestion.embeddings.embedding_service import EmbeddingClient
from ..ingestion.storage.document_store import DocumentStore, ScoredChunk
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MatchSource(str, Enum):
    """Which search path produced a result."""
    VECTOR = "vector"
    KEYWORD = "keyword"
    MERGED = "merged"


@dataclass
class SearchResult:
    """A retrieved chunk with its relevance score and provenance.

    Attributes:
        chunk: The stored chunk.
        relevance_score: Cosine similarity for vector hits, normalized
            term score for keyword hits, the higher of both when merged.
        match_source: Path(s) that found the chunk.
        rank: 1-based position in the final ordering.
    """
    chunk: DocumentChunk
    relevance_score: float
    match_source: MatchSource
    rank: int = 0

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    @property
    def page_references(self) -> List[int]:
        return self.chunk.page_numbers

    def __repr__(self) -> str:
        return (
            f"SearchResult(rank={self.rank}, score={self.relevance_score:.4f}, "
            f"source={self.match_source.value}, chunk_id={self.chunk.chunk_id})"
        )


def _ordering_key(result: SearchResult) -> Tuple:
    """Score descending, then source-document order, then position in document."""
    chunk = result.chunk
    created = chunk.created_at.timestamp() if chunk.created_at else float("inf")
    return (-result.relevance_score, created, chunk.doc_id, chunk.sequence_index, chunk.chunk_id)


class HybridRetriever:
    """Scores, merges and ranks vector and keyword matches for a query.

    Attributes:
        embedder: Embedding client used for the query vector.
        store: Document store queried by both paths.
        over_fetch_factor: Candidates requested per path, as a multiple
            of the result limit, to leave room for the relevance floor.
        max_workers: Threads used to issue the two paths.
    """

    MAX_LIMIT = 100

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: DocumentStore,
        over_fetch_factor: int = 3,
        max_workers: int = 2,
    ):
        if over_fetch_factor < 1:
            raise ValueError(f"over_fetch_factor must be >= 1, got {over_fetch_factor}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.embedder = embedder
        self.store = store
        self.over_fetch_factor = over_fetch_factor
        self.max_workers = max_workers

    def search(
        self,
        query: str,
        limit: int = 10,
        min_score: float = 0.02,
        doc_id: Optional[str] = None,
    ) -> List[SearchResult]:
        """Retrieve the chunks most relevant to a query.

        Args:
            query: Natural language query.
            limit: Maximum number of results (1-100).
            min_score: Relevance floor in [0, 1].
            doc_id: Restrict results to a single document.

        Returns:
            At most ``limit`` results, each scoring at least ``min_score``,
            sorted by descending score.

        Raises:
            ValueError: If the query is blank or an option is out of range.
            RetrievalUnavailableError: If both search paths failed.
        """
        query = self._validate(query, limit, min_score)
        candidate_k = limit * self.over_fetch_factor
        started = time.perf_counter()

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            vector_future = pool.submit(self._vector_candidates, query, candidate_k, doc_id)
            keyword_future = pool.submit(self.store.keyword_search, query, candidate_k, doc_id)
            vector_hits, vector_error = self._settle(vector_future, "vector")
            keyword_hits, keyword_error = self._settle(keyword_future, "keyword")

        if vector_error is not None and keyword_error is not None:
            raise RetrievalUnavailableError(
                f"Both search paths failed: vector ({vector_error}); keyword ({keyword_error})",
                vector_error=vector_error,
                keyword_error=keyword_error,
            ) from vector_error

        merged = self.merge(vector_hits, keyword_hits)
        results = self.rank(merged, min_score=min_score, limit=limit)

        logger.info(
            "Retrieved %d results for query '%s' (%d vector, %d keyword candidates, %.0fms)",
            len(results), query[:50], len(vector_hits), len(keyword_hits),
            (time.perf_counter() - started) * 1000,
        )
        return results

    def _validate(self, query: str, limit: int, min_score: float) -> str:
        if not isinstance(query, str) or not query.strip():
            raise ValueError("Query must be a non-empty string")
        if limit < 1 or limit > self.MAX_LIMIT:
            raise ValueError(f"Limit must be between 1 and {self.MAX_LIMIT}")
        if min_score < 0 or min_score > 1:
            raise ValueError("Minimum score must be between 0 and 1")
        return query.strip()

    def _vector_candidates(
        self, query: str, k: int, doc_id: Optional[str]
    ) -> List[ScoredChunk]:
        vector = self.embedder.embed(query)
        if not vector:
            raise EmbeddingError("Embedding client returned an empty vector")
        return self.store.vector_search(vector, k, doc_id=doc_id)

    @staticmethod
    def _settle(
        future: Future, path: str
    ) -> Tuple[List[ScoredChunk], Optional[BaseException]]:
        """Wait for one path and turn any failure into a value."""
        try:
            return future.result(), None
        except Exception as exc:
            logger.warning("%s search path failed: %s", path.capitalize(), exc)
            return [], exc

    @staticmethod
    def merge(
        vector_hits: List[ScoredChunk], keyword_hits: List[ScoredChunk]
    ) -> List[SearchResult]:
        """Union both candidate lists by chunk ID, keeping the higher score.

        A chunk found by both paths is labelled ``MERGED``.
        """
        merged: Dict[str, SearchResult] = {}

        for hits, source in ((vector_hits, MatchSource.VECTOR), (keyword_hits, MatchSource.KEYWORD)):
            for hit in hits:
                key = hit.chunk.chunk_id
                existing = merged.get(key)
                if existing is None:
                    merged[key] = SearchResult(
                        chunk=hit.chunk, relevance_score=hit.score, match_source=source
                    )
                    continue
                if existing.match_source != source:
                    existing.match_source = MatchSource.MERGED
                existing.relevance_score = max(existing.relevance_score, hit.score)

        return list(merged.values())

    @staticmethod
    def rank(
        results: List[SearchResult], min_score: float, limit: int
    ) -> List[SearchResult]:
        """Apply the relevance floor, sort deterministically and truncate."""
        kept = [r for r in results if r.relevance_score >= min_score]
        kept.sort(key=_ordering_key)
        kept = kept[:limit]
        for i, result in enumerate(kept, 1):
            result.rank = i
        return kept
