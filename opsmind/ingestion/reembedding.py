"""
Batch re-embedding of stored chunks.

Used after switching embedding models, or to fill in chunks whose
embedding failed at ingestion. Chunks are processed in small fixed-size
batches with a pause between batches to bound load on the embedding
model and the store. A chunk that fails is logged and counted, and the
run moves on to the next one.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Callable, List

from ..exceptions import EmbeddingError, StoreError
from ..utils.logger import get_logger
from .embeddings.embedding_service import EmbeddingClient
from .storage.document_store import DocumentStore

logger = get_logger(__name__)


@dataclass
class ReembedReport:
    """Outcome of a re-embedding run."""
    updated: int = 0
    errored: int = 0
    failed_chunk_ids: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.updated + self.errored


class Reembedder:
    """Recomputes embeddings for stored chunks and replaces them in place.

    Attributes:
        embedder: Embedding client producing the new vectors.
        store: Store holding the chunks.
        batch_size: Chunks per batch.
        pause_seconds: Pause between consecutive batches.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: DocumentStore,
        batch_size: int = 5,
        pause_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if pause_seconds < 0:
            raise ValueError(f"pause_seconds must be >= 0, got {pause_seconds}")
        self.embedder = embedder
        self.store = store
        self.batch_size = batch_size
        self.pause_seconds = pause_seconds
        self._sleep = sleep

    def run(self, only_missing: bool = False) -> ReembedReport:
        """Re-embed every stored chunk, or only those without an embedding.

        Args:
            only_missing: Skip chunks that already have an embedding.

        Returns:
            ReembedReport with updated and errored counts.
        """
        flt = {"has_embedding": False} if only_missing else None
        chunks = list(self.store.iter_chunks(flt))
        report = ReembedReport()

        if not chunks:
            logger.info("No chunks to re-embed")
            return report

        n_batches = (len(chunks) + self.batch_size - 1) // self.batch_size
        logger.info(
            "Re-embedding %d chunks in %d batches of %d",
            len(chunks), n_batches, self.batch_size,
        )

        for batch_num, start in enumerate(range(0, len(chunks), self.batch_size), 1):
            batch = chunks[start:start + self.batch_size]
            logger.info(
                "Processing batch %d/%d (%d chunks)", batch_num, n_batches, len(batch)
            )

            for chunk in batch:
                try:
                    vector = self.embedder.embed(chunk.content)
                    self.store.upsert_chunk(replace(chunk, embedding=vector))
                except (EmbeddingError, StoreError) as e:
                    report.errored += 1
                    report.failed_chunk_ids.append(chunk.chunk_id)
                    logger.error("Error re-embedding chunk %s: %s", chunk.chunk_id, e)
                    continue
                report.updated += 1

            if batch_num < n_batches and self.pause_seconds > 0:
                self._sleep(self.pause_seconds)

        logger.info(
            "Re-embedding complete. Updated: %d, Errors: %d",
            report.updated, report.errored,
        )
        return report
