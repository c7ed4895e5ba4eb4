"""High-level API for ingesting documents and searching the knowledge base."""
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .exceptions import EmbeddingError, StoreError
from .retrieval.hybrid_retriever import HybridRetriever, SearchResult
from .utils.logger import get_logger
from .ingestion.chunking.chunk import DocumentChunk
from .ingestion.chunking.fixed_size_chunker import FixedSizeChunker
from .ingestion.chunking.policy import ChunkingPolicy
from .ingestion.document import Document, DocumentMetadata, assemble_pages
from .ingestion.document_manager import DocumentManager
from .ingestion.embeddings.embedding_service import EmbeddingClient
from .ingestion.reembedding import Reembedder, ReembedReport
from .ingestion.storage.document_store import DocumentStore, IndexInfo

logger = get_logger(__name__)


@dataclass
class IngestReport:
    """Outcome of ingesting one document.

    Attributes:
        doc_id: ID assigned to the document.
        file_name: Source file name.
        chunks_created: Chunks stored for this document.
        chunks_skipped: Chunks whose content was already stored.
        embedding_failures: Stored chunks left without an embedding.
        store_failures: Chunks the store rejected.
        chunks_replaced: Chunks of an earlier version of the document
            removed before storing this one.
    """
    doc_id: str
    file_name: str
    chunks_created: int = 0
    chunks_skipped: int = 0
    embedding_failures: int = 0
    store_failures: int = 0
    chunks_replaced: int = 0


class KnowledgeBase:
    """Ingestion boundary and facade over the document store.

    Parses source files, chunks their text with a fixed-size policy,
    embeds every chunk and stores it. Searching goes through a
    HybridRetriever bound to the same embedder and store.

    Usage:
        kb = KnowledgeBase(EmbeddingService(), FAISSDocumentStore(384))
        kb.ingest("handbook.pdf")
        results = kb.search("leave policy")
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: DocumentStore,
        policy: Optional[ChunkingPolicy] = None,
        index_path: Optional[str] = None,
        auto_save: bool = True,
        over_fetch_factor: int = 3,
        max_workers: int = 2,
        doc_manager: Optional[DocumentManager] = None,
    ):
        self.embedder = embedder
        self.store = store
        self.policy = policy or ChunkingPolicy()
        self.index_path = Path(index_path) if index_path else None
        self.auto_save = auto_save
        self._chunker = FixedSizeChunker(self.policy)
        self._doc_manager = doc_manager or DocumentManager()
        self.retriever = HybridRetriever(
            embedder, store,
            over_fetch_factor=over_fetch_factor,
            max_workers=max_workers,
        )
        if self.index_path and Path(str(self.index_path) + ".faiss").exists():
            self.load()
            logger.info("Loaded existing index from %s (%d chunks)", self.index_path, self.size)

    def ingest(self, file_path) -> IngestReport:
        """Ingest a single PDF, text or Markdown file.

        Args:
            file_path: Path to the document.

        Returns:
            IngestReport with chunk counts.

        Raises:
            ValueError: If the file format is not supported.
        """
        file_path = Path(file_path)
        logger.info("Ingesting document: %s", file_path.name)
        document = self._doc_manager.parse_document(file_path)
        return self.ingest_document(document)

    def ingest_text(
        self,
        text: str,
        file_name: str,
        doc_id: Optional[str] = None,
        pages: Optional[List[Tuple[int, str]]] = None,
    ) -> IngestReport:
        """Ingest already extracted text.

        Args:
            text: Full document text. Ignored when ``pages`` is given.
            file_name: Name used for citations.
            doc_id: Document ID; defaults to the file name.
            pages: Optional ``(page_number, text)`` pairs.
        """
        if pages is not None:
            content, sections = assemble_pages(pages)
        else:
            content, sections = text, []
        document = Document(
            metadata=DocumentMetadata(doc_id=doc_id or file_name, file_name=file_name),
            content=content,
            sections=sections,
        )
        return self.ingest_document(document)

    def ingest_document(self, document: Document) -> IngestReport:
        """Chunk, embed and store a parsed document.

        Chunks already stored under the same document ID are removed first,
        so re-ingesting a document replaces it. A chunk whose content is
        already stored is skipped. A chunk whose embedding fails is stored
        without a vector so it stays reachable by keyword search and can be
        filled in by :meth:`reembed`. A chunk the store rejects is logged,
        counted and skipped.

        Raises:
            StoreError: If the index holds vectors of another dimension
                than the embedding model produces.
        """
        report = IngestReport(
            doc_id=document.metadata.doc_id,
            file_name=document.metadata.file_name,
        )
        self._align_dimension()

        report.chunks_replaced = self.store.delete_document(report.doc_id)
        if report.chunks_replaced:
            logger.info(
                "Replacing %d existing chunks of document %s",
                report.chunks_replaced, report.doc_id,
            )

        chunks = self._chunker.chunk_document(document)
        if not chunks:
            logger.warning("No chunks created from %s", report.file_name)
            if report.chunks_replaced:
                self._autosave()
            return report

        for chunk in chunks:
            if self.store.find_by_hash(chunk.content_hash) is not None:
                logger.debug("Skipping duplicate chunk (hash: %s...)", chunk.content_hash[:8])
                report.chunks_skipped += 1
                continue
            try:
                chunk.embedding = self.embedder.embed(chunk.content)
            except EmbeddingError as e:
                report.embedding_failures += 1
                logger.error("Failed to embed chunk %s: %s", chunk.chunk_id, e)
            try:
                self.store.upsert_chunk(chunk)
            except StoreError as e:
                report.store_failures += 1
                logger.error("Failed to store chunk %s: %s", chunk.chunk_id, e)
                continue
            report.chunks_created += 1

        logger.info(
            "Ingested %s: %d chunks created, %d duplicates skipped, "
            "%d embedding failures, %d store failures",
            report.file_name, report.chunks_created, report.chunks_skipped,
            report.embedding_failures, report.store_failures,
        )
        self._autosave()
        return report

    def _align_dimension(self, rebuild: bool = False) -> None:
        """Make the store's vector index accept the embedder's vectors.

        An index holding no vectors, or one about to be fully re-embedded
        (``rebuild``), is reset to the embedder's dimension.
        """
        stored = self.store.vector_dimension
        if stored is None:
            return
        try:
            wanted = self.embedder.dimension
        except EmbeddingError as e:
            logger.warning("Cannot determine embedding dimension: %s", e)
            return
        if stored == wanted:
            return
        if rebuild or self.store.count_chunks({"has_embedding": True}) == 0:
            logger.warning(
                "Vector index has %d dimensions, embedding model produces %d; resetting index",
                stored, wanted,
            )
            self.store.reset_vectors(wanted)
            return
        raise StoreError(
            f"Index holds {stored}-dimensional vectors but the embedding model "
            f"produces {wanted}. Run a full re-embed to rebuild the index."
        )

    def ingest_directory(self, directory, pattern=None) -> dict:
        """Ingest all supported documents in a directory.

        Args:
            directory: Path to the directory to scan.
            pattern: Optional glob pattern (e.g. '*.pdf'). If None,
                     all supported formats are ingested.

        Returns:
            Dict with keys: files_processed, files_failed, total_chunks, errors.
        """
        directory = Path(directory)
        if pattern:
            files = sorted(directory.rglob(pattern))
        else:
            files = sorted(
                f for f in directory.rglob("*")
                if f.is_file() and self._doc_manager.get_parser(f) is not None
            )
        stats = {"files_processed": 0, "files_failed": 0, "total_chunks": 0, "errors": []}
        for fp in files:
            try:
                report = self.ingest(fp)
                stats["files_processed"] += 1
                stats["total_chunks"] += report.chunks_created
            except Exception as e:
                stats["files_failed"] += 1
                stats["errors"].append({"file": str(fp), "error": str(e)})
                logger.error("Failed to ingest %s: %s", fp.name, e)
        logger.info(
            "Directory ingest complete: %d files, %d chunks, %d errors",
            stats["files_processed"], stats["total_chunks"], stats["files_failed"]
        )
        return stats

    @property
    def supported_formats(self) -> List[str]:
        """Return list of supported file extensions."""
        return self._doc_manager.supported_extensions

    def search(
        self,
        query: str,
        limit: int = 10,
        min_score: float = 0.02,
        doc_id: Optional[str] = None,
    ) -> List[SearchResult]:
        """Hybrid vector and keyword search. See HybridRetriever.search."""
        return self.retriever.search(query, limit=limit, min_score=min_score, doc_id=doc_id)

    def reembed(
        self,
        batch_size: int = 5,
        pause_seconds: float = 2.0,
        only_missing: bool = False,
    ) -> ReembedReport:
        """Recompute stored embeddings in batches. See Reembedder.run.

        A full run (``only_missing=False``) rebuilds the vector index when
        the embedding model produces vectors of another dimension.
        """
        self._align_dimension(rebuild=not only_missing)
        reembedder = Reembedder(
            self.embedder, self.store,
            batch_size=batch_size, pause_seconds=pause_seconds,
        )
        report = reembedder.run(only_missing=only_missing)
        if report.updated:
            self._autosave()
        return report

    def delete_document(self, doc_id: str) -> int:
        deleted = self.store.delete_document(doc_id)
        if deleted > 0:
            self._autosave()
        return deleted

    def _autosave(self):
        if self.index_path and self.auto_save:
            self.save()

    def save(self, path=None):
        save_path = Path(path) if path else self.index_path
        if not save_path:
            raise ValueError("No save path specified")
        self.store.save(str(save_path))

    def load(self, path=None):
        load_path = Path(path) if path else self.index_path
        if not load_path:
            raise ValueError("No load path specified")
        self.store.load(str(load_path))

    def clear(self):
        self.store.clear()

    def count_chunks(self, filter: Optional[Dict] = None) -> int:
        return self.store.count_chunks(filter)

    def list_indexes(self) -> List[IndexInfo]:
        return self.store.list_indexes()

    @property
    def size(self) -> int:
        return self.store.size

    @property
    def document_ids(self) -> List[str]:
        return self.store.document_ids()

    def get_document_chunks(self, doc_id: str) -> List[DocumentChunk]:
        return list(self.store.iter_chunks({"doc_id": doc_id}))

    def __len__(self):
        return self.size

    def __repr__(self):
        return f"KnowledgeBase(size={self.size}, documents={len(self.document_ids)})"
