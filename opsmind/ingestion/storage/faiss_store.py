import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

import numpy as np

try:
    import faiss
except ImportError:
    faiss = None

from ...exceptions import StoreError
from ...utils.logger import get_logger
from ..chunking.chunk import DocumentChunk, PageReference
from .document_store import DocumentStore, IndexInfo, ScoredChunk

logger = get_logger(__name__)

VECTOR_INDEX_NAME = "vector_index"
KEYWORD_INDEX_NAME = "keyword_index"


class FAISSDocumentStore(DocumentStore):
    """
    Document store keeping chunks in memory and vectors in FAISS.

    Uses an IndexIDMap2 over IndexFlatIP (inner product), which is
    cosine similarity because vectors are L2-normalized on the way in.
    The ID map lets a chunk's vector be removed and re-added in place
    when it is re-embedded.
    """

    def __init__(self, embedding_dim: int = 384):
        """
        Initialize the FAISS document store.

        Args:
            embedding_dim: Dimension of embedding vectors.
                          Default 384 matches 'all-MiniLM-L6-v2'.
        """
        if faiss is None:
            raise ImportError(
                "FAISS is not installed. Install it with: pip install faiss-cpu"
            )

        self.embedding_dim = embedding_dim
        self._index = self._new_index()
        self._chunks: Dict[str, DocumentChunk] = {}
        self._hashes: Dict[str, str] = {}
        self._faiss_ids: Dict[str, int] = {}
        self._chunk_ids: Dict[int, str] = {}
        self._next_id = 0
        self._lock = threading.RLock()

    def _new_index(self):
        return faiss.IndexIDMap2(faiss.IndexFlatIP(self.embedding_dim))

    def _normalize(self, vector: Sequence[float]) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float32).reshape(1, -1)
        if array.shape[1] != self.embedding_dim:
            raise StoreError(
                f"Vector dimension {array.shape[1]} does not match "
                f"index dimension {self.embedding_dim}"
            )
        faiss.normalize_L2(array)
        return array

    def upsert_chunk(self, chunk: DocumentChunk) -> None:
        """Insert or replace a chunk, re-indexing its vector if it has one."""
        vector = self._normalize(chunk.embedding) if chunk.has_embedding else None

        with self._lock:
            previous = self._chunks.get(chunk.chunk_id)
            if previous is not None and previous.content_hash:
                self._hashes.pop(previous.content_hash, None)

            self._remove_vector(chunk.chunk_id)
            if vector is not None:
                faiss_id = self._next_id
                self._next_id += 1
                try:
                    self._index.add_with_ids(vector, np.array([faiss_id], dtype=np.int64))
                except RuntimeError as exc:
                    raise StoreError(f"Failed to index chunk {chunk.chunk_id}: {exc}") from exc
                self._faiss_ids[chunk.chunk_id] = faiss_id
                self._chunk_ids[faiss_id] = chunk.chunk_id

            self._chunks[chunk.chunk_id] = chunk
            if chunk.content_hash:
                self._hashes[chunk.content_hash] = chunk.chunk_id

    def _remove_vector(self, chunk_id: str) -> None:
        faiss_id = self._faiss_ids.pop(chunk_id, None)
        if faiss_id is None:
            return
        self._chunk_ids.pop(faiss_id, None)
        self._index.remove_ids(np.array([faiss_id], dtype=np.int64))

    def vector_search(
        self,
        vector: Sequence[float],
        k: int,
        doc_id: Optional[str] = None,
    ) -> List[ScoredChunk]:
        """
        Search for chunks similar to the query vector.

        Args:
            vector: Query embedding vector
            k: Number of candidates to return
            doc_id: Optional document ID to filter results

        Returns:
            List of ScoredChunk objects, sorted by similarity
        """
        query = self._normalize(vector)

        with self._lock:
            if self._index.ntotal == 0 or k <= 0:
                return []

            # Search more results if filtering, to ensure we get enough matches
            search_k = k * 3 if doc_id else k
            try:
                scores, ids = self._index.search(query, min(search_k, self._index.ntotal))
            except RuntimeError as exc:
                raise StoreError(f"Vector search failed: {exc}") from exc

            results = []
            for score, faiss_id in zip(scores[0], ids[0]):
                if faiss_id == -1:  # FAISS returns -1 for unfilled slots
                    continue
                chunk = self._chunks[self._chunk_ids[int(faiss_id)]]
                if doc_id and chunk.doc_id != doc_id:
                    continue
                results.append(ScoredChunk(chunk=chunk, score=float(score)))
                if len(results) >= k:
                    break

        return results

    def get_chunk(self, chunk_id: str) -> Optional[DocumentChunk]:
        with self._lock:
            return self._chunks.get(chunk_id)

    def iter_chunks(self, filter: Optional[Dict[str, Any]] = None) -> Iterator[DocumentChunk]:
        with self._lock:
            snapshot = list(self._chunks.values())
        return iter([chunk for chunk in snapshot if self._matches(chunk, filter)])

    def find_by_hash(self, content_hash: str) -> Optional[DocumentChunk]:
        with self._lock:
            chunk_id = self._hashes.get(content_hash)
            return self._chunks.get(chunk_id) if chunk_id else None

    def delete_document(self, doc_id: str) -> int:
        """
        Delete all chunks belonging to a document.

        Args:
            doc_id: Document ID to delete

        Returns:
            Number of chunks deleted
        """
        with self._lock:
            doomed = [c for c in self._chunks.values() if c.doc_id == doc_id]
            for chunk in doomed:
                self._remove_vector(chunk.chunk_id)
                self._hashes.pop(chunk.content_hash, None)
                del self._chunks[chunk.chunk_id]
        if doomed:
            logger.info("Deleted %d chunks of document %s", len(doomed), doc_id)
        return len(doomed)

    def list_indexes(self) -> List[IndexInfo]:
        return [
            IndexInfo(
                name=VECTOR_INDEX_NAME,
                dimension=self.embedding_dim,
                path="embedding",
                similarity="cosine",
            ),
            IndexInfo(
                name=KEYWORD_INDEX_NAME,
                dimension=None,
                path="content",
                similarity="keyword",
            ),
        ]

    @property
    def vector_dimension(self) -> int:
        return self.embedding_dim

    def reset_vectors(self, dimension: int) -> None:
        """Rebuild an empty vector index of a new dimension, keeping all chunks."""
        with self._lock:
            self.embedding_dim = dimension
            self._index = self._new_index()
            self._faiss_ids = {}
            self._chunk_ids = {}
            self._next_id = 0
            for chunk in self._chunks.values():
                chunk.embedding = None
        logger.info("Reset vector index to %d dimensions (%d chunks kept)", dimension, len(self._chunks))

    @property
    def vector_count(self) -> int:
        """Number of chunks present in the vector index."""
        return self._index.ntotal

    def clear(self) -> None:
        """Remove all data from the store."""
        with self._lock:
            self._index = self._new_index()
            self._chunks = {}
            self._hashes = {}
            self._faiss_ids = {}
            self._chunk_ids = {}
            self._next_id = 0

    def save(self, path: str) -> None:
        """
        Save the store to disk.

        Creates two files:
        - {path}.faiss: The FAISS index
        - {path}.meta.json: Chunk metadata and vector IDs
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with self._lock:
            try:
                faiss.write_index(self._index, str(path) + ".faiss")
            except RuntimeError as exc:
                raise StoreError(f"Failed to write index to {path}: {exc}") from exc

            chunks_data = []
            for chunk in self._chunks.values():
                chunks_data.append({
                    "chunk_id": chunk.chunk_id,
                    "doc_id": chunk.doc_id,
                    "content": chunk.content,
                    "file_name": chunk.file_name,
                    "sequence_index": chunk.sequence_index,
                    "start_char": chunk.start_char,
                    "end_char": chunk.end_char,
                    "total_chunks": chunk.total_chunks,
                    "pages": [
                        {"page": p.page, "start_char": p.start_char, "end_char": p.end_char}
                        for p in chunk.pages
                    ],
                    "content_hash": chunk.content_hash,
                    "created_at": chunk.created_at.isoformat() if chunk.created_at else None,
                    "faiss_id": self._faiss_ids.get(chunk.chunk_id),
                })

            metadata = {
                "embedding_dim": self.embedding_dim,
                "next_id": self._next_id,
                "chunks": chunks_data,
            }

        with open(str(path) + ".meta.json", "w", encoding="utf-8") as f:
            json.dump(metadata, f, indent=2)

    def load(self, path: str) -> None:
        """
        Load the store from disk.

        Embeddings are reconstructed from the index, so loaded chunks
        carry their normalized vectors.

        Args:
            path: Base path (without extension) to load from
        """
        path = Path(path)

        index_path = str(path) + ".faiss"
        if not Path(index_path).exists():
            raise FileNotFoundError(f"FAISS index not found: {index_path}")

        meta_path = str(path) + ".meta.json"
        if not Path(meta_path).exists():
            raise FileNotFoundError(f"Metadata file not found: {meta_path}")

        with open(meta_path, "r", encoding="utf-8") as f:
            metadata = json.load(f)

        with self._lock:
            try:
                self._index = faiss.read_index(index_path)
            except RuntimeError as exc:
                raise StoreError(f"Failed to read index from {index_path}: {exc}") from exc

            self.embedding_dim = metadata["embedding_dim"]
            self._next_id = metadata.get("next_id", 0)
            self._chunks = {}
            self._hashes = {}
            self._faiss_ids = {}
            self._chunk_ids = {}

            for data in metadata["chunks"]:
                created_at = data.get("created_at")
                chunk = DocumentChunk(
                    chunk_id=data["chunk_id"],
                    doc_id=data["doc_id"],
                    content=data["content"],
                    file_name=data["file_name"],
                    sequence_index=data.get("sequence_index", 0),
                    start_char=data.get("start_char", 0),
                    end_char=data.get("end_char", 0),
                    total_chunks=data.get("total_chunks"),
                    pages=[PageReference(**p) for p in data.get("pages", [])],
                    content_hash=data.get("content_hash", ""),
                    created_at=datetime.fromisoformat(created_at) if created_at else None,
                )
                faiss_id = data.get("faiss_id")
                if faiss_id is not None:
                    chunk.embedding = [float(x) for x in self._index.reconstruct(int(faiss_id))]
                    self._faiss_ids[chunk.chunk_id] = faiss_id
                    self._chunk_ids[faiss_id] = chunk.chunk_id
                self._chunks[chunk.chunk_id] = chunk
                if chunk.content_hash:
                    self._hashes[chunk.content_hash] = chunk.chunk_id

        logger.info("Loaded %d chunks from %s", len(self._chunks), path)
