"""Document ingestion: parsing, chunking, embedding, and storing documents."""

from .document import Document, DocumentMetadata, DocumentSection
from .parsers import PDFParser, TextParser
from .document_manager import DocumentManager
from .chunking import ChunkingPolicy, DocumentChunk, FixedSizeChunker, chunk_text
from .embeddings import EmbeddingClient, EmbeddingService
from .storage import DocumentStore, FAISSDocumentStore, IndexInfo, ScoredChunk
from .reembedding import Reembedder, ReembedReport

__all__ = [
    "DocumentManager",
    # Document models
    "Document",
    "DocumentMetadata",
    "DocumentSection",
    # Parsers
    "PDFParser",
    "TextParser",
    # Chunking
    "ChunkingPolicy",
    "DocumentChunk",
    "FixedSizeChunker",
    "chunk_text",
    # Embeddings
    "EmbeddingClient",
    "EmbeddingService",
    # Storage
    "DocumentStore",
    "FAISSDocumentStore",
    "IndexInfo",
    "ScoredChunk",
    # Re-embedding
    "Reembedder",
    "ReembedReport",
]
