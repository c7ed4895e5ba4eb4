from .chunk import DocumentChunk, PageReference, make_chunk_id
from .policy import ChunkingPolicy
from .fixed_size_chunker import FixedSizeChunker, TextWindow, chunk_text, content_hash

__all__ = [
    'DocumentChunk',
    'PageReference',
    'make_chunk_id',
    'ChunkingPolicy',
    'FixedSizeChunker',
    'TextWindow',
    'chunk_text',
    'content_hash',
]
