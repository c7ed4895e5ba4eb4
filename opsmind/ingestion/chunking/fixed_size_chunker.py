"""
Fixed-size sliding window chunking.

Windows are cut on raw character offsets and are never stripped or
realigned to word boundaries, so consecutive chunks share exactly
``overlap`` characters.
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from .chunk import DocumentChunk, PageReference, make_chunk_id
from .policy import ChunkingPolicy
from ..document import Document, DocumentSection


@dataclass(frozen=True)
class TextWindow:
    """One window produced by :func:`chunk_text`."""
    content: str
    sequence_index: int
    start_char: int
    end_char: int


def chunk_text(text: str, chunk_size: int, overlap: int) -> List[TextWindow]:
    """
    Split text into overlapping windows of at most ``chunk_size`` characters.

    Window ``k`` starts at ``k * (chunk_size - overlap)``. The walk stops
    at the first window that reaches the end of the text, so the final
    window may be shorter than ``chunk_size``.

    Args:
        text: Text to split. Empty text yields no windows.
        chunk_size: Maximum characters per window.
        overlap: Characters shared by consecutive windows.

    Returns:
        Windows in order, with contiguous zero-based sequence indices.

    Raises:
        InvalidPolicyError: If ``chunk_size <= 0`` or overlap is outside
            ``[0, chunk_size)``.
    """
    policy = ChunkingPolicy(chunk_size=chunk_size, overlap=overlap)
    windows: List[TextWindow] = []
    length = len(text)
    if length == 0:
        return windows

    start = 0
    while True:
        end = min(start + policy.chunk_size, length)
        windows.append(TextWindow(
            content=text[start:end],
            sequence_index=len(windows),
            start_char=start,
            end_char=end,
        ))
        if end >= length:
            break
        start += policy.stride

    return windows


def content_hash(content: str) -> str:
    """SHA-256 hex digest of chunk content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class FixedSizeChunker:
    """
    Turns a parsed document into DocumentChunk records.

    Pros: Fast, predictable, exact overlap between neighbours
    Cons: Cuts mid-sentence, no semantic awareness
    """

    def __init__(self, policy: Optional[ChunkingPolicy] = None):
        self.policy = policy or ChunkingPolicy()

    def chunk_document(self, document: Document) -> List[DocumentChunk]:
        """Split a document into chunks carrying page references."""
        doc_id = document.metadata.doc_id
        file_name = document.metadata.file_name
        created_at = datetime.now(timezone.utc)

        windows = chunk_text(
            document.content, self.policy.chunk_size, self.policy.overlap
        )

        chunks = []
        for window in windows:
            chunks.append(DocumentChunk(
                chunk_id=make_chunk_id(doc_id, window.sequence_index),
                doc_id=doc_id,
                content=window.content,
                file_name=file_name,
                sequence_index=window.sequence_index,
                start_char=window.start_char,
                end_char=window.end_char,
                total_chunks=len(windows),
                pages=self._page_references(window, document.sections),
                content_hash=content_hash(window.content),
                created_at=created_at,
            ))

        return chunks

    @staticmethod
    def _page_references(
        window: TextWindow, sections: List[DocumentSection]
    ) -> List[PageReference]:
        """Pages whose character range intersects the window."""
        refs = []
        for section in sections:
            if section.page_number is None:
                continue
            if section.start_char < window.end_char and section.end_char > window.start_char:
                refs.append(PageReference(
                    page=section.page_number,
                    start_char=max(window.start_char, section.start_char) - window.start_char,
                    end_char=min(window.end_char, section.end_char) - window.start_char,
                ))
        return refs
