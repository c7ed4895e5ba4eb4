from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


def make_chunk_id(doc_id: str, sequence_index: int) -> str:
    """Stable chunk identifier derived from its document and position."""
    return f"{doc_id}_chunk_{sequence_index}"


@dataclass
class PageReference:
    """Part of a chunk that falls on one source page.

    Offsets are relative to the start of the chunk.
    """
    page: int
    start_char: int
    end_char: int


@dataclass
class DocumentChunk:
    """A bounded, overlapping slice of a source document's text."""
    chunk_id: str
    doc_id: str
    content: str
    file_name: str
    sequence_index: int = 0

    # Position in original document
    start_char: int = 0
    end_char: int = 0
    total_chunks: Optional[int] = None

    # Source tracking (for citations)
    pages: List[PageReference] = field(default_factory=list)

    # Duplicate suppression and source-document ordering
    content_hash: str = ""
    created_at: Optional[datetime] = None

    # Populated by the embedding client, replaced in place on re-embedding
    embedding: Optional[List[float]] = None

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    @property
    def page_numbers(self) -> List[int]:
        return sorted({ref.page for ref in self.pages})

    def get_citation(self) -> str:
        """Human readable source reference, e.g. ``handbook.pdf, Pages 2-3``."""
        pages = self.page_numbers
        if not pages:
            return self.file_name
        if len(pages) == 1:
            return f"{self.file_name}, Page {pages[0]}"
        return f"{self.file_name}, Pages {pages[0]}-{pages[-1]}"

    def __len__(self):
        return len(self.content)

    def __str__(self):
        return f"DocumentChunk({self.chunk_id}, {len(self)} chars, from {self.file_name})"
