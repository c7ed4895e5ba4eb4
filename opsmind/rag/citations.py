"""
Citation handling for generated answers.

Builds display metadata for the chunks an answer was grounded on,
extracts the ``[Source: file, Page X]`` markers the model writes into
its answer, and summarizes citations for reporting.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from ..retrieval.hybrid_retriever import SearchResult

_CITATION_PATTERN = re.compile(r"\[Source:\s*([^,\]]+),?\s*([^\]]*)\]", re.IGNORECASE)
_PAGE_PATTERN = re.compile(r"pages?\s*(\d+(?:\s*-\s*\d+)?)", re.IGNORECASE)


@dataclass
class Citation:
    """A source reference found in answer text.

    Attributes:
        source: File name as written by the model.
        pages: Page numbers cited, ranges expanded.
        text: The full marker, e.g. ``[Source: handbook.pdf, Page 3]``.
    """
    source: str
    pages: List[int]
    text: str


@dataclass
class CitationMetadata:
    """Display data for one chunk an answer was grounded on."""
    chunk_id: str
    source: str
    pages: List[int]
    page_text: str
    citation: str
    confidence: float


@dataclass
class CitationSummary:
    """Aggregate view over a set of citations."""
    total_citations: int = 0
    unique_sources: int = 0
    source_frequency: Dict[str, int] = field(default_factory=dict)
    page_distribution: Dict[int, int] = field(default_factory=dict)
    average_relevance: float = 0.0


def format_page_ranges(pages: Iterable[int]) -> str:
    """Format page numbers compactly: ``p. 3`` or ``pp. 2-4, 7``.

    Returns an empty string when there are no pages.
    """
    numbers = sorted(set(pages))
    if not numbers:
        return ""
    if len(numbers) == 1:
        return f"p. {numbers[0]}"

    ranges = []
    start = prev = numbers[0]
    for page in numbers[1:]:
        if page == prev + 1:
            prev = page
            continue
        ranges.append(str(start) if start == prev else f"{start}-{prev}")
        start = prev = page
    ranges.append(str(start) if start == prev else f"{start}-{prev}")
    return "pp. " + ", ".join(ranges)


def _expand_pages(text: str) -> List[int]:
    pages = []
    for match in _PAGE_PATTERN.finditer(text):
        bounds = [int(part) for part in match.group(1).split("-")]
        if len(bounds) == 2:
            pages.extend(range(bounds[0], bounds[1] + 1))
        else:
            pages.append(bounds[0])
    return pages


def extract_citations(text: Optional[str]) -> List[Citation]:
    """Find ``[Source: ...]`` markers in answer text, in order of appearance."""
    if not text:
        return []
    return [
        Citation(
            source=match.group(1).strip(),
            pages=_expand_pages(match.group(2)),
            text=match.group(0),
        )
        for match in _CITATION_PATTERN.finditer(text)
    ]


def citation_metadata(results: Sequence[SearchResult]) -> List[CitationMetadata]:
    """Build citation metadata for retrieved chunks, one entry per chunk ID."""
    seen = set()
    metadata = []
    for result in results:
        chunk = result.chunk
        if chunk.chunk_id in seen:
            continue
        seen.add(chunk.chunk_id)
        source = chunk.file_name or "Unknown Document"
        pages = chunk.page_numbers
        page_text = format_page_ranges(pages)
        metadata.append(CitationMetadata(
            chunk_id=chunk.chunk_id,
            source=source,
            pages=pages,
            page_text=page_text,
            citation=f"[{source}, {page_text}]" if page_text else f"[{source}]",
            confidence=result.relevance_score,
        ))
    return metadata


def summarize_citations(citations: Sequence[CitationMetadata]) -> CitationSummary:
    """Count sources and pages and average the relevance of citations."""
    if not citations:
        return CitationSummary()

    sources = Counter(c.source for c in citations)
    pages = Counter(page for c in citations for page in c.pages)
    return CitationSummary(
        total_citations=len(citations),
        unique_sources=len(sources),
        source_frequency=dict(sources),
        page_distribution=dict(sorted(pages.items())),
        average_relevance=sum(c.confidence for c in citations) / len(citations),
    )
