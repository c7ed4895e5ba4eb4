from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Tuple
from pathlib import Path


@dataclass
class DocumentMetadata:
    """Metadata for a source document."""
    doc_id: str
    file_name: str
    source_path: Optional[Path] = None
    file_type: str = "txt"
    title: Optional[str] = None
    author: Optional[str] = None
    created_date: Optional[datetime] = None
    modified_date: Optional[datetime] = None


@dataclass
class Document:
    """Extracted text of a source document, with its page layout."""
    metadata: DocumentMetadata
    content: str
    sections: List['DocumentSection'] = field(default_factory=list)

    def __len__(self):
        return len(self.content)


@dataclass
class DocumentSection:
    """A page (or other span) of the document's extracted text."""
    section_id: str
    content: str
    page_number: Optional[int] = None
    start_char: int = 0
    end_char: int = 0


def assemble_pages(pages: List[Tuple[int, str]]) -> Tuple[str, List[DocumentSection]]:
    """Join page texts with a single space, recording each page's span.

    Empty pages are skipped so they never own a character range.
    """
    full_text = ""
    sections = []
    for page_number, text in pages:
        if not text:
            continue
        start_char = len(full_text)
        full_text += text + " "
        sections.append(DocumentSection(
            section_id=f"page_{page_number}",
            content=text,
            page_number=page_number,
            start_char=start_char,
            end_char=len(full_text),
        ))
    return full_text, sections
