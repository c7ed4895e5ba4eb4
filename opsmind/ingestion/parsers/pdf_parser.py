from pathlib import Path
import pymupdf
from .base import BaseParser
from ..document import Document, assemble_pages
from ...utils.logger import get_logger

logger = get_logger(__name__)


class PDFParser(BaseParser):
    """Parser for PDF documents."""

    def __init__(self):
        super().__init__()
        self.supported_extensions = ['.pdf']

    def parse(self, file_path: Path) -> Document:
        """Parse a PDF file into cleaned text with one section per page."""
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        pdf_doc = pymupdf.open(file_path)
        try:
            pages = [
                (page_num + 1, self._clean_text(pdf_doc[page_num].get_text()))
                for page_num in range(len(pdf_doc))
            ]
            pdf_metadata = pdf_doc.metadata
        finally:
            pdf_doc.close()

        full_text, sections = assemble_pages(pages)
        metadata = self._extract_metadata(file_path)

        if pdf_metadata:
            if pdf_metadata.get('author'):
                metadata.author = pdf_metadata['author']
            if pdf_metadata.get('title') and pdf_metadata['title'].strip():
                metadata.title = pdf_metadata['title']

        logger.info(
            "Parsed PDF: %s (%d pages with text, %d chars)",
            file_path.name, len(sections), len(full_text),
        )

        return Document(
            metadata=metadata,
            content=full_text,
            sections=sections
        )
