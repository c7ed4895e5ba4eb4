"""
Parser for plain text and Markdown files.

Form feed characters are treated as page breaks, so text exported from
paginated sources keeps its page numbers for citations. Files without
form feeds become a single page.
"""

from pathlib import Path

from .base import BaseParser
from ..document import Document, assemble_pages
from ...utils.logger import get_logger

logger = get_logger(__name__)


class TextParser(BaseParser):
    """Parser for plain text (.txt) and Markdown (.md) files."""

    ENCODINGS = ("utf-8", "utf-8-sig", "latin-1")

    def __init__(self):
        super().__init__()
        self.supported_extensions = [".txt", ".md"]

    def parse(self, file_path: Path) -> Document:
        """
        Parse a text or Markdown file.

        Args:
            file_path: Path to the text file.

        Returns:
            Parsed Document with one section per page.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        raw = self._read_file(file_path)
        pages = [
            (i + 1, self._clean_text(page))
            for i, page in enumerate(raw.split("\f"))
        ]
        content, sections = assemble_pages(pages)

        logger.info(
            "Parsed text file: %s (%d pages, %d chars)",
            file_path.name, len(sections), len(content),
        )

        return Document(
            metadata=self._extract_metadata(file_path),
            content=content,
            sections=sections,
        )

    def _read_file(self, file_path: Path) -> str:
        """Read the file, trying common encodings in order."""
        for encoding in self.ENCODINGS:
            try:
                return file_path.read_text(encoding=encoding)
            except UnicodeDecodeError:
                logger.debug("Failed to decode %s as %s", file_path.name, encoding)
        # latin-1 decodes any byte sequence, so this is unreachable in practice
        raise UnicodeDecodeError("unknown", b"", 0, 1, f"Cannot decode {file_path}")
