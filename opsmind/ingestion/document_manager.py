from pathlib import Path
from typing import List, Optional
from .parsers.base import BaseParser
from .parsers.pdf_parser import PDFParser
from .parsers.text_parser import TextParser
from .document import Document


class DocumentManager:
    """Routes source files to the parser that understands them."""

    def __init__(self, parsers: Optional[List[BaseParser]] = None):
        self.parsers: List[BaseParser] = parsers or [
            PDFParser(),
            TextParser(),
        ]

    def get_parser(self, file_path: Path) -> Optional[BaseParser]:
        """Find appropriate parser for file."""
        for parser in self.parsers:
            if parser.can_parse(file_path):
                return parser
        return None

    @property
    def supported_extensions(self) -> List[str]:
        """Return all file extensions this manager can handle."""
        extensions = []
        for parser in self.parsers:
            extensions.extend(parser.supported_extensions)
        return extensions

    def parse_document(self, file_path: Path) -> Document:
        """Parse a single document."""
        parser = self.get_parser(file_path)
        if parser is None:
            raise ValueError(f"No parser available for {file_path.suffix}")
        return parser.parse(file_path)
