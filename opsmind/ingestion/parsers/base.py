from abc import ABC, abstractmethod
from pathlib import Path
import hashlib
import re
from datetime import datetime
from ..document import Document, DocumentMetadata

_WHITESPACE = re.compile(r"\s+")


class BaseParser(ABC):
    """Abstract base class for document parsers."""

    def __init__(self):
        self.supported_extensions = []

    @abstractmethod
    def parse(self, file_path: Path) -> Document:
        """Parse a document from the given file path."""
        pass

    def can_parse(self, file_path: Path) -> bool:
        """Check if this parser can handle the given file."""
        return file_path.suffix.lower() in self.supported_extensions

    def _generate_doc_id(self, file_path: Path) -> str:
        """Document ID derived from the absolute path, stable across re-ingests."""
        return hashlib.md5(str(file_path.absolute()).encode()).hexdigest()

    def _extract_metadata(self, file_path: Path) -> DocumentMetadata:
        """Extract basic metadata from file."""
        stat = file_path.stat()

        return DocumentMetadata(
            doc_id=self._generate_doc_id(file_path),
            file_name=file_path.name,
            source_path=file_path,
            file_type=file_path.suffix.lower().lstrip('.'),
            title=file_path.stem,
            created_date=datetime.fromtimestamp(stat.st_ctime),
            modified_date=datetime.fromtimestamp(stat.st_mtime)
        )

    @staticmethod
    def _clean_text(text: str) -> str:
        """Collapse runs of whitespace and newlines into single spaces."""
        return _WHITESPACE.sub(" ", text).strip()
