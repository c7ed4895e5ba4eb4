"""Document parsers for different file formats."""

from .base import BaseParser
from .pdf_parser import PDFParser
from .text_parser import TextParser

__all__ = [
    "BaseParser",
    "PDFParser",
    "TextParser",
]
