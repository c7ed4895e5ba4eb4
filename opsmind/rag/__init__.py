"""Retrieval-Augmented Generation: context assembly and streamed answers."""

from .llm import LLMProvider, ClaudeProvider, Message
from .context import AssembledContext, ContextAssembler
from .citations import (
    Citation,
    CitationMetadata,
    CitationSummary,
    citation_metadata,
    extract_citations,
    format_page_ranges,
    summarize_citations,
)
from .pipeline import ChatPipeline, ChatResponse

__all__ = [
    "LLMProvider",
    "ClaudeProvider",
    "Message",
    "AssembledContext",
    "ContextAssembler",
    "Citation",
    "CitationMetadata",
    "CitationSummary",
    "citation_metadata",
    "extract_citations",
    "format_page_ranges",
    "summarize_citations",
    "ChatPipeline",
    "ChatResponse",
]
