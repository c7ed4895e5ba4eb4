"""Retrieval: hybrid vector and keyword search with deterministic ranking."""

from .hybrid_retriever import HybridRetriever, MatchSource, SearchResult

__all__ = [
    "HybridRetriever",
    "MatchSource",
    "SearchResult",
]
