"""Normalized term-frequency scoring for the keyword index."""

from typing import List

# Occurrences of a single term beyond this add nothing to the score
MAX_MATCHES_PER_TERM = 3


def query_terms(query: str) -> List[str]:
    """Lower-cased whitespace tokens of a query."""
    return [term for term in query.lower().split() if term]


def keyword_score(content: str, query: str) -> float:
    """
    Score how well ``content`` matches the query terms.

    Each term contributes its case-insensitive occurrence count, capped
    at ``MAX_MATCHES_PER_TERM``. The sum is divided by twice the number
    of terms and clipped to 1.0, so a chunk mentioning every term twice
    scores 1.0.

    Args:
        content: Chunk text.
        query: Raw query string.

    Returns:
        Score in ``[0.0, 1.0]``; 0.0 for an empty query.
    """
    terms = query_terms(query)
    if not terms:
        return 0.0
    content_lower = content.lower()
    matches = sum(
        min(content_lower.count(term), MAX_MATCHES_PER_TERM) for term in terms
    )
    return min(matches / (len(terms) * 2), 1.0)


def matches_any_term(text: str, terms: List[str]) -> bool:
    text_lower = text.lower()
    return any(term in text_lower for term in terms)
