"""
Keyword concept extraction.

Deterministic and bounded: lower-case, strip punctuation, split on
whitespace, drop short tokens and stop words, keep at most five distinct
tokens. Domain hints only reorder the result.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

MAX_CONCEPTS = 5
MIN_TOKEN_LENGTH = 4  # Tokens of 3 characters or fewer are discarded

_PUNCTUATION = re.compile(r"[^\w\s]")

STOP_WORDS = frozenset(
    {
        "this", "that", "with", "have", "will", "from", "they", "been",
        "were", "said", "each", "which", "their", "time", "would", "there",
        "could", "other", "more", "very", "what", "know", "just", "first",
        "into", "over", "think", "also", "your", "work", "life", "only",
        "can", "still", "should", "after", "being", "now", "made", "before",
        "here", "through", "when", "where", "much", "some", "these", "many",
        "then", "them", "well",
    }
)


def tokenize(text: str) -> list[str]:
    """Lower-cased tokens with punctuation replaced by whitespace."""
    return _PUNCTUATION.sub(" ", text.lower()).split()


def _is_hinted(token: str, hints: list[str]) -> bool:
    return any(hint in token or token in hint for hint in hints)


def extract_concepts(text: str, domain_hints: Iterable[str] | None = None) -> list[str]:
    """
    Extract up to five keyword concepts from item text.

    Args:
        text: Front and back text of an item
        domain_hints: Optional words; concepts matching a hint (substring in
            either direction) are moved to the front, order otherwise kept

    Returns:
        Distinct concepts in first-seen order, at most MAX_CONCEPTS
    """
    concepts: list[str] = []
    seen: set[str] = set()
    for token in tokenize(text):
        if len(token) < MIN_TOKEN_LENGTH or token in STOP_WORDS or token in seen:
            continue
        seen.add(token)
        concepts.append(token)

    if domain_hints:
        hints = [h.lower() for h in domain_hints if h]
        if hints:
            # sorted() is stable, so relative order inside each group holds
            concepts = sorted(concepts, key=lambda c: not _is_hinted(c, hints))

    return concepts[:MAX_CONCEPTS]
