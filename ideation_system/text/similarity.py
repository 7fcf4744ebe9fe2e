"""
Token-set similarity used by deduplication and relevance scoring.
"""

from typing import Iterable, Optional, Set
import re

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(text: Optional[str], stopwords: Optional[Set[str]] = None) -> Set[str]:
    """Lowercase word tokens of ``text`` as a set."""
    if not text:
        return set()
    tokens = set(_TOKEN_RE.findall(text.lower()))
    if stopwords:
        tokens -= stopwords
    return tokens


def jaccard(a: Set[str], b: Set[str]) -> float:
    """|a & b| / |a | b|; 0.0 when either side is empty."""
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def keyword_coverage(text: str, keywords: Iterable[str]) -> float:
    """
    Fraction of ``keywords`` that occur in ``text`` (case-insensitive).

    Multi-word keywords match as substrings; an empty keyword list covers nothing.
    """
    keywords = [k.strip().lower() for k in keywords if k and k.strip()]
    if not keywords or not text:
        return 0.0
    haystack = text.lower()
    hits = sum(1 for k in keywords if k in haystack)
    return hits / len(keywords)
