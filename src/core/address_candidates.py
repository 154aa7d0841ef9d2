"""Turn loose address text into an ordered list of geocoding query candidates."""
from __future__ import annotations

import re
from typing import Dict, List, Optional

from src.core.schemas import LocationRefinementResult

MIN_PREFIX_LENGTH = 6

_WHITESPACE = re.compile(r"[\s　]+")
_PUNCTUATION = re.compile(r"[，、。；;|｜]")
_TOKEN_SPLIT = re.compile(r"[\s,，、。；;|｜]+")


def normalize_whitespace(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def normalize_punctuation(value: str) -> str:
    return normalize_whitespace(_PUNCTUATION.sub(" ", value))


def collect_prefixes(source: str) -> List[str]:
    """Shorter variants of ``source``, longest first.

    Multi-token addresses drop trailing tokens one at a time; a single token
    is cut two characters at a time. Nothing shorter than
    ``MIN_PREFIX_LENGTH`` characters is returned.
    """
    prefixes: List[str] = []
    if not source or len(source) < MIN_PREFIX_LENGTH:
        return prefixes

    tokens = [token for token in _TOKEN_SPLIT.split(source) if token]

    if len(tokens) > 1:
        for length in range(len(tokens), 1, -1):
            candidate = " ".join(tokens[:length]).strip()
            if len(candidate) >= MIN_PREFIX_LENGTH:
                prefixes.append(candidate)
        return prefixes

    cut = len(source) - 1
    while cut >= MIN_PREFIX_LENGTH:
        candidate = source[:cut].strip()
        if len(candidate) < MIN_PREFIX_LENGTH:
            break
        prefixes.append(candidate)
        cut -= 2

    return prefixes


def generate_address_candidates(raw_address: Optional[str]) -> List[str]:
    """Return the raw address followed by normalised and truncated variants."""
    if not raw_address:
        return []

    candidates: Dict[str, None] = {}

    def add(value: Optional[str]) -> None:
        trimmed = value.strip() if value else ""
        if trimmed:
            candidates.setdefault(trimmed, None)

    add(raw_address)

    whitespace_normalized = normalize_whitespace(raw_address)
    add(whitespace_normalized)

    punctuation_normalized = normalize_punctuation(whitespace_normalized)
    add(punctuation_normalized)

    for prefix in collect_prefixes(punctuation_normalized):
        add(prefix)

    return list(candidates)


def geocoding_queries(
    result: LocationRefinementResult,
    fallback_address: Optional[str] = None,
) -> List[str]:
    """Queries for a downstream map lookup: model suggestions, then address variants."""
    queries: Dict[str, None] = {}
    for query in result.search_queries:
        queries.setdefault(query, None)
    for candidate in generate_address_candidates(result.address_hint or fallback_address):
        queries.setdefault(candidate, None)
    return list(queries)
