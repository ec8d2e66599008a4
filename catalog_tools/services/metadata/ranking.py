"""Relevance scoring for loosely structured authority search hits."""

from __future__ import annotations

import re
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .field_mapping import LOC_FORMAT_FIELDS, LOC_RANKING_TEXT_FIELDS, collect_strings

NOISE_THRESHOLD = 2
TITLE_TOKEN_WEIGHT = 3
AUTHOR_TOKEN_WEIGHT = 2
FORMAT_BONUS = 2
FORMAT_PENALTY = 2
PENALIZED_FORMATS: Tuple[str, ...] = ("manuscript", "photo", "newspaper")

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def tokenize(value: Optional[str]) -> List[str]:
    """Lowercase ``value``, drop punctuation and keep tokens of three or more characters."""

    if not value:
        return []
    cleaned = _NON_ALNUM.sub(" ", value.lower())
    return [token for token in cleaned.split() if len(token) >= 3]


def candidate_text(item: Mapping[str, Any]) -> str:
    return " ".join(collect_strings(item, LOC_RANKING_TEXT_FIELDS)).lower()


def format_text(item: Mapping[str, Any]) -> str:
    return " ".join(collect_strings(item, LOC_FORMAT_FIELDS)).lower()


def score_candidate(
    item: Mapping[str, Any],
    title: Optional[str],
    author: Optional[str],
) -> int:
    """Score ``item`` against the requested title and author."""

    text = candidate_text(item)
    score = 0
    for token in tokenize(title):
        if token in text:
            score += TITLE_TOKEN_WEIGHT
    for token in tokenize(author):
        if token in text:
            score += AUTHOR_TOKEN_WEIGHT

    formats = format_text(item)
    if "book" in formats:
        score += FORMAT_BONUS
    if any(marker in formats for marker in PENALIZED_FORMATS):
        score -= FORMAT_PENALTY
    return score


def is_relevant(score: int) -> bool:
    return score >= NOISE_THRESHOLD


def rank_candidates(
    items: Sequence[Mapping[str, Any]],
    title: Optional[str],
    author: Optional[str],
) -> List[Tuple[int, Mapping[str, Any]]]:
    """Return ``(score, item)`` pairs sorted by descending score; ties keep input order."""

    scored = [(score_candidate(item, title, author), item) for item in items]
    return sorted(scored, key=lambda pair: pair[0], reverse=True)


__all__ = [
    "NOISE_THRESHOLD",
    "candidate_text",
    "format_text",
    "is_relevant",
    "rank_candidates",
    "score_candidate",
    "tokenize",
]
