"""Helpers for turning catalogue-style personal names into display names."""

from __future__ import annotations

import re

_PARENTHETICAL = re.compile(r"\(.*?\)")
_YEARS = re.compile(r"\b\d{3,4}(-\d{2,4})?\b")
_WHITESPACE = re.compile(r"\s+")
_TRAILING_SEPARATORS = re.compile(r"[\s,;:/\-]+$")
# A trailing period after a lowercase word ends a sentence; after an initial it stays.
_TRAILING_PERIOD = re.compile(r"(?<=[a-z]{2})\.$")
_HAS_LETTER = re.compile(r"[^\W\d_]")
_URL = re.compile(r"^https?://", re.IGNORECASE)

HEADING_NOISE_FRAGMENTS = ("library of congress subject headings", "subject headings manual")
HEADING_NOISE_EXACT = ("lcsh", "classification")
NAME_NOISE_FRAGMENTS = ("library of congress", "subject headings manual")
NAME_NOISE_EXACT = ("lcsh",)


def _collapse(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def sanitize_name_part(value: str) -> str:
    """Remove parenthetical asides, life dates and trailing separators."""

    cleaned = _PARENTHETICAL.sub(" ", value)
    cleaned = _YEARS.sub(" ", cleaned)
    cleaned = _collapse(cleaned)
    cleaned = _TRAILING_SEPARATORS.sub("", cleaned)
    cleaned = _TRAILING_PERIOD.sub("", cleaned)
    return cleaned.strip()


def normalize_personal_name(value: str) -> str:
    """Return ``"Given Surname"`` for ``"Surname, Given, dates"`` style headings."""

    cleaned = sanitize_name_part(value or "")
    if not cleaned:
        return ""

    segments = [sanitize_name_part(segment) for segment in cleaned.split(",")]
    segments = [segment for segment in segments if _HAS_LETTER.search(segment)]
    if len(segments) >= 2:
        surname = segments[0]
        given = " ".join(segments[1:])
        return _collapse(f"{given} {surname}") or cleaned
    if segments:
        return segments[0]
    return cleaned


def looks_like_name(value: str) -> bool:
    text = (value or "").strip()
    if len(text) < 3 or len(text) > 140:
        return False
    if not re.search(r"[a-z]", text, re.IGNORECASE):
        return False
    return not _URL.match(text)


def is_heading_noise(heading: str) -> bool:
    normalized = heading.lower().strip()
    return (
        any(fragment in normalized for fragment in HEADING_NOISE_FRAGMENTS)
        or normalized in HEADING_NOISE_EXACT
    )


def is_name_noise(label: str) -> bool:
    normalized = label.lower().strip()
    return (
        any(fragment in normalized for fragment in NAME_NOISE_FRAGMENTS)
        or normalized in NAME_NOISE_EXACT
    )


__all__ = [
    "is_heading_noise",
    "is_name_noise",
    "looks_like_name",
    "normalize_personal_name",
    "sanitize_name_part",
]
