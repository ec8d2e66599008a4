"""ISBN discovery helpers."""

from __future__ import annotations

import re
from typing import Optional

_SEPARATORS = re.compile(r"[-\s]")
_ISBN13_PATTERN = re.compile(r"97[89]\d{10}")
_ISBN10_PATTERN = re.compile(r"\d{9}[\dX]")


def normalize_identifier(value: str) -> str:
    """Strip hyphens and whitespace from ``value``."""

    return _SEPARATORS.sub("", value or "")


def find_isbn(text: Optional[str]) -> Optional[str]:
    """Return the first ISBN-13 in ``text``, else the first ISBN-10, else ``None``."""

    if not text:
        return None
    compact = normalize_identifier(text)
    match = _ISBN13_PATTERN.search(compact)
    if match:
        return match.group(0)
    match = _ISBN10_PATTERN.search(compact)
    if match:
        return match.group(0)
    return None


__all__ = ["find_isbn", "normalize_identifier"]
