"""Page-count determination for reflowable formats."""

from __future__ import annotations

import math
from typing import Iterable, Optional

from bs4 import BeautifulSoup

from .types import PageCount, PageCountType

CHARS_PER_PAGE = 1500


def _as_int(value: object) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def page_count_from_page_list(ncx_document: Optional[BeautifulSoup]) -> Optional[int]:
    """Return the highest ``pageTarget`` number (``value``, else ``playOrder``) in the first ``pageList``."""

    if ncx_document is None:
        return None
    page_list = ncx_document.find("pageList")
    if page_list is None:
        return None
    highest: Optional[int] = None
    for target in page_list.find_all("pageTarget"):
        number = _as_int(target.get("value"))
        if number is None:
            number = _as_int(target.get("playOrder"))
        if number is None:
            continue
        if highest is None or number > highest:
            highest = number
    return highest


def page_count_from_package(declared: Iterable[Optional[str]]) -> Optional[int]:
    """Return the first ``schema:numberOfPages`` value when it parses as an integer."""

    for value in declared:
        return _as_int(value)
    return None


def estimate_from_text(length: int) -> int:
    """Estimate pages from character count, rounding half up, never below one."""

    return max(1, math.floor(length / CHARS_PER_PAGE + 0.5))


def determine_page_count(
    text: str,
    *,
    ncx_document: Optional[BeautifulSoup] = None,
    declared_pages: Iterable[Optional[str]] = (),
) -> PageCount:
    """Apply the page-list, package-metadata, text-length cascade."""

    from_page_list = page_count_from_page_list(ncx_document)
    if from_page_list is not None and from_page_list > 0:
        return PageCount(value=from_page_list, type=PageCountType.ACTUAL)

    declared = page_count_from_package(declared_pages)
    if declared is not None and declared > 0:
        return PageCount(value=declared, type=PageCountType.ACTUAL)

    return PageCount(value=estimate_from_text(len(text)), type=PageCountType.ESTIMATED)


__all__ = [
    "CHARS_PER_PAGE",
    "determine_page_count",
    "estimate_from_text",
    "page_count_from_package",
    "page_count_from_page_list",
]
