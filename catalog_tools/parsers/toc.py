"""Table-of-contents and page-list builders for EPUB navigation files.

Every builder reads a parsed document and returns freshly constructed
:class:`TocItem`/:class:`PageListItem` values; the source tree is never
modified.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from .types import PageListItem, TocItem


def _text(tag: Optional[Tag]) -> str:
    if tag is None:
        return ""
    return " ".join(tag.get_text(" ").split())


def _epub_type(tag: Tag) -> str:
    value = tag.get("epub:type") or tag.get("type") or ""
    if isinstance(value, list):
        value = " ".join(value)
    return str(value).strip().lower()


def _parse_nav_list(ol: Tag) -> Tuple[TocItem, ...]:
    items: List[TocItem] = []
    for li in ol.find_all("li", recursive=False):
        anchor = li.find("a")
        if anchor is None:
            continue
        href = (anchor.get("href") or "").strip() or None
        label = _text(anchor) or href
        if not label:
            continue
        nested = li.find("ol")
        children = _parse_nav_list(nested) if nested is not None else ()
        items.append(TocItem(label=label, href=href, children=children))
    return tuple(items)


def build_nav_toc(nav_document: BeautifulSoup) -> Optional[Tuple[TocItem, ...]]:
    """Return the TOC from an EPUB3 navigation document, or ``None``."""

    for nav in nav_document.find_all("nav"):
        if _epub_type(nav) != "toc":
            continue
        ol = nav.find("ol")
        if ol is None:
            return None
        items = _parse_nav_list(ol)
        return items or None
    return None


def _parse_nav_points(parent: Tag) -> Tuple[TocItem, ...]:
    items: List[TocItem] = []
    for point in parent.find_all("navPoint", recursive=False):
        label_tag = point.find("navLabel", recursive=False)
        label = _text(label_tag.find("text")) if label_tag is not None else ""
        content = point.find("content", recursive=False)
        href: Optional[str] = None
        if content is not None:
            href = (content.get("src") or "").strip() or None
        children = _parse_nav_points(point)
        if not label and not href:
            continue
        items.append(TocItem(label=label or href or "", href=href, children=children))
    return tuple(items)


def build_ncx_toc(ncx_document: BeautifulSoup) -> Optional[Tuple[TocItem, ...]]:
    """Return the TOC from an EPUB2 NCX ``navMap``, or ``None``."""

    nav_map = ncx_document.find("navMap")
    if nav_map is None:
        return None
    items = _parse_nav_points(nav_map)
    return items or None


def build_page_list(ncx_document: BeautifulSoup) -> Optional[Tuple[PageListItem, ...]]:
    """Return the NCX ``pageList`` entries that carry both a label and a number."""

    page_list = ncx_document.find("pageList")
    if page_list is None:
        return None
    items: List[PageListItem] = []
    for target in page_list.find_all("pageTarget"):
        label_tag = target.find("navLabel")
        label = _text(label_tag.find("text")) if label_tag is not None else ""
        try:
            number = int(str(target.get("value", "")).strip())
        except ValueError:
            continue
        if not label:
            continue
        items.append(PageListItem(label=label, page_number=number))
    return tuple(items) or None


__all__ = ["build_nav_toc", "build_ncx_toc", "build_page_list"]
