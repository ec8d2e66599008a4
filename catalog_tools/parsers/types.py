"""Core type definitions shared by every format parser."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SourceFormat(str, Enum):
    """Container family a :class:`CanonicalMetadata` record was parsed from."""

    PDF = "pdf"
    EPUB = "epub"
    AUDIOBOOK = "audiobook"


class PageCountType(str, Enum):
    """Whether a page count was declared by the file or derived from text length."""

    ACTUAL = "actual"
    ESTIMATED = "estimated"


class IdentifierSource(str, Enum):
    """Where an identifier was found."""

    TEXT = "text"
    METADATA = "metadata"


@dataclass(frozen=True, slots=True)
class PageCount:
    value: int
    type: PageCountType

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "type": self.type.value}


@dataclass(frozen=True, slots=True)
class Identifier:
    value: str
    source: IdentifierSource

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "source": self.source.value}


@dataclass(frozen=True, slots=True)
class CoverImage:
    """Raw cover bytes plus their media type."""

    media_type: str
    data: bytes

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


@dataclass(frozen=True, slots=True)
class TocItem:
    """One node of a table of contents tree."""

    label: str
    href: Optional[str] = None
    children: Tuple["TocItem", ...] = ()

    def depth(self) -> int:
        """Return the number of levels in the subtree rooted at this node."""
        if not self.children:
            return 1
        return 1 + max(child.depth() for child in self.children)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"label": self.label}
        if self.href:
            payload["href"] = self.href
        if self.children:
            payload["children"] = [child.to_dict() for child in self.children]
        return payload


@dataclass(frozen=True, slots=True)
class PageListItem:
    label: str
    page_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "pageNumber": self.page_number}


@dataclass(frozen=True, slots=True)
class CanonicalMetadata:
    """Uniform bibliographic record produced by every parser."""

    # Required fields
    title: str
    author: str
    source_format: SourceFormat

    # Optional descriptive fields
    narrator: Optional[str] = None
    subject: Optional[str] = None
    keywords: Optional[str] = None
    publisher: Optional[str] = None
    publication_date: Optional[str] = None
    language: Optional[str] = None
    description: Optional[str] = None
    epub_version: Optional[str] = None
    series: Optional[str] = None
    series_position: Optional[float] = None

    # Audiobook fields
    duration: Optional[str] = None
    duration_seconds: Optional[float] = None
    audio_format: Optional[str] = None
    audio_track_count: Optional[int] = None

    page_count: Optional[PageCount] = None
    identifier: Optional[Identifier] = None

    # Accessibility
    accessibility_features: Tuple[str, ...] = ()
    access_modes: Tuple[str, ...] = ()
    access_modes_sufficient: Tuple[str, ...] = ()
    hazards: Tuple[str, ...] = ()
    certification: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase JSON shape, omitting absent fields."""
        result: Dict[str, Any] = {
            "title": self.title,
            "author": self.author,
            "sourceFormat": self.source_format.value,
        }
        optional = {
            "narrator": self.narrator,
            "subject": self.subject,
            "keywords": self.keywords,
            "publisher": self.publisher,
            "publicationDate": self.publication_date,
            "language": self.language,
            "description": self.description,
            "epubVersion": self.epub_version,
            "series": self.series,
            "seriesPosition": self.series_position,
            "duration": self.duration,
            "durationSeconds": self.duration_seconds,
            "audioFormat": self.audio_format,
            "audioTrackCount": self.audio_track_count,
            "certification": self.certification,
        }
        for key, value in optional.items():
            if value is not None and value != "":
                result[key] = value
        if self.page_count is not None:
            result["pageCount"] = self.page_count.to_dict()
        if self.identifier is not None:
            result["identifier"] = self.identifier.to_dict()
        lists = {
            "accessibilityFeatures": self.accessibility_features,
            "accessModes": self.access_modes,
            "accessModesSufficient": self.access_modes_sufficient,
            "hazards": self.hazards,
        }
        for key, values in lists.items():
            if values:
                result[key] = list(values)
        return result


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Everything one parse call recovers from a file. Immutable after return."""

    metadata: CanonicalMetadata
    text: str = ""
    toc: Optional[Tuple[TocItem, ...]] = None
    page_list: Optional[Tuple[PageListItem, ...]] = None
    cover: Optional[CoverImage] = None

    @property
    def cover_image_url(self) -> Optional[str]:
        return self.cover.to_data_url() if self.cover is not None else None

    def to_dict(self) -> Dict[str, Any]:
        toc: Optional[List[Dict[str, Any]]] = None
        if self.toc is not None:
            toc = [item.to_dict() for item in self.toc]
        page_list: Optional[List[Dict[str, Any]]] = None
        if self.page_list is not None:
            page_list = [item.to_dict() for item in self.page_list]
        return {
            "text": self.text,
            "coverImageUrl": self.cover_image_url,
            "metadata": self.metadata.to_dict(),
            "toc": toc,
            "pageList": page_list,
        }


@dataclass(slots=True)
class ParseOptions:
    """Caller-controlled knobs for a single parse."""

    extract_cover: bool = False
    max_text_length: int = 200_000
    filename: Optional[str] = None
    media_type: Optional[str] = None


__all__ = [
    "CanonicalMetadata",
    "CoverImage",
    "Identifier",
    "IdentifierSource",
    "PageCount",
    "PageCountType",
    "PageListItem",
    "ParseOptions",
    "ParseResult",
    "SourceFormat",
    "TocItem",
]
