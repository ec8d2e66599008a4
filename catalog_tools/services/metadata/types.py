"""Core type definitions for the enrichment pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, TypeVar

if TYPE_CHECKING:
    from catalog_tools.parsers.types import CanonicalMetadata

    from .exceptions import ResolverTransportError

T = TypeVar("T")


class Provider(str, Enum):
    """Authority services the orchestrator can consult."""

    LOC_AUTHORITY = "loc_authority"
    OPEN_LIBRARY = "open_library"
    HARDCOVER = "hardcover"


class EnrichmentMode(str, Enum):
    """Whether a resolver may fill gaps in canonical metadata."""

    OFF = "off"
    SHADOW = "shadow"  # observe only
    APPLY = "apply"  # fill empty fields, never overwrite


class MatchType(str, Enum):
    IDENTIFIER = "identifier"
    TITLE = "title"
    NONE = "none"


class EnrichmentStatus(str, Enum):
    """Outcome of a resolver run, separating "nothing found" from "could not ask"."""

    MATCHED = "matched"
    NO_MATCH = "no_match"
    UNREACHABLE = "unreachable"
    MISCONFIGURED = "misconfigured"


@dataclass(frozen=True, slots=True)
class ResolverInput:
    """Read-only partial metadata shared by every resolver."""

    title: Optional[str] = None
    author: Optional[str] = None
    narrator: Optional[str] = None
    subject: Optional[str] = None
    keywords: Optional[str] = None
    identifier: Optional[str] = None

    @classmethod
    def from_metadata(cls, metadata: "CanonicalMetadata") -> "ResolverInput":
        return cls(
            title=metadata.title or None,
            author=metadata.author or None,
            narrator=metadata.narrator,
            subject=metadata.subject,
            keywords=metadata.keywords,
            identifier=metadata.identifier.value if metadata.identifier else None,
        )

    def cache_key_parts(self) -> List[str]:
        return [
            self.identifier or "",
            self.title or "",
            self.author or "",
            self.narrator or "",
            self.subject or "",
            self.keywords or "",
        ]


@dataclass(frozen=True, slots=True)
class SeriesInfo:
    name: Optional[str] = None
    position: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "position": self.position}


@dataclass(slots=True)
class NormalizedBook:
    """Provider-agnostic bibliographic record returned by a resolver."""

    title: Optional[str] = None
    subtitle: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    publishers: List[str] = field(default_factory=list)
    publication_date: Optional[str] = None
    number_of_pages: Optional[int] = None
    isbn10: List[str] = field(default_factory=list)
    isbn13: List[str] = field(default_factory=list)
    lccn: List[str] = field(default_factory=list)
    oclc: List[str] = field(default_factory=list)
    olid: List[str] = field(default_factory=list)
    asin: Optional[str] = None
    series: Optional[SeriesInfo] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    work_key: Optional[str] = None
    edition_key: Optional[str] = None
    hardcover_book_id: Optional[int] = None
    hardcover_edition_id: Optional[int] = None
    slug: Optional[str] = None

    def preferred_identifier(self) -> Optional[str]:
        """Return the first ISBN-13, else ISBN-10, else LCCN, OCLC, ASIN or OLID."""
        for values in (self.isbn13, self.isbn10, self.lccn, self.oclc):
            if values:
                return values[0]
        if self.asin:
            return self.asin
        if self.olid:
            return self.olid[0]
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary, excluding empty values."""
        payload: Dict[str, Any] = {
            "title": self.title,
            "subtitle": self.subtitle,
            "authors": self.authors,
            "publishers": self.publishers,
            "publicationDate": self.publication_date,
            "numberOfPages": self.number_of_pages,
            "isbn10": self.isbn10,
            "isbn13": self.isbn13,
            "lccn": self.lccn,
            "oclc": self.oclc,
            "olid": self.olid,
            "asin": self.asin,
            "series": self.series.to_dict() if self.series else None,
            "description": self.description,
            "coverUrl": self.cover_url,
            "workKey": self.work_key,
            "editionKey": self.edition_key,
            "hardcoverBookId": self.hardcover_book_id,
            "hardcoverEditionId": self.hardcover_edition_id,
            "slug": self.slug,
        }
        return {key: value for key, value in payload.items() if value not in (None, [], "")}


@dataclass(frozen=True, slots=True)
class AuthorityCandidate:
    """A subject heading or personal name proposed by the LOC resolver."""

    label: str
    query: str
    tool: str
    uri: Optional[str] = None
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"label": self.label, "query": self.query, "tool": self.tool}
        if self.uri:
            payload["uri"] = self.uri
        if self.confidence is not None:
            payload["confidence"] = self.confidence
        return payload


@dataclass(slots=True)
class EnrichmentContext:
    """What one resolver learned about a book."""

    provider: Provider
    mode: EnrichmentMode
    enabled: bool = True
    match_type: MatchType = MatchType.NONE
    confidence: float = 0.0
    book: Optional[NormalizedBook] = None
    warnings: List[str] = field(default_factory=list)
    status: EnrichmentStatus = EnrichmentStatus.NO_MATCH
    transport: Optional[str] = None
    lcsh_candidates: List[AuthorityCandidate] = field(default_factory=list)
    name_candidates: List[AuthorityCandidate] = field(default_factory=list)

    @property
    def applies(self) -> bool:
        return self.mode is EnrichmentMode.APPLY and self.book is not None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "provider": self.provider.value,
            "enabled": self.enabled,
            "mode": self.mode.value,
            "matchType": self.match_type.value,
            "confidence": self.confidence,
            "status": self.status.value,
            "book": self.book.to_dict() if self.book else None,
            "warnings": list(self.warnings),
        }
        if self.transport:
            payload["transport"] = self.transport
        if self.provider is Provider.LOC_AUTHORITY:
            payload["lcshCandidates"] = [item.to_dict() for item in self.lcsh_candidates]
            payload["nameCandidates"] = [item.to_dict() for item in self.name_candidates]
        return payload


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    """Result-style value returned at resolver phase boundaries."""

    value: Optional[T] = None
    error: Optional["ResolverTransportError"] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class EnrichmentReport:
    """Everything the orchestrator gathered for one book."""

    contexts: List[EnrichmentContext] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def get(self, provider: Provider) -> Optional[EnrichmentContext]:
        for context in self.contexts:
            if context.provider is provider:
                return context
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contexts": [context.to_dict() for context in self.contexts],
            "warnings": list(self.warnings),
        }


__all__ = [
    "AuthorityCandidate",
    "EnrichmentContext",
    "EnrichmentMode",
    "EnrichmentReport",
    "EnrichmentStatus",
    "MatchType",
    "NormalizedBook",
    "Outcome",
    "Provider",
    "ResolverInput",
    "SeriesInfo",
]
