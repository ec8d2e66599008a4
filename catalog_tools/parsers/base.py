"""Common parser contract and helpers shared by the format variants."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import PurePath
from typing import ClassVar, Optional, Tuple

from catalog_tools import logging_manager

from .types import ParseOptions, ParseResult, SourceFormat

logger = logging_manager.get_logger().getChild("parsers")

_ISO_DATE = re.compile(r"^(\d{4})(?:-(\d{1,2})(?:-(\d{1,2}))?)?")
_PDF_DATE = re.compile(r"^D?:?(\d{4})(\d{2})?(\d{2})?")


class BookParser(ABC):
    """Base class for every format parser variant."""

    kind: ClassVar[SourceFormat]
    media_types: ClassVar[Tuple[str, ...]] = ()
    extensions: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def accepts(cls, media_type: Optional[str], filename: Optional[str]) -> bool:
        """Return True when the declared media type or file extension belongs to this variant."""
        if media_type:
            normalized = media_type.split(";", 1)[0].strip().lower()
            if normalized in cls.media_types:
                return True
        if filename:
            suffix = PurePath(filename).suffix.lower()
            if suffix and suffix in cls.extensions:
                return True
        return False

    @abstractmethod
    def parse(self, data: bytes, options: ParseOptions) -> ParseResult:
        """Decode ``data`` into a :class:`ParseResult`."""


def truncate_text(text: str, max_length: int, *, source_format: SourceFormat) -> str:
    """Return ``text`` cut to ``max_length`` characters, logging when it was cut."""

    if max_length <= 0 or len(text) <= max_length:
        return text
    logger.warning(
        "Extracted text truncated from %s to %s characters",
        len(text),
        max_length,
        extra={
            "event": "parser.text.truncated",
            "source_format": source_format.value,
            "attributes": {"original_length": len(text), "max_length": max_length},
        },
    )
    return text[:max_length]


def _format_parts(year: int, month: int, day: int) -> Optional[str]:
    try:
        value = date(year, month, day)
    except ValueError:
        return None
    return f"{value.month}/{value.day}/{value.year}"


def format_publication_date(raw: Optional[str]) -> Optional[str]:
    """Render an ISO-8601 style date as ``M/D/YYYY``; unparseable values pass through."""

    if raw is None:
        return None
    cleaned = raw.strip()
    if not cleaned:
        return None
    try:
        parsed = datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is not None:
        return f"{parsed.month}/{parsed.day}/{parsed.year}"
    match = _ISO_DATE.match(cleaned)
    if match:
        formatted = _format_parts(
            int(match.group(1)), int(match.group(2) or 1), int(match.group(3) or 1)
        )
        if formatted:
            return formatted
    return cleaned


def format_pdf_date(raw: Optional[str]) -> Optional[str]:
    """Render a PDF ``D:YYYYMMDDHHmmSS`` date as ``M/D/YYYY``."""

    if not raw:
        return None
    match = _PDF_DATE.match(raw.strip())
    if not match:
        return None
    return _format_parts(int(match.group(1)), int(match.group(2) or 1), int(match.group(3) or 1))


def clean_text(value: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty strings become ``None``."""

    if value is None:
        return None
    cleaned = " ".join(str(value).split())
    return cleaned or None


__all__ = [
    "BookParser",
    "clean_text",
    "format_pdf_date",
    "format_publication_date",
    "truncate_text",
]
