"""Format parsers that turn raw book bytes into a :class:`ParseResult`."""

from __future__ import annotations

import io
import time
import zipfile
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Dict, Optional, Type

from catalog_tools import logging_manager
from catalog_tools.config_manager.constants import DEFAULT_PARSE_TIMEOUT_SECONDS

from .audiobook_parser import AudiobookParser, looks_like_manifest
from .base import BookParser
from .epub_parser import CONTAINER_PATH, EpubParser
from .exceptions import (
    BookParseError,
    CorruptContainerError,
    EncryptedDocumentError,
    MissingContainerEntryError,
    NoTextContentError,
    ParseTimeoutError,
    UnsupportedFormatError,
)
from .identifiers import find_isbn, normalize_identifier
from .pdf_parser import PdfParser, looks_like_pdf
from .types import (
    CanonicalMetadata,
    CoverImage,
    Identifier,
    IdentifierSource,
    PageCount,
    PageCountType,
    PageListItem,
    ParseOptions,
    ParseResult,
    SourceFormat,
    TocItem,
)

logger = logging_manager.get_logger().getChild("parsers")

PARSERS: Dict[SourceFormat, Type[BookParser]] = {
    SourceFormat.PDF: PdfParser,
    SourceFormat.EPUB: EpubParser,
    SourceFormat.AUDIOBOOK: AudiobookParser,
}


def _sniff_zip(data: bytes) -> Optional[SourceFormat]:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = set(archive.namelist())
    except zipfile.BadZipFile:
        return None
    if CONTAINER_PATH in names:
        return SourceFormat.EPUB
    if "manifest.json" in names:
        return SourceFormat.AUDIOBOOK
    return None


def detect_format(data: bytes, options: ParseOptions) -> SourceFormat:
    """Pick the parser variant from declared media type, extension, then content."""

    for kind in (SourceFormat.PDF, SourceFormat.EPUB):
        if PARSERS[kind].accepts(options.media_type, None):
            return kind
    if AudiobookParser.accepts(options.media_type, None):
        return SourceFormat.AUDIOBOOK
    for kind, parser_cls in PARSERS.items():
        if parser_cls.accepts(None, options.filename):
            return kind
    if looks_like_pdf(data):
        return SourceFormat.PDF
    if data[:4] == b"PK\x03\x04":
        sniffed = _sniff_zip(data)
        if sniffed is not None:
            return sniffed
    elif looks_like_manifest(data):
        return SourceFormat.AUDIOBOOK
    raise UnsupportedFormatError(
        f"Unsupported file type: {options.media_type or options.filename or 'unknown'}"
    )


def get_parser(kind: SourceFormat) -> BookParser:
    return PARSERS[kind]()


def parse_book(
    data: bytes,
    options: Optional[ParseOptions] = None,
    *,
    timeout_seconds: float = DEFAULT_PARSE_TIMEOUT_SECONDS,
) -> ParseResult:
    """Parse ``data`` with the matching variant, giving up after ``timeout_seconds``.

    The losing worker is abandoned rather than interrupted; it only writes to
    objects it created, so nothing the caller sees is left half-built.
    """

    options = options or ParseOptions()
    kind = detect_format(data, options)
    parser = get_parser(kind)
    started = time.perf_counter()

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"parse-{kind.value}")
    future = executor.submit(parser.parse, data, options)
    try:
        result = future.result(timeout=timeout_seconds)
    except FutureTimeoutError as exc:
        future.cancel()
        logger.error(
            "Parsing timed out",
            extra={
                "event": "parser.parse.timeout",
                "source_format": kind.value,
                "attributes": {"timeout_seconds": timeout_seconds},
            },
        )
        raise ParseTimeoutError(timeout_seconds) from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    logger.info(
        "Parsed %s file",
        kind.value,
        extra={
            "event": "parser.parse.completed",
            "source_format": kind.value,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            "attributes": {"text_length": len(result.text)},
        },
    )
    return result


__all__ = [
    "AudiobookParser",
    "BookParseError",
    "BookParser",
    "CanonicalMetadata",
    "CorruptContainerError",
    "CoverImage",
    "EncryptedDocumentError",
    "EpubParser",
    "Identifier",
    "IdentifierSource",
    "MissingContainerEntryError",
    "NoTextContentError",
    "PageCount",
    "PageCountType",
    "PageListItem",
    "ParseOptions",
    "ParseResult",
    "ParseTimeoutError",
    "PdfParser",
    "SourceFormat",
    "TocItem",
    "UnsupportedFormatError",
    "detect_format",
    "find_isbn",
    "get_parser",
    "normalize_identifier",
    "parse_book",
]
