"""PDF parsing backed by PyMuPDF."""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import List, Optional

import pymupdf

from catalog_tools import logging_manager

from .base import BookParser, clean_text, format_pdf_date, truncate_text
from .exceptions import CorruptContainerError, EncryptedDocumentError
from .identifiers import find_isbn
from .types import (
    CanonicalMetadata,
    CoverImage,
    Identifier,
    IdentifierSource,
    PageCount,
    PageCountType,
    ParseOptions,
    ParseResult,
    SourceFormat,
)

logger = logging_manager.get_logger().getChild("parsers.pdf")

_PDF_MAGIC = b"%PDF-"
ISBN_SCAN_PAGES = 5
_ISBN_LABEL = re.compile(r"\b(?:e-?ISBN|ISBN)(?:-1[03])?\s*:?\s*([0-9Xx][0-9Xx\-\s]{8,20})", re.IGNORECASE)
_TITLE_SPLIT_RE = re.compile(r"[._\-]+")


def looks_like_pdf(data: bytes) -> bool:
    return data[:1024].lstrip().startswith(_PDF_MAGIC)


def _title_from_filename(filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    stem = _TITLE_SPLIT_RE.sub(" ", PurePath(filename).stem)
    return clean_text(stem)


def find_labelled_isbn(text: str) -> Optional[str]:
    """Return the first ISBN that follows an ``ISBN``/``e-ISBN`` label."""

    for match in _ISBN_LABEL.finditer(text):
        candidate = find_isbn(match.group(1).upper())
        if candidate:
            return candidate
    return None


class PdfParser(BookParser):
    """Extract text, page count and info-dictionary metadata from PDFs."""

    kind = SourceFormat.PDF
    media_types = ("application/pdf", "application/x-pdf")
    extensions = (".pdf",)

    def parse(self, data: bytes, options: ParseOptions) -> ParseResult:
        try:
            document = pymupdf.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise CorruptContainerError(f"Failed to open the PDF file: {exc}") from exc

        with document:
            if document.needs_pass:
                raise EncryptedDocumentError("The PDF file is password protected.")

            try:
                page_texts: List[str] = [page.get_text() for page in document]
            except RuntimeError as exc:
                raise CorruptContainerError(f"Failed to read PDF pages: {exc}") from exc

            info = document.metadata or {}
            identifier = self._find_identifier(page_texts, info)
            cover = self._render_cover(document) if options.extract_cover else None
            physical_pages = document.page_count

        text = "\n".join(chunk.strip() for chunk in page_texts if chunk.strip())
        title = clean_text(info.get("title")) or _title_from_filename(options.filename) or ""
        metadata = CanonicalMetadata(
            title=title,
            author=clean_text(info.get("author")) or "",
            source_format=SourceFormat.PDF,
            subject=clean_text(info.get("subject")),
            keywords=clean_text(info.get("keywords")),
            publisher=clean_text(info.get("producer")),
            publication_date=format_pdf_date(info.get("creationDate")),
            page_count=PageCount(value=physical_pages, type=PageCountType.ACTUAL),
            identifier=identifier,
        )
        return ParseResult(
            metadata=metadata,
            text=truncate_text(text, options.max_text_length, source_format=self.kind),
            cover=cover,
        )

    def _find_identifier(self, page_texts: List[str], info: dict) -> Optional[Identifier]:
        for page_text in page_texts[:ISBN_SCAN_PAGES]:
            found = find_labelled_isbn(page_text)
            if found:
                return Identifier(value=found, source=IdentifierSource.TEXT)
        for key in ("subject", "keywords", "title"):
            found = find_isbn(info.get(key) or "")
            if found:
                return Identifier(value=found, source=IdentifierSource.METADATA)
        return None

    def _render_cover(self, document: pymupdf.Document) -> Optional[CoverImage]:
        if document.page_count == 0:
            return None
        try:
            pixmap = document[0].get_pixmap()
            return CoverImage(media_type="image/png", data=pixmap.tobytes("png"))
        except (RuntimeError, ValueError) as exc:
            logger.warning(
                "Unable to render PDF cover: %s",
                exc,
                extra={"event": "parser.pdf.cover_failed", "source_format": "pdf"},
            )
            return None


__all__ = ["PdfParser", "find_labelled_isbn", "looks_like_pdf"]
