"""Utilities for extracting metadata, navigation and text from EPUB sources."""

from __future__ import annotations

import io
import re
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from ebooklib import epub

from catalog_tools import logging_manager

from .base import BookParser, clean_text, format_publication_date, truncate_text
from .exceptions import (
    CorruptContainerError,
    EncryptedDocumentError,
    MissingContainerEntryError,
)
from .identifiers import find_isbn
from .page_count import determine_page_count
from .toc import build_nav_toc, build_ncx_toc, build_page_list
from .types import (
    CanonicalMetadata,
    CoverImage,
    Identifier,
    IdentifierSource,
    PageCount,
    ParseOptions,
    ParseResult,
    SourceFormat,
    TocItem,
)

warnings.filterwarnings("ignore", category=UserWarning, module="ebooklib.epub")
warnings.filterwarnings("ignore", category=FutureWarning, module="ebooklib.epub")
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

logger = logging_manager.get_logger().getChild("parsers.epub")

CONTAINER_PATH = epub.CONTAINER_PATH
READ_OPTIONS = {"ignore_ncx": True}
OPF_SCHEME_ATTRIBUTE = "{%s}scheme" % epub.NAMESPACES["OPF"]
MAX_CHAPTER_WORKERS = 8
FAILURE_MESSAGE = (
    "Failed to parse the EPUB. The file may be corrupted, DRM-protected, "
    "or in an unsupported format."
)

# zipfile reports absent members as "There is no item named '<name>' in the archive"
_MISSING_MEMBER = re.compile(r"named '(?P<name>[^']*)'")

MetadataEntry = Tuple[Optional[str], Dict[str, str]]


def _missing_entry(error: BaseException) -> str:
    message = str(error.args[0]) if error.args else str(error)
    match = _MISSING_MEMBER.search(message)
    name = match.group("name") if match else message
    return "OPF" if name in {"", "."} else name


def read_book(data: bytes) -> epub.EpubBook:
    """Load an EPUB package from memory, mapping reader failures to parse errors."""

    try:
        return epub.read_epub(io.BytesIO(data), options=READ_OPTIONS)
    except KeyError as exc:
        raise MissingContainerEntryError(_missing_entry(exc)) from exc
    except epub.EpubException as exc:
        if isinstance(exc.__context__, KeyError):
            raise MissingContainerEntryError(_missing_entry(exc.__context__), exc.msg) from exc
        raise CorruptContainerError(f"{FAILURE_MESSAGE} ({exc.msg})") from exc
    except RuntimeError as exc:
        # zipfile raises RuntimeError for password-protected members
        if "encrypted" in str(exc):
            raise EncryptedDocumentError(f"{FAILURE_MESSAGE} ({exc})") from exc
        raise CorruptContainerError(f"{FAILURE_MESSAGE} ({exc})") from exc
    except Exception as exc:
        logger.debug(
            "ebooklib could not load the package: %s",
            exc,
            extra={"event": "parser.epub.read_failed", "source_format": "epub"},
        )
        raise CorruptContainerError(f"{FAILURE_MESSAGE} ({exc})") from exc


def _metadata(book: epub.EpubBook, namespace: str, name: str) -> List[MetadataEntry]:
    try:
        return list(book.get_metadata(namespace, name))
    except KeyError:
        # the namespace is not declared anywhere in the package
        return []


def _first_value(entries: Iterable[MetadataEntry]) -> Optional[str]:
    for value, _attributes in entries:
        cleaned = clean_text(value)
        if cleaned:
            return cleaned
    return None


def _values_for_property(book: epub.EpubBook, name: str) -> Tuple[str, ...]:
    values: List[str] = []
    for value, attributes in _metadata(book, "OPF", "meta"):
        if attributes.get("property") != name:
            continue
        content = clean_text(value)
        if content:
            values.append(content)
    return tuple(values)


def _xml(data: bytes) -> BeautifulSoup:
    return BeautifulSoup(data, "xml")


def _chapter_text(data: Optional[bytes]) -> str:
    if not data:
        return ""
    soup = BeautifulSoup(data, "lxml")
    body = soup.find("body")
    if body is None:
        return ""
    return " ".join(body.get_text().split())


class EpubParser(BookParser):
    """Parse EPUB2 and EPUB3 packages into a :class:`ParseResult`."""

    kind = SourceFormat.EPUB
    media_types = ("application/epub+zip",)
    extensions = (".epub",)

    def parse(self, data: bytes, options: ParseOptions) -> ParseResult:
        book = read_book(data)
        items = {item.get_id(): item for item in book.get_items()}

        ncx_item = next((item for item in items.values() if isinstance(item, epub.EpubNcx)), None)
        nav_item = next((item for item in items.values() if isinstance(item, epub.EpubNav)), None)
        ncx = _xml(ncx_item.get_content()) if ncx_item is not None and ncx_item.get_content() else None

        full_text = self._read_spine_text(book, items)
        toc = self._build_toc(nav_item, ncx)
        page_list = self._build_page_list(ncx)
        page_count = determine_page_count(
            full_text,
            ncx_document=ncx,
            declared_pages=_values_for_property(book, "schema:numberOfPages"),
        )
        cover = self._extract_cover(book, items) if options.extract_cover else None

        metadata = self._build_metadata(book, page_count)
        logger.debug(
            "Parsed EPUB package",
            extra={
                "event": "parser.epub.parsed",
                "source_format": self.kind.value,
                "attributes": {
                    "manifest_items": len(items),
                    "text_length": len(full_text),
                    "has_toc": toc is not None,
                },
            },
        )
        return ParseResult(
            metadata=metadata,
            text=truncate_text(full_text, options.max_text_length, source_format=self.kind),
            toc=toc,
            page_list=page_list,
            cover=cover,
        )

    # Text -------------------------------------------------------------------

    def _read_spine_text(self, book: epub.EpubBook, items: Dict[str, epub.EpubItem]) -> str:
        documents: List[bytes] = []
        for idref, _linear in book.spine:
            item = items.get(idref)
            if item is not None:
                # EpubHtml.get_content() re-renders the page; .content holds the archived bytes
                documents.append(item.content)
        if not documents:
            return ""

        workers = max(1, min(MAX_CHAPTER_WORKERS, len(documents)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # map() yields results in submission order, which is spine order
            chapters = list(executor.map(_chapter_text, documents))
        return "\n\n".join(chapters)

    # Navigation ---------------------------------------------------------------

    def _build_toc(
        self,
        nav_item: Optional[epub.EpubNav],
        ncx: Optional[BeautifulSoup],
    ) -> Optional[Tuple[TocItem, ...]]:
        try:
            if nav_item is not None:
                return build_nav_toc(_xml(nav_item.content)) if nav_item.content else None
            if ncx is not None:
                return build_ncx_toc(ncx)
        except (AttributeError, ValueError, TypeError) as exc:
            logger.warning(
                "Could not parse table of contents: %s",
                exc,
                extra={"event": "parser.epub.toc_failed", "source_format": "epub"},
            )
        return None

    def _build_page_list(self, ncx: Optional[BeautifulSoup]):
        if ncx is None:
            return None
        try:
            return build_page_list(ncx)
        except (AttributeError, ValueError, TypeError) as exc:
            logger.warning(
                "Could not parse NCX page list: %s",
                exc,
                extra={"event": "parser.epub.page_list_failed", "source_format": "epub"},
            )
            return None

    # Metadata -----------------------------------------------------------------

    def _build_metadata(self, book: epub.EpubBook, page_count: PageCount) -> CanonicalMetadata:
        def dc(name: str) -> Optional[str]:
            return _first_value(_metadata(book, "DC", name))

        version = book.version
        certification = next(iter(_values_for_property(book, "dcterms:conformsTo")), None)

        return CanonicalMetadata(
            title=dc("title") or "",
            author=dc("creator") or "",
            source_format=SourceFormat.EPUB,
            subject=dc("subject"),
            publisher=dc("publisher"),
            publication_date=format_publication_date(dc("date")),
            language=dc("language"),
            description=dc("description"),
            epub_version=version.strip() if version else None,
            page_count=page_count,
            identifier=self._find_identifier(book),
            accessibility_features=_values_for_property(book, "schema:accessibilityFeature"),
            access_modes=_values_for_property(book, "schema:accessMode"),
            access_modes_sufficient=_values_for_property(book, "schema:accessModeSufficient"),
            hazards=_values_for_property(book, "schema:accessibilityHazard"),
            certification=certification,
        )

    def _find_identifier(self, book: epub.EpubBook) -> Optional[Identifier]:
        first: Optional[str] = None
        preferred: Optional[str] = None
        for value, attributes in _metadata(book, "DC", "identifier"):
            text = clean_text(value)
            if not text:
                continue
            if first is None:
                first = text
            scheme = attributes.get(OPF_SCHEME_ATTRIBUTE) or attributes.get("scheme")
            if scheme == "ISBN":
                preferred = text
                break
        value = find_isbn(preferred or first)
        if value is None:
            return None
        return Identifier(value=value, source=IdentifierSource.METADATA)

    # Cover ----------------------------------------------------------------------

    def _extract_cover(self, book: epub.EpubBook, items: Dict[str, epub.EpubItem]) -> Optional[CoverImage]:
        cover_item = next((item for item in items.values() if isinstance(item, epub.EpubCover)), None)
        if cover_item is None:
            cover_id = next(
                (
                    attributes.get("content")
                    for _value, attributes in _metadata(book, "OPF", "meta")
                    if attributes.get("name") == "cover"
                ),
                None,
            )
            cover_item = items.get(cover_id or "")
        if cover_item is None or isinstance(cover_item, epub.EpubHtml):
            return None
        payload = cover_item.get_content()
        if not payload:
            return None
        media_type = cover_item.media_type or ""
        if not media_type.startswith("image/"):
            media_type = "image/jpeg"
        return CoverImage(media_type=media_type, data=payload)


__all__ = ["CONTAINER_PATH", "EpubParser", "read_book"]
