"""Open Library resolver speaking to a tool bridge."""

from __future__ import annotations

import threading
from typing import Any, List, Mapping, Optional

from catalog_tools import logging_manager

from ..field_mapping import (
    OPEN_LIBRARY_AUTHOR_KEYS,
    OPEN_LIBRARY_BOOK_FIELDS,
    OPEN_LIBRARY_COVER_KEYS,
    OPEN_LIBRARY_WRAPPER_KEYS,
    apply_field_rules,
    as_string_list,
    pick_first_string,
)
from ..types import EnrichmentContext, MatchType, NormalizedBook, Provider, ResolverInput
from .base import BaseResolver, ResolutionTrace, sanitize_identifier
from .tool_bridge import ToolBridgeMixin

logger = logging_manager.get_logger().getChild("services.metadata.clients.openlibrary")

ENDPOINT_SETTING = "OPEN_LIBRARY_MCP_URL"
ID_TOOL = "get_book_by_id"
TITLE_TOOL = "get_book_by_title"


def _normalize_authors(value: Any) -> List[str]:
    if isinstance(value, list):
        names: List[str] = []
        for entry in value:
            if isinstance(entry, str):
                name = entry.strip()
            elif isinstance(entry, Mapping):
                name = pick_first_string(entry, OPEN_LIBRARY_AUTHOR_KEYS) or ""
            else:
                name = ""
            if name:
                names.append(name)
        return names
    return as_string_list(value)


def _cover_url(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, Mapping):
        return pick_first_string(value, OPEN_LIBRARY_COVER_KEYS)
    return None


def normalize_book_record(payload: Any) -> Optional[NormalizedBook]:
    """Map one Open Library record; records without title, authors or ISBN are ignored."""

    if not isinstance(payload, Mapping):
        return None
    fields = apply_field_rules(payload, OPEN_LIBRARY_BOOK_FIELDS)
    key = payload.get("key")
    olid = [str(key)] if key else as_string_list(payload.get("olid"))
    book = NormalizedBook(
        authors=_normalize_authors(payload.get("authors")),
        olid=olid,
        cover_url=_cover_url(payload.get("cover")),
        **fields,
    )
    if book.title or book.authors or book.isbn13 or book.isbn10:
        return book
    return None


def extract_book(payload: Any) -> Optional[NormalizedBook]:
    """Return the first usable record from ``payload`` or any of its wrappers."""

    direct = normalize_book_record(payload)
    if direct is not None:
        return direct
    if not isinstance(payload, Mapping):
        return None

    candidates: List[Any] = []
    for key in OPEN_LIBRARY_WRAPPER_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            candidates.extend(value)
        elif value:
            candidates.append(value)
    for candidate in candidates:
        book = normalize_book_record(candidate)
        if book is not None:
            return book
    return None


class OpenLibraryResolver(ToolBridgeMixin, BaseResolver):
    """Identifier-first, then title, lookup against Open Library tools."""

    provider = Provider.OPEN_LIBRARY
    title_confidence = 0.70
    tool_call_prefix = "openlib"

    def _resolve(
        self,
        query: ResolverInput,
        cancel_event: Optional[threading.Event],
    ) -> EnrichmentContext:
        endpoint = self._settings.endpoint
        if not endpoint:
            return self._misconfigured(ENDPOINT_SETTING, "Open Library")

        trace = ResolutionTrace()
        max_results = self._settings.max_results

        identifier = sanitize_identifier(query.identifier)
        if identifier:
            outcome = self._attempt(
                lambda: self._call_tool(
                    endpoint,
                    ID_TOOL,
                    {
                        "id": identifier,
                        "identifier": identifier,
                        "isbn": identifier,
                        "max_results": max_results,
                        "maxResults": max_results,
                    },
                    cancel_event=cancel_event,
                )
            )
            trace.record(outcome, f'{ID_TOOL} failed for "{identifier}": {outcome.error}')
            if outcome.ok:
                book = extract_book(outcome.value)
                if book is not None:
                    return self._context(trace, match_type=MatchType.IDENTIFIER, book=book)
                trace.warnings.append(f"No Open Library identifier match for {identifier}.")

        title = (query.title or "").strip()
        if not title:
            return self._context(trace)

        outcome = self._attempt(
            lambda: self._call_tool(
                endpoint,
                TITLE_TOOL,
                {
                    "title": title,
                    "query": title,
                    "author": query.author,
                    "max_results": max_results,
                    "maxResults": max_results,
                },
                cancel_event=cancel_event,
            )
        )
        trace.record(outcome, f'{TITLE_TOOL} failed for "{title}": {outcome.error}')
        if outcome.ok:
            book = extract_book(outcome.value)
            if book is not None:
                return self._context(trace, match_type=MatchType.TITLE, book=book)
        return self._context(trace)

    def feature_cache_key(self) -> str:
        endpoint = self._settings.endpoint or "unset"
        return f"openlib:{self._settings.effective_mode}:{endpoint}:{self._settings.max_results}"


__all__ = ["OpenLibraryResolver", "extract_book", "normalize_book_record"]
