"""Hardcover GraphQL resolver."""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence

from catalog_tools import logging_manager
from catalog_tools.config_manager.constants import DEFAULT_HARDCOVER_API_URL
from catalog_tools.config_manager.settings import HardcoverSettings
from catalog_tools.parsers.types import CanonicalMetadata

from ..exceptions import ResolverTransportError
from ..field_mapping import (
    HARDCOVER_BOOK_FIELDS,
    HARDCOVER_CONTRIBUTOR_KEYS,
    HARDCOVER_EDITION_FIELDS,
    apply_field_rules,
    as_float,
    dedupe_case_insensitive,
    pick_first_string,
)
from ..types import EnrichmentContext, MatchType, NormalizedBook, Provider, ResolverInput, SeriesInfo
from .base import BaseResolver, ResolutionTrace, sanitize_identifier

logger = logging_manager.get_logger().getChild("services.metadata.clients.hardcover")

TOKEN_SETTING = "HARDCOVER_API_TOKEN"

IDENTIFIER_LOOKUP_QUERY = """
query HardcoverEditionLookup($identifier: String!, $limit: Int!) {
  editions(
    where: {
      _or: [
        { isbn_13: { _eq: $identifier } }
        { isbn_10: { _eq: $identifier } }
        { asin: { _eq: $identifier } }
      ]
    }
    limit: $limit
  ) {
    id
    title
    pages
    release_date
    asin
    isbn_10
    isbn_13
    publisher { name }
    book { id title description slug cached_contributors }
  }
}
"""

SERIES_BY_BOOK_QUERY = """
query HardcoverSeriesByBook($bookId: Int!) {
  book_series(where: { book_id: { _eq: $bookId } }, limit: 3) {
    position
    series { name }
  }
}
"""

TITLE_LOOKUP_QUERY = """
query HardcoverBookSearch($query: String!, $limit: Int!) {
  books(where: { title: { _ilike: $query } }, limit: $limit) {
    id
    title
  }
}
"""

BOOK_DETAIL_QUERY = """
query HardcoverBookDetail($bookId: Int!, $limit: Int!) {
  books(where: { id: { _eq: $bookId } }, limit: 1) {
    id title description slug cached_contributors
  }
  editions(where: { book_id: { _eq: $bookId } }, limit: $limit) {
    isbn_10 isbn_13 asin pages release_date
    publisher { name }
  }
  book_series(where: { book_id: { _eq: $bookId } }, limit: 3) {
    position
    series { name }
  }
}
"""


def _int_id(value: Any) -> Optional[int]:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _first(rows: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(rows, list) and rows and isinstance(rows[0], Mapping):
        return rows[0]
    return None


def extract_authors(cached_contributors: Any) -> List[str]:
    if not isinstance(cached_contributors, list):
        return []
    names = [
        pick_first_string(entry, HARDCOVER_CONTRIBUTOR_KEYS) or ""
        for entry in cached_contributors
        if isinstance(entry, Mapping)
    ]
    return list(dict.fromkeys(name for name in names if name))


def series_from_rows(rows: Any) -> Optional[SeriesInfo]:
    row = _first(rows)
    if row is None:
        return None
    name = pick_first_string(row, ("series.name",))
    if not name:
        return None
    return SeriesInfo(name=name, position=as_float(row.get("position")))


def _useful(book: NormalizedBook) -> Optional[NormalizedBook]:
    if book.title or book.authors or book.hardcover_book_id is not None:
        return book
    return None


def normalize_edition_record(
    edition: Mapping[str, Any], series: Optional[SeriesInfo]
) -> Optional[NormalizedBook]:
    """Map an identifier lookup row (edition plus nested book)."""

    book_record = edition.get("book") if isinstance(edition.get("book"), Mapping) else {}
    fields = apply_field_rules(edition, HARDCOVER_EDITION_FIELDS)
    fields.update(apply_field_rules(book_record, HARDCOVER_BOOK_FIELDS))
    if "title" not in fields:
        title = pick_first_string(edition, ("title",))
        if title:
            fields["title"] = title
    book = NormalizedBook(
        hardcover_book_id=_int_id(book_record.get("id")),
        hardcover_edition_id=_int_id(edition.get("id")),
        authors=extract_authors(book_record.get("cached_contributors")),
        series=series,
        **fields,
    )
    return _useful(book)


def normalize_book_details(
    book_record: Optional[Mapping[str, Any]],
    editions: Any,
    series_rows: Any,
) -> Optional[NormalizedBook]:
    """Map a detail lookup: the book, its first edition and its first series row."""

    if book_record is None:
        return None
    fields = apply_field_rules(_first(editions) or {}, HARDCOVER_EDITION_FIELDS)
    fields.update(apply_field_rules(book_record, HARDCOVER_BOOK_FIELDS))
    book = NormalizedBook(
        hardcover_book_id=_int_id(book_record.get("id")),
        authors=extract_authors(book_record.get("cached_contributors")),
        series=series_from_rows(series_rows),
        **fields,
    )
    return _useful(book)


def matches_requested_author(book: NormalizedBook, requested_author: Optional[str]) -> bool:
    """True when no author was requested, or any author contains (or is contained in) it."""

    requested = (requested_author or "").strip().lower()
    if not requested or not book.authors:
        return True
    return any(
        requested in author.lower() or author.lower() in requested for author in book.authors
    )


def authorization_header(token: str) -> str:
    return token if token.startswith("Bearer ") else f"Bearer {token}"


class HardcoverResolver(BaseResolver):
    """Identifier-first, then title, lookup against the Hardcover GraphQL API."""

    provider = Provider.HARDCOVER
    title_confidence = 0.72

    _settings: HardcoverSettings

    @property
    def api_url(self) -> str:
        return self._settings.endpoint or DEFAULT_HARDCOVER_API_URL

    def _graphql(
        self,
        query: str,
        variables: Dict[str, Any],
        token: str,
        cancel_event: Optional[threading.Event],
    ) -> Mapping[str, Any]:
        payload = self._request_json(
            "POST",
            self.api_url,
            cancel_event=cancel_event,
            json_body={"query": query, "variables": variables},
            headers={"content-type": "application/json", "authorization": authorization_header(token)},
        )
        if not isinstance(payload, Mapping):
            raise ResolverTransportError("Hardcover GraphQL returned an unexpected payload.")
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            messages = [
                (err.get("message") if isinstance(err, Mapping) else None) or "unknown error"
                for err in errors
            ]
            raise ResolverTransportError("; ".join(messages))
        data = payload.get("data")
        if not isinstance(data, Mapping):
            raise ResolverTransportError("Hardcover GraphQL returned no data.")
        return data

    def _resolve(
        self,
        query: ResolverInput,
        cancel_event: Optional[threading.Event],
    ) -> EnrichmentContext:
        secret = self._settings.api_token
        token = secret.get_secret_value().strip() if secret is not None else ""
        if not token:
            return self._misconfigured(TOKEN_SETTING, "Hardcover")

        trace = ResolutionTrace()
        limit = self._settings.max_results

        identifier = sanitize_identifier(query.identifier)
        if identifier:
            outcome = self._attempt(
                lambda: self._graphql(
                    IDENTIFIER_LOOKUP_QUERY, {"identifier": identifier, "limit": limit}, token, cancel_event
                )
            )
            trace.record(outcome, f'Hardcover identifier lookup failed for "{identifier}": {outcome.error}')
            if outcome.ok:
                edition = _first(outcome.value.get("editions"))
                if edition is not None:
                    series = self._series_for(edition, token, trace, cancel_event)
                    book = normalize_edition_record(edition, series)
                    if book is not None:
                        return self._context(trace, match_type=MatchType.IDENTIFIER, book=book)
                trace.warnings.append(f"No Hardcover identifier match for {identifier}.")

        title = (query.title or "").strip()
        if not title:
            return self._context(trace)

        outcome = self._attempt(lambda: self._lookup_title(title, query.author, token, limit, cancel_event))
        trace.record(outcome, f'Hardcover title lookup failed for "{title}": {outcome.error}')
        if outcome.ok and outcome.value is not None:
            return self._context(trace, match_type=MatchType.TITLE, book=outcome.value)
        return self._context(trace)

    def _series_for(
        self,
        edition: Mapping[str, Any],
        token: str,
        trace: ResolutionTrace,
        cancel_event: Optional[threading.Event],
    ) -> Optional[SeriesInfo]:
        book_record = edition.get("book")
        book_id = _int_id(book_record.get("id")) if isinstance(book_record, Mapping) else None
        if book_id is None:
            return None
        outcome = self._attempt(
            lambda: self._graphql(SERIES_BY_BOOK_QUERY, {"bookId": book_id}, token, cancel_event)
        )
        if not outcome.ok:
            # Series is optional; the identifier match stands without it.
            trace.warnings.append(f"Hardcover series lookup failed for book {book_id}: {outcome.error}")
            return None
        return series_from_rows(outcome.value.get("book_series"))

    def _lookup_title(
        self,
        title: str,
        author: Optional[str],
        token: str,
        limit: int,
        cancel_event: Optional[threading.Event],
    ) -> Optional[NormalizedBook]:
        data = self._graphql(TITLE_LOOKUP_QUERY, {"query": f"%{title}%", "limit": limit}, token, cancel_event)
        candidates = data.get("books") if isinstance(data.get("books"), list) else []
        for candidate in candidates:
            book_id = _int_id(candidate.get("id")) if isinstance(candidate, Mapping) else None
            if book_id is None:
                continue
            detail = self._graphql(BOOK_DETAIL_QUERY, {"bookId": book_id, "limit": limit}, token, cancel_event)
            book = normalize_book_details(_first(detail.get("books")), detail.get("editions"), detail.get("book_series"))
            if book is not None and matches_requested_author(book, author):
                return book
        return None

    def feature_cache_key(self) -> str:
        return f"hardcover:{self._settings.effective_mode}:{self.api_url}:{self._settings.max_results}"

    @staticmethod
    def build_contribution_candidate(
        metadata: CanonicalMetadata,
        summary: Optional[str],
        context: Optional[EnrichmentContext],
    ) -> Optional[Dict[str, Any]]:
        return build_contribution_candidate(metadata, summary, context)


def _split_authors(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def build_contribution_candidate(
    metadata: CanonicalMetadata,
    summary: Optional[str],
    context: Optional[EnrichmentContext],
) -> Optional[Dict[str, Any]]:
    """Describe what the local record could contribute back to Hardcover.

    Local values win; the matched Hardcover book fills the gaps.
    """

    if context is None or context.book is None:
        return None
    book = context.book

    page_count = metadata.page_count.value if metadata.page_count else book.number_of_pages
    series_name = metadata.series or (book.series.name if book.series else None)
    series_position = (
        metadata.series_position
        if metadata.series_position is not None
        else (book.series.position if book.series else None)
    )
    authors: Sequence[str] = _split_authors(metadata.author) if metadata.author.strip() else book.authors
    description = book.description if book.description and book.description.strip() else None

    return {
        "confidence": context.confidence,
        "lookup": {
            "provider": Provider.HARDCOVER.value,
            "matchType": context.match_type.value,
            "hardcoverBookId": book.hardcover_book_id,
            "hardcoverEditionId": book.hardcover_edition_id,
        },
        "payload": {
            "title": metadata.title or book.title,
            "authors": list(dedupe_case_insensitive(authors)),
            "publisher": metadata.publisher or (book.publishers[0] if book.publishers else None),
            "publicationDate": metadata.publication_date or book.publication_date,
            "identifier": (metadata.identifier.value if metadata.identifier else None)
            or (book.isbn13[0] if book.isbn13 else None)
            or (book.isbn10[0] if book.isbn10 else None)
            or book.asin,
            "pageCount": page_count,
            "series": {"name": series_name, "position": series_position},
            "description": description,
            "summary": summary if summary and summary.strip() else None,
        },
    }


__all__ = [
    "HardcoverResolver",
    "build_contribution_candidate",
    "matches_requested_author",
    "normalize_book_details",
    "normalize_edition_record",
]
