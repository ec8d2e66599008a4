"""Fill gaps in parsed metadata from apply-mode enrichment contexts."""

from __future__ import annotations

import dataclasses
from typing import Any, Dict, Iterable, Optional

from catalog_tools import logging_manager
from catalog_tools.parsers.types import (
    CanonicalMetadata,
    Identifier,
    IdentifierSource,
    PageCount,
    PageCountType,
)

from .types import EnrichmentContext, NormalizedBook

logger = logging_manager.get_logger().getChild("services.metadata.merge")


def _gaps_filled_by(metadata: CanonicalMetadata, book: NormalizedBook) -> Dict[str, Any]:
    updates: Dict[str, Any] = {}

    if not metadata.title and book.title:
        updates["title"] = book.title
    if not metadata.author and book.authors:
        updates["author"] = book.authors[0]
    if not metadata.publisher and book.publishers:
        updates["publisher"] = book.publishers[0]
    if not metadata.publication_date and book.publication_date:
        updates["publication_date"] = book.publication_date
    if metadata.page_count is None and book.number_of_pages is not None:
        updates["page_count"] = PageCount(value=book.number_of_pages, type=PageCountType.ACTUAL)

    if book.series is not None:
        if not metadata.series and book.series.name:
            updates["series"] = book.series.name
        if metadata.series_position is None and book.series.position is not None:
            updates["series_position"] = book.series.position

    if metadata.identifier is None or not metadata.identifier.value:
        preferred = book.preferred_identifier()
        if preferred:
            updates["identifier"] = Identifier(value=preferred, source=IdentifierSource.METADATA)

    return updates


def merge_context(metadata: CanonicalMetadata, context: Optional[EnrichmentContext]) -> CanonicalMetadata:
    """Return ``metadata`` with empty fields filled from one context.

    Shadow-mode contexts and contexts without a matched book leave the
    record untouched. Non-empty fields are never overwritten.
    """

    if context is None or not context.applies:
        return metadata
    updates = _gaps_filled_by(metadata, context.book)
    if not updates:
        return metadata
    logger.debug(
        "Filled %d field(s) from %s",
        len(updates),
        context.provider.value,
        extra={
            "event": "enrichment.merge.applied",
            "provider": context.provider.value,
            "attributes": {"fields": sorted(updates)},
        },
    )
    return dataclasses.replace(metadata, **updates)


def merge_contexts(
    metadata: CanonicalMetadata, contexts: Iterable[Optional[EnrichmentContext]]
) -> CanonicalMetadata:
    """Apply contexts in descending confidence; ties keep their given order."""

    ordered = sorted(
        (context for context in contexts if context is not None),
        key=lambda context: context.confidence,
        reverse=True,
    )
    merged = metadata
    for context in ordered:
        merged = merge_context(merged, context)
    return merged


__all__ = ["merge_context", "merge_contexts"]
