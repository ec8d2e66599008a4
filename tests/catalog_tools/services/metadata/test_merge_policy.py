"""Tests for the gap-filling merge of enrichment contexts."""

from __future__ import annotations

import pytest

from catalog_tools.parsers.types import (
    CanonicalMetadata,
    Identifier,
    IdentifierSource,
    PageCount,
    PageCountType,
    SourceFormat,
)
from catalog_tools.services.metadata.merge import merge_context, merge_contexts
from catalog_tools.services.metadata.types import (
    EnrichmentContext,
    EnrichmentMode,
    EnrichmentStatus,
    MatchType,
    NormalizedBook,
    Provider,
    SeriesInfo,
)

pytestmark = pytest.mark.metadata


def _metadata(**overrides) -> CanonicalMetadata:
    values = {"title": "The Hobbit", "author": "", "source_format": SourceFormat.EPUB}
    values.update(overrides)
    return CanonicalMetadata(**values)


def _context(
    book: NormalizedBook,
    *,
    provider: Provider = Provider.OPEN_LIBRARY,
    mode: EnrichmentMode = EnrichmentMode.APPLY,
    confidence: float = 0.70,
) -> EnrichmentContext:
    return EnrichmentContext(
        provider=provider,
        mode=mode,
        match_type=MatchType.TITLE,
        confidence=confidence,
        book=book,
        status=EnrichmentStatus.MATCHED,
    )


HOBBIT_BOOK = NormalizedBook(
    title="The Hobbit, or There and Back Again",
    authors=["J. R. R. Tolkien", "Christopher Tolkien"],
    publishers=["Allen & Unwin"],
    publication_date="1937",
    number_of_pages=310,
    isbn13=["9780261102217"],
    series=SeriesInfo(name="Middle-earth", position=1),
)


class TestMergeContext:
    """Only empty fields are filled, and only in apply mode."""

    def test_apply_mode_fills_gaps(self):
        merged = merge_context(_metadata(), _context(HOBBIT_BOOK))

        assert merged.title == "The Hobbit"
        assert merged.author == "J. R. R. Tolkien"
        assert merged.publisher == "Allen & Unwin"
        assert merged.publication_date == "1937"
        assert merged.page_count == PageCount(value=310, type=PageCountType.ACTUAL)
        assert merged.series == "Middle-earth"
        assert merged.series_position == 1
        assert merged.identifier == Identifier(value="9780261102217", source=IdentifierSource.METADATA)

    def test_existing_values_are_never_overwritten(self):
        metadata = _metadata(
            author="Tolkien",
            publisher="HarperCollins",
            page_count=PageCount(value=280, type=PageCountType.ESTIMATED),
            identifier=Identifier(value="0261102214", source=IdentifierSource.TEXT),
        )
        merged = merge_context(metadata, _context(HOBBIT_BOOK))

        assert merged.author == "Tolkien"
        assert merged.publisher == "HarperCollins"
        assert merged.page_count.value == 280
        assert merged.page_count.type is PageCountType.ESTIMATED
        assert merged.identifier.value == "0261102214"
        assert merged.publication_date == "1937"

    def test_shadow_mode_leaves_record_untouched(self):
        metadata = _metadata()
        merged = merge_context(metadata, _context(HOBBIT_BOOK, mode=EnrichmentMode.SHADOW))
        assert merged is metadata

    def test_context_without_book_is_ignored(self):
        metadata = _metadata()
        context = EnrichmentContext(provider=Provider.OPEN_LIBRARY, mode=EnrichmentMode.APPLY)

        assert merge_context(metadata, context) is metadata
        assert merge_context(metadata, None) is metadata

    def test_original_record_is_not_mutated(self):
        metadata = _metadata()
        merge_context(metadata, _context(HOBBIT_BOOK))
        assert metadata.author == ""
        assert metadata.publisher is None


class TestMergeContexts:
    def test_higher_confidence_applies_first(self):
        open_library = _context(NormalizedBook(publishers=["Open Library Press"]), confidence=0.70)
        hardcover = _context(
            NormalizedBook(publishers=["Hardcover House"]),
            provider=Provider.HARDCOVER,
            confidence=0.95,
        )

        merged = merge_contexts(_metadata(), [open_library, hardcover])

        assert merged.publisher == "Hardcover House"

    def test_ties_keep_given_order(self):
        first = _context(NormalizedBook(publishers=["First"]), confidence=0.70)
        second = _context(NormalizedBook(publishers=["Second"]), provider=Provider.HARDCOVER, confidence=0.70)

        assert merge_contexts(_metadata(), [first, second]).publisher == "First"
        assert merge_contexts(_metadata(), [second, first]).publisher == "Second"

    def test_lower_confidence_fills_remaining_gaps(self):
        identifier_match = _context(
            NormalizedBook(publishers=["Hardcover House"]), provider=Provider.HARDCOVER, confidence=0.95
        )
        title_match = _context(NormalizedBook(publishers=["Other"], publication_date="1937"), confidence=0.70)

        merged = merge_contexts(_metadata(), [None, title_match, identifier_match])

        assert merged.publisher == "Hardcover House"
        assert merged.publication_date == "1937"
