"""Tests for the EPUB parser."""

from __future__ import annotations

import logging

import pytest

from catalog_tools.parsers.epub_parser import EpubParser
from catalog_tools.parsers.exceptions import CorruptContainerError, MissingContainerEntryError
from catalog_tools.parsers.types import IdentifierSource, PageCountType, ParseOptions, SourceFormat

pytestmark = pytest.mark.parsers


METADATA_EXTRA = """
    <dc:publisher>Allen &amp; Unwin</dc:publisher>
    <dc:date>2005-07-01</dc:date>
    <dc:language>en</dc:language>
    <dc:subject>Fantasy</dc:subject>
    <dc:description>A   hobbit goes there and back again.</dc:description>
    <dc:identifier id="uuid">urn:uuid:1b2c3d4e-0000-0000-0000-000000000000</dc:identifier>
    <dc:identifier id="bookid" opf:scheme="ISBN">978-0-261-10221-7</dc:identifier>
    <meta property="schema:accessibilityFeature">alternativeText</meta>
    <meta property="schema:accessibilityFeature">tableOfContents</meta>
    <meta property="schema:accessMode">textual</meta>
    <meta property="schema:accessModeSufficient">textual</meta>
    <meta property="schema:accessibilityHazard">none</meta>
    <meta property="dcterms:conformsTo">EPUB Accessibility 1.1 - WCAG 2.1 Level AA</meta>
"""

NCX_BODY = """
  <navMap>
    <navPoint id="n1" playOrder="1">
      <navLabel><text>Chapter One</text></navLabel>
      <content src="chapter1.xhtml"/>
    </navPoint>
  </navMap>
  <pageList>
    <pageTarget value="1"><navLabel><text>1</text></navLabel><content src="chapter1.xhtml#p1"/></pageTarget>
    <pageTarget value="214"><navLabel><text>214</text></navLabel><content src="chapter1.xhtml#p214"/></pageTarget>
  </pageList>
"""


def _parse(data: bytes, **options) -> object:
    return EpubParser().parse(data, ParseOptions(**options))


class TestEpubMetadata:
    """Dublin Core and accessibility metadata from the package document."""

    def test_dublin_core_fields(self, epub_factory):
        result = _parse(epub_factory(title="The Hobbit", creator="J. R. R. Tolkien", metadata_extra=METADATA_EXTRA))
        metadata = result.metadata

        assert metadata.source_format is SourceFormat.EPUB
        assert metadata.title == "The Hobbit"
        assert metadata.author == "J. R. R. Tolkien"
        assert metadata.publisher == "Allen & Unwin"
        assert metadata.publication_date == "7/1/2005"
        assert metadata.language == "en"
        assert metadata.subject == "Fantasy"
        assert metadata.description == "A hobbit goes there and back again."
        assert metadata.epub_version == "3.0"

    def test_isbn_scheme_identifier_preferred(self, epub_factory):
        metadata = _parse(epub_factory(metadata_extra=METADATA_EXTRA)).metadata

        assert metadata.identifier is not None
        assert metadata.identifier.value == "9780261102217"
        assert metadata.identifier.source is IdentifierSource.METADATA

    def test_accessibility_fields(self, epub_factory):
        metadata = _parse(epub_factory(metadata_extra=METADATA_EXTRA)).metadata

        assert metadata.accessibility_features == ("alternativeText", "tableOfContents")
        assert metadata.access_modes == ("textual",)
        assert metadata.access_modes_sufficient == ("textual",)
        assert metadata.hazards == ("none",)
        assert metadata.certification == "EPUB Accessibility 1.1 - WCAG 2.1 Level AA"

    def test_missing_title_and_creator_become_empty_strings(self, epub_factory):
        metadata = _parse(epub_factory(title=None, creator=None)).metadata

        assert metadata.title == ""
        assert metadata.author == ""
        assert "title" in metadata.to_dict()

    def test_identifier_without_isbn_is_dropped(self, epub_factory):
        extra = '<dc:identifier id="bookid">urn:uuid:abc-def</dc:identifier>'
        assert _parse(epub_factory(metadata_extra=extra)).metadata.identifier is None


class TestEpubContent:
    """Spine text, navigation and covers."""

    def test_text_follows_spine_order(self, epub_factory):
        data = epub_factory(
            chapters=(
                ("chapter1.xhtml", "<h1>One</h1>\n<p>First   chapter.</p>"),
                ("chapter2.xhtml", "<p>Second chapter.</p>"),
                ("chapter3.xhtml", "<p>Third chapter.</p>"),
            )
        )
        result = _parse(data)

        assert result.text == "One First chapter.\n\nSecond chapter.\n\nThird chapter."

    def test_text_is_truncated(self, epub_factory, caplog):
        catalog_logger = logging.getLogger("catalog_tools")
        original = catalog_logger.propagate
        catalog_logger.propagate = True
        caplog.set_level(logging.WARNING, logger="catalog_tools")
        try:
            result = _parse(epub_factory(), max_text_length=7)
        finally:
            catalog_logger.propagate = original

        assert result.text == "Chapter"
        record = next(r for r in caplog.records if getattr(r, "event", "") == "parser.text.truncated")
        assert record.attributes["max_length"] == 7

    def test_nav_document_toc(self, epub_factory):
        nav = (
            '<nav epub:type="toc"><ol>'
            '<li><a href="chapter1.xhtml">Opening</a></li>'
            "</ol></nav>"
        )
        result = _parse(epub_factory(nav_body=nav))

        assert result.toc is not None
        assert result.toc[0].label == "Opening"
        assert result.toc[0].href == "chapter1.xhtml"
        assert result.page_list is None

    def test_ncx_toc_page_list_and_page_count(self, epub_factory):
        result = _parse(epub_factory(version="2.0", ncx_body=NCX_BODY))

        assert result.metadata.epub_version == "2.0"
        assert [item.label for item in result.toc] == ["Chapter One"]
        assert [item.page_number for item in result.page_list] == [1, 214]
        assert result.metadata.page_count.value == 214
        assert result.metadata.page_count.type is PageCountType.ACTUAL

    def test_page_list_read_from_ncx_alongside_nav_toc(self, epub_factory):
        nav = (
            '<nav epub:type="toc"><ol>'
            '<li><a href="chapter1.xhtml">Opening</a></li>'
            "</ol></nav>"
        )
        result = _parse(epub_factory(nav_body=nav, ncx_body=NCX_BODY))

        assert [item.label for item in result.toc] == ["Opening"]
        assert [(item.label, item.page_number) for item in result.page_list] == [("1", 1), ("214", 214)]
        assert result.metadata.page_count.value == 214

    def test_declared_page_count_from_package(self, epub_factory):
        extra = '<meta property="schema:numberOfPages">96</meta>'
        page_count = _parse(epub_factory(metadata_extra=extra)).metadata.page_count

        assert (page_count.value, page_count.type) == (96, PageCountType.ACTUAL)

    def test_estimated_page_count(self, epub_factory):
        page_count = _parse(epub_factory()).metadata.page_count

        assert (page_count.value, page_count.type) == (1, PageCountType.ESTIMATED)

    def test_missing_navigation_gives_no_toc(self, epub_factory):
        result = _parse(epub_factory())
        assert result.toc is None
        assert result.page_list is None

    def test_cover_from_manifest_properties(self, epub_factory, png_pixel):
        result = _parse(epub_factory(cover=png_pixel), extract_cover=True)

        assert result.cover is not None
        assert result.cover.media_type == "image/png"
        assert result.cover.data == png_pixel
        assert result.cover_image_url.startswith("data:image/png;base64,")

    def test_cover_from_meta_element(self, epub_factory, png_pixel):
        result = _parse(epub_factory(cover=png_pixel, cover_via_meta=True), extract_cover=True)
        assert result.cover is not None
        assert result.cover.data == png_pixel

    def test_cover_skipped_unless_requested(self, epub_factory, png_pixel):
        result = _parse(epub_factory(cover=png_pixel))
        assert result.cover is None
        assert result.to_dict()["coverImageUrl"] is None

    def test_package_at_archive_root(self, epub_factory):
        result = _parse(epub_factory(opf_path="content.opf"))
        assert result.text == "Chapter one text."


class TestEpubFailures:
    """Fatal container problems raise typed parse errors."""

    def test_missing_container_xml(self, epub_factory):
        with pytest.raises(MissingContainerEntryError) as excinfo:
            _parse(epub_factory(omit=("META-INF/container.xml",)))
        assert excinfo.value.entry == "META-INF/container.xml"

    def test_missing_package_document(self, epub_factory):
        with pytest.raises(MissingContainerEntryError) as excinfo:
            _parse(epub_factory(omit=("OEBPS/content.opf",)))
        assert excinfo.value.entry == "OEBPS/content.opf"

    def test_corrupt_archive(self):
        with pytest.raises(CorruptContainerError):
            _parse(b"PK\x03\x04this is not really a zip archive")

    def test_manifest_item_missing_from_archive(self, epub_factory):
        with pytest.raises(MissingContainerEntryError) as excinfo:
            _parse(epub_factory(omit=("OEBPS/chapter1.xhtml",)))
        assert excinfo.value.entry == "OEBPS/chapter1.xhtml"
