"""Tests for the Library of Congress authority resolver."""

from __future__ import annotations

import threading

import pytest
import requests

from catalog_tools.config_manager.settings import LocAuthoritySettings
from catalog_tools.services.metadata.clients.loc_authority import (
    HEADING_TOOL,
    NAME_TOOL,
    NO_CANDIDATES_WARNING,
    LocAuthorityResolver,
    build_name_queries,
    build_subject_queries,
    detail_json_url,
    extract_loc_items,
    is_loc_item_url,
    normalize_loc_url,
)
from catalog_tools.services.metadata.exceptions import EnrichmentCancelledError
from catalog_tools.services.metadata.types import EnrichmentStatus, MatchType, ResolverInput
from tests.helpers.fake_http import FakeResponse, FakeSession, tool_result

pytestmark = pytest.mark.metadata

SEARCH_URL = "https://loc.test/search/"
BRIDGE_URL = "http://bridge.test/loc"

HOBBIT_ITEM = {
    "title": "The hobbit, or, There and back again",
    "contributor_names": ["Tolkien, J. R. R. (John Ronald Reuel), 1892-1973."],
    "subject_headings": ["Middle Earth (Imaginary place)--Fiction", "Fantasy fiction"],
    "original_format": ["book"],
    "url": "https://www.loc.gov/item/37028411/",
}
HOBBIT_PHOTO = {
    "title": "Photograph of a hobbit hole",
    "subject": ["Architecture"],
    "original_format": ["photo, print, drawing"],
    "url": "https://www.loc.gov/pictures/item/2001000001/",
}
HOBBIT_DETAIL = {
    "item": {
        "title": "The hobbit",
        "subject_headings": ["Dragons--Fiction", "Fantasy fiction"],
        "contributor_names": ["Tolkien, J. R. R."],
        "original_format": ["book"],
    }
}

SHERLOCK_ITEM = {
    "title": "The adventures of Sherlock Holmes",
    "contributor_names": ["Doyle, Arthur Conan, 1859-1930."],
    "subject_headings": [
        "Holmes, Sherlock (Fictitious character)--Fiction",
        "Detective and mystery stories, English",
        "Library of Congress subject headings",
    ],
    "original_format": ["book"],
    "url": "https://www.loc.gov/item/99000001/",
}


def _settings(**overrides) -> LocAuthoritySettings:
    values = {"enabled": True, "mode": "shadow", "transport": "direct", "search_url": SEARCH_URL}
    values.update(overrides)
    return LocAuthoritySettings(**values)


def _is_detail(call) -> bool:
    return call["url"].endswith("fo=json")


class TestDirectSearch:
    """Public loc.gov JSON search with relevance ranking."""

    def test_title_phase_collects_headings_and_names(self):
        def responder(call):
            if _is_detail(call):
                return FakeResponse(HOBBIT_DETAIL)
            return FakeResponse({"results": [HOBBIT_ITEM, HOBBIT_PHOTO]})

        session = FakeSession(responder=responder)
        resolver = LocAuthorityResolver(_settings(), session=session)
        context = resolver.resolve(ResolverInput(title="The Hobbit", author="J.R.R. Tolkien"))

        assert context.status is EnrichmentStatus.MATCHED
        assert context.match_type is MatchType.TITLE
        assert context.confidence == pytest.approx(0.70)
        assert context.transport == "direct"
        assert context.book is None
        assert [c.label for c in context.lcsh_candidates] == [
            "Middle Earth (Imaginary place)--Fiction",
            "Fantasy fiction",
            "Dragons--Fiction",
        ]
        assert [c.label for c in context.name_candidates] == ["J. R. R. Tolkien"]
        assert context.lcsh_candidates[0].tool == HEADING_TOOL
        assert context.lcsh_candidates[0].query == "The Hobbit"
        assert context.lcsh_candidates[0].uri == "https://www.loc.gov/item/37028411/"
        assert context.name_candidates[0].tool == NAME_TOOL

        searches = [call for call in session.calls if not _is_detail(call)]
        details = [call for call in session.calls if _is_detail(call)]
        assert [call["params"]["q"] for call in searches] == [
            "The Hobbit",
            "The Hobbit J.R.R. Tolkien",
            "J.R.R. Tolkien",
        ]
        assert searches[0]["method"] == "GET"
        assert searches[0]["url"] == SEARCH_URL
        assert searches[0]["params"] == {"fo": "json", "q": "The Hobbit", "c": 5, "sp": 1}
        assert [call["url"] for call in details] == ["https://www.loc.gov/item/37028411/?fo=json"]

    def test_identifier_phase_short_circuits(self):
        def responder(call):
            if _is_detail(call):
                return FakeResponse({})
            return FakeResponse({"results": [SHERLOCK_ITEM]})

        session = FakeSession(responder=responder)
        resolver = LocAuthorityResolver(_settings(), session=session)
        context = resolver.resolve(
            ResolverInput(
                title="The Adventures of Sherlock Holmes",
                author="Arthur Conan Doyle",
                identifier="978-0-14-043908-3",
            )
        )

        assert context.match_type is MatchType.IDENTIFIER
        assert context.confidence == pytest.approx(0.95)
        assert [c.label for c in context.lcsh_candidates] == [
            "Holmes, Sherlock (Fictitious character)--Fiction",
            "Detective and mystery stories, English",
        ]
        assert [c.label for c in context.name_candidates] == ["Arthur Conan Doyle"]

        searches = [call["params"]["q"] for call in session.calls if not _is_detail(call)]
        assert searches == ["isbn:9780140439083", "9780140439083"]
        assert session.calls[0]["full_url"].startswith(f"{SEARCH_URL}?fo=json&q=isbn")

    def test_fallback_phase_candidates_mark_context_matched(self):
        dragon_item = {"title": "Dragon lore of the ages", "subjects": ["Dragons"], "original_format": ["book"]}

        def responder(call):
            if call["params"]["q"] == "Dragons":
                return FakeResponse({"results": [dragon_item]})
            return FakeResponse({"results": []})

        session = FakeSession(responder=responder)
        context = LocAuthorityResolver(_settings(), session=session).resolve(
            ResolverInput(title="Dragon Lore", subject="Dragons")
        )

        assert context.match_type is MatchType.NONE
        assert context.confidence == 0.0
        assert context.status is EnrichmentStatus.MATCHED
        assert [c.label for c in context.lcsh_candidates] == ["Dragons"]
        assert [call["params"]["q"] for call in session.calls] == ["Dragon Lore", "Dragons", "Dragon Lore"]

    def test_zero_relevant_results_is_no_match_with_warning(self):
        session = FakeSession(responder=lambda call: FakeResponse({"results": [HOBBIT_PHOTO]}))
        context = LocAuthorityResolver(_settings(), session=session).resolve(ResolverInput(title="The Hobbit"))

        assert context.status is EnrichmentStatus.NO_MATCH
        assert context.match_type is MatchType.NONE
        assert context.warnings == [NO_CANDIDATES_WARNING]
        assert context.lcsh_candidates == []
        assert context.name_candidates == []

    def test_service_unavailable_is_recorded(self):
        session = FakeSession(
            responder=lambda call: FakeResponse(status_code=503, text="Service Unavailable")
        )
        context = LocAuthorityResolver(_settings(), session=session).resolve(ResolverInput(title="Obscure"))

        assert context.status is EnrichmentStatus.UNREACHABLE
        assert context.warnings[0] == 'direct LOC search failed for "Obscure": HTTP 503: Service Unavailable'
        assert NO_CANDIDATES_WARNING not in context.warnings
        assert len(session.calls) == 2

    def test_html_response_rejected(self):
        session = FakeSession(
            responder=lambda call: FakeResponse(headers={"content-type": "text/html"}, text="<html></html>")
        )
        context = LocAuthorityResolver(_settings(), session=session).resolve(ResolverInput(title="Obscure"))

        assert 'received content-type "text/html"' in context.warnings[0]

    def test_timeout_retried_at_double_timeout(self):
        session = FakeSession(
            [
                requests.Timeout("read timed out"),
                FakeResponse({"results": []}),
                FakeResponse({"results": []}),
            ]
        )
        context = LocAuthorityResolver(_settings(timeout_ms=1000), session=session).resolve(
            ResolverInput(title="Obscure")
        )

        assert [call["timeout"] for call in session.calls] == [1.0, 2.0, 1.0]
        assert context.status is EnrichmentStatus.NO_MATCH

    def test_cancellation_propagates(self):
        cancel = threading.Event()
        cancel.set()
        session = FakeSession()

        with pytest.raises(EnrichmentCancelledError):
            LocAuthorityResolver(_settings(), session=session).resolve(
                ResolverInput(title="The Hobbit"), cancel_event=cancel
            )
        assert session.calls == []


class TestToolBridge:
    """Cataloguing tool server transport."""

    def test_headings_and_names_from_tools(self):
        def responder(call):
            tool = call["json"]["params"]["name"]
            if tool == HEADING_TOOL:
                return tool_result(
                    {
                        "results": [
                            {
                                "heading": "Fantasy fiction",
                                "uri": "http://id.loc.gov/authorities/subjects/sh85047089",
                                "score": 0.9,
                            },
                            "Hobbits (Fictitious characters)",
                        ]
                    }
                )
            return tool_result(
                [
                    {
                        "label": "Tolkien, J. R. R. (John Ronald Reuel), 1892-1973",
                        "uri": "http://id.loc.gov/authorities/names/n79005673",
                    }
                ]
            )

        session = FakeSession(responder=responder)
        settings = _settings(transport="mcp", endpoint=BRIDGE_URL)
        context = LocAuthorityResolver(settings, session=session).resolve(
            ResolverInput(title="The Hobbit", author="J.R.R. Tolkien", subject="Fantasy")
        )

        assert settings.transport == "tool_bridge"
        assert context.transport == "tool_bridge"
        assert context.status is EnrichmentStatus.MATCHED
        assert context.match_type is MatchType.TITLE
        assert [c.label for c in context.lcsh_candidates] == [
            "Fantasy fiction",
            "Hobbits (Fictitious characters)",
        ]
        heading = context.lcsh_candidates[0]
        assert heading.query == "Fantasy"
        assert heading.uri == "http://id.loc.gov/authorities/subjects/sh85047089"
        assert heading.confidence == pytest.approx(0.9)
        assert context.name_candidates[0].label.startswith("Tolkien, J. R. R.")

        assert len(session.calls) == 3
        assert {call["url"] for call in session.calls} == {BRIDGE_URL}
        tools = sorted(call["json"]["params"]["name"] for call in session.calls)
        assert tools == [HEADING_TOOL, HEADING_TOOL, NAME_TOOL]

    def test_failed_tool_call_becomes_warning(self):
        def responder(call):
            if call["json"]["params"]["name"] == NAME_TOOL:
                return requests.ConnectionError("Connection refused")
            return tool_result({"results": ["Fantasy fiction"]})

        session = FakeSession(responder=responder)
        context = LocAuthorityResolver(_settings(transport="tool_bridge", endpoint=BRIDGE_URL), session=session).resolve(
            ResolverInput(subject="Fantasy", author="Jane Doe")
        )

        assert context.status is EnrichmentStatus.MATCHED
        assert [c.label for c in context.lcsh_candidates] == ["Fantasy fiction"]
        assert context.warnings[0].startswith(f'{NAME_TOOL} failed for "Jane Doe":')

    def test_identifier_queries_go_first(self):
        session = FakeSession(responder=lambda call: tool_result({"results": ["Fantasy fiction"]}))
        context = LocAuthorityResolver(_settings(transport="tool_bridge", endpoint=BRIDGE_URL), session=session).resolve(
            ResolverInput(title="The Hobbit", author="J.R.R. Tolkien", identifier="978-0-261-10221-7")
        )

        assert context.status is EnrichmentStatus.MATCHED
        assert context.match_type is MatchType.IDENTIFIER
        assert [c.label for c in context.lcsh_candidates] == ["Fantasy fiction"]
        assert len(session.calls) == 2
        assert {call["json"]["params"]["name"] for call in session.calls} == {HEADING_TOOL}
        keywords = {call["json"]["params"]["arguments"]["keyword"] for call in session.calls}
        assert keywords == {"isbn:9780261102217", "9780261102217"}

    def test_empty_identifier_phase_falls_back_to_title(self):
        def responder(call):
            arguments = call["json"]["params"]["arguments"]
            if "9780261102217" in arguments["query"]:
                return tool_result({"results": []})
            return tool_result({"results": ["Hobbits (Fictitious characters)"]})

        session = FakeSession(responder=responder)
        context = LocAuthorityResolver(_settings(transport="tool_bridge", endpoint=BRIDGE_URL), session=session).resolve(
            ResolverInput(title="The Hobbit", identifier="9780261102217")
        )

        assert context.status is EnrichmentStatus.MATCHED
        assert context.match_type is MatchType.TITLE
        assert [c.label for c in context.lcsh_candidates] == ["Hobbits (Fictitious characters)"]
        assert len(session.calls) == 3

    def test_missing_endpoint_is_misconfigured(self):
        session = FakeSession()
        context = LocAuthorityResolver(_settings(transport="tool_bridge"), session=session).resolve(
            ResolverInput(title="The Hobbit")
        )

        assert context.status is EnrichmentStatus.MISCONFIGURED
        assert context.warnings == ["LOC_AUTHORITY_MCP_URL is not set; skipping LOC authority enrichment."]
        assert context.transport == "tool_bridge"
        assert session.calls == []


class TestQueryBuilders:
    def test_subject_queries(self):
        query = ResolverInput(
            title="The Hobbit",
            subject="Fantasy",
            keywords="dragons; fantasy, quests | a, treasure hunts",
        )
        assert build_subject_queries(query) == ["Fantasy", "dragons", "quests", "treasure hunts"]

    def test_name_queries(self):
        query = ResolverInput(author="Rob Inglis", narrator="rob inglis")
        assert build_name_queries(query) == ["Rob Inglis"]
        assert build_name_queries(ResolverInput(author="X")) == []

    def test_url_helpers(self):
        assert normalize_loc_url("//www.loc.gov/item/1/") == "https://www.loc.gov/item/1/"
        assert normalize_loc_url("/item/1/") == "https://www.loc.gov/item/1/"
        assert normalize_loc_url(42) is None
        assert is_loc_item_url("https://www.loc.gov/item/1/")
        assert not is_loc_item_url("https://www.loc.gov/item/1/file.pdf")
        assert not is_loc_item_url("https://example.com/item/1/")
        assert detail_json_url("https://www.loc.gov/item/1/") == "https://www.loc.gov/item/1/?fo=json"
        assert detail_json_url("https://www.loc.gov/item/1/?sp=2") == "https://www.loc.gov/item/1/?sp=2&fo=json"

    def test_extract_loc_items(self):
        assert extract_loc_items({"results": [{"a": 1}, "junk"]}) == [{"a": 1}]
        assert extract_loc_items({"item": {"b": 2}}) == [{"b": 2}]
        assert extract_loc_items(None) == []


def test_feature_cache_key_reflects_transport():
    direct = LocAuthorityResolver(_settings(), session=FakeSession())
    bridged = LocAuthorityResolver(_settings(transport="tool_bridge", endpoint=BRIDGE_URL), session=FakeSession())

    assert direct.feature_cache_key() == f"locauth:shadow:direct:unset:{SEARCH_URL}:5"
    assert direct.feature_cache_key() != bridged.feature_cache_key()
