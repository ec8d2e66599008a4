"""Library of Congress authority resolver.

Two transports are supported. ``direct`` queries the public loc.gov JSON
search, ranks the hits and mines subject headings and contributor names
from the relevant ones (following up to two item pages for detail).
``tool_bridge`` asks a cataloguing tool server for LCSH and name-authority
matches directly.
"""

from __future__ import annotations

import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlparse

from catalog_tools import logging_manager
from catalog_tools.config_manager.settings import LocAuthoritySettings

from ..field_mapping import (
    HEADING_LABEL_KEYS,
    LOC_HEADING_FIELDS,
    LOC_NAME_FIELDS,
    LOC_RESULT_KEYS,
    NAME_LABEL_KEYS,
    SCORE_KEYS,
    URI_KEYS,
    array_payload,
    collect_strings,
    dedupe_case_insensitive,
    first_present,
    pick_first_string,
    to_string_list,
)
from ..names import is_heading_noise, is_name_noise, looks_like_name, normalize_personal_name
from ..ranking import is_relevant, rank_candidates
from ..types import (
    AuthorityCandidate,
    EnrichmentContext,
    EnrichmentStatus,
    MatchType,
    Outcome,
    Provider,
    ResolverInput,
)
from .base import BaseResolver, ResolutionTrace, sanitize_identifier
from .tool_bridge import ToolBridgeMixin

logger = logging_manager.get_logger().getChild("services.metadata.clients.loc_authority")

ENDPOINT_SETTING = "LOC_AUTHORITY_MCP_URL"
HEADING_TOOL = "search_lcsh_keyword"
NAME_TOOL = "search_name_authority"

MAX_SUBJECT_QUERIES = 4
MAX_NAME_QUERIES = 3
MAX_QUERIES_PER_PHASE = 6
MAX_DETAIL_URLS_PER_QUERY = 3
MAX_DETAIL_FOLLOWS = 2
MAX_HEADINGS = 20
MAX_NAMES = 10
NO_CANDIDATES_WARNING = "No relevant LOC authority candidates found from current metadata queries."

_LIST_SEPARATORS = re.compile(r"[,;|]")


def split_keywords(value: Optional[str]) -> List[str]:
    if not value:
        return []
    parts = (item.strip() for item in _LIST_SEPARATORS.split(value))
    return [item for item in parts if 3 <= len(item) <= 120]


def build_subject_queries(query: ResolverInput) -> List[str]:
    """Subject, keywords then title; at most four, deduplicated case-insensitively."""

    queries: List[str] = []
    if query.subject and query.subject.strip():
        queries.append(query.subject.strip())
    queries.extend(split_keywords(query.keywords))
    if query.title and query.title.strip():
        queries.append(query.title.strip())
    return dedupe_case_insensitive(queries)[:MAX_SUBJECT_QUERIES]


def build_name_queries(query: ResolverInput) -> List[str]:
    candidates = [(value or "").strip() for value in (query.author, query.narrator)]
    queries = [value for value in candidates if 2 <= len(value) <= 120]
    return dedupe_case_insensitive(queries)[:MAX_NAME_QUERIES]


def normalize_loc_url(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    if trimmed.startswith("//"):
        return f"https:{trimmed}"
    if trimmed.startswith("/"):
        return f"https://www.loc.gov{trimmed}"
    return trimmed


def is_loc_item_url(url: Optional[str]) -> bool:
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    host = parsed.hostname or ""
    if not host.endswith("loc.gov"):
        return False
    if parsed.path.lower().endswith(".pdf"):
        return False
    return "/item/" in parsed.path


def detail_json_url(url: str) -> str:
    return f"{url}{'&' if '?' in url else '?'}fo=json"


def extract_loc_items(payload: Any) -> List[Mapping[str, Any]]:
    """Return search records from ``results``/``items``, or a detail page's ``item``."""

    if not isinstance(payload, Mapping):
        return []
    raw = array_payload(payload, LOC_RESULT_KEYS)
    if not raw and isinstance(payload.get("item"), Mapping):
        raw = [payload["item"]]
    return [item for item in raw if isinstance(item, Mapping)]


def _uri(record: Mapping[str, Any]) -> Optional[str]:
    candidate = pick_first_string(record, URI_KEYS)
    return candidate if candidate and candidate.startswith("http") else None


def _score(record: Mapping[str, Any]) -> Optional[float]:
    value = first_present(record, SCORE_KEYS)
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value == value:
        return float(value)
    return None


def normalize_heading_candidate(raw: Any, query: str) -> Optional[AuthorityCandidate]:
    if isinstance(raw, str):
        heading = raw.strip()
        return AuthorityCandidate(label=heading, query=query, tool=HEADING_TOOL) if heading else None
    if not isinstance(raw, Mapping):
        return None
    heading = pick_first_string(raw, HEADING_LABEL_KEYS)
    if not heading:
        return None
    return AuthorityCandidate(
        label=heading, query=query, tool=HEADING_TOOL, uri=_uri(raw), confidence=_score(raw)
    )


def normalize_name_candidate(raw: Any, query: str) -> Optional[AuthorityCandidate]:
    if isinstance(raw, str):
        label = raw.strip()
        return AuthorityCandidate(label=label, query=query, tool=NAME_TOOL) if label else None
    if not isinstance(raw, Mapping):
        return None
    label = pick_first_string(raw, NAME_LABEL_KEYS)
    if not label:
        return None
    return AuthorityCandidate(
        label=label, query=query, tool=NAME_TOOL, uri=_uri(raw), confidence=_score(raw)
    )


def dedupe_candidates(candidates: Sequence[AuthorityCandidate]) -> List[AuthorityCandidate]:
    seen: Dict[str, AuthorityCandidate] = {}
    for candidate in candidates:
        key = candidate.label.lower()
        if key not in seen:
            seen[key] = candidate
    return list(seen.values())


@dataclass(slots=True)
class MappedItems:
    headings: List[AuthorityCandidate] = field(default_factory=list)
    names: List[AuthorityCandidate] = field(default_factory=list)
    detail_urls: List[str] = field(default_factory=list)

    @property
    def produced(self) -> bool:
        return bool(self.headings or self.names or self.detail_urls)


def map_items_to_candidates(
    items: Sequence[Mapping[str, Any]],
    query_label: str,
    query: ResolverInput,
) -> MappedItems:
    """Rank loc.gov records and turn the relevant ones into candidates."""

    mapped = MappedItems()
    for score, item in rank_candidates(items, query.title, query.author):
        if not is_relevant(score):
            continue
        item_url = normalize_loc_url(item.get("url"))
        if is_loc_item_url(item_url):
            mapped.detail_urls.append(item_url)

        for heading in to_string_list(first_present(item, LOC_HEADING_FIELDS)):
            if is_heading_noise(heading):
                continue
            mapped.headings.append(
                AuthorityCandidate(label=heading, query=query_label, tool=HEADING_TOOL, uri=item_url)
            )

        raw_names = collect_strings(item, LOC_NAME_FIELDS)
        normalized = [normalize_personal_name(name) for name in raw_names]
        for label in dedupe_case_insensitive(name for name in normalized if looks_like_name(name)):
            if is_name_noise(label):
                continue
            mapped.names.append(
                AuthorityCandidate(label=label, query=query_label, tool=NAME_TOOL, uri=item_url)
            )

    mapped.detail_urls = dedupe_case_insensitive(mapped.detail_urls)[:MAX_DETAIL_URLS_PER_QUERY]
    return mapped


class LocAuthorityResolver(ToolBridgeMixin, BaseResolver):
    """Resolve subject headings and name authorities from the Library of Congress."""

    provider = Provider.LOC_AUTHORITY
    title_confidence = 0.70
    tool_call_prefix = "loc"

    _settings: LocAuthoritySettings

    def _resolve(
        self,
        query: ResolverInput,
        cancel_event: Optional[threading.Event],
    ) -> EnrichmentContext:
        if self._settings.transport == "tool_bridge":
            context = self._resolve_via_tools(query, cancel_event)
        else:
            context = self._resolve_direct(query, cancel_event)
        context.transport = self._settings.transport
        return context

    def feature_cache_key(self) -> str:
        settings = self._settings
        endpoint = settings.endpoint or "unset"
        return (
            f"locauth:{settings.effective_mode}:{settings.transport}:{endpoint}:"
            f"{settings.search_url}:{settings.max_results}"
        )

    # Tool bridge -----------------------------------------------------------------

    def _resolve_via_tools(
        self,
        query: ResolverInput,
        cancel_event: Optional[threading.Event],
    ) -> EnrichmentContext:
        endpoint = self._settings.endpoint
        if not endpoint:
            return self._misconfigured(ENDPOINT_SETTING, "LOC authority")

        trace = ResolutionTrace()
        identifier = sanitize_identifier(query.identifier)
        if identifier:
            jobs = [self._heading_job(text) for text in (f"isbn:{identifier}", identifier)]
            headings, names = self._run_tool_jobs(endpoint, jobs, trace, cancel_event)
            if headings or names:
                return self._finish(trace, headings, names, MatchType.IDENTIFIER)

        jobs = [self._heading_job(text) for text in build_subject_queries(query)]
        jobs.extend(self._name_job(text) for text in build_name_queries(query))
        headings, names = self._run_tool_jobs(endpoint, jobs, trace, cancel_event)
        return self._finish(trace, headings, names, MatchType.TITLE)

    def _heading_job(self, text: str) -> Tuple[str, str, Dict[str, Any]]:
        max_results = self._settings.max_results
        return HEADING_TOOL, text, {"keyword": text, "query": text, "max_results": max_results, "maxResults": max_results}

    def _name_job(self, text: str) -> Tuple[str, str, Dict[str, Any]]:
        max_results = self._settings.max_results
        return NAME_TOOL, text, {"query": text, "name": text, "max_results": max_results, "maxResults": max_results}

    def _run_tool_jobs(
        self,
        endpoint: str,
        jobs: List[Tuple[str, str, Dict[str, Any]]],
        trace: ResolutionTrace,
        cancel_event: Optional[threading.Event],
    ) -> Tuple[List[AuthorityCandidate], List[AuthorityCandidate]]:
        headings: List[AuthorityCandidate] = []
        names: List[AuthorityCandidate] = []
        if not jobs:
            return headings, names
        with ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="loc-tool") as executor:
            outcomes = list(
                executor.map(
                    lambda job: self._attempt(
                        lambda: self._call_tool(endpoint, job[0], job[2], cancel_event=cancel_event)
                    ),
                    jobs,
                )
            )
        for (tool, text, _), outcome in zip(jobs, outcomes):
            trace.record(outcome, f'{tool} failed for "{text}": {outcome.error}')
            if not outcome.ok:
                continue
            for raw in array_payload(outcome.value):
                if tool == HEADING_TOOL:
                    candidate = normalize_heading_candidate(raw, text)
                    if candidate is not None:
                        headings.append(candidate)
                else:
                    candidate = normalize_name_candidate(raw, text)
                    if candidate is not None:
                        names.append(candidate)
        return headings, names

    # Direct search -----------------------------------------------------------------

    def _search(
        self, text: str, cancel_event: Optional[threading.Event]
    ) -> Outcome[Any]:
        base = self._settings.search_url
        if not base.endswith("/"):
            base = f"{base}/"
        return self._attempt(
            lambda: self._request_json(
                "GET",
                base,
                cancel_event=cancel_event,
                params={"fo": "json", "q": text, "c": self._settings.max_results, "sp": 1},
                require_json_content_type=True,
            )
        )

    def _run_phase(
        self,
        queries: Sequence[str],
        query: ResolverInput,
        trace: ResolutionTrace,
        collected: MappedItems,
        cancel_event: Optional[threading.Event],
    ) -> bool:
        produced = False
        for text in dedupe_case_insensitive(q for q in queries if q.strip())[:MAX_QUERIES_PER_PHASE]:
            outcome = self._search(text, cancel_event)
            trace.record(outcome, f'direct LOC search failed for "{text}": {outcome.error}')
            if not outcome.ok:
                continue
            mapped = map_items_to_candidates(extract_loc_items(outcome.value), text, query)
            produced = produced or mapped.produced
            collected.headings.extend(mapped.headings)
            collected.names.extend(mapped.names)
            collected.detail_urls.extend(mapped.detail_urls)
        return produced

    def _resolve_direct(
        self,
        query: ResolverInput,
        cancel_event: Optional[threading.Event],
    ) -> EnrichmentContext:
        trace = ResolutionTrace()
        collected = MappedItems()
        match_type = MatchType.NONE

        identifier = sanitize_identifier(query.identifier)
        if identifier and self._run_phase(
            [f"isbn:{identifier}", identifier], query, trace, collected, cancel_event
        ):
            match_type = MatchType.IDENTIFIER

        if match_type is MatchType.NONE:
            title = (query.title or "").strip()
            author = (query.author or "").strip()
            phase = [title, f"{title} {author}" if title and author else "", author]
            if self._run_phase([q for q in phase if q], query, trace, collected, cancel_event):
                match_type = MatchType.TITLE

        if match_type is MatchType.NONE:
            self._run_phase(
                build_subject_queries(query) + build_name_queries(query),
                query,
                trace,
                collected,
                cancel_event,
            )

        detail_targets = dedupe_case_insensitive(collected.detail_urls)[:MAX_DETAIL_FOLLOWS]
        if detail_targets:
            with ThreadPoolExecutor(max_workers=len(detail_targets), thread_name_prefix="loc-detail") as executor:
                outcomes = list(
                    executor.map(
                        lambda url: self._attempt(
                            lambda: self._request_json(
                                "GET",
                                detail_json_url(url),
                                cancel_event=cancel_event,
                                require_json_content_type=True,
                            )
                        ),
                        detail_targets,
                    )
                )
            for url, outcome in zip(detail_targets, outcomes):
                trace.record(outcome, f'direct LOC detail lookup failed for "{url}": {outcome.error}')
                if outcome.ok:
                    mapped = map_items_to_candidates(extract_loc_items(outcome.value), url, query)
                    collected.headings.extend(mapped.headings)
                    collected.names.extend(mapped.names)

        return self._finish(trace, collected.headings, collected.names, match_type)

    def _finish(
        self,
        trace: ResolutionTrace,
        headings: List[AuthorityCandidate],
        names: List[AuthorityCandidate],
        match_type: MatchType,
    ) -> EnrichmentContext:
        headings = dedupe_candidates(headings)[:MAX_HEADINGS]
        names = dedupe_candidates(names)[:MAX_NAMES]
        found = bool(headings or names)
        if not found:
            match_type = MatchType.NONE
            if not trace.warnings:
                trace.warnings.append(NO_CANDIDATES_WARNING)

        context = self._context(trace, match_type=match_type)
        context.lcsh_candidates = headings
        context.name_candidates = names
        if found:
            context.status = EnrichmentStatus.MATCHED
        return context


__all__ = [
    "LocAuthorityResolver",
    "build_name_queries",
    "build_subject_queries",
    "extract_loc_items",
    "is_loc_item_url",
    "map_items_to_candidates",
    "normalize_loc_url",
]
