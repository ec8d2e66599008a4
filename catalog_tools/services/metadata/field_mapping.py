"""Ordered field-mapping tables for authority response schemas.

Each external schema names the same concept several ways. Rather than
scattering fallback chains through the clients, every "first present key"
choice lives here as an ordered tuple so it can be audited and tested on
its own. Dotted keys (``author.name``) descend into nested mappings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

# Generic JSON-RPC / tool payloads
ARRAY_PAYLOAD_KEYS: Tuple[str, ...] = ("results", "items", "matches", "data")

# LOC authority candidates
HEADING_LABEL_KEYS: Tuple[str, ...] = ("heading", "label", "title", "term", "name")
NAME_LABEL_KEYS: Tuple[str, ...] = ("label", "name", "heading")
URI_KEYS: Tuple[str, ...] = ("uri", "id", "url")
SCORE_KEYS: Tuple[str, ...] = ("score", "confidence", "relevance")
STRING_LIST_OBJECT_KEYS: Tuple[str, ...] = (
    "heading",
    "subject",
    "name",
    "full_name",
    "fullName",
    "contributor",
    "contributor_name",
    "contributorName",
    "creator",
    "author",
    "label",
)

# loc.gov search records
LOC_RESULT_KEYS: Tuple[str, ...] = ("results", "items")
LOC_HEADING_FIELDS: Tuple[str, ...] = ("subject_headings", "subjects", "subject")
LOC_NAME_FIELDS: Tuple[str, ...] = (
    "contributors",
    "contributor_names",
    "contributor_name",
    "creator",
    "creators",
    "author",
    "authors",
    "name",
    "names",
    "byline",
    "partof",
)
LOC_RANKING_TEXT_FIELDS: Tuple[str, ...] = (
    "title",
    "other_title",
    "contributors",
    "contributor_names",
    "creator",
    "authors",
    "subject_headings",
)
LOC_FORMAT_FIELDS: Tuple[str, ...] = ("original_format", "format", "type")

# Open Library records
OPEN_LIBRARY_WRAPPER_KEYS: Tuple[str, ...] = ("book", "books", "results", "result", "docs")
OPEN_LIBRARY_AUTHOR_KEYS: Tuple[str, ...] = ("name", "author", "value")
OPEN_LIBRARY_COVER_KEYS: Tuple[str, ...] = ("large", "medium", "small")

# Hardcover records
HARDCOVER_CONTRIBUTOR_KEYS: Tuple[str, ...] = ("author_name", "name", "author.name")


@dataclass(frozen=True, slots=True)
class FieldRule:
    """Fill ``target`` from the first usable value among ``sources``."""

    target: str
    sources: Tuple[str, ...]
    kind: str = "string"  # string | number | string_list


OPEN_LIBRARY_BOOK_FIELDS: Tuple[FieldRule, ...] = (
    FieldRule("title", ("title", "name")),
    FieldRule("subtitle", ("subtitle",)),
    FieldRule("publishers", ("publishers",), "string_list"),
    FieldRule("publication_date", ("publish_date", "publishDate", "first_publish_year")),
    FieldRule("number_of_pages", ("number_of_pages", "numberOfPages", "page_count"), "number"),
    FieldRule("isbn10", ("isbn_10",), "string_list"),
    FieldRule("isbn13", ("isbn_13",), "string_list"),
    FieldRule("lccn", ("lccn",), "string_list"),
    FieldRule("oclc", ("oclc_numbers", "oclc"), "string_list"),
    FieldRule("work_key", ("work_key", "workKey")),
    FieldRule("edition_key", ("edition_key", "editionKey", "key")),
)

HARDCOVER_EDITION_FIELDS: Tuple[FieldRule, ...] = (
    FieldRule("publishers", ("publisher.name",), "string_list"),
    FieldRule("publication_date", ("release_date",)),
    FieldRule("number_of_pages", ("pages",), "number"),
    FieldRule("isbn10", ("isbn_10",), "string_list"),
    FieldRule("isbn13", ("isbn_13",), "string_list"),
    FieldRule("asin", ("asin",)),
)

HARDCOVER_BOOK_FIELDS: Tuple[FieldRule, ...] = (
    FieldRule("title", ("title",)),
    FieldRule("description", ("description",)),
    FieldRule("slug", ("slug",)),
)


def lookup(record: Any, key: str) -> Any:
    """Return ``record[key]``, following dotted paths; missing keys give ``None``."""

    current = record
    for part in key.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)):
        return str(value)
    return None


def pick_first_string(record: Any, keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        text = _as_text(lookup(record, key))
        if text:
            return text
    return None


def as_number(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        digits = value.strip()
        sign = ""
        if digits[:1] in "+-":
            sign, digits = digits[:1], digits[1:]
        leading = ""
        for char in digits:
            if not char.isdigit():
                break
            leading += char
        return int(sign + leading) if leading else None
    return None


def as_float(value: Any) -> Optional[float]:
    """Return a finite number, keeping fractions; whole values come back as ``int``."""

    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value) if value.is_integer() else value
    return None


def pick_first_number(record: Any, keys: Iterable[str]) -> Optional[int]:
    for key in keys:
        number = as_number(lookup(record, key))
        if number is not None:
            return number
    return None


def as_string_list(value: Any) -> List[str]:
    """Return trimmed strings from a list or a single string."""

    if isinstance(value, list):
        return [entry.strip() for entry in value if isinstance(entry, str) and entry.strip()]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def pick_first_list(record: Any, keys: Iterable[str]) -> List[str]:
    for key in keys:
        values = as_string_list(lookup(record, key))
        if values:
            return values
    return []


def to_string_list(value: Any, object_keys: Sequence[str] = STRING_LIST_OBJECT_KEYS) -> List[str]:
    """Flatten strings and label-bearing objects into a list of strings."""

    if not value:
        return []
    if isinstance(value, list):
        items: List[str] = []
        for entry in value:
            if isinstance(entry, str):
                text = entry.strip()
            elif isinstance(entry, Mapping):
                text = ""
                for key in object_keys:
                    candidate = entry.get(key)
                    if isinstance(candidate, str) and candidate:
                        text = candidate.strip()
                        break
            else:
                text = ""
            if text:
                items.append(text)
        return items
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def collect_strings(record: Mapping[str, Any], fields: Iterable[str]) -> List[str]:
    values: List[str] = []
    for name in fields:
        values.extend(to_string_list(record.get(name)))
    return values


def first_present(record: Mapping[str, Any], fields: Iterable[str]) -> Any:
    """Return the first value among ``fields`` that is not ``None``."""

    for name in fields:
        value = record.get(name)
        if value is not None:
            return value
    return None


def array_payload(payload: Any, keys: Sequence[str] = ARRAY_PAYLOAD_KEYS) -> List[Any]:
    """Return ``payload`` if it is a list, else the first list found under ``keys``."""

    if isinstance(payload, list):
        return payload
    if not isinstance(payload, Mapping):
        return []
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return []


def apply_field_rules(record: Any, rules: Iterable[FieldRule]) -> Dict[str, Any]:
    """Evaluate ``rules`` against ``record`` and return the non-empty results."""

    result: Dict[str, Any] = {}
    for rule in rules:
        if rule.kind == "number":
            value: Any = pick_first_number(record, rule.sources)
        elif rule.kind == "string_list":
            value = pick_first_list(record, rule.sources)
        else:
            value = pick_first_string(record, rule.sources)
        if value not in (None, [], ""):
            result[rule.target] = value
    return result


def dedupe_case_insensitive(values: Iterable[str]) -> List[str]:
    """Keep the first spelling of each value, compared case-insensitively."""

    seen: Dict[str, str] = {}
    for value in values:
        key = value.lower()
        if key not in seen:
            seen[key] = value
    return list(seen.values())


__all__ = [
    "ARRAY_PAYLOAD_KEYS",
    "FieldRule",
    "HARDCOVER_BOOK_FIELDS",
    "HARDCOVER_CONTRIBUTOR_KEYS",
    "HARDCOVER_EDITION_FIELDS",
    "HEADING_LABEL_KEYS",
    "LOC_FORMAT_FIELDS",
    "LOC_HEADING_FIELDS",
    "LOC_NAME_FIELDS",
    "LOC_RANKING_TEXT_FIELDS",
    "LOC_RESULT_KEYS",
    "NAME_LABEL_KEYS",
    "OPEN_LIBRARY_AUTHOR_KEYS",
    "OPEN_LIBRARY_BOOK_FIELDS",
    "OPEN_LIBRARY_COVER_KEYS",
    "OPEN_LIBRARY_WRAPPER_KEYS",
    "SCORE_KEYS",
    "STRING_LIST_OBJECT_KEYS",
    "URI_KEYS",
    "apply_field_rules",
    "array_payload",
    "as_float",
    "as_number",
    "as_string_list",
    "collect_strings",
    "dedupe_case_insensitive",
    "first_present",
    "lookup",
    "pick_first_list",
    "pick_first_number",
    "pick_first_string",
    "to_string_list",
]
