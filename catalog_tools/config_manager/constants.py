"""Shared constants for the configuration manager package."""
from __future__ import annotations

CONFIG_FILE_ENV = "CATALOG_CONFIG_FILE"

DEFAULT_PARSE_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_TEXT_LENGTH = 200_000
MAX_UPLOAD_BYTES = 100 * 1024 * 1024
DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60

DEFAULT_TIMEOUT_MS = 3500
MIN_TIMEOUT_MS = 500
DEFAULT_MAX_RESULTS = 5
MAX_RESULTS_LIMIT = 10

TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
VALID_MODES = frozenset({"shadow", "apply"})
VALID_LOC_TRANSPORTS = frozenset({"direct", "tool_bridge"})
LOC_TRANSPORT_ALIASES = {"mcp": "tool_bridge", "tool-bridge": "tool_bridge"}

DEFAULT_LOC_SEARCH_URL = "https://www.loc.gov/search/"
DEFAULT_HARDCOVER_API_URL = "https://api.hardcover.app/v1/graphql"

SENSITIVE_CONFIG_KEYS = {"api_token"}

__all__ = [
    "CONFIG_FILE_ENV",
    "DEFAULT_PARSE_TIMEOUT_SECONDS",
    "DEFAULT_MAX_TEXT_LENGTH",
    "MAX_UPLOAD_BYTES",
    "DEFAULT_CACHE_TTL_SECONDS",
    "DEFAULT_TIMEOUT_MS",
    "MIN_TIMEOUT_MS",
    "DEFAULT_MAX_RESULTS",
    "MAX_RESULTS_LIMIT",
    "TRUE_VALUES",
    "VALID_MODES",
    "VALID_LOC_TRANSPORTS",
    "LOC_TRANSPORT_ALIASES",
    "DEFAULT_LOC_SEARCH_URL",
    "DEFAULT_HARDCOVER_API_URL",
    "SENSITIVE_CONFIG_KEYS",
]
