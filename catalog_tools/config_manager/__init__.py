"""High-level configuration management for catalog-tools."""
from __future__ import annotations

from .constants import (
    CONFIG_FILE_ENV,
    DEFAULT_HARDCOVER_API_URL,
    DEFAULT_LOC_SEARCH_URL,
    DEFAULT_MAX_RESULTS,
    DEFAULT_MAX_TEXT_LENGTH,
    DEFAULT_PARSE_TIMEOUT_SECONDS,
    DEFAULT_TIMEOUT_MS,
    MAX_UPLOAD_BYTES,
)
from .loader import export_settings, get_settings, load_configuration, reset_settings
from .settings import (
    CatalogToolsSettings,
    EnrichmentSettings,
    EnvironmentOverrides,
    HardcoverSettings,
    LocAuthoritySettings,
    ParserSettings,
    ResolverSettings,
    parse_flag,
)

__all__ = [
    "CONFIG_FILE_ENV",
    "DEFAULT_HARDCOVER_API_URL",
    "DEFAULT_LOC_SEARCH_URL",
    "DEFAULT_MAX_RESULTS",
    "DEFAULT_MAX_TEXT_LENGTH",
    "DEFAULT_PARSE_TIMEOUT_SECONDS",
    "DEFAULT_TIMEOUT_MS",
    "MAX_UPLOAD_BYTES",
    "CatalogToolsSettings",
    "EnrichmentSettings",
    "EnvironmentOverrides",
    "HardcoverSettings",
    "LocAuthoritySettings",
    "ParserSettings",
    "ResolverSettings",
    "export_settings",
    "get_settings",
    "load_configuration",
    "parse_flag",
    "reset_settings",
]
