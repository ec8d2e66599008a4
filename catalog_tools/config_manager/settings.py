"""Pydantic models and helper utilities for configuration values."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from catalog_tools import logging_manager

from .constants import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_HARDCOVER_API_URL,
    DEFAULT_LOC_SEARCH_URL,
    DEFAULT_MAX_RESULTS,
    DEFAULT_MAX_TEXT_LENGTH,
    DEFAULT_PARSE_TIMEOUT_SECONDS,
    DEFAULT_TIMEOUT_MS,
    LOC_TRANSPORT_ALIASES,
    MAX_RESULTS_LIMIT,
    MAX_UPLOAD_BYTES,
    MIN_TIMEOUT_MS,
    TRUE_VALUES,
    VALID_LOC_TRANSPORTS,
    VALID_MODES,
)

logger = logging_manager.get_logger().getChild("config")


def parse_flag(value: Any) -> bool:
    """Interpret ``value`` as an enable flag (``1``, ``true``, ``yes``, ``on``)."""

    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


def _coerce_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return default


class ResolverSettings(BaseModel):
    """Feature switches shared by every enrichment resolver."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    mode: str = "shadow"
    endpoint: Optional[str] = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_results: int = DEFAULT_MAX_RESULTS

    @field_validator("enabled", mode="before")
    @classmethod
    def _parse_enabled(cls, value: Any) -> bool:
        return parse_flag(value)

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: Any) -> str:
        normalized = str(value or "").strip().lower()
        return normalized if normalized in VALID_MODES else "shadow"

    @field_validator("endpoint", mode="before")
    @classmethod
    def _parse_endpoint(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @field_validator("timeout_ms", mode="before")
    @classmethod
    def _parse_timeout(cls, value: Any) -> int:
        return max(MIN_TIMEOUT_MS, _coerce_int(value, DEFAULT_TIMEOUT_MS))

    @field_validator("max_results", mode="before")
    @classmethod
    def _parse_max_results(cls, value: Any) -> int:
        return min(MAX_RESULTS_LIMIT, max(1, _coerce_int(value, DEFAULT_MAX_RESULTS)))

    @property
    def effective_mode(self) -> str:
        """Return ``off`` when disabled, otherwise ``shadow`` or ``apply``."""

        if not self.enabled:
            return "off"
        return self.mode

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


class LocAuthoritySettings(ResolverSettings):
    """Library of Congress authority resolver switches."""

    transport: str = "direct"
    search_url: str = DEFAULT_LOC_SEARCH_URL

    @field_validator("transport", mode="before")
    @classmethod
    def _parse_transport(cls, value: Any) -> str:
        normalized = str(value or "").strip().lower()
        normalized = LOC_TRANSPORT_ALIASES.get(normalized, normalized)
        return normalized if normalized in VALID_LOC_TRANSPORTS else "direct"

    @field_validator("search_url", mode="before")
    @classmethod
    def _parse_search_url(cls, value: Any) -> str:
        cleaned = str(value or "").strip()
        return cleaned or DEFAULT_LOC_SEARCH_URL


class HardcoverSettings(ResolverSettings):
    """Hardcover GraphQL resolver switches."""

    endpoint: Optional[str] = DEFAULT_HARDCOVER_API_URL
    api_token: Optional[SecretStr] = None

    @field_validator("api_token", mode="before")
    @classmethod
    def _parse_token(cls, value: Any) -> Any:
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        if value is None:
            return None
        cleaned = str(value).strip()
        return SecretStr(cleaned) if cleaned else None


class EnrichmentSettings(BaseModel):
    """Per-resolver configuration for the enrichment pass."""

    model_config = ConfigDict(extra="ignore")

    loc_authority: LocAuthoritySettings = Field(default_factory=LocAuthoritySettings)
    open_library: ResolverSettings = Field(default_factory=ResolverSettings)
    hardcover: HardcoverSettings = Field(default_factory=HardcoverSettings)
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS


class ParserSettings(BaseModel):
    """Limits applied while decoding uploaded files."""

    model_config = ConfigDict(extra="ignore")

    parse_timeout_seconds: float = DEFAULT_PARSE_TIMEOUT_SECONDS
    max_text_length: int = DEFAULT_MAX_TEXT_LENGTH
    max_upload_bytes: int = MAX_UPLOAD_BYTES


class CatalogToolsSettings(BaseModel):
    """Typed representation of the application configuration."""

    model_config = ConfigDict(extra="allow")

    parser: ParserSettings = Field(default_factory=ParserSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    debug: bool = False


class EnvironmentOverrides(BaseSettings):
    """Configuration overrides sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    loc_enabled: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ENABLE_LOC_AUTHORITY_ENRICHMENT")
    )
    loc_mode: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOC_AUTHORITY_ENRICHMENT_MODE")
    )
    loc_transport: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOC_AUTHORITY_MODE")
    )
    loc_endpoint: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOC_AUTHORITY_MCP_URL")
    )
    loc_search_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOC_DIRECT_SEARCH_URL")
    )
    loc_timeout_ms: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOC_AUTHORITY_TIMEOUT_MS")
    )
    loc_max_results: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOC_AUTHORITY_MAX_RESULTS")
    )
    open_library_enabled: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ENABLE_OPEN_LIBRARY_ENRICHMENT")
    )
    open_library_mode: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OPEN_LIBRARY_ENRICHMENT_MODE")
    )
    open_library_endpoint: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OPEN_LIBRARY_MCP_URL")
    )
    open_library_timeout_ms: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OPEN_LIBRARY_TIMEOUT_MS")
    )
    open_library_max_results: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OPEN_LIBRARY_MAX_RESULTS")
    )
    hardcover_enabled: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ENABLE_HARDCOVER_ENRICHMENT")
    )
    hardcover_mode: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("HARDCOVER_ENRICHMENT_MODE")
    )
    hardcover_endpoint: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("HARDCOVER_API_URL")
    )
    hardcover_api_token: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("HARDCOVER_API_TOKEN")
    )
    hardcover_timeout_ms: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("HARDCOVER_TIMEOUT_MS")
    )
    hardcover_max_results: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("HARDCOVER_MAX_RESULTS")
    )
    parse_timeout_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("CATALOG_PARSE_TIMEOUT_SECONDS")
    )
    max_text_length: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("CATALOG_MAX_TEXT_LENGTH")
    )


# Flat override name -> (section, resolver, field)
_OVERRIDE_TARGETS: Dict[str, tuple[str, ...]] = {
    "loc_enabled": ("enrichment", "loc_authority", "enabled"),
    "loc_mode": ("enrichment", "loc_authority", "mode"),
    "loc_transport": ("enrichment", "loc_authority", "transport"),
    "loc_endpoint": ("enrichment", "loc_authority", "endpoint"),
    "loc_search_url": ("enrichment", "loc_authority", "search_url"),
    "loc_timeout_ms": ("enrichment", "loc_authority", "timeout_ms"),
    "loc_max_results": ("enrichment", "loc_authority", "max_results"),
    "open_library_enabled": ("enrichment", "open_library", "enabled"),
    "open_library_mode": ("enrichment", "open_library", "mode"),
    "open_library_endpoint": ("enrichment", "open_library", "endpoint"),
    "open_library_timeout_ms": ("enrichment", "open_library", "timeout_ms"),
    "open_library_max_results": ("enrichment", "open_library", "max_results"),
    "hardcover_enabled": ("enrichment", "hardcover", "enabled"),
    "hardcover_mode": ("enrichment", "hardcover", "mode"),
    "hardcover_endpoint": ("enrichment", "hardcover", "endpoint"),
    "hardcover_api_token": ("enrichment", "hardcover", "api_token"),
    "hardcover_timeout_ms": ("enrichment", "hardcover", "timeout_ms"),
    "hardcover_max_results": ("enrichment", "hardcover", "max_results"),
    "parse_timeout_seconds": ("parser", "parse_timeout_seconds"),
    "max_text_length": ("parser", "max_text_length"),
}


def _nest_overrides(flat: Dict[str, Any]) -> Dict[str, Any]:
    nested: Dict[str, Any] = {}
    for key, value in flat.items():
        path = _OVERRIDE_TARGETS.get(key)
        if path is None:
            continue
        cursor = nested
        for part in path[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[path[-1]] = value
    return nested


def load_environment_overrides() -> Dict[str, Any]:
    """Return nested configuration overrides sourced from environment variables."""

    try:
        overrides = EnvironmentOverrides()
    except ValidationError as exc:
        logger.warning(
            "Invalid environment configuration detected; using defaults.",
            extra={"event": "config.env.validation_error", "error": str(exc)},
        )
        return {}
    return _nest_overrides(overrides.model_dump(exclude_none=True))


def deep_merge_dict(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``base`` recursively updated with ``override``."""

    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def apply_settings_updates(
    settings: CatalogToolsSettings, updates: Dict[str, Any]
) -> CatalogToolsSettings:
    """Return a copy of ``settings`` updated with nested ``updates`` if any values exist."""

    if not updates:
        return settings
    payload = deep_merge_dict(settings.model_dump(mode="python"), updates)
    return CatalogToolsSettings.model_validate(payload)


__all__ = [
    "CatalogToolsSettings",
    "EnrichmentSettings",
    "EnvironmentOverrides",
    "HardcoverSettings",
    "LocAuthoritySettings",
    "ParserSettings",
    "ResolverSettings",
    "apply_settings_updates",
    "deep_merge_dict",
    "load_environment_overrides",
    "parse_flag",
]
