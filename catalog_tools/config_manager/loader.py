"""Configuration loading utilities."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from catalog_tools import logging_manager
from catalog_tools.environment import load_environment

from .constants import CONFIG_FILE_ENV, SENSITIVE_CONFIG_KEYS
from .settings import (
    CatalogToolsSettings,
    apply_settings_updates,
    deep_merge_dict,
    load_environment_overrides,
)

logger = logging_manager.get_logger().getChild("config")

_ACTIVE_SETTINGS: Optional[CatalogToolsSettings] = None


def _read_config_json(path: Optional[Path], label: str = "configuration") -> Dict[str, Any]:
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        logger.info(
            "No %s found at %s.",
            label,
            path,
            extra={"event": "config.file.missing"},
        )
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(
            "Error loading %s from %s: %s. Proceeding without it.",
            label,
            path,
            exc,
            extra={"event": "config.file.invalid"},
        )
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring %s at %s: expected a JSON object.",
            label,
            path,
            extra={"event": "config.file.invalid"},
        )
        return {}
    logger.debug("Loaded %s from %s", label, path, extra={"event": "config.file.loaded"})
    return data


def _resolve_config_path(config_file: Optional[str]) -> Optional[Path]:
    candidate = config_file or os.environ.get(CONFIG_FILE_ENV)
    if not candidate:
        return None
    path = Path(candidate).expanduser()
    if not path.is_absolute():
        path = (Path.cwd() / path).resolve()
    return path


def load_configuration(config_file: Optional[str] = None) -> CatalogToolsSettings:
    """Load the layered configuration (JSON file, then environment) and cache it."""

    global _ACTIVE_SETTINGS

    load_environment()
    payload = deep_merge_dict({}, _read_config_json(_resolve_config_path(config_file)))

    try:
        settings = CatalogToolsSettings.model_validate(payload)
    except ValidationError as exc:
        raise RuntimeError("Invalid configuration detected") from exc

    settings = apply_settings_updates(settings, load_environment_overrides())
    _ACTIVE_SETTINGS = settings
    return settings


def get_settings() -> CatalogToolsSettings:
    """Return the currently loaded :class:`CatalogToolsSettings` instance."""

    if _ACTIVE_SETTINGS is None:
        return load_configuration()
    return _ACTIVE_SETTINGS


def reset_settings() -> None:
    """Forget the cached settings so the next call reloads them."""

    global _ACTIVE_SETTINGS
    _ACTIVE_SETTINGS = None


def export_settings(settings: CatalogToolsSettings) -> Dict[str, Any]:
    """Return a JSON-safe view of ``settings`` without credentials."""

    exported = settings.model_dump(mode="json")
    for resolver in exported.get("enrichment", {}).values():
        if isinstance(resolver, dict):
            for key in SENSITIVE_CONFIG_KEYS:
                if resolver.get(key):
                    resolver[key] = "***"
    return exported


__all__ = ["export_settings", "get_settings", "load_configuration", "reset_settings"]
