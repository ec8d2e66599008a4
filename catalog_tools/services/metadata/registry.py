"""Resolver registry built from :class:`EnrichmentSettings`."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Type

import requests

from catalog_tools import config_manager as cfg
from catalog_tools import logging_manager
from catalog_tools.config_manager.settings import EnrichmentSettings, ResolverSettings

from .clients.base import BaseResolver
from .clients.hardcover import HardcoverResolver
from .clients.loc_authority import LocAuthorityResolver
from .clients.openlibrary import OpenLibraryResolver
from .types import Provider

logger = logging_manager.get_logger().getChild("services.metadata.registry")

# Order in which reports list provider contexts.
DEFAULT_PROVIDERS: List[Provider] = [
    Provider.LOC_AUTHORITY,
    Provider.OPEN_LIBRARY,
    Provider.HARDCOVER,
]

RESOLVER_CLASSES: Dict[Provider, Type[BaseResolver]] = {
    Provider.LOC_AUTHORITY: LocAuthorityResolver,
    Provider.OPEN_LIBRARY: OpenLibraryResolver,
    Provider.HARDCOVER: HardcoverResolver,
}


def settings_for(settings: EnrichmentSettings, provider: Provider) -> ResolverSettings:
    if provider is Provider.LOC_AUTHORITY:
        return settings.loc_authority
    if provider is Provider.OPEN_LIBRARY:
        return settings.open_library
    return settings.hardcover


class ResolverRegistry:
    """Registry of enrichment resolvers.

    Resolvers are created lazily from a single settings object shared by
    reference, and may share one injected :class:`requests.Session`.
    """

    def __init__(
        self,
        settings: EnrichmentSettings,
        *,
        session: Optional[requests.Session] = None,
        providers: Optional[Sequence[Provider]] = None,
    ) -> None:
        self._settings = settings
        self._session = session
        self._providers = list(providers) if providers is not None else list(DEFAULT_PROVIDERS)
        self._resolvers: Dict[Provider, BaseResolver] = {}

    @property
    def settings(self) -> EnrichmentSettings:
        return self._settings

    @property
    def providers(self) -> Sequence[Provider]:
        return tuple(self._providers)

    def get_resolver(self, provider: Provider) -> BaseResolver:
        """Get or create the resolver for ``provider``."""

        resolver = self._resolvers.get(provider)
        if resolver is None:
            resolver_class = RESOLVER_CLASSES[provider]
            resolver = resolver_class(settings_for(self._settings, provider), session=self._session)
            self._resolvers[provider] = resolver
        return resolver

    def resolvers(self) -> List[BaseResolver]:
        return [self.get_resolver(provider) for provider in self._providers]

    def enabled_resolvers(self) -> List[BaseResolver]:
        return [resolver for resolver in self.resolvers() if resolver.is_enabled]

    def feature_cache_key(self) -> str:
        """Join every resolver's feature key; changes whenever a toggle does."""

        return "|".join(resolver.feature_cache_key() for resolver in self.resolvers())

    def close(self) -> None:
        """Close all resolvers and release resources."""
        for resolver in self._resolvers.values():
            try:
                resolver.close()
            except requests.RequestException as exc:
                logger.debug("Failed to close resolver session: %s", exc)
        self._resolvers.clear()

    def __enter__(self) -> "ResolverRegistry":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def create_registry_from_config(
    settings: Optional[EnrichmentSettings] = None,
    *,
    session: Optional[requests.Session] = None,
) -> ResolverRegistry:
    """Create a registry from ``settings`` or the cached application settings."""

    if settings is None:
        settings = cfg.get_settings().enrichment
    return ResolverRegistry(settings, session=session)


__all__ = [
    "DEFAULT_PROVIDERS",
    "RESOLVER_CLASSES",
    "ResolverRegistry",
    "create_registry_from_config",
    "settings_for",
]
