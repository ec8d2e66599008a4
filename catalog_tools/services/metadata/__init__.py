"""Authority enrichment: resolvers, fan-out orchestration and merge policy."""

from __future__ import annotations

from .types import (
    AuthorityCandidate,
    EnrichmentContext,
    EnrichmentMode,
    EnrichmentReport,
    EnrichmentStatus,
    MatchType,
    NormalizedBook,
    Outcome,
    Provider,
    ResolverInput,
    SeriesInfo,
)
from .exceptions import (
    AbortedRequestError,
    EnrichmentCancelledError,
    ResolverTransportError,
    ServiceUnavailableError,
)
from .cache import ResultCache, build_cache_key
from .clients import (
    BaseResolver,
    HardcoverResolver,
    LocAuthorityResolver,
    OpenLibraryResolver,
    build_contribution_candidate,
)
from .registry import ResolverRegistry, create_registry_from_config
from .orchestrator import EnrichmentOrchestrator
from .merge import merge_context, merge_contexts
from .names import normalize_personal_name
from .ranking import rank_candidates, score_candidate

__all__ = [
    # Types
    "AuthorityCandidate",
    "EnrichmentContext",
    "EnrichmentMode",
    "EnrichmentReport",
    "EnrichmentStatus",
    "MatchType",
    "NormalizedBook",
    "Outcome",
    "Provider",
    "ResolverInput",
    "SeriesInfo",
    # Errors
    "AbortedRequestError",
    "EnrichmentCancelledError",
    "ResolverTransportError",
    "ServiceUnavailableError",
    # Cache
    "ResultCache",
    "build_cache_key",
    # Resolvers
    "BaseResolver",
    "HardcoverResolver",
    "LocAuthorityResolver",
    "OpenLibraryResolver",
    "build_contribution_candidate",
    "ResolverRegistry",
    "create_registry_from_config",
    # Orchestration and merge
    "EnrichmentOrchestrator",
    "merge_context",
    "merge_contexts",
    # Helpers
    "normalize_personal_name",
    "rank_candidates",
    "score_candidate",
]
