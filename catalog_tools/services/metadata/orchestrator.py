"""Concurrent fan-out over the configured resolvers."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional

from catalog_tools import logging_manager

from .clients.base import BaseResolver
from .exceptions import EnrichmentCancelledError
from .registry import ResolverRegistry, create_registry_from_config
from .types import EnrichmentContext, EnrichmentReport, Provider, ResolverInput

logger = logging_manager.get_logger().getChild("services.metadata.orchestrator")

ENABLE_FLAGS: Dict[Provider, str] = {
    Provider.LOC_AUTHORITY: "ENABLE_LOC_AUTHORITY_ENRICHMENT",
    Provider.OPEN_LIBRARY: "ENABLE_OPEN_LIBRARY_ENRICHMENT",
    Provider.HARDCOVER: "ENABLE_HARDCOVER_ENRICHMENT",
}


class EnrichmentOrchestrator:
    """Run every enabled resolver concurrently against the same input.

    The orchestrator waits for all resolvers before returning. Disabled and
    crashing resolvers add a report-level warning instead of a context;
    misconfigured ones return a context whose warning names the missing
    setting. :class:`EnrichmentCancelledError` is re-raised once every
    worker has stopped.
    """

    def __init__(self, registry: Optional[ResolverRegistry] = None) -> None:
        self._registry = registry or create_registry_from_config()

    @property
    def registry(self) -> ResolverRegistry:
        return self._registry

    def feature_cache_key(self) -> str:
        return self._registry.feature_cache_key()

    def enrich(
        self,
        query: ResolverInput,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> EnrichmentReport:
        report = EnrichmentReport()
        active: List[BaseResolver] = []
        for resolver in self._registry.resolvers():
            if resolver.is_enabled:
                active.append(resolver)
            else:
                report.warnings.append(
                    f"{resolver.provider.value} enrichment is disabled "
                    f"({ENABLE_FLAGS[resolver.provider]} is off)."
                )
        if not active:
            return report

        started = time.perf_counter()
        context_snapshot = logging_manager.get_log_context()
        with ThreadPoolExecutor(max_workers=len(active), thread_name_prefix="enrich") as executor:
            futures: List[Future] = [
                executor.submit(self._run_one, resolver, query, cancel_event, context_snapshot)
                for resolver in active
            ]
            # Join every worker before surfacing cancellation.
            outcomes = [self._collect(future) for future in futures]

        cancelled: Optional[EnrichmentCancelledError] = None
        for resolver, (context, error) in zip(active, outcomes):
            if isinstance(error, EnrichmentCancelledError):
                cancelled = cancelled or error
            elif error is not None:
                report.warnings.append(f"{resolver.provider.value} resolver failed: {error}")
            elif context is not None:
                report.contexts.append(context)
        if cancelled is not None:
            logger.info(
                "Enrichment cancelled",
                extra={"event": "enrichment.cancelled", "status": "cancelled"},
            )
            raise cancelled

        logger.info(
            "Enrichment finished",
            extra={
                "event": "enrichment.completed",
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "attributes": {
                    "providers": [context.provider.value for context in report.contexts],
                    "warnings": len(report.warnings),
                },
            },
        )
        return report

    @staticmethod
    def _run_one(
        resolver: BaseResolver,
        query: ResolverInput,
        cancel_event: Optional[threading.Event],
        context_snapshot: Dict[str, object],
    ) -> Optional[EnrichmentContext]:
        with logging_manager.log_context(**context_snapshot):
            return resolver.resolve(query, cancel_event=cancel_event)

    @staticmethod
    def _collect(future: Future):
        try:
            return future.result(), None
        except EnrichmentCancelledError as exc:
            return None, exc
        except Exception as exc:
            logger.exception(
                "Resolver crashed",
                extra={"event": "enrichment.resolver.crashed", "status": "error"},
            )
            return None, exc


__all__ = ["ENABLE_FLAGS", "EnrichmentOrchestrator"]
