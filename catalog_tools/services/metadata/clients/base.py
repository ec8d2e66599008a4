"""Base class for enrichment resolvers."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional, TypeVar

import requests

from catalog_tools import logging_manager
from catalog_tools.config_manager.settings import ResolverSettings
from catalog_tools.parsers.identifiers import normalize_identifier

from ..exceptions import (
    AbortedRequestError,
    EnrichmentCancelledError,
    ResolverTransportError,
    ServiceUnavailableError,
)
from ..types import (
    EnrichmentContext,
    EnrichmentMode,
    EnrichmentStatus,
    MatchType,
    NormalizedBook,
    Outcome,
    Provider,
    ResolverInput,
)

logger = logging_manager.get_logger().getChild("services.metadata.clients")

T = TypeVar("T")

MIN_IDENTIFIER_LENGTH = 8
IDENTIFIER_CONFIDENCE = 0.95


def sanitize_identifier(value: Optional[str]) -> Optional[str]:
    """Strip separators; identifiers shorter than eight characters are ignored."""

    if not value:
        return None
    cleaned = normalize_identifier(value).strip()
    return cleaned if len(cleaned) >= MIN_IDENTIFIER_LENGTH else None


@dataclass(slots=True)
class ResolutionTrace:
    """Per-call bookkeeping: warnings plus how many requests failed in transport."""

    warnings: List[str] = field(default_factory=list)
    attempts: int = 0
    transport_failures: int = 0

    def record(self, outcome: Outcome[Any], warning: Optional[str] = None) -> None:
        self.attempts += 1
        if not outcome.ok:
            self.transport_failures += 1
            if warning:
                self.warnings.append(warning)

    @property
    def unreachable(self) -> bool:
        return self.attempts > 0 and self.transport_failures == self.attempts


class BaseResolver(ABC):
    """Abstract base class for authority resolvers.

    Every resolver owns a :class:`requests.Session` (injectable for tests),
    reads its switches from an explicit settings object and turns transport
    problems into warnings on the returned :class:`EnrichmentContext`.
    """

    provider: ClassVar[Provider]
    title_confidence: ClassVar[float] = 0.70

    def __init__(
        self,
        settings: ResolverSettings,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()
        self._owns_session = session is None
        self._timeout = settings.timeout_seconds

    @property
    def settings(self) -> ResolverSettings:
        return self._settings

    @property
    def is_enabled(self) -> bool:
        return self._settings.effective_mode != EnrichmentMode.OFF.value

    @property
    def mode(self) -> EnrichmentMode:
        return EnrichmentMode(self._settings.effective_mode)

    def resolve(
        self,
        query: ResolverInput,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[EnrichmentContext]:
        """Run the identifier, title, none cascade; ``None`` when disabled."""

        if not self.is_enabled:
            return None
        started = time.perf_counter()
        with logging_manager.log_context(provider=self.provider.value):
            context = self._resolve(query, cancel_event)
            logger.info(
                "Resolver finished",
                extra={
                    "event": "enrichment.resolver.completed",
                    "provider": self.provider.value,
                    "status": context.status.value,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "attributes": {
                        "match_type": context.match_type.value,
                        "warnings": len(context.warnings),
                    },
                },
            )
        return context

    @abstractmethod
    def _resolve(
        self,
        query: ResolverInput,
        cancel_event: Optional[threading.Event],
    ) -> EnrichmentContext:
        """Provider-specific cascade."""

    def feature_cache_key(self) -> str:
        return f"{self.provider.value}:{self._settings.effective_mode}:{self._settings.max_results}"

    def close(self) -> None:
        """Release resources."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "BaseResolver":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # Context builders ---------------------------------------------------------

    def _confidence_for(self, match_type: MatchType) -> float:
        if match_type is MatchType.IDENTIFIER:
            return IDENTIFIER_CONFIDENCE
        if match_type is MatchType.TITLE:
            return self.title_confidence
        return 0.0

    def _context(
        self,
        trace: ResolutionTrace,
        *,
        match_type: MatchType = MatchType.NONE,
        book: Optional[NormalizedBook] = None,
    ) -> EnrichmentContext:
        if match_type is not MatchType.NONE:
            status = EnrichmentStatus.MATCHED
        elif trace.unreachable:
            status = EnrichmentStatus.UNREACHABLE
        else:
            status = EnrichmentStatus.NO_MATCH
        return EnrichmentContext(
            provider=self.provider,
            mode=self.mode,
            match_type=match_type,
            confidence=self._confidence_for(match_type),
            book=book if match_type is not MatchType.NONE else None,
            warnings=list(trace.warnings),
            status=status,
        )

    def _misconfigured(self, setting_name: str, label: str) -> EnrichmentContext:
        logger.warning(
            "%s is not set; skipping %s enrichment.",
            setting_name,
            label,
            extra={"event": "enrichment.resolver.misconfigured", "provider": self.provider.value},
        )
        return EnrichmentContext(
            provider=self.provider,
            mode=self.mode,
            warnings=[f"{setting_name} is not set; skipping {label} enrichment."],
            status=EnrichmentStatus.MISCONFIGURED,
        )

    # Transport ---------------------------------------------------------------

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise EnrichmentCancelledError("Enrichment was cancelled by the caller.")

    def _attempt(self, call: Callable[[], T]) -> Outcome[T]:
        """Run ``call`` and fold transport failures into an :class:`Outcome`."""

        try:
            return Outcome(value=call())
        except ResolverTransportError as exc:
            logger.debug(
                "Resolver request failed: %s",
                exc,
                extra={"event": "enrichment.request.failed", "provider": self.provider.value},
            )
            return Outcome(error=exc)

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        cancel_event: Optional[threading.Event] = None,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        require_json_content_type: bool = False,
    ) -> Any:
        """Issue one request, retrying exactly once at double timeout if it was aborted."""

        self._check_cancelled(cancel_event)
        try:
            return self._send(
                method,
                url,
                timeout=self._timeout,
                params=params,
                json_body=json_body,
                headers=headers,
                require_json_content_type=require_json_content_type,
            )
        except AbortedRequestError as exc:
            logger.info(
                "Request aborted; retrying once with a longer timeout",
                extra={
                    "event": "enrichment.request.retry",
                    "provider": self.provider.value,
                    "attributes": {"url": url, "error": str(exc)},
                },
            )
        self._check_cancelled(cancel_event)
        return self._send(
            method,
            url,
            timeout=self._timeout * 2,
            params=params,
            json_body=json_body,
            headers=headers,
            require_json_content_type=require_json_content_type,
        )

    def _send(
        self,
        method: str,
        url: str,
        *,
        timeout: float,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        require_json_content_type: bool = False,
    ) -> Any:
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers={"Accept": "application/json", **(headers or {})},
                timeout=timeout,
            )
        except requests.Timeout as exc:
            raise AbortedRequestError(f"Request aborted after {timeout:g}s timeout") from exc
        except requests.ConnectionError as exc:
            if "aborted" in str(exc).lower():
                raise AbortedRequestError(str(exc)) from exc
            raise ServiceUnavailableError(str(exc)) from exc
        except requests.RequestException as exc:
            raise ResolverTransportError(str(exc)) from exc

        status = response.status_code
        if status < 200 or status >= 300:
            detail = (response.text or "").strip()[:200]
            if status == 503:
                raise ServiceUnavailableError(f"HTTP 503: {detail}", status_code=status)
            raise ResolverTransportError(f"HTTP {status}: {detail}", status_code=status)

        if require_json_content_type:
            content_type = response.headers.get("content-type") or ""
            if "application/json" not in content_type:
                raise ResolverTransportError(
                    f'Expected JSON response but received content-type "{content_type or "unknown"}"'
                )
        try:
            return response.json()
        except ValueError as exc:
            raise ResolverTransportError(f"Malformed JSON response: {exc}") from exc


__all__ = [
    "BaseResolver",
    "IDENTIFIER_CONFIDENCE",
    "ResolutionTrace",
    "sanitize_identifier",
]
