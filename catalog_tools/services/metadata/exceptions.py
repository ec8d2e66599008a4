"""Exception hierarchy for enrichment resolvers."""

from __future__ import annotations

from typing import Optional


class ResolverTransportError(RuntimeError):
    """Raised when an authority request fails; recorded as a warning, never fatal."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ServiceUnavailableError(ResolverTransportError):
    """Raised when the remote service cannot be reached or answers HTTP 503."""


class AbortedRequestError(ResolverTransportError):
    """Raised when a request was aborted before completing (timeouts included)."""


class EnrichmentCancelledError(RuntimeError):
    """Raised when the caller's cancellation signal is observed."""


__all__ = [
    "AbortedRequestError",
    "EnrichmentCancelledError",
    "ResolverTransportError",
    "ServiceUnavailableError",
]
