"""In-memory TTL cache for analysis results."""

from __future__ import annotations

import hashlib
import threading
import time
from typing import Any, Callable, Dict, Generic, Iterable, Optional, Tuple, TypeVar

from catalog_tools import logging_manager
from catalog_tools.config_manager.constants import DEFAULT_CACHE_TTL_SECONDS

logger = logging_manager.get_logger().getChild("services.metadata.cache")

V = TypeVar("V")


def build_cache_key(parts: Iterable[Any]) -> str:
    """Generate a stable key from ``parts``.

    Returns:
        A 32-character hex digest.
    """
    key_string = "|".join("" if part is None else str(part) for part in parts)
    return hashlib.sha256(key_string.encode("utf-8")).hexdigest()[:32]


class ResultCache(Generic[V]):
    """Thread-safe key/value cache with a fixed time-to-live.

    Expired entries are dropped lazily on read and in bulk by
    :meth:`cleanup_expired`.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, Tuple[float, V]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[V]:
        """Return the cached value, or ``None`` if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at > self._ttl:
                logger.debug("Cache entry expired for key %s", key)
                del self._entries[key]
                return None
        logger.debug("Cache hit for key %s", key)
        return value

    def set(self, key: str, value: V) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """Clear all entries and return how many were removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cleared %d cache entries", count)
        return count

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, (stored_at, _) in self._entries.items() if now - stored_at > self._ttl]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info("Cleaned up %d expired cache entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def ttl_seconds(self) -> float:
        return self._ttl


__all__ = ["ResultCache", "build_cache_key"]
