"""Best-effort TTL caching of computed payloads.

The cache is injected as a :class:`CacheBackend` so the aggregation code stays
pure and tests can run without a live store. Failures never propagate: a
broken backend simply means the caller recomputes.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from threading import RLock
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, TypeVar

from cachetools import TLRUCache

from .config import MEMORY_CACHE_MAX_ENTRIES

_T = TypeVar("_T")
Clock = Callable[[], float]


class CacheBackend(Protocol):
    def get(self, key: str) -> Any | None: ...

    def put(self, key: str, value: Any, ttl_seconds: float) -> None: ...


class KeyValueReader(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached payload stamped with the wall-clock time it was computed."""

    payload: Any
    timestamp: float

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.timestamp < ttl_seconds

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.payload, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["CacheEntry"]:
        if not isinstance(raw, dict) or "data" not in raw:
            return None
        try:
            timestamp = float(raw["timestamp"])
        except (KeyError, TypeError, ValueError):
            return None
        return cls(payload=raw["data"], timestamp=timestamp)


def _time_to_use(_key: str, value: Tuple[Any, float], now: float) -> float:
    return now + value[1]


class MemoryCacheBackend:
    """Thread-safe in-process backend with per-entry expiry (TLRU)."""

    def __init__(
        self,
        max_entries: int = MEMORY_CACHE_MAX_ENTRIES,
        timer: Clock = time.time,
    ) -> None:
        self._cache: TLRUCache[str, Tuple[Any, float]] = TLRUCache(
            maxsize=max(1, max_entries), ttu=_time_to_use, timer=timer
        )
        self._lock = RLock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            stored = self._cache.get(key)
        return None if stored is None else stored[0]

    def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            self._cache[key] = (value, float(ttl_seconds))

    def clear(self) -> None:
        """Empty the cache (primarily for testing)."""
        with self._lock:
            self._cache.clear()


class StoreCacheBackend:
    """Backend that persists entries in the point store next to the history.

    Expiry is stored with the value and enforced lazily on read.
    """

    def __init__(self, store: KeyValueReader, clock: Clock = time.time) -> None:
        self._store = store
        self._clock = clock

    def get(self, key: str) -> Any | None:
        raw = self._store.get(key)
        if raw is None:
            return None
        record = json.loads(raw)
        if not isinstance(record, dict):
            return None
        expires_at = record.get("expiresAt")
        if isinstance(expires_at, (int, float)) and self._clock() >= expires_at:
            return None
        return record.get("value")

    def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        record = {"value": value, "expiresAt": self._clock() + ttl_seconds}
        self._store.put(key, json.dumps(record, separators=(",", ":")))


class ResultCache:
    """Memoise payloads under fixed keys with a fast-path TTL.

    ``ttl_seconds`` bounds how old a payload may be before it is recomputed;
    ``expiration_seconds`` is how long the backend keeps the entry at all and
    is never allowed below the TTL.
    """

    def __init__(
        self,
        backend: CacheBackend,
        *,
        ttl_seconds: float,
        expiration_seconds: float | None = None,
        clock: Clock = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        self._backend = backend
        self._ttl = float(ttl_seconds)
        self._expiration = max(self._ttl, float(expiration_seconds or 0.0))
        self._clock = clock
        self._log = logger or logging.getLogger(self.__class__.__name__)

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def read(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` if present and within the TTL."""

        try:
            entry = CacheEntry.from_dict(self._backend.get(key))
        except Exception as exc:
            self._log.warning("Cache read failed key=%s, recomputing: %s", key, exc)
            return None
        if entry is None:
            return None
        if not entry.is_fresh(self._clock(), self._ttl):
            self._log.debug("Cache entry stale key=%s", key)
            return None
        return entry

    def write(self, key: str, payload: Any) -> None:
        entry = CacheEntry(payload=payload, timestamp=self._clock())
        try:
            self._backend.put(key, entry.to_dict(), self._expiration)
        except Exception as exc:
            self._log.warning("Cache write failed key=%s: %s", key, exc)

    def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Any],
        decode: Callable[[Any], _T] | None = None,
    ) -> _T:
        """Return the cached payload for ``key`` or compute and store it.

        ``decode`` turns the stored payload into the caller's type. A payload
        it rejects is treated as a miss and overwritten.
        """

        entry = self.read(key)
        if entry is not None:
            self._log.debug("Cache hit key=%s", key)
            if decode is None:
                return entry.payload
            try:
                return decode(entry.payload)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                self._log.warning(
                    "Cached payload unreadable key=%s, recomputing: %s", key, exc
                )
        payload = compute()
        self.write(key, payload)
        return payload if decode is None else decode(payload)


__all__ = [
    "CacheBackend",
    "CacheEntry",
    "MemoryCacheBackend",
    "ResultCache",
    "StoreCacheBackend",
]
