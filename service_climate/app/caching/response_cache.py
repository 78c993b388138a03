"""
In-process response cache with tiered TTLs and content fingerprints.

Entries are keyed by ``METHOD:path?query`` and expire lazily: an expired
entry is dropped the next time it is looked up. When the store is full the
oldest-inserted entry is evicted (insertion order, not access order).
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


HOUR = 60 * 60
DAY = 24 * HOUR

INDICES_TTL = 7 * DAY
GEOJSON_TTL = 30 * DAY
MUNICIPALITIES_TTL = 7 * DAY
HEALTH_TTL = HOUR
DEFAULT_TTL = HOUR

DEFAULT_MAX_SIZE = 200

# First match wins; a geojson path may also mention municipalities.
TTL_TIERS: List[Tuple[str, str, int]] = [
    ("indices", "/indices", INDICES_TTL),
    ("geojson", "/geojson", GEOJSON_TTL),
    ("municipalities", "/municipalities", MUNICIPALITIES_TTL),
    ("health", "/health", HEALTH_TTL),
]


def build_cache_key(method: str, path: str) -> str:
    """Build the cache key for a request line (path includes the query string)."""
    return f"{method.upper()}:{path}"


def classify_ttl(path: str, default_ttl: int = DEFAULT_TTL) -> int:
    """Map a request path to its TTL tier in seconds."""
    for _name, marker, ttl in TTL_TIERS:
        if marker in path:
            return ttl
    return default_ttl


def serialize_payload(payload: Any) -> bytes:
    """Canonical JSON encoding used for fingerprinting."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    ).encode("utf-8")


def compute_fingerprint(payload: Any) -> str:
    """Return a strong ETag (quoted MD5 hex digest) for a JSON payload."""
    digest = hashlib.md5(serialize_payload(payload), usedforsecurity=False).hexdigest()
    return f'"{digest}"'


@dataclass(frozen=True)
class CacheEntry:
    """A cached response payload."""

    key: str
    payload: Any
    fingerprint: str
    created_at: float
    expires_at: float

    @property
    def ttl(self) -> float:
        return self.expires_at - self.created_at

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache statistics."""

    hits: int
    misses: int
    size: int
    max_size: int
    default_ttl: int

    @property
    def hit_rate(self) -> str:
        total = self.hits + self.misses
        if total == 0:
            return "0%"
        return f"{self.hits / total * 100:.2f}%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "default_ttl": self.default_ttl,
        }


class ResponseCache:
    """
    Bounded key/value store for JSON response payloads.

    One instance is owned by the service and shared between the HTTP
    middleware and the cache warmer. All mutation happens under a lock so the
    size bound and hit/miss counters stay exact under concurrent access.

    ``tiered_ttl`` turns path-based TTL tiers on or off; ``etag_enabled``
    controls whether the middleware emits ETags and answers conditional
    requests.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: int = DEFAULT_TTL,
        *,
        tiered_ttl: bool = True,
        etag_enabled: bool = True,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.time,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.tiered_ttl = tiered_ttl
        self.etag_enabled = etag_enabled
        self.metrics = metrics
        self.logger = get_logger("climate.cache")

        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        """Presence check that does not touch the hit/miss counters."""
        with self._lock:
            entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def keys(self) -> List[str]:
        """Return the keys currently held, oldest-inserted first."""
        with self._lock:
            return list(self._entries.keys())

    def classify_ttl(self, path: str) -> int:
        """TTL for a request path, honouring the tiering toggle."""
        if not self.tiered_ttl:
            return self.default_ttl
        return classify_ttl(path, self.default_ttl)

    def lookup(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for ``key`` or None, counting a hit or miss."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(now):
                del self._entries[key]
                entry = None

            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
            size = len(self._entries)

        self._record_lookup("miss" if entry is None else "hit", size)
        return entry

    def store(self, key: str, payload: Any, ttl: Optional[int] = None) -> CacheEntry:
        """
        Insert or replace ``key``, evicting the oldest entry when full.

        Replacing a key moves it to the newest insertion position.
        """
        fingerprint = compute_fingerprint(payload)
        now = self._clock()
        entry = CacheEntry(
            key=key,
            payload=payload,
            fingerprint=fingerprint,
            created_at=now,
            expires_at=now + (ttl if ttl is not None else self.default_ttl),
        )

        evicted: Optional[str] = None
        with self._lock:
            if key in self._entries:
                # A replaced entry counts as freshly inserted.
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
            self._entries[key] = entry
            size = len(self._entries)

        if evicted is not None:
            self.logger.debug("Evicted cache entry", key=evicted, size=size)
            self._increment("cache_evictions_total")
        self._set_size_gauge(size)
        return entry

    def invalidate(self, key: str) -> bool:
        """Remove a single key. Returns True when something was removed."""
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            size = len(self._entries)
        self._set_size_gauge(size)
        return removed

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        self._set_size_gauge(0)
        self.logger.info("Response cache cleared")

    def stats(self) -> CacheStats:
        """Snapshot of the cache counters."""
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                max_size=self.max_size,
                default_ttl=self.default_ttl,
            )

    def tiers(self) -> List[Dict[str, Any]]:
        """Describe the TTL tiers in evaluation order."""
        tiers = [
            {"tier": name, "marker": marker, "ttl_seconds": ttl if self.tiered_ttl else self.default_ttl}
            for name, marker, ttl in TTL_TIERS
        ]
        tiers.append({"tier": "default", "marker": None, "ttl_seconds": self.default_ttl})
        return tiers

    def record_not_modified(self) -> None:
        """Count a conditional request answered with 304."""
        self._increment("cache_not_modified_total")

    def _record_lookup(self, result: str, size: int) -> None:
        self._increment("cache_lookups_total", result=result)
        self._set_size_gauge(size)

    def _increment(self, metric_name: str, **labels) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter(metric_name, **labels)
        except Exception as exc:
            self.logger.debug("Failed to record cache metric", metric=metric_name, error=str(exc))

    def _set_size_gauge(self, size: int) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.set_gauge("cache_entries", size)
        except Exception as exc:
            self.logger.debug("Failed to record cache size", error=str(exc))
