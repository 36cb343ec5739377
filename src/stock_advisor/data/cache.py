"""In-memory TTL caches shared across concurrent ticker analyses.

All caches are process-local and ephemeral. Each takes an injectable clock
(seconds since epoch) so TTL behaviour is deterministic under test.
"""

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TTL = 5 * 60  # 5 minutes
DEFAULT_MAX_SIZE = 100
EVICTION_FRACTION = 0.3

Clock = Callable[[], float]


@dataclass(frozen=True)
class SeasonalCacheEntry:
    """Seasonal score for (ticker, month) plus optional full analysis bundle."""

    score: float
    inserted_at: float
    detail: dict[str, Any] | None = None


class SeasonalScoreCache:
    """
    Seasonal score shared across callers, keyed by (ticker, month 0-11).

    An entry is valid only while now - inserted_at < ttl. Expired entries
    read as absent (None) and are left in place until sweep() or clear().
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Clock = time.time):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[tuple[str, int], SeasonalCacheEntry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(ticker: str, month: int) -> tuple[str, int]:
        return ticker.upper().strip(), month

    def set_score(
        self,
        ticker: str,
        month: int,
        score: float,
        detail: dict[str, Any] | None = None,
    ) -> None:
        """Overwrite unconditionally, stamping the current time."""
        entry = SeasonalCacheEntry(score=score, inserted_at=self._clock(), detail=detail)
        with self._lock:
            self._entries[self._key(ticker, month)] = entry
        logger.debug(f"Cached seasonal score for {ticker} month={month}: {score}")

    def get_entry(self, ticker: str, month: int) -> SeasonalCacheEntry | None:
        """Return the live entry or None if missing/expired."""
        with self._lock:
            entry = self._entries.get(self._key(ticker, month))
        if entry is None:
            return None
        if self._clock() - entry.inserted_at >= self.ttl:
            return None
        return entry

    def get_score(self, ticker: str, month: int) -> float | None:
        """Return the cached score, or None when absent or expired."""
        entry = self.get_entry(ticker, month)
        if entry is None:
            return None
        logger.debug(f"Seasonal cache hit for {ticker} month={month}: {entry.score}")
        return entry.score

    def clear_ticker(self, ticker: str) -> int:
        """Remove every month entry for one ticker. Returns count removed."""
        symbol = ticker.upper().strip()
        with self._lock:
            keys = [k for k in self._entries if k[0] == symbol]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def sweep(self) -> int:
        """Delete expired entries. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now - e.inserted_at >= self.ttl]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> int:
        """Empty the cache. Returns count removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Seasonal score cache cleared ({count} entries)")
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def status(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            items = list(self._entries.items())
        return {
            "size": len(items),
            "ttl_seconds": self.ttl,
            "valid": sum(1 for _, e in items if now - e.inserted_at < self.ttl),
            "keys": [f"{ticker}_{month}" for (ticker, month), _ in items],
        }


class AnalysisCache:
    """
    Full per-ticker analysis bundle, bucketed by the current wall-clock hour.

    Avoids re-querying every upstream service on trivial re-renders. A bundle
    is reused only within the same hour bucket and while younger than ttl.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Clock = time.time):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def _key(self, ticker: str, analysis_type: str = "full") -> str:
        now = datetime.fromtimestamp(self._clock())
        bucket = f"{now.year}-{now.month - 1}-{now.day}-{now.hour}"
        return f"{ticker.upper().strip()}_{analysis_type}_{bucket}"

    def get(self, ticker: str) -> dict[str, Any] | None:
        key = self._key(ticker)
        with self._lock:
            cached = self._entries.get(key)
        if cached and self._clock() - cached[0] < self.ttl:
            return cached[1]
        return None

    def set(self, ticker: str, data: dict[str, Any]) -> None:
        key = self._key(ticker)
        with self._lock:
            self._entries[key] = (self._clock(), data)

    def clean_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (ts, _) in self._entries.items() if now - ts >= self.ttl]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info(f"Cleaned {len(expired)} expired analysis cache entries")
        return len(expired)

    def clear_ticker(self, ticker: str) -> int:
        prefix = f"{ticker.upper().strip()}_"
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def status(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            items = list(self._entries.items())
        valid = [k for k, (ts, _) in items if now - ts < self.ttl]
        return {
            "total": len(items),
            "valid": len(valid),
            "expired": len(items) - len(valid),
            "ttl_minutes": self.ttl / 60,
            "valid_keys": valid,
        }


@dataclass
class NamedCache:
    """One cache inside a CacheOptimizer registry."""

    ttl: float
    data: dict[Any, tuple[float, Any]] = field(default_factory=dict)
    last_cleanup: float = 0.0


class CacheOptimizer:
    """
    Registry of named TTL caches with size-bounded eviction.

    On set, a cache at max_size drops its oldest 30% by insertion time.
    Expired entries are deleted lazily on read.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Clock = time.time,
    ):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._caches: dict[str, NamedCache] = {}
        self._lock = threading.Lock()

    def create_cache(self, name: str, ttl: float | None = None) -> NamedCache:
        """Create (or return the existing) named cache."""
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                cache = NamedCache(
                    ttl=ttl if ttl is not None else self.default_ttl,
                    last_cleanup=self._clock(),
                )
                self._caches[name] = cache
            return cache

    def get(self, name: str, key: Any) -> Any | None:
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                return None
            item = cache.data.get(key)
            if item is None:
                return None
            inserted_at, value = item
            if self._clock() - inserted_at >= cache.ttl:
                del cache.data[key]
                return None
            return value

    def set(self, name: str, key: Any, value: Any) -> bool:
        """Store value; False when the named cache does not exist."""
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                return False
            if key not in cache.data and len(cache.data) >= self.max_size:
                self._evict_oldest(cache)
            cache.data[key] = (self._clock(), value)
            return True

    def delete(self, name: str, key: Any) -> bool:
        """Remove one entry. True when something was removed."""
        with self._lock:
            cache = self._caches.get(name)
            if cache is None or key not in cache.data:
                return False
            del cache.data[key]
            return True

    def _evict_oldest(self, cache: NamedCache) -> None:
        delete_count = max(1, math.floor(self.max_size * EVICTION_FRACTION))
        oldest = sorted(cache.data.items(), key=lambda kv: kv[1][0])[:delete_count]
        for key, _ in oldest:
            del cache.data[key]
        cache.last_cleanup = self._clock()
        logger.debug(f"Evicted {len(oldest)} oldest cache entries")

    def clear(self, name: str | None = None) -> int:
        """Clear one named cache or all of them. Returns count removed."""
        with self._lock:
            if name is None:
                targets = list(self._caches.values())
            else:
                targets = [self._caches[name]] if name in self._caches else []
            count = 0
            for cache in targets:
                count += len(cache.data)
                cache.data.clear()
        return count

    def status(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {
                name: {
                    "size": len(cache.data),
                    "ttl_seconds": cache.ttl,
                    "last_cleanup": cache.last_cleanup,
                }
                for name, cache in self._caches.items()
            }
