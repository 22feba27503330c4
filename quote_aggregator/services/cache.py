"""
In-process quote cache for the Quote Aggregator.
Stores quotes per provider and short symbol with a TTL that depends on
whether the quote resolved to a price.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from cachetools import TLRUCache

from ..core.config import Settings
from ..core.logging_config import create_logger
from ..models.market_data import Asset

logger = create_logger(__name__)

DEFAULT_TTL = 3600
INVALID_TTL = 300
DEFAULT_MAX_ENTRIES = 10000


@dataclass(frozen=True)
class CacheEntry:
    asset: Asset
    ttl: Optional[int] = None


class QuoteCache:
    """Thread-safe TTL cache of quotes keyed by ``<provider id>_<short symbol>``.

    Quotes with a price live for ``default_ttl`` seconds; quotes without one
    (unresolvable symbols) for the much shorter ``invalid_ttl`` so the
    provider is not asked again on every request. When ``max_entries`` is
    reached the least recently used quote is evicted.
    """

    def __init__(
        self,
        default_ttl: int = DEFAULT_TTL,
        invalid_ttl: int = INVALID_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.invalid_ttl = invalid_ttl
        self.max_entries = max_entries
        self._entries = TLRUCache(maxsize=max_entries, ttu=self._time_to_use, timer=clock)
        # cachetools caches are not thread-safe
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @classmethod
    def from_settings(cls, config: Settings) -> "QuoteCache":
        return cls(
            default_ttl=config.default_cache_ttl,
            invalid_ttl=config.invalid_asset_cache_ttl,
            max_entries=config.cache_max_entries,
        )

    def ttl_for(self, asset: Asset) -> int:
        return self.default_ttl if asset.price is not None else self.invalid_ttl

    def _time_to_use(self, key: str, entry: CacheEntry, now: float) -> float:
        ttl = entry.ttl if entry.ttl is not None else self.ttl_for(entry.asset)
        return now + ttl

    def get(self, key: str) -> Optional[Asset]:
        """Return a copy of the cached asset, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.asset.model_copy()

    def set(self, key: str, asset: Asset, ttl: Optional[int] = None) -> None:
        """Store a copy of ``asset``; ``ttl`` defaults to the asset's TTL class."""
        with self._lock:
            self._entries[key] = CacheEntry(asset=asset.model_copy(), ttl=ttl)

        logger.debug("Stored quote in cache", extra={
            "cache_key": key,
            "ttl": ttl if ttl is not None else self.ttl_for(asset),
            "has_price": asset.price is not None
        })

    def purge_expired(self) -> int:
        """Remove all expired entries and return how many were removed."""
        with self._lock:
            removed = len(self._entries.expire())
        if removed:
            logger.debug("Purged expired quotes from cache", extra={"removed": removed})
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict[str, int]:
        with self._lock:
            self._entries.expire()
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "default_ttl": self.default_ttl,
                "invalid_ttl": self.invalid_ttl,
            }

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
