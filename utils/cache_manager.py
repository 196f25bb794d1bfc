"""
In-memory TTL cache for CrewRate.

Rate card candidate lists are read far more often than rate cards change, so
PostgresRateCardStore keeps them here for a short while. Entries are grouped
by a readable key prefix so a whole family can be dropped after an edit.
"""

from __future__ import annotations
import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


class CacheManager:
    """Thread-safe key/value store whose entries expire after a TTL in seconds."""

    def __init__(self, default_ttl: int = 300):
        self.default_ttl = default_ttl
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(prefix: str, *args, **kwargs) -> str:
        """Build "<prefix>:<digest>" from call arguments (dates and enums via str)."""
        payload = json.dumps([args, sorted(kwargs.items())], sort_keys=True, default=str)
        return f"{prefix}:{hashlib.md5(payload.encode()).hexdigest()}"

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for key, or None (expired entries are dropped)."""
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_live(now):
                self.hits += 1
                return entry.value
            if entry is not None:
                del self._entries[key]
                logger.debug(f"Cache entry expired: {key}")
            self.misses += 1
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None):
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = _Entry(value, time.monotonic() + ttl)

    def delete(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self, prefix: Optional[str] = None) -> int:
        """Drop every entry, or only those under prefix. Returns how many went."""
        with self._lock:
            if prefix is None:
                dropped = len(self._entries)
                self._entries.clear()
            else:
                doomed = [k for k in self._entries if k.startswith(f"{prefix}:")]
                for key in doomed:
                    del self._entries[key]
                dropped = len(doomed)
        logger.info(f"Cache cleared: {dropped} entries (prefix={prefix or '*'})")
        return dropped

    def cleanup_expired(self) -> int:
        now = time.monotonic()
        with self._lock:
            stale = [k for k, entry in self._entries.items() if not entry.is_live(now)]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug(f"Removed {len(stale)} expired cache entries")
        return len(stale)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            lookups = self.hits + self.misses
            prefixes: Dict[str, int] = {}
            for key in self._entries:
                family = key.split(":", 1)[0]
                prefixes[family] = prefixes.get(family, 0) + 1
            return {
                'entries': len(self._entries),
                'by_prefix': prefixes,
                'hits': self.hits,
                'misses': self.misses,
                'hit_rate': f"{(self.hits / lookups * 100) if lookups else 0:.2f}%",
            }


# Shared by every store in the process
cache = CacheManager()


def cached(ttl: Optional[int] = None, key_prefix: Optional[str] = None, skip_args: int = 0):
    """
    Memoize a function in the shared cache.

    skip_args leading positional arguments are left out of the key (1 for
    `self` on methods). None results are not stored, so a failed lookup is
    retried on the next call.
    """
    def decorator(func: Callable) -> Callable:
        prefix = key_prefix or f"{func.__module__}.{func.__qualname__}"

        @wraps(func)
        def wrapper(*args, **kwargs):
            key = cache.make_key(prefix, *args[skip_args:], **kwargs)
            result = cache.get(key)
            if result is None:
                result = func(*args, **kwargs)
                if result is not None:
                    cache.set(key, result, ttl)
            return result

        wrapper.cache_clear = lambda: cache.clear(prefix)
        return wrapper
    return decorator


def start_cache_cleanup_task(interval: int = 300) -> threading.Thread:
    """Run cleanup_expired every interval seconds on a daemon thread."""
    def loop():
        while True:
            time.sleep(interval)
            try:
                removed = cache.cleanup_expired()
                logger.info(f"Cache sweep removed {removed} entries; stats: {cache.get_stats()}")
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}")

    worker = threading.Thread(target=loop, name="cache-cleanup", daemon=True)
    worker.start()
    logger.info(f"Cache cleanup task started (interval: {interval}s)")
    return worker
