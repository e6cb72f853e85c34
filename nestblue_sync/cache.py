"""Query-keyed cache with a staleness window, invalidation and garbage collection."""

import threading
import time
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from nestblue_sync.resources import DEFAULT_GC_TIME, DEFAULT_STALE_TIME

logger = structlog.get_logger()

QueryKey = tuple[Hashable, ...]


@dataclass
class QueryResult:
    """Snapshot of a cache entry handed back to callers.

    Attributes:
        data: Last successfully fetched data (kept across failed refetches)
        error: Exception from the most recent fetch, if it failed
        updated_at: Clock time of the last successful fetch
        from_cache: True when served without calling the fetch function
    """

    data: Any = None
    error: Exception | None = None
    updated_at: float | None = None
    from_cache: bool = False

    @property
    def is_success(self) -> bool:
        return self.error is None and self.updated_at is not None


@dataclass
class _Entry:
    data: Any = None
    error: Exception | None = None
    updated_at: float | None = None
    invalidated: bool = False
    stale_time: float = DEFAULT_STALE_TIME
    gc_time: float = DEFAULT_GC_TIME
    last_access: float = 0.0
    in_flight: threading.Event | None = None


class QueryCache:
    """Cache of fetch results keyed by tuples such as ``("tasks", "project", "p1")``.

    A fetch returns cached data while the entry is younger than its stale
    time and has not been invalidated; otherwise it calls the fetch function.
    Concurrent fetches of one key share a single call. Failed fetches are not
    retried: the error is recorded on the entry and returned to the caller.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[QueryKey, _Entry] = {}
        self._lock = threading.Lock()

    def _is_fresh(self, entry: _Entry, now: float) -> bool:
        if entry.updated_at is None or entry.invalidated or entry.error is not None:
            return False
        return now - entry.updated_at < entry.stale_time

    def _snapshot(self, entry: _Entry, from_cache: bool = False) -> QueryResult:
        return QueryResult(data=entry.data, error=entry.error, updated_at=entry.updated_at, from_cache=from_cache)

    def fetch(
        self,
        key: Sequence[Hashable],
        fn: Callable[[], Any],
        stale_time: float | None = None,
        gc_time: float | None = None,
        force: bool = False,
    ) -> QueryResult:
        """Return cached data for a key, calling ``fn`` when it is missing or stale.

        Args:
            key: Query key
            fn: Zero-argument fetch function
            stale_time: Seconds the result stays fresh
            gc_time: Seconds an unread entry survives garbage collection
            force: Fetch even when the cached entry is fresh
        """
        key = tuple(key)
        with self._lock:
            now = self._clock()
            entry = self._entries.setdefault(key, _Entry())
            if stale_time is not None:
                entry.stale_time = stale_time
            if gc_time is not None:
                entry.gc_time = gc_time
            entry.last_access = now

            if not force and self._is_fresh(entry, now):
                logger.debug("Cache hit", key=key)
                return self._snapshot(entry, from_cache=True)

            waiter = entry.in_flight
            if waiter is None:
                entry.in_flight = threading.Event()

        if waiter is not None:
            logger.debug("Joining in-flight fetch", key=key)
            waiter.wait()
            with self._lock:
                return self._snapshot(entry, from_cache=True)

        logger.debug("Cache miss, fetching", key=key, force=force)
        try:
            data = fn()
        except Exception as e:
            logger.warning("Fetch failed", key=key, error=str(e))
            with self._lock:
                entry.error = e
        else:
            with self._lock:
                entry.data = data
                entry.error = None
                entry.updated_at = self._clock()
                entry.invalidated = False
        finally:
            with self._lock:
                done = entry.in_flight
                entry.in_flight = None
            if done is not None:
                done.set()

        with self._lock:
            return self._snapshot(entry)

    def refetch(self, key: Sequence[Hashable], fn: Callable[[], Any]) -> QueryResult:
        """Fetch regardless of freshness."""
        return self.fetch(key, fn, force=True)

    def peek(self, key: Sequence[Hashable]) -> QueryResult | None:
        """Return the entry for a key without fetching or touching its access time."""
        with self._lock:
            entry = self._entries.get(tuple(key))
            return self._snapshot(entry, from_cache=True) if entry else None

    def get_data(self, key: Sequence[Hashable]) -> Any:
        with self._lock:
            entry = self._entries.get(tuple(key))
            return entry.data if entry else None

    def set_data(self, key: Sequence[Hashable], data: Any) -> None:
        """Seed or overwrite an entry as if it had just been fetched."""
        with self._lock:
            entry = self._entries.setdefault(tuple(key), _Entry())
            now = self._clock()
            entry.data = data
            entry.error = None
            entry.updated_at = now
            entry.last_access = now
            entry.invalidated = False

    def is_fetching(self, key: Sequence[Hashable]) -> bool:
        with self._lock:
            entry = self._entries.get(tuple(key))
            return bool(entry and entry.in_flight is not None)

    def is_stale(self, key: Sequence[Hashable]) -> bool:
        with self._lock:
            entry = self._entries.get(tuple(key))
            return entry is None or not self._is_fresh(entry, self._clock())

    def invalidate(self, prefix: Sequence[Hashable], exact: bool = False) -> int:
        """Mark entries stale so their next fetch goes to the server.

        Args:
            prefix: Key, or key prefix when ``exact`` is False
            exact: Only invalidate the entry whose key equals ``prefix``

        Returns:
            Number of entries invalidated
        """
        prefix = tuple(prefix)
        count = 0
        with self._lock:
            for key, entry in self._entries.items():
                matches = key == prefix if exact else key[: len(prefix)] == prefix
                if matches:
                    entry.invalidated = True
                    count += 1
        logger.debug("Invalidated cache entries", prefix=prefix, exact=exact, count=count)
        return count

    def remove(self, prefix: Sequence[Hashable]) -> None:
        prefix = tuple(prefix)
        with self._lock:
            for key in [key for key in self._entries if key[: len(prefix)] == prefix]:
                del self._entries[key]

    def collect_garbage(self) -> int:
        """Drop entries that have not been read within their gc time.

        Returns:
            Number of entries dropped
        """
        with self._lock:
            now = self._clock()
            expired = [
                key
                for key, entry in self._entries.items()
                if entry.in_flight is None and now - entry.last_access > entry.gc_time
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Collected cache entries", count=len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
