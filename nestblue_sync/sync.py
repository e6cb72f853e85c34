"""Reconciliation between the query cache, mirror stores and the backend."""

import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from nestblue_sync.backend import Backend
from nestblue_sync.cache import QueryCache, QueryResult
from nestblue_sync.models import Record
from nestblue_sync.resources import RESOURCES, Resource, get_resource
from nestblue_sync.store import MemoryStorage, MirrorStore, Storage
from nestblue_sync.validation import validate_create, validate_update

logger = structlog.get_logger()


class ResourceSync:
    """Keeps one resource's cache entry and mirror store in step with the backend.

    Reads go through the cache; a successful list fetch overwrites the mirror
    store. Mutations call the backend first and, only on success, patch the
    mirror store and invalidate the cache so a refetch picks up the server's
    view. There is no rollback: a refetch simply overwrites the patched value.

    After a mutation the patched mirror is also written into the invalidated
    cache entry, so readers never fall back to the pre-mutation list, even
    when the mutation emptied the store.
    """

    def __init__(self, resource: Resource, backend: Backend, cache: QueryCache, store: MirrorStore) -> None:
        self.resource = resource
        self.backend = backend
        self.cache = cache
        self.store = store
        self._pending = {"create": 0, "update": 0, "delete": 0}
        self._pending_lock = threading.Lock()

    @property
    def is_creating(self) -> bool:
        return self._pending["create"] > 0

    @property
    def is_updating(self) -> bool:
        return self._pending["update"] > 0

    @property
    def is_deleting(self) -> bool:
        return self._pending["delete"] > 0

    @contextmanager
    def _running(self, action: str) -> Iterator[None]:
        """Count an in-flight mutation; its flag stays set until every caller finishes."""
        with self._pending_lock:
            self._pending[action] += 1
        try:
            yield
        finally:
            with self._pending_lock:
                self._pending[action] -= 1

    @property
    def query_key(self) -> tuple[str, ...]:
        return (self.resource.name,)

    def _fetch_all(self, params: dict[str, Any] | None = None) -> list[Record]:
        records = self.backend.list_records(self.resource, params)
        self.store.set_all(records)
        return records

    def _fetch(self, key: tuple[Any, ...], fn: Callable[[], Any], refresh: bool) -> QueryResult:
        return self.cache.fetch(
            key,
            fn,
            stale_time=self.resource.stale_time,
            gc_time=self.resource.gc_time,
            force=refresh,
        )

    def load(self, refresh: bool = False) -> QueryResult:
        """Fetch the full list through the cache.

        Args:
            refresh: Refetch even if the cached list is still fresh
        """
        result = self._fetch(self.query_key, self._fetch_all, refresh)
        if result.error is not None:
            logger.warning("Resource load failed", resource=self.resource.name, error=str(result.error))
        return result

    def load_for_project(self, project_id: str, refresh: bool = False) -> QueryResult:
        """Fetch the records of one project; the mirror store is left alone."""
        key = self.query_key + ("project", project_id)
        return self._fetch(key, lambda: self.backend.list_by_project(self.resource, project_id), refresh)

    @property
    def data(self) -> list[Record]:
        """Fresh cache data, else the mirror snapshot as a placeholder."""
        cached = self.cache.peek(self.query_key)
        if cached is not None and cached.data is not None and not self.cache.is_stale(self.query_key):
            return cached.data
        if len(self.store) > 0:
            return self.store.items()
        if cached is not None and cached.data is not None:
            return cached.data
        return []

    @property
    def is_loading(self) -> bool:
        """True while the first fetch is running and there is nothing to show."""
        return self.cache.is_fetching(self.query_key) and self.cache.get_data(self.query_key) is None

    @property
    def error(self) -> Exception | None:
        cached = self.cache.peek(self.query_key)
        return cached.error if cached else None

    def _invalidate(self) -> None:
        self.cache.set_data(self.query_key, self.store.items())
        self.cache.invalidate(self.query_key)
        for name in self.resource.related:
            self.cache.invalidate((name,))

    def create(self, values: dict[str, Any]) -> Record:
        """Create a record and prepend it to the mirror store.

        Raises:
            ValidationError: If the input is invalid; nothing is sent
            ApiError: If the backend rejects the request; the store is unchanged
        """
        payload = validate_create(self.resource.record_type, values)
        with self._running("create"):
            record = self.backend.create(self.resource, payload)
        self.store.add(record)
        self._invalidate()
        logger.info("Created record", resource=self.resource.name, key=record.key)
        return record

    def update(self, key: str, values: dict[str, Any]) -> Record:
        """Update a record and swap the server's copy into the mirror store."""
        payload = validate_update(self.resource.record_type, values)
        with self._running("update"):
            record = self.backend.update(self.resource, key, payload)
        if not self.store.replace(record):
            logger.debug("Updated record was not mirrored", resource=self.resource.name, key=key)
        self._invalidate()
        logger.info("Updated record", resource=self.resource.name, key=key)
        return record

    def delete(self, key: str) -> None:
        """Delete a record and drop it from the mirror store."""
        with self._running("delete"):
            self.backend.delete(self.resource, key)
        self.store.remove(key)
        self._invalidate()
        logger.info("Deleted record", resource=self.resource.name, key=key)


class Workspace:
    """One ``ResourceSync`` per registered resource over a shared cache and storage."""

    def __init__(
        self,
        backend: Backend,
        storage: Storage | None = None,
        cache: QueryCache | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.storage = storage if storage is not None else MemoryStorage()
        self.cache = cache if cache is not None else QueryCache(clock=clock)
        self._syncs: dict[str, ResourceSync] = {}
        for name, resource in RESOURCES.items():
            store = MirrorStore(name, resource.record_type, self.storage)
            self._syncs[name] = ResourceSync(resource, backend, self.cache, store)
        logger.debug("Workspace initialized", resources=list(self._syncs))

    def __getitem__(self, name: str) -> ResourceSync:
        return self._syncs[get_resource(name).name]

    def __iter__(self):
        return iter(self._syncs.values())

    def sprint_tasks(self, sprint_id: str, refresh: bool = False) -> QueryResult:
        """Fetch the tasks of one sprint under the ``("sprints", id, "tasks")`` key."""
        tasks = get_resource("tasks")
        return self.cache.fetch(
            ("sprints", sprint_id, "tasks"),
            lambda: self.backend.list_sprint_tasks(sprint_id),
            stale_time=tasks.stale_time,
            gc_time=tasks.gc_time,
            force=refresh,
        )

    def collect_garbage(self) -> int:
        return self.cache.collect_garbage()

    def close(self) -> None:
        self.backend.close()

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
