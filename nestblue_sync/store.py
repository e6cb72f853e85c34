"""Persisted per-resource mirror stores."""

import json
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from nestblue_sync.models import Record, ensure_aware

logger = structlog.get_logger()

STORAGE_VERSION = 0


class Storage(ABC):
    """Durable string storage keyed by name."""

    @abstractmethod
    def get_item(self, name: str) -> str | None:
        pass

    @abstractmethod
    def set_item(self, name: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, name: str) -> None:
        pass


class MemoryStorage(Storage):
    """Storage that lives only as long as the process."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, name: str) -> str | None:
        return self._items.get(name)

    def set_item(self, name: str, value: str) -> None:
        self._items[name] = value

    def remove_item(self, name: str) -> None:
        self._items.pop(name, None)


class FileStorage(Storage):
    """Storage writing one JSON file per name under a directory."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.debug("File storage initialized", directory=str(self.directory))

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def get_item(self, name: str) -> str | None:
        path = self._path(name)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, name: str, value: str) -> None:
        path = self._path(name)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)

    def remove_item(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)


@dataclass
class StoreFilters:
    """Display filters applied by ``MirrorStore.filtered``; never persisted."""

    category: str | None = None
    status: str | None = None
    project_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None


def _record_date(record: Record) -> datetime | None:
    for name in ("date", "start_date", "due_date", "created_at"):
        value = getattr(record, name, None)
        if isinstance(value, datetime):
            return value
    return None


def _matches(record: Record, filters: StoreFilters) -> bool:
    if filters.category and getattr(record, "category", None) != filters.category:
        return False
    if filters.status and getattr(record, "status", None) != filters.status:
        return False
    if filters.project_id and getattr(record, "project_id", None) != filters.project_id:
        return False
    if filters.date_from or filters.date_to:
        when = _record_date(record)
        if when is None:
            return False
        if filters.date_from and when < ensure_aware(filters.date_from):
            return False
        if filters.date_to and when > ensure_aware(filters.date_to):
            return False
    if filters.search:
        needle = filters.search.lower()
        haystack = " ".join(
            str(getattr(record, name, "") or "") for name in ("name", "title", "description", "vendor")
        ).lower()
        if needle not in haystack:
            return False
    return True


class MirrorStore:
    """Last-known list of one resource, keyed and ordered, persisted on every write.

    The persisted document has the shape ``{"state": {<name>: [...]}, "version": 0}``
    under the storage name ``"<resource>-storage"``. Concurrent writers are not
    reconciled; the last write wins.
    """

    def __init__(self, name: str, record_type: type[Record], storage: Storage | None = None) -> None:
        """Initialize a mirror store and load its persisted snapshot.

        Args:
            name: Resource name
            record_type: Record class stored
            storage: Durable storage; defaults to in-memory storage

        Raises:
            ValueError: If the persisted snapshot cannot be decoded
        """
        self.name = name
        self.record_type = record_type
        self.storage = storage if storage is not None else MemoryStorage()
        self.storage_name = f"{name}-storage"
        self.filters = StoreFilters()
        self._items: OrderedDict[str, Record] = OrderedDict()
        self._lock = threading.RLock()
        self._load()

    def _load(self) -> None:
        raw = self.storage.get_item(self.storage_name)
        if raw is None:
            logger.debug("No persisted snapshot", store=self.name)
            return
        try:
            document = json.loads(raw)
            items = document["state"][self.name]
            records = [self.record_type.from_api(item) for item in items]
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Failed to load persisted snapshot", store=self.name, error=str(e))
            raise ValueError(f"Failed to load {self.storage_name}: {e}") from e
        self._items = OrderedDict((record.key, record) for record in records)
        logger.debug("Loaded persisted snapshot", store=self.name, count=len(self._items))

    def _persist(self) -> None:
        document = {
            "state": {self.name: [record.to_api() for record in self._items.values()]},
            "version": STORAGE_VERSION,
        }
        self.storage.set_item(self.storage_name, json.dumps(document))

    def items(self) -> list[Record]:
        """Return the records in display order."""
        with self._lock:
            return list(self._items.values())

    def get(self, key: str) -> Record | None:
        with self._lock:
            return self._items.get(key)

    def set_all(self, records: list[Record]) -> None:
        """Replace the snapshot; later duplicates of a key replace earlier ones in place."""
        with self._lock:
            self._items = OrderedDict()
            for record in records:
                self._items[record.key] = record
            self._persist()
        logger.debug("Store replaced", store=self.name, count=len(records))

    def add(self, record: Record) -> None:
        """Prepend a record; an existing record with the same key is replaced."""
        with self._lock:
            self._items.pop(record.key, None)
            self._items[record.key] = record
            self._items.move_to_end(record.key, last=False)
            self._persist()
        logger.debug("Store record added", store=self.name, key=record.key)

    def replace(self, record: Record) -> bool:
        """Swap in a newer copy of a record at its current position."""
        with self._lock:
            if record.key not in self._items:
                return False
            self._items[record.key] = record
            self._persist()
        logger.debug("Store record replaced", store=self.name, key=record.key)
        return True

    def update(self, key: str, changes: dict[str, Any]) -> Record | None:
        """Merge field changes into a stored record.

        Returns:
            The updated record, or None when no record has this key

        Raises:
            ValueError: If a change names a field the record type does not have
        """
        unknown = sorted(set(changes) - {f.name for f in fields(self.record_type)})
        if unknown:
            raise ValueError(f"Unknown {self.record_type.__name__} field(s): {', '.join(unknown)}")
        with self._lock:
            current = self._items.get(key)
            if current is None:
                return None
            updated = replace(current, **changes)
            self._items[key] = updated
            self._persist()
        logger.debug("Store record updated", store=self.name, key=key, fields=sorted(changes))
        return updated

    def remove(self, key: str) -> bool:
        with self._lock:
            if self._items.pop(key, None) is None:
                return False
            self._persist()
        logger.debug("Store record removed", store=self.name, key=key)
        return True

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self.storage.remove_item(self.storage_name)

    def set_filters(self, **changes: Any) -> StoreFilters:
        """Merge filter changes into the current filters."""
        with self._lock:
            self.filters = replace(self.filters, **changes)
            return self.filters

    def clear_filters(self) -> None:
        with self._lock:
            self.filters = StoreFilters()

    def filtered(self) -> list[Record]:
        with self._lock:
            filters = self.filters
            return [record for record in self._items.values() if _matches(record, filters)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items
