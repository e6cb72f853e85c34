"""Shared fixtures for nestblue-sync tests."""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import pytest

from nestblue_sync.backend import ApiError, Backend
from nestblue_sync.cache import QueryCache
from nestblue_sync.models import Cost, Record, Task
from nestblue_sync.resources import Resource
from nestblue_sync.store import MemoryStorage
from nestblue_sync.sync import Workspace


class MockBackend(Backend):
    """In-memory backend recording every call."""

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Record]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_next: Exception | None = None
        self._next_id = 1

    def _call(self, action: str, resource_name: str) -> None:
        self.calls.append((action, resource_name))
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    def seed(self, resource_name: str, *records: Record) -> None:
        bucket = self.records.setdefault(resource_name, {})
        for record in records:
            bucket[record.key] = record

    def count(self, action: str, resource_name: str) -> int:
        return self.calls.count((action, resource_name))

    def list_records(self, resource: Resource, params: dict[str, Any] | None = None) -> list[Record]:
        self._call("list", resource.name)
        return list(self.records.get(resource.name, {}).values())

    def read(self, resource: Resource, key: str) -> Record:
        self._call("read", resource.name)
        try:
            return self.records[resource.name][key]
        except KeyError:
            raise ApiError("Not found", status_code=404) from None

    def create(self, resource: Resource, values: dict[str, Any]) -> Record:
        self._call("create", resource.name)
        key = f"{resource.name}-{self._next_id}"
        self._next_id += 1
        record = resource.record_type(**{resource.key_field: key, **values})
        self.seed(resource.name, record)
        return record

    def update(self, resource: Resource, key: str, values: dict[str, Any]) -> Record:
        self._call("update", resource.name)
        current = self.read(resource, key)
        record = replace(current, **values)
        self.seed(resource.name, record)
        return record

    def delete(self, resource: Resource, key: str) -> None:
        self._call("delete", resource.name)
        if self.records.get(resource.name, {}).pop(key, None) is None:
            raise ApiError("Not found", status_code=404)

    def list_by_project(self, resource: Resource, project_id: str) -> list[Record]:
        self._call("list_by_project", resource.name)
        return [r for r in self.records.get(resource.name, {}).values() if r.project_id == project_id]

    def list_sprint_tasks(self, sprint_id: str) -> list[Record]:
        self._call("list_sprint_tasks", "tasks")
        return [t for t in self.records.get("tasks", {}).values() if t.sprint_id == sprint_id]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_cost(key: str, amount: float = 10.0, currency: str = "USD", **extra: Any) -> Cost:
    values = {"category": "other", "date": datetime(2024, 3, 10, tzinfo=timezone.utc)}
    values.update(extra)
    return Cost(id=key, name=f"Cost {key}", amount=amount, currency=currency, **values)


def make_task(key: str, **extra: Any) -> Task:
    return Task(uid=key, title=f"Task {key}", **extra)


@pytest.fixture
def mock_backend() -> MockBackend:
    """Create an empty in-memory backend."""
    return MockBackend()


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    """Create in-memory storage shared by stores in one test."""
    return MemoryStorage()


@pytest.fixture
def workspace(mock_backend: MockBackend, storage: MemoryStorage, clock: FakeClock) -> Workspace:
    """Create a workspace over the mock backend with a fake clock."""
    return Workspace(mock_backend, storage=storage, cache=QueryCache(clock=clock))
