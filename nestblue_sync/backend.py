"""Backend interface for the resource API."""

from abc import ABC, abstractmethod
from typing import Any

from nestblue_sync.models import Record
from nestblue_sync.resources import Resource


class ApiError(Exception):
    """A request to the API failed.

    Attributes:
        status_code: HTTP status, or None for network failures
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class Backend(ABC):
    """Abstract base class for resource backends.

    Backends are context managers; leaving the block calls ``close``.
    """

    def close(self) -> None:
        """Release any connections held by the backend."""

    def __enter__(self) -> "Backend":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @abstractmethod
    def list_records(self, resource: Resource, params: dict[str, Any] | None = None) -> list[Record]:
        """List every record of a resource."""
        pass

    @abstractmethod
    def read(self, resource: Resource, key: str) -> Record:
        """Read a record by its key."""
        pass

    @abstractmethod
    def create(self, resource: Resource, values: dict[str, Any]) -> Record:
        """Create a record from snake_case values and return the stored record."""
        pass

    @abstractmethod
    def update(self, resource: Resource, key: str, values: dict[str, Any]) -> Record:
        """Apply a partial update and return the stored record."""
        pass

    @abstractmethod
    def delete(self, resource: Resource, key: str) -> None:
        """Delete a record by its key."""
        pass

    @abstractmethod
    def list_by_project(self, resource: Resource, project_id: str) -> list[Record]:
        """List the records of a resource that belong to one project."""
        pass

    @abstractmethod
    def list_sprint_tasks(self, sprint_id: str) -> list[Record]:
        """List the tasks assigned to a sprint."""
        pass
