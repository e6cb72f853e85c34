"""REST API backend implementation using httpx."""

from typing import Any

import httpx
import structlog

from nestblue_sync.backend import ApiError, Backend
from nestblue_sync.models import Notification, Record, Task, encode_input
from nestblue_sync.resources import RESOURCES, Resource

logger = structlog.get_logger()

DEFAULT_API_URL = "http://localhost:4000/api"
DEFAULT_TIMEOUT = 30.0


class HttpBackend(Backend):
    """Backend talking to the REST API.

    Responses come wrapped as ``{"success": true, "data": ...}``; the payload
    under ``data`` is what callers see.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP backend.

        Args:
            base_url: API base URL, including any path prefix such as ``/api``
            token: Bearer token sent with every request
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url
        self.token = token
        logger.debug("Initializing HTTP backend", base_url=base_url, authenticated=bool(token))
        self.client = httpx.Client(
            base_url=base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        logger.debug("Closing HTTP backend", base_url=self.base_url)
        self.client.close()

    def _auth_headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def _error_message(self, response: httpx.Response) -> str:
        """Extract the server's error message from a failed response."""
        try:
            body = response.json()
        except ValueError:
            return response.text or "An error occurred"
        if isinstance(body, dict):
            message = body.get("message") or body.get("error")
            if isinstance(message, list):
                return "; ".join(str(item) for item in message)
            if message:
                return str(message)
        return "An error occurred"

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the unwrapped response payload."""
        logger.debug("Sending API request", method=method, path=path, params=params)
        try:
            response = self.client.request(method, path, params=params, json=json, headers=self._auth_headers())
        except httpx.TimeoutException as e:
            logger.error("API request timed out", method=method, path=path)
            raise ApiError("Network error: Request timeout") from e
        except httpx.RequestError as e:
            logger.error("API request failed", method=method, path=path, error=str(e))
            raise ApiError(f"Network error: {e}") from e

        if response.status_code == 401:
            logger.warning("API rejected credentials, clearing token", path=path)
            self.token = None

        if response.is_error:
            message = self._error_message(response)
            logger.error("API request returned an error", method=method, path=path, status=response.status_code)
            raise ApiError(message, status_code=response.status_code)

        if not response.content:
            return None
        body = response.json()
        if isinstance(body, dict) and "success" in body and "data" in body:
            return body["data"]
        return body

    def _decode_list(self, resource: Resource, payload: Any) -> list[Record]:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ApiError(f"Expected a list of {resource.name}, got {type(payload).__name__}")
        return [resource.record_type.from_api(item) for item in payload]

    def list_records(self, resource: Resource, params: dict[str, Any] | None = None) -> list[Record]:
        """List records of a resource."""
        logger.info("Listing records", resource=resource.name, params=params)
        records = self._decode_list(resource, self._request("GET", resource.path, params=params))
        logger.info("Listed records", resource=resource.name, count=len(records))
        return records

    def read(self, resource: Resource, key: str) -> Record:
        """Read a record by key."""
        logger.info("Reading record", resource=resource.name, key=key)
        return resource.record_type.from_api(self._request("GET", resource.item_path(key)))

    def create(self, resource: Resource, values: dict[str, Any]) -> Record:
        """Create a record."""
        logger.info("Creating record", resource=resource.name)
        payload = self._request("POST", resource.path, json=encode_input(values))
        record = resource.record_type.from_api(payload)
        logger.info("Record created", resource=resource.name, key=record.key)
        return record

    def update(self, resource: Resource, key: str, values: dict[str, Any]) -> Record:
        """Update a record with a PATCH of the changed fields."""
        logger.info("Updating record", resource=resource.name, key=key, fields=list(values))
        payload = self._request("PATCH", resource.item_path(key), json=encode_input(values))
        record = resource.record_type.from_api(payload)
        logger.info("Record updated", resource=resource.name, key=key)
        return record

    def delete(self, resource: Resource, key: str) -> None:
        """Delete a record."""
        logger.info("Deleting record", resource=resource.name, key=key)
        self._request("DELETE", resource.item_path(key))
        logger.info("Record deleted", resource=resource.name, key=key)

    def list_by_project(self, resource: Resource, project_id: str) -> list[Record]:
        """List tasks or sprints of one project."""
        logger.info("Listing project records", resource=resource.name, project_id=project_id)
        path = f"{RESOURCES['projects'].item_path(project_id)}/{resource.name}"
        return self._decode_list(resource, self._request("GET", path))

    def list_sprint_tasks(self, sprint_id: str) -> list[Record]:
        """List tasks of one sprint."""
        logger.info("Listing sprint tasks", sprint_id=sprint_id)
        payload = self._request("GET", f"{RESOURCES['sprints'].item_path(sprint_id)}/tasks")
        return [Task.from_api(item) for item in payload or []]

    def mark_notification_read(self, notification_id: str) -> None:
        logger.info("Marking notification read", notification_id=notification_id)
        self._request("PATCH", f"{RESOURCES['notifications'].item_path(notification_id)}/read")

    def mark_all_notifications_read(self) -> None:
        logger.info("Marking all notifications read")
        self._request("PATCH", f"{RESOURCES['notifications'].path}/read-all")

    def unread_notification_count(self) -> int:
        """Return the unread notification count; anything non-numeric counts as 0."""
        payload = self._request("GET", f"{RESOURCES['notifications'].path}/unread-count")
        if isinstance(payload, dict):
            payload = payload.get("count")
        if isinstance(payload, bool) or not isinstance(payload, (int, float)):
            return 0
        return int(payload)

    def read_notification(self, notification_id: str) -> Notification:
        return Notification.from_api(self._request("GET", RESOURCES["notifications"].item_path(notification_id)))

    def dashboard(self) -> dict[str, Any]:
        """Fetch the dashboard aggregate."""
        logger.info("Fetching dashboard data")
        return self._request("GET", "/dashboard") or {}

    def project_statistics(self, project_id: str | None = None) -> dict[str, Any]:
        """Fetch statistics for one project, or for every project when no id is given."""
        path = f"/dashboard/projects/{project_id}/statistics" if project_id else "/dashboard/project-statistics"
        logger.info("Fetching project statistics", project_id=project_id)
        return self._request("GET", path) or {}
