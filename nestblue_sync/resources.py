"""Registry of the REST resources the client keeps in sync."""

from dataclasses import dataclass

from nestblue_sync.models import (
    Budget,
    Contract,
    Cost,
    Expense,
    Notification,
    Project,
    Record,
    Sprint,
    Task,
    TeamSpace,
    User,
)

DEFAULT_STALE_TIME = 5 * 60.0
DEFAULT_GC_TIME = 10 * 60.0


@dataclass(frozen=True)
class Resource:
    """A server resource: where it lives, what it decodes to, how long it stays fresh.

    Attributes:
        name: Resource name, also the root of its cache keys
        path: REST collection path relative to the API base URL
        record_type: Record class the payloads decode to
        stale_time: Seconds a fetched list is served from cache without refetching
        gc_time: Seconds an unread cache entry survives garbage collection
        related: Other resource names whose cache keys a mutation invalidates
    """

    name: str
    path: str
    record_type: type[Record]
    stale_time: float = DEFAULT_STALE_TIME
    gc_time: float = DEFAULT_GC_TIME
    related: tuple[str, ...] = ()

    @property
    def storage_name(self) -> str:
        return f"{self.name}-storage"

    @property
    def key_field(self) -> str:
        return self.record_type.key_field

    def item_path(self, key: str) -> str:
        return f"{self.path}/{key}"


RESOURCES: dict[str, Resource] = {
    resource.name: resource
    for resource in (
        Resource("projects", "/projects", Project, related=("tasks", "sprints", "dashboard")),
        Resource("tasks", "/tasks", Task, related=("sprints", "dashboard")),
        Resource("sprints", "/sprints", Sprint, related=("dashboard",)),
        Resource("budgets", "/budgets", Budget, related=("dashboard",)),
        Resource("costs", "/costs", Cost, related=("dashboard",)),
        Resource("expenses", "/expenses", Expense, related=("dashboard",)),
        Resource("contracts", "/contracts", Contract, related=("dashboard",)),
        Resource("users", "/users", User),
        Resource("spaces", "/projects/spaces", TeamSpace),
        Resource("notifications", "/notifications", Notification, stale_time=2 * 60.0),
    )
}


def get_resource(name: str) -> Resource:
    """Look up a resource by name.

    Raises:
        ValueError: If the name is not registered
    """
    try:
        return RESOURCES[name]
    except KeyError:
        raise ValueError(f"Unknown resource: {name}. Known resources: {', '.join(RESOURCES)}") from None
