"""CLI for nestblue-sync."""

from typing import Annotated, Literal

import structlog
from cyclopts import App, Parameter

from nestblue_sync.backends import HttpBackend
from nestblue_sync.config import get_config, resolve_settings
from nestblue_sync.config_commands import config_app
from nestblue_sync.models import DEFAULT_CURRENCY, Record
from nestblue_sync.notification_commands import notifications_app
from nestblue_sync.resources import get_resource
from nestblue_sync.stats import (
    budget_statistics,
    category_breakdown,
    contract_statistics,
    cost_statistics,
    expense_statistics,
    format_currency,
)
from nestblue_sync.store import FileStorage
from nestblue_sync.sync import Workspace

logger = structlog.get_logger()

app = App(
    help="Nest Blue sync - keep a local mirror of projects, tasks and finances",
)

app.command(config_app)
app.command(notifications_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_backend() -> HttpBackend:
    """Get the configured HTTP backend."""
    settings = resolve_settings(get_config())
    return HttpBackend(base_url=settings.api_url, token=settings.token)


def get_workspace() -> Workspace:
    """Get a workspace persisting its mirror stores under the configured storage directory."""
    settings = resolve_settings(get_config())
    backend = HttpBackend(base_url=settings.api_url, token=settings.token)
    return Workspace(backend, storage=FileStorage(settings.storage_dir))


def parse_fields(pairs: tuple[str, ...]) -> dict[str, str]:
    """Parse ``key=value`` arguments into a dict."""
    values = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Expected key=value, got: {pair}")
        key, value = pair.split("=", 1)
        values[key.strip().replace("-", "_")] = value.strip()
    return values


def describe(record: Record) -> str:
    """One-line summary of a record."""
    label = getattr(record, "name", None) or getattr(record, "title", "")
    details = []
    for name in ("status", "category"):
        value = getattr(record, name, None)
        if value:
            details.append(str(value))
    amount = getattr(record, "amount", None)
    if amount is not None:
        details.append(format_currency(amount, getattr(record, "currency", DEFAULT_CURRENCY)))
    suffix = f" [{', '.join(details)}]" if details else ""
    return f"{record.key}: {label}{suffix}"


@app.command(name="list")
def list_records(
    resource: str,
    project: str | None = None,
    refresh: bool = False,
    offline: bool = False,
    limit: int | None = None,
) -> None:
    """List records of a resource.

    Args:
        resource: Resource name (projects, tasks, sprints, budgets, costs, expenses, contracts, users, spaces,
            notifications)
        project: Only list records of this project (tasks and sprints)
        refresh: Bypass the cache
        offline: Show the local mirror without contacting the server
        limit: Maximum number of records to show
    """
    with get_workspace() as workspace:
        sync = workspace[resource]

        if offline:
            records = sync.store.items()
        elif project:
            result = sync.load_for_project(project, refresh=refresh)
            if result.error is not None:
                raise result.error
            records = result.data or []
        else:
            result = sync.load(refresh=refresh)
            if result.error is not None:
                print(f"Could not refresh {resource}: {result.error}")
            records = sync.data

    if limit:
        records = records[:limit]

    print(f"Found {len(records)} {resource}:\n")
    for record in records:
        print(describe(record))


@app.command
def show(resource: str, key: str) -> None:
    """Show one record."""
    with get_backend() as backend:
        record = backend.read(get_resource(resource), key)
    for name, value in record.to_api().items():
        print(f"{name}: {value}")


@app.command
def create(resource: str, *fields: str) -> None:
    """Create a record from key=value fields."""
    with get_workspace() as workspace:
        record = workspace[resource].create(parse_fields(fields))
    print(f"Created {resource} {describe(record)}")


@app.command
def update(resource: str, key: str, *fields: str) -> None:
    """Update a record with key=value fields."""
    with get_workspace() as workspace:
        record = workspace[resource].update(key, parse_fields(fields))
    print(f"Updated {resource} {describe(record)}")


@app.command
def delete(resource: str, *keys: str) -> None:
    """Delete one or more records."""
    with get_workspace() as workspace:
        sync = workspace[resource]
        for key in keys:
            sync.delete(key)
    print(f"Deleted {len(keys)} {resource}")


@app.command
def stats(resource: str, currency: str = DEFAULT_CURRENCY, offline: bool = False) -> None:
    """Show statistics for budgets, costs, expenses or contracts in one currency."""
    with get_workspace() as workspace:
        sync = workspace[resource]
        if not offline:
            sync.load()
        records = sync.data

    if resource == "costs":
        cost_stats = cost_statistics(records, currency)
        print(f"Total costs: {format_currency(cost_stats.total, currency)} ({cost_stats.count} transactions)")
        print(f"This month: {format_currency(cost_stats.current_month, currency)} ({cost_stats.monthly_change:+.1f}%)")
        print(f"Average cost: {format_currency(cost_stats.average, currency)}")
    elif resource == "budgets":
        budget_stats = budget_statistics(records, currency)
        print(f"Total budget: {format_currency(budget_stats.total, currency)} ({budget_stats.count} budgets)")
        print(f"Active budget: {format_currency(budget_stats.active_total, currency)}")
        print(f"Average budget: {format_currency(budget_stats.average, currency)}")
    elif resource == "expenses":
        expense_stats = expense_statistics(records, currency)
        print(f"Monthly projected: {format_currency(expense_stats.monthly_projected, currency)}")
        print(f"Total expenses: {format_currency(expense_stats.total, currency)}")
        print(f"Average expense: {format_currency(expense_stats.average, currency)}")
        print(f"Active expenses: {expense_stats.active_count}")
    elif resource == "contracts":
        contract_stats = contract_statistics(records, currency)
        print(f"Total contract value: {format_currency(contract_stats.total_value, currency)}")
        active_value = format_currency(contract_stats.active_value, currency)
        print(f"Active contracts: {contract_stats.active_count} ({active_value})")
        print(f"Expiring within 30 days: {contract_stats.expiring_soon}")
        print(f"Pending renewal: {contract_stats.pending_renewal}")
    else:
        raise ValueError(f"No statistics for {resource}; use budgets, costs, expenses or contracts")

    breakdown = category_breakdown(records, currency)
    if breakdown:
        print("\nBy category:")
        for entry in breakdown:
            print(f"  {entry.category}: {format_currency(entry.total, currency)} ({entry.count})")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    app(tokens)


if __name__ == "__main__":
    app.meta()
