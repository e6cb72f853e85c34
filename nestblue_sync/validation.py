"""Form-level validation for create and update inputs."""

import math
from dataclasses import dataclass, field
from typing import Any

import structlog

from nestblue_sync.models import (
    COST_CATEGORIES,
    CURRENCIES,
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
    coerce_input,
    field_kinds,
)

logger = structlog.get_logger()

MAX_AMOUNT = 999_999_999


class ValidationError(ValueError):
    """Raised when an input fails validation.

    Attributes:
        errors: Mapping of field name to a human-readable message
    """

    def __init__(self, record_type: str, errors: dict[str, str]) -> None:
        self.record_type = record_type
        self.errors = errors
        details = "; ".join(f"{name}: {message}" for name, message in errors.items())
        super().__init__(f"Invalid {record_type}: {details}")


@dataclass(frozen=True)
class Schema:
    """Validation rules for one record type."""

    required: tuple[str, ...] = ()
    positive: tuple[str, ...] = ()
    choices: dict[str, tuple[str, ...]] = field(default_factory=dict)
    max_lengths: dict[str, int] = field(default_factory=dict)
    ranges: dict[str, tuple[float, float]] = field(default_factory=dict)
    date_order: tuple[tuple[str, str], ...] = ()
    read_only: tuple[str, ...] = ("id", "uid", "created_at", "updated_at")


_CURRENCY_CHOICES = tuple(CURRENCIES)

SCHEMAS: dict[type[Record], Schema] = {
    Project: Schema(
        required=("name",),
        choices={"status": ("active", "archived", "on-hold")},
        max_lengths={"name": 255},
        ranges={"progress": (0, 100)},
        date_order=(("start_date", "end_date"),),
    ),
    Task: Schema(
        required=("title",),
        choices={
            "status": ("todo", "in-progress", "complete", "backlog"),
            "priority": ("low", "medium", "high", "urgent"),
        },
        max_lengths={"title": 255},
        date_order=(("start_date", "due_date"),),
        read_only=("uid", "identifier", "created_at", "updated_at"),
    ),
    Sprint: Schema(
        required=("name", "project_id", "start_date", "end_date"),
        choices={"status": ("planned", "active", "completed")},
        max_lengths={"name": 255},
        date_order=(("start_date", "end_date"),),
    ),
    Budget: Schema(
        required=("name", "amount", "currency", "category", "period", "start_date"),
        positive=("amount",),
        choices={
            "currency": _CURRENCY_CHOICES,
            "category": COST_CATEGORIES,
            "period": ("daily", "weekly", "monthly", "yearly"),
        },
        max_lengths={"name": 100, "description": 500},
        date_order=(("start_date", "end_date"),),
    ),
    Cost: Schema(
        required=("name", "amount", "currency", "category", "date"),
        positive=("amount",),
        choices={"currency": _CURRENCY_CHOICES, "category": COST_CATEGORIES},
        max_lengths={"name": 100, "description": 500},
    ),
    Expense: Schema(
        required=("name", "amount", "currency", "category", "frequency", "start_date"),
        positive=("amount",),
        choices={
            "currency": _CURRENCY_CHOICES,
            "category": COST_CATEGORIES,
            "frequency": ("daily", "weekly", "monthly", "yearly", "one-time"),
        },
        max_lengths={"name": 100, "description": 500},
        date_order=(("start_date", "end_date"),),
    ),
    Contract: Schema(
        required=(
            "name",
            "contract_number",
            "vendor",
            "amount",
            "currency",
            "category",
            "start_date",
            "status",
            "payment_frequency",
        ),
        positive=("amount",),
        choices={
            "currency": _CURRENCY_CHOICES,
            "category": COST_CATEGORIES,
            "status": ("draft", "active", "expired", "terminated", "pending-renewal", "cancelled"),
            "payment_frequency": ("one-time", "monthly", "quarterly", "semi-annual", "annual"),
        },
        max_lengths={"name": 100, "description": 500},
        date_order=(("start_date", "end_date"), ("start_date", "renewal_date")),
    ),
    User: Schema(required=("name", "email")),
    TeamSpace: Schema(required=("name",), max_lengths={"name": 255}),
    Notification: Schema(required=("title",)),
}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_number(value: Any) -> bool:
    """True for finite ints and floats; NaN and infinity are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _check(record_type: type[Record], values: dict[str, Any], partial: bool) -> dict[str, str]:
    schema = SCHEMAS.get(record_type, Schema())
    kinds = field_kinds(record_type)
    errors: dict[str, str] = {}

    for name in values:
        if name not in kinds:
            errors[name] = "unknown field"
        elif name in schema.read_only:
            errors[name] = "field is assigned by the server"

    if not partial:
        for name in schema.required:
            if _is_blank(values.get(name)):
                errors.setdefault(name, "is required")
    else:
        for name in schema.required:
            if name in values and _is_blank(values[name]):
                errors.setdefault(name, "cannot be empty")

    for name in schema.positive:
        value = values.get(name)
        if value is None or name in errors:
            continue
        if not _is_number(value):
            errors[name] = "must be a number"
        elif value <= 0:
            errors[name] = "must be positive"
        elif value > MAX_AMOUNT:
            errors[name] = "is too large"

    for name, (low, high) in schema.ranges.items():
        value = values.get(name)
        if value is None or name in errors:
            continue
        if not _is_number(value) or not low <= value <= high:
            errors[name] = f"must be between {low} and {high}"

    for name, allowed in schema.choices.items():
        value = values.get(name)
        if value is None or name in errors:
            continue
        if value not in allowed:
            errors[name] = f"must be one of: {', '.join(allowed)}"

    for name, limit in schema.max_lengths.items():
        value = values.get(name)
        if isinstance(value, str) and len(value) > limit:
            errors.setdefault(name, f"must be at most {limit} characters")

    for start, end in schema.date_order:
        if values.get(start) and values.get(end) and values[end] < values[start]:
            errors.setdefault(end, f"must not be before {start}")

    return errors


def validate_create(record_type: type[Record], values: dict[str, Any]) -> dict[str, Any]:
    """Coerce and validate a create input.

    Args:
        record_type: Record class the input will create
        values: snake_case field values

    Returns:
        The coerced values

    Raises:
        ValidationError: If any field is missing or invalid
    """
    coerced = _coerce(record_type, values)
    errors = _check(record_type, coerced, partial=False)
    if errors:
        logger.debug("Create input rejected", record_type=record_type.__name__, errors=errors)
        raise ValidationError(record_type.__name__, errors)
    return coerced


def validate_update(record_type: type[Record], values: dict[str, Any]) -> dict[str, Any]:
    """Coerce and validate a partial update; only the supplied fields are checked."""
    coerced = _coerce(record_type, values)
    errors = _check(record_type, coerced, partial=True)
    if errors:
        logger.debug("Update input rejected", record_type=record_type.__name__, errors=errors)
        raise ValidationError(record_type.__name__, errors)
    return coerced


def _coerce(record_type: type[Record], values: dict[str, Any]) -> dict[str, Any]:
    try:
        return coerce_input(record_type, values)
    except ValueError as e:
        raise ValidationError(record_type.__name__, {"input": str(e)}) from e
