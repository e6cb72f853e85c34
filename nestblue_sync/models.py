"""Data models for nestblue-sync.

Records mirror the REST API's resources. The wire format is camelCase JSON;
attributes are snake_case. Amounts come back from Postgres decimals as
strings and dates as ISO-8601 strings, so decoding coerces both.
"""

import math
import types
from dataclasses import MISSING, Field, dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any, ClassVar, Union, get_args, get_origin, get_type_hints

CURRENCIES: dict[str, str] = {"USD": "$", "EUR": "€", "GBP": "£", "MAD": "DH"}
DEFAULT_CURRENCY = "USD"

COST_CATEGORIES = (
    "housing",
    "transportation",
    "food",
    "utilities",
    "healthcare",
    "entertainment",
    "shopping",
    "education",
    "savings",
    "other",
)

_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}
_FALSE_STRINGS = {"false", "0", "no", "n", "off", ""}


def to_camel(name: str) -> str:
    """Convert a snake_case attribute name to its camelCase wire name."""
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_number(value: Any) -> float:
    """Coerce an amount to a float, falling back to 0 for anything unusable."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return 0.0
        return number if math.isfinite(number) else 0.0
    return 0.0


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or date/datetime) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_aware(datetime.fromisoformat(text))
        except ValueError as e:
            raise ValueError(f"Invalid date: {value!r}") from e
    raise ValueError(f"Invalid date: {value!r}")


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"Invalid boolean: {value!r}")


def _kind_of(hint: Any) -> str | None:
    """Reduce a field's type hint to the coercion it needs."""
    origin = get_origin(hint)
    if origin in (Union, types.UnionType):
        args = [arg for arg in get_args(hint) if arg is not type(None)]
        return _kind_of(args[0]) if len(args) == 1 else None
    if hint is datetime:
        return "datetime"
    if hint is float:
        return "float"
    if hint is bool:
        return "bool"
    if hint is int:
        return "int"
    if origin is list:
        return "list"
    return None


_KINDS: dict[type, dict[str, str | None]] = {}


def field_kinds(record_type: type) -> dict[str, str | None]:
    """Return {attribute: kind} for a record type, cached per type."""
    kinds = _KINDS.get(record_type)
    if kinds is None:
        hints = get_type_hints(record_type)
        kinds = {f.name: _kind_of(hints[f.name]) for f in fields(record_type)}
        _KINDS[record_type] = kinds
    return kinds


def _decode_value(kind: str | None, value: Any) -> Any:
    if value is None:
        return None
    if kind == "datetime":
        return parse_datetime(value)
    if kind == "float":
        return to_number(value)
    if kind == "bool":
        return parse_bool(value)
    if kind == "int":
        return int(to_number(value))
    return value


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_encode_value(item) for item in value]
    if isinstance(value, dict):
        return {key: _encode_value(item) for key, item in value.items()}
    return value


def coerce_input(record_type: type, values: dict[str, Any]) -> dict[str, Any]:
    """Coerce user-supplied values (often strings from the CLI) to field types.

    Unknown attribute names are passed through untouched so validation can
    report them.
    """
    kinds = field_kinds(record_type)
    coerced: dict[str, Any] = {}
    for name, value in values.items():
        kind = kinds.get(name)
        if value is None or name not in kinds:
            coerced[name] = value
        elif kind == "float" and isinstance(value, str):
            try:
                coerced[name] = float(value)
            except ValueError:
                coerced[name] = value
        elif kind == "list" and isinstance(value, str):
            coerced[name] = [item.strip() for item in value.split(",") if item.strip()]
        else:
            coerced[name] = _decode_value(kind, value)
    return coerced


def encode_input(values: dict[str, Any]) -> dict[str, Any]:
    """Encode a snake_case input dict into a camelCase request body."""
    return {to_camel(name): _encode_value(value) for name, value in values.items()}


@dataclass
class Record:
    """Base class for API records."""

    key_field: ClassVar[str] = "id"

    @property
    def key(self) -> str:
        return getattr(self, self.key_field)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Record":
        """Build a record from a camelCase API payload."""
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object for {cls.__name__}, got {type(data).__name__}")
        kinds = field_kinds(cls)
        values: dict[str, Any] = {}
        for f in fields(cls):
            wire = to_camel(f.name)
            if wire in data:
                values[f.name] = _decode_value(kinds[f.name], data[wire])
            elif f.name in data:
                values[f.name] = _decode_value(kinds[f.name], data[f.name])
        missing = [f.name for f in fields(cls) if _is_required(f) and f.name not in values]
        if missing:
            raise ValueError(f"{cls.__name__} payload missing field(s): {', '.join(missing)}")
        return cls(**values)

    def to_api(self) -> dict[str, Any]:
        """Encode the record as a camelCase dict, omitting unset optionals."""
        return {
            to_camel(f.name): _encode_value(getattr(self, f.name))
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


def _is_required(f: Field) -> bool:
    return f.default is MISSING and f.default_factory is MISSING


@dataclass
class Project(Record):
    """A project; the API keys projects by ``uid``."""

    key_field: ClassVar[str] = "uid"

    uid: str
    name: str
    description: str = ""
    status: str | None = None
    progress: float | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Task(Record):
    """A task; ``uid`` is the backend key, ``identifier`` the short handle."""

    key_field: ClassVar[str] = "uid"

    uid: str
    title: str
    identifier: str = ""
    description: str | None = None
    status: str = "todo"
    priority: str = "medium"
    project_id: str | None = None
    sprint_id: str | None = None
    assignees: list[str] = field(default_factory=list)
    due_date: datetime | None = None
    start_date: datetime | None = None
    subtasks: list[dict[str, Any]] = field(default_factory=list)
    estimated_cost: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Sprint(Record):
    id: str
    name: str
    project_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    status: str = "planned"
    goal: str | None = None
    task_count: int | None = None
    completed_task_count: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Budget(Record):
    id: str
    name: str
    amount: float = 0.0
    currency: str = DEFAULT_CURRENCY
    category: str = "other"
    period: str = "monthly"
    start_date: datetime | None = None
    end_date: datetime | None = None
    project_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Cost(Record):
    id: str
    name: str
    amount: float = 0.0
    currency: str = DEFAULT_CURRENCY
    category: str = "other"
    description: str | None = None
    date: datetime | None = None
    tags: list[str] = field(default_factory=list)
    project_id: str | None = None
    task_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Expense(Record):
    """A recurring expense."""

    id: str
    name: str
    amount: float = 0.0
    currency: str = DEFAULT_CURRENCY
    category: str = "other"
    description: str | None = None
    frequency: str = "monthly"
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True
    tags: list[str] = field(default_factory=list)
    project_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Contract(Record):
    id: str
    name: str
    contract_number: str = ""
    vendor: str = ""
    vendor_email: str | None = None
    vendor_phone: str | None = None
    amount: float = 0.0
    currency: str = DEFAULT_CURRENCY
    category: str = "other"
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    renewal_date: datetime | None = None
    status: str = "draft"
    payment_frequency: str = "monthly"
    auto_renew: bool = False
    tags: list[str] = field(default_factory=list)
    project_id: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class User(Record):
    id: str
    name: str
    email: str = ""
    avatar: str | None = None
    role: str | None = None
    status: str | None = None
    department: str | None = None
    position: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class TeamSpace(Record):
    id: str
    name: str
    description: str | None = None
    member_ids: list[str] = field(default_factory=list)
    color: str | None = None
    icon: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Notification(Record):
    id: str
    title: str
    message: str = ""
    type: str = "info"
    read: bool = False
    action_url: str | None = None
    action_label: str | None = None
    project_id: str | None = None
    task_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
