"""Tests for create and update validation."""

from datetime import datetime, timezone

import pytest

from nestblue_sync.models import Budget, Contract, Cost, Expense, Project, Sprint, Task
from nestblue_sync.validation import ValidationError, validate_create, validate_update


def test_valid_cost() -> None:
    """Test that a complete cost passes and is coerced."""
    values = validate_create(
        Cost,
        {"name": "Lunch", "amount": "12.5", "currency": "USD", "category": "food", "date": "2024-03-01"},
    )
    assert values["amount"] == 12.5
    assert values["date"] == datetime(2024, 3, 1, tzinfo=timezone.utc)


def test_missing_required_fields() -> None:
    """Test that every missing required field is reported."""
    with pytest.raises(ValidationError) as excinfo:
        validate_create(Cost, {"name": "Lunch"})
    errors = excinfo.value.errors
    assert errors["amount"] == "is required"
    assert errors["date"] == "is required"
    assert "name" not in errors


def test_blank_name_is_required() -> None:
    """Test that whitespace does not satisfy a required field."""
    with pytest.raises(ValidationError) as excinfo:
        validate_create(Task, {"title": "   "})
    assert excinfo.value.errors == {"title": "is required"}


@pytest.mark.parametrize(
    ("amount", "message"),
    [
        ("0", "must be positive"),
        ("-5", "must be positive"),
        ("1000000000", "is too large"),
        ("lots", "must be a number"),
    ],
)
def test_amount_rules(amount: str, message: str) -> None:
    """Test amount bounds."""
    values = {"name": "Rent", "amount": amount, "currency": "USD", "category": "housing", "date": "2024-01-01"}
    with pytest.raises(ValidationError) as excinfo:
        validate_create(Cost, values)
    assert excinfo.value.errors["amount"] == message


def test_choices() -> None:
    """Test enumerated fields."""
    with pytest.raises(ValidationError) as excinfo:
        validate_create(
            Budget,
            {
                "name": "Q1",
                "amount": 100,
                "currency": "JPY",
                "category": "food",
                "period": "fortnightly",
                "start_date": "2024-01-01",
            },
        )
    assert excinfo.value.errors["currency"].startswith("must be one of")
    assert "period" in excinfo.value.errors


def test_end_before_start() -> None:
    """Test date ordering."""
    with pytest.raises(ValidationError) as excinfo:
        validate_create(
            Sprint,
            {"name": "S1", "project_id": "p1", "start_date": "2024-02-01", "end_date": "2024-01-01"},
        )
    assert excinfo.value.errors == {"end_date": "must not be before start_date"}


def test_contract_renewal_before_start() -> None:
    """Test contract renewal dates are ordered after the start."""
    values = {
        "name": "Support",
        "contract_number": "C-1",
        "vendor": "Acme",
        "amount": 10,
        "currency": "USD",
        "category": "other",
        "start_date": "2024-06-01",
        "renewal_date": "2024-01-01",
        "status": "active",
        "payment_frequency": "annual",
    }
    with pytest.raises(ValidationError) as excinfo:
        validate_create(Contract, values)
    assert "renewal_date" in excinfo.value.errors


def test_progress_range() -> None:
    """Test project progress bounds."""
    with pytest.raises(ValidationError) as excinfo:
        validate_create(Project, {"name": "Site", "progress": 150})
    assert excinfo.value.errors["progress"] == "must be between 0 and 100"


def test_unknown_and_read_only_fields() -> None:
    """Test that unknown and server-assigned fields are rejected."""
    with pytest.raises(ValidationError) as excinfo:
        validate_create(Task, {"title": "A", "uid": "t1", "colour": "blue"})
    assert excinfo.value.errors["uid"] == "field is assigned by the server"
    assert excinfo.value.errors["colour"] == "unknown field"


def test_name_too_long() -> None:
    """Test maximum lengths."""
    values = {
        "name": "x" * 101,
        "amount": 1,
        "currency": "USD",
        "category": "other",
        "frequency": "monthly",
        "start_date": "2024-01-01",
    }
    with pytest.raises(ValidationError) as excinfo:
        validate_create(Expense, values)
    assert excinfo.value.errors["name"] == "must be at most 100 characters"


def test_invalid_date_input() -> None:
    """Test that unparseable dates become validation errors."""
    with pytest.raises(ValidationError) as excinfo:
        validate_create(Task, {"title": "A", "due_date": "soon"})
    assert "input" in excinfo.value.errors


def test_update_only_checks_supplied_fields() -> None:
    """Test partial updates."""
    assert validate_update(Cost, {"amount": "20"}) == {"amount": 20.0}
    with pytest.raises(ValidationError) as excinfo:
        validate_update(Cost, {"name": ""})
    assert excinfo.value.errors == {"name": "cannot be empty"}


def test_validation_error_message() -> None:
    """Test the error message lists each field."""
    error = ValidationError("Cost", {"amount": "must be positive", "name": "is required"})
    assert str(error) == "Invalid Cost: amount: must be positive; name: is required"
    assert isinstance(error, ValueError)


@pytest.mark.parametrize("amount", ["nan", "inf", "-inf", float("nan")])
def test_non_finite_amount(amount) -> None:
    """Test that NaN and infinite amounts are rejected."""
    values = {"name": "Rent", "amount": amount, "currency": "USD", "category": "housing", "date": "2024-01-01"}
    with pytest.raises(ValidationError) as excinfo:
        validate_create(Cost, values)
    assert excinfo.value.errors["amount"] == "must be a number"


def test_non_finite_progress() -> None:
    """Test that NaN progress is out of range."""
    with pytest.raises(ValidationError) as excinfo:
        validate_update(Project, {"progress": "nan"})
    assert excinfo.value.errors["progress"] == "must be between 0 and 100"
