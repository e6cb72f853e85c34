"""Aggregate statistics over mirrored financial records.

Every aggregate only counts records in the requested currency and returns
zeros for an empty input.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from nestblue_sync.models import (
    CURRENCIES,
    DEFAULT_CURRENCY,
    Budget,
    Contract,
    Cost,
    Expense,
    ensure_aware,
    to_number,
)

# Multipliers projecting one occurrence onto a month.
MONTHLY_MULTIPLIERS = {
    "daily": 30,
    "weekly": 4.33,
    "monthly": 1,
    "yearly": 1 / 12,
    "one-time": 0,
}

EXPIRY_WINDOW = timedelta(days=30)


def format_currency(amount: object, currency: str = DEFAULT_CURRENCY) -> str:
    """Format an amount with its currency symbol and at most two decimals.

    >>> format_currency(1234.5, "EUR")
    '€1,234.5'
    >>> format_currency("12.00")
    '$12'
    """
    value = to_number(amount)
    symbol = CURRENCIES.get(currency, "$")
    formatted = f"{value:,.2f}"
    if formatted.endswith(".00"):
        formatted = formatted[:-3]
    elif formatted.endswith("0") and "." in formatted:
        formatted = formatted[:-1]
    return f"{symbol}{formatted}"


def _now(now: datetime | None) -> datetime:
    return ensure_aware(now) if now is not None else datetime.now(timezone.utc)


def _in_currency(records: Iterable, currency: str) -> list:
    return [record for record in records if record.currency == currency]


def _total(records: Iterable) -> float:
    return sum((to_number(record.amount) for record in records), 0.0)


def _average(total: float, count: int) -> float:
    return total / count if count > 0 else 0.0


def _same_month(when: datetime | None, year: int, month: int) -> bool:
    return when is not None and when.year == year and when.month == month


@dataclass
class CostStatistics:
    total: float = 0.0
    current_month: float = 0.0
    monthly_change: float = 0.0
    average: float = 0.0
    count: int = 0


@dataclass
class BudgetStatistics:
    total: float = 0.0
    active_total: float = 0.0
    average: float = 0.0
    count: int = 0


@dataclass
class ExpenseStatistics:
    monthly_projected: float = 0.0
    total: float = 0.0
    average: float = 0.0
    active_count: int = 0


@dataclass
class ContractStatistics:
    total_value: float = 0.0
    active_count: int = 0
    active_value: float = 0.0
    expiring_soon: int = 0
    pending_renewal: int = 0
    count: int = 0
    average: float = 0.0


@dataclass
class CategoryTotal:
    category: str
    total: float
    count: int


def cost_statistics(
    costs: Sequence[Cost], currency: str = DEFAULT_CURRENCY, now: datetime | None = None
) -> CostStatistics:
    """Totals for one currency, with this month compared against last month.

    ``monthly_change`` is a percentage and is 0 when last month had no costs.
    """
    now = _now(now)
    last_month, last_month_year = (12, now.year - 1) if now.month == 1 else (now.month - 1, now.year)
    matching = _in_currency(costs, currency)

    total = _total(matching)
    current = _total(cost for cost in matching if _same_month(cost.date, now.year, now.month))
    previous = _total(cost for cost in matching if _same_month(cost.date, last_month_year, last_month))
    change = (current - previous) / previous * 100 if previous > 0 else 0.0

    return CostStatistics(
        total=total,
        current_month=current,
        monthly_change=change,
        average=_average(total, len(matching)),
        count=len(matching),
    )


def budget_statistics(
    budgets: Sequence[Budget], currency: str = DEFAULT_CURRENCY, now: datetime | None = None
) -> BudgetStatistics:
    """Totals for one currency; open-ended budgets stay active through the end of next year."""
    now = _now(now)
    open_end = datetime(now.year + 1, 12, 31, tzinfo=timezone.utc)
    matching = _in_currency(budgets, currency)

    active = [
        budget
        for budget in matching
        if budget.start_date is not None and budget.start_date <= now <= (budget.end_date or open_end)
    ]
    total = _total(matching)
    return BudgetStatistics(
        total=total,
        active_total=_total(active),
        average=_average(total, len(matching)),
        count=len(matching),
    )


def expense_statistics(expenses: Sequence[Expense], currency: str = DEFAULT_CURRENCY) -> ExpenseStatistics:
    """Totals for one currency plus the projected monthly spend of active expenses."""
    matching = _in_currency(expenses, currency)
    active = [expense for expense in matching if expense.is_active]

    projected = sum(
        (to_number(expense.amount) * MONTHLY_MULTIPLIERS.get(expense.frequency, 0) for expense in active),
        0.0,
    )
    total = _total(matching)
    return ExpenseStatistics(
        monthly_projected=projected,
        total=total,
        average=_average(total, len(matching)),
        active_count=len(active),
    )


def contract_statistics(
    contracts: Sequence[Contract], currency: str = DEFAULT_CURRENCY, now: datetime | None = None
) -> ContractStatistics:
    """Contract value totals; "expiring soon" means an active contract ending within 30 days."""
    now = _now(now)
    horizon = now + EXPIRY_WINDOW
    matching = _in_currency(contracts, currency)
    active = [contract for contract in matching if contract.status == "active"]
    expiring = [
        contract for contract in active if contract.end_date is not None and now <= contract.end_date <= horizon
    ]
    total = _total(matching)

    return ContractStatistics(
        total_value=total,
        active_count=len(active),
        active_value=_total(active),
        expiring_soon=len(expiring),
        pending_renewal=sum(1 for contract in matching if contract.status == "pending-renewal"),
        count=len(matching),
        average=_average(total, len(matching)),
    )


def category_breakdown(records: Iterable, currency: str = DEFAULT_CURRENCY) -> list[CategoryTotal]:
    """Per-category totals for one currency, largest first."""
    totals: dict[str, CategoryTotal] = {}
    for record in _in_currency(records, currency):
        entry = totals.setdefault(record.category, CategoryTotal(record.category, 0.0, 0))
        entry.total += to_number(record.amount)
        entry.count += 1
    return sorted(totals.values(), key=lambda entry: (-entry.total, entry.category))
