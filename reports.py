import calendar
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Optional

from ledger import (
    ZERO,
    CategoryBreakdown,
    LedgerCategory,
    LedgerInputError,
    LedgerTransaction,
    MonthlyReport,
    ensure_categories,
    ensure_transactions,
)
from metrics import aggregate


def period_label(start: date) -> str:
    return f"{calendar.month_name[start.month]} {start.year}"


def _in_range(txn: LedgerTransaction, start: date, end: date) -> bool:
    if txn.date < start:
        return False
    if end == date.max:
        return True
    return txn.date < end + timedelta(days=1)


def build_monthly_report(
    transactions: list[LedgerTransaction],
    categories: list[LedgerCategory],
    start: date,
    end: date,
) -> MonthlyReport:
    txns = ensure_transactions(transactions)
    cats = ensure_categories(categories)
    if not isinstance(start, date) or not isinstance(end, date):
        raise LedgerInputError("start and end must be dates")
    if start > end:
        raise LedgerInputError("start must not be after end")

    in_range = tuple(txn for txn in txns if _in_range(txn, start, end))
    metrics = aggregate(list(in_range))

    breakdown: dict[str, CategoryBreakdown] = {}
    for category in cats:
        budget = category.budget if category.budget is not None else ZERO
        breakdown[category.name] = CategoryBreakdown(
            budget=budget,
            spent=metrics.category_totals.get(category.name, ZERO),
        )

    return MonthlyReport(
        period=period_label(start),
        start_date=start,
        end_date=end,
        income=metrics.income,
        expenses=metrics.expenses,
        net=metrics.net,
        categories=MappingProxyType(breakdown),
        transactions=in_range,
    )


def spent_share(spent: object, budget: object) -> Optional[Decimal]:
    """Spent as a percentage of budget, not clamped; ``None`` without a budget."""
    budget_value = coerce_number(budget)
    if budget_value <= 0:
        return None
    return 100 * coerce_number(spent) / budget_value


def coerce_number(value: object) -> Decimal:
    """Numeric value for display; anything unusable becomes 0."""
    if isinstance(value, bool) or value is None:
        return ZERO
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float, str)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            return ZERO
    else:
        return ZERO
    if not number.is_finite():
        return ZERO
    return number
