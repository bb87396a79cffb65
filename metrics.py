from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Optional

from ledger import (
    UNCATEGORIZED,
    ZERO,
    LedgerTransaction,
    LedgerInputError,
    ensure_transactions,
)

DASHBOARD_TOP_LIMIT = 3
ADVISOR_TOP_LIMIT = 3
QUESTION_TOP_LIMIT = 5


@dataclass(frozen=True)
class Metrics:
    income: Decimal
    expenses: Decimal
    net: Decimal
    category_totals: Mapping[str, Decimal] = field(
        default_factory=lambda: MappingProxyType({})
    )


@dataclass(frozen=True)
class CategoryAmount:
    name: str
    amount: Decimal


def filter_by_date(
    transactions: tuple[LedgerTransaction, ...],
    start: Optional[date],
    end: Optional[date],
) -> tuple[LedgerTransaction, ...]:
    if start is None and end is None:
        return transactions
    return tuple(
        txn
        for txn in transactions
        if (start is None or txn.date >= start) and (end is None or txn.date <= end)
    )


def aggregate(
    transactions: list[LedgerTransaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Metrics:
    """Income, expenses, net and per-category spend for the given range.

    Both bounds are inclusive. Expenses without a category are grouped under
    ``"Uncategorized"``; income never contributes to a category total.
    """
    txns = filter_by_date(ensure_transactions(transactions), start, end)

    income = ZERO
    expenses = ZERO
    category_totals: dict[str, Decimal] = {}
    for txn in txns:
        if not txn.is_expense:
            income += txn.amount
            continue
        spend = -txn.amount
        expenses += spend
        name = txn.category or UNCATEGORIZED
        category_totals[name] = category_totals.get(name, ZERO) + spend

    return Metrics(
        income=income,
        expenses=expenses,
        net=income - expenses,
        category_totals=MappingProxyType(category_totals),
    )


def top_categories(
    category_totals: Mapping[str, Decimal], limit: int = DASHBOARD_TOP_LIMIT
) -> tuple[CategoryAmount, ...]:
    if not isinstance(category_totals, Mapping):
        raise LedgerInputError("category_totals must be a mapping")
    if limit < 0:
        raise LedgerInputError("limit must not be negative")
    # sorted() is stable, so equal amounts keep their insertion order.
    ranked = sorted(category_totals.items(), key=lambda item: item[1], reverse=True)
    return tuple(
        CategoryAmount(name=name, amount=amount) for name, amount in ranked[:limit]
    )


def savings_rate(metrics: Metrics) -> Decimal:
    if metrics.income <= 0:
        return ZERO
    return metrics.net / metrics.income
