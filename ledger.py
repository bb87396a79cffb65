"""Value objects shared by the analytics modules.

Everything here is immutable and free of I/O. The persistence layer turns
ORM rows into these objects (see ``services.AnalyticsService``) and the
analytics functions only ever read them and return new ones.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Optional, Sequence

CENT = Decimal("0.01")
ZERO = Decimal("0")
UNCATEGORIZED = "Uncategorized"


class LedgerInputError(ValueError):
    """Raised when analytics input does not have the expected shape."""


class Recurrence(str, Enum):
    none = "none"
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class InsightType(str, Enum):
    warning = "warning"
    info = "info"
    success = "success"


def to_decimal(value: object, field_name: str = "amount") -> Decimal:
    if isinstance(value, bool):
        raise LedgerInputError(f"{field_name} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, (float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise LedgerInputError(f"{field_name} must be a number") from exc
    else:
        raise LedgerInputError(f"{field_name} must be a number")
    if not result.is_finite():
        raise LedgerInputError(f"{field_name} must be finite")
    return result


def cents_to_decimal(cents: int) -> Decimal:
    return Decimal(cents) / 100


def decimal_to_cents(value: Decimal) -> int:
    return int((value * 100).quantize(Decimal("1")))


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT)


def money_json(value: Decimal) -> float:
    return float(quantize_money(value))


def format_currency(amount: Decimal, symbol: Optional[str] = None) -> str:
    if symbol is None:
        from config import get_settings

        symbol = get_settings().currency_symbol
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(quantize_money(amount)):,.2f}"


@dataclass(frozen=True)
class LedgerTransaction:
    id: str
    date: date
    merchant: str
    amount: Decimal
    category: Optional[str] = None
    description: Optional[str] = None
    recurrence: Recurrence = Recurrence.none
    next_occurrence: Optional[date] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "recurrence", Recurrence(self.recurrence))

    @property
    def is_expense(self) -> bool:
        return self.amount < 0


@dataclass(frozen=True)
class LedgerCategory:
    id: str
    name: str
    color: str = ""
    budget: Optional[Decimal] = None
    spent: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.budget is not None:
            object.__setattr__(self, "budget", to_decimal(self.budget, "budget"))

    @property
    def has_budget(self) -> bool:
        return self.budget is not None and self.budget > 0


@dataclass(frozen=True)
class BudgetAlert:
    id: str
    message: str
    date: datetime
    resolved: bool = False


@dataclass(frozen=True)
class RuleBasedInsight:
    id: str
    title: str
    message: str
    type: InsightType
    date: datetime


@dataclass(frozen=True)
class CategoryBreakdown:
    budget: Decimal
    spent: Decimal


@dataclass(frozen=True)
class MonthlyReport:
    period: str
    start_date: date
    end_date: date
    income: Decimal
    expenses: Decimal
    net: Decimal
    categories: Mapping[str, CategoryBreakdown] = field(
        default_factory=lambda: MappingProxyType({})
    )
    transactions: tuple[LedgerTransaction, ...] = ()


def ensure_transactions(transactions: object) -> tuple[LedgerTransaction, ...]:
    return _ensure_sequence(transactions, LedgerTransaction, "transactions")


def ensure_categories(categories: object) -> tuple[LedgerCategory, ...]:
    return _ensure_sequence(categories, LedgerCategory, "categories")


def _ensure_sequence(value: object, item_type: type, name: str) -> tuple:
    if not isinstance(value, (list, tuple)):
        raise LedgerInputError(f"{name} must be a list, got {type(value).__name__}")
    items: Sequence = value
    for idx, item in enumerate(items):
        if not isinstance(item, item_type):
            raise LedgerInputError(
                f"{name}[{idx}] must be a {item_type.__name__}, "
                f"got {type(item).__name__}"
            )
    return tuple(items)
