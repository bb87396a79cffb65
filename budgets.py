import random
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from ledger import (
    ZERO,
    BudgetAlert,
    LedgerCategory,
    LedgerInputError,
    ensure_categories,
    format_currency,
)

HUNDRED = Decimal("100")
COLOR_BASES = (
    "blue",
    "green",
    "red",
    "yellow",
    "purple",
    "pink",
    "indigo",
    "emerald",
    "orange",
    "teal",
)


@dataclass(frozen=True)
class BudgetStatus:
    category_id: str
    name: str
    color: str
    spent: Decimal
    budget: Decimal
    remaining: Decimal
    percentage: Decimal
    status: str


def budget_percentage(spent: Decimal, budget: Optional[Decimal]) -> Optional[Decimal]:
    """Share of the budget used, clamped to [0, 100]; ``None`` without a budget."""
    if budget is None or budget <= 0:
        return None
    return max(ZERO, min(HUNDRED, HUNDRED * spent / budget))


def progress_status(percentage: Decimal) -> str:
    if percentage > 90:
        return "danger"
    if percentage > 75:
        return "warning"
    return "ok"


def _totals(category_totals: object) -> Mapping[str, Decimal]:
    if not isinstance(category_totals, Mapping):
        raise LedgerInputError("category_totals must be a mapping")
    return category_totals


def evaluate_budgets(
    categories: list[LedgerCategory], category_totals: Mapping[str, Decimal]
) -> tuple[BudgetStatus, ...]:
    """Progress rows for every category that has a positive budget."""
    cats = ensure_categories(categories)
    totals = _totals(category_totals)

    rows: list[BudgetStatus] = []
    for category in cats:
        if not category.has_budget:
            continue
        spent = totals.get(category.name, ZERO)
        percentage = budget_percentage(spent, category.budget)
        rows.append(
            BudgetStatus(
                category_id=category.id,
                name=category.name,
                color=category.color,
                spent=spent,
                budget=category.budget,
                remaining=category.budget - spent,
                percentage=percentage,
                status=progress_status(percentage),
            )
        )
    return tuple(rows)


def budget_alerts(
    categories: list[LedgerCategory],
    category_totals: Mapping[str, Decimal],
    *,
    now: Optional[datetime] = None,
) -> tuple[BudgetAlert, ...]:
    cats = ensure_categories(categories)
    totals = _totals(category_totals)
    if now is None:
        from periods import local_now

        now = local_now()
    stamp = int(now.timestamp() * 1000)

    alerts: list[BudgetAlert] = []
    for category in cats:
        if not category.has_budget:
            continue
        spent = totals.get(category.name, ZERO)
        if spent <= category.budget:
            continue
        overspend = format_currency(spent - category.budget)
        alerts.append(
            BudgetAlert(
                id=f"{category.id}-{stamp}",
                message=f"Overspent {overspend} on {category.name} this month!",
                date=now,
                resolved=False,
            )
        )
    return tuple(alerts)


def pick_category_color(
    existing_colors: Sequence[str], rng: Optional[random.Random] = None
) -> str:
    """Color token for a new category, preferring a hue nobody uses yet."""
    rng = rng or random.Random()
    available = [
        base
        for base in COLOR_BASES
        if not any(base in color for color in existing_colors)
    ]
    base = rng.choice(available) if available else rng.choice(COLOR_BASES)
    return f"bg-{base}-100 text-{base}-800"
