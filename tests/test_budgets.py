import random
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from budgets import (
    COLOR_BASES,
    budget_alerts,
    budget_percentage,
    evaluate_budgets,
    pick_category_color,
    progress_status,
)
from ledger import LedgerCategory, LedgerInputError

NOW = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)


def _food(budget="400"):
    return LedgerCategory(id="1", name="Food", color="bg-green-100", budget=budget)


def test_overspent_category_gets_alert_and_negative_remaining():
    categories = [_food()]
    totals = {"Food": Decimal("450")}

    (row,) = evaluate_budgets(categories, totals)
    assert row.spent == Decimal("450")
    assert row.remaining == Decimal("-50")
    assert row.percentage == Decimal("100")
    assert row.status == "danger"

    (alert,) = budget_alerts(categories, totals, now=NOW)
    assert alert.message == "Overspent $50.00 on Food this month!"
    assert alert.id == f"1-{int(NOW.timestamp() * 1000)}"
    assert alert.date == NOW
    assert alert.resolved is False


def test_spending_exactly_at_budget_is_not_an_alert():
    assert budget_alerts([_food()], {"Food": Decimal("400")}, now=NOW) == ()


def test_categories_without_budget_are_skipped():
    categories = [_food(None), _food("0")]
    totals = {"Food": Decimal("999")}
    assert evaluate_budgets(categories, totals) == ()
    assert budget_alerts(categories, totals, now=NOW) == ()


def test_category_with_no_spending_reports_zero():
    (row,) = evaluate_budgets([_food()], {})
    assert row.spent == 0
    assert row.remaining == Decimal("400")
    assert row.percentage == 0
    assert row.status == "ok"


@pytest.mark.parametrize(
    "spent, expected",
    [
        ("200", "ok"),
        ("300", "ok"),
        ("320", "warning"),
        ("360", "warning"),
        ("380", "danger"),
    ],
)
def test_progress_status_thresholds(spent, expected):
    percentage = budget_percentage(Decimal(spent), Decimal("400"))
    assert progress_status(percentage) == expected


def test_budget_percentage_without_budget():
    assert budget_percentage(Decimal("10"), None) is None
    assert budget_percentage(Decimal("10"), Decimal("0")) is None
    assert budget_percentage(Decimal("-10"), Decimal("100")) == 0


def test_budget_functions_validate_input():
    with pytest.raises(LedgerInputError):
        evaluate_budgets("Food", {})
    with pytest.raises(LedgerInputError):
        budget_alerts([_food()], [("Food", 1)], now=NOW)


def test_pick_category_color_prefers_unused_hue():
    used = [f"bg-{base}-100 text-{base}-800" for base in COLOR_BASES if base != "teal"]
    assert pick_category_color(used, random.Random(3)) == "bg-teal-100 text-teal-800"


def test_pick_category_color_falls_back_when_all_used():
    used = [f"bg-{base}-100 text-{base}-800" for base in COLOR_BASES]
    color = pick_category_color(used, random.Random(7))
    assert color in used


def test_budget_results_are_tuples():
    rows = evaluate_budgets([_food()], {"Food": Decimal("450")})
    alerts = budget_alerts([_food()], {"Food": Decimal("450")}, now=NOW)
    assert isinstance(rows, tuple)
    assert isinstance(alerts, tuple)
