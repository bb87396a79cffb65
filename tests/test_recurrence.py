from datetime import date
from decimal import Decimal

import pytest

from ledger import LedgerInputError, LedgerTransaction, Recurrence
from recurrence import add_months, days_in_month, expand_occurrences


def _txn(day: date, recurrence: Recurrence) -> LedgerTransaction:
    return LedgerTransaction(
        id="rent",
        date=day,
        merchant="Landlord",
        amount=Decimal("-1200.00"),
        category="Housing",
        recurrence=recurrence,
    )


def test_days_in_month_handles_leap_years():
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2023, 2) == 28
    assert days_in_month(2024, 12) == 31


def test_add_months_snaps_to_month_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


def test_monthly_expansion_keeps_month_end_anchor():
    occurrences = expand_occurrences(_txn(date(2024, 1, 31), Recurrence.monthly))
    assert [o.date for o in occurrences] == [
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
        date(2024, 6, 30),
        date(2024, 7, 31),
        date(2024, 8, 31),
        date(2024, 9, 30),
        date(2024, 10, 31),
        date(2024, 11, 30),
        date(2024, 12, 31),
        date(2025, 1, 31),
    ]


def test_expansion_ids_and_next_occurrence():
    occurrences = expand_occurrences(_txn(date(2024, 1, 1), Recurrence.weekly))
    assert len(occurrences) == 12
    assert [o.id for o in occurrences] == [f"rent-{i}" for i in range(1, 13)]
    assert occurrences[0].next_occurrence == occurrences[0].date
    assert all(o.next_occurrence is None for o in occurrences[1:])
    assert all(o.amount == Decimal("-1200.00") for o in occurrences)
    assert all(o.recurrence == Recurrence.weekly for o in occurrences)


@pytest.mark.parametrize(
    "recurrence, first, last",
    [
        (Recurrence.daily, date(2025, 1, 1), date(2025, 1, 12)),
        (Recurrence.weekly, date(2025, 1, 7), date(2025, 3, 25)),
        (Recurrence.yearly, date(2025, 12, 31), date(2036, 12, 31)),
    ],
)
def test_step_rules(recurrence, first, last):
    occurrences = expand_occurrences(_txn(date(2024, 12, 31), recurrence))
    assert occurrences[0].date == first
    assert occurrences[-1].date == last
    dates = [o.date for o in occurrences]
    assert dates == sorted(set(dates))


def test_yearly_from_leap_day_clamps_to_feb_28():
    occurrences = expand_occurrences(_txn(date(2024, 2, 29), Recurrence.yearly))
    assert occurrences[0].date == date(2025, 2, 28)
    assert occurrences[3].date == date(2028, 2, 29)


def test_expansion_is_deterministic_and_leaves_input_alone():
    original = _txn(date(2024, 3, 15), Recurrence.monthly)
    assert expand_occurrences(original) == expand_occurrences(original)
    assert isinstance(expand_occurrences(original), tuple)
    assert original.id == "rent"
    assert original.next_occurrence is None


def test_non_recurring_transaction_is_rejected():
    with pytest.raises(LedgerInputError):
        expand_occurrences(_txn(date(2024, 1, 1), Recurrence.none))
