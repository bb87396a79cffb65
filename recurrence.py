from dataclasses import replace
from datetime import date, timedelta

from ledger import LedgerInputError, LedgerTransaction, Recurrence

OCCURRENCE_COUNT = 12


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def add_months(base: date, months: int) -> date:
    """Shift ``base`` by whole calendar months, snapping to the month end.

    Jan 31 + 1 month is Feb 28/29, never Mar 2/3.
    """
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return date(year, month, day)


def occurrence_date(start: date, recurrence: Recurrence, index: int) -> date:
    if recurrence == Recurrence.daily:
        return start + timedelta(days=index)
    if recurrence == Recurrence.weekly:
        return start + timedelta(weeks=index)
    if recurrence == Recurrence.monthly:
        return add_months(start, index)
    if recurrence == Recurrence.yearly:
        return add_months(start, 12 * index)
    raise LedgerInputError(
        f"Cannot expand a transaction with recurrence '{recurrence.value}'"
    )


def expand_occurrences(
    txn: LedgerTransaction, count: int = OCCURRENCE_COUNT
) -> tuple[LedgerTransaction, ...]:
    """Materialize the future copies of a recurring transaction.

    Occurrence ``i`` (1-based) is always computed from the original date, so
    a month-end anchor keeps coming back (Jan 31, Feb 29, Mar 31, ...). The
    original itself is not part of the result.
    """
    if not isinstance(txn, LedgerTransaction):
        raise LedgerInputError("txn must be a LedgerTransaction")
    if txn.recurrence == Recurrence.none:
        raise LedgerInputError("Transaction is not recurring")

    occurrences: list[LedgerTransaction] = []
    for index in range(1, count + 1):
        when = occurrence_date(txn.date, txn.recurrence, index)
        occurrences.append(
            replace(
                txn,
                id=f"{txn.id}-{index}",
                date=when,
                next_occurrence=when if index == 1 else None,
            )
        )
    return tuple(occurrences)
