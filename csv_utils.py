import csv
import re
from io import StringIO
from typing import Sequence

from ledger import UNCATEGORIZED, LedgerTransaction, MonthlyReport
from reports import coerce_number


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def _money(value: object) -> str:
    return f"{coerce_number(value):.2f}"


def _transaction_row(txn: LedgerTransaction) -> list[str]:
    return [
        txn.date.isoformat(),
        sanitize_csv_value(txn.merchant),
        _money(txn.amount),
        sanitize_csv_value(txn.category or UNCATEGORIZED),
        sanitize_csv_value(txn.description or ""),
        "Expense" if txn.is_expense else "Income",
    ]


TRANSACTION_HEADER = ["Date", "Merchant", "Amount", "Category", "Description", "Type"]


def export_transactions(transactions: Sequence[LedgerTransaction]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(TRANSACTION_HEADER)
    for txn in transactions:
        writer.writerow(_transaction_row(txn))
    return output.getvalue()


def export_monthly_report(report: MonthlyReport) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["Period", sanitize_csv_value(report.period)])
    writer.writerow(["Start", report.start_date.isoformat()])
    writer.writerow(["End", report.end_date.isoformat()])
    writer.writerow(["Income", _money(report.income)])
    writer.writerow(["Expenses", _money(report.expenses)])
    writer.writerow(["Net", _money(report.net)])
    writer.writerow([])
    writer.writerow(["Category", "Budget", "Spent"])
    for name, breakdown in report.categories.items():
        writer.writerow(
            [
                sanitize_csv_value(name),
                _money(breakdown.budget),
                _money(breakdown.spent),
            ]
        )
    writer.writerow([])
    writer.writerow(TRANSACTION_HEADER)
    for txn in report.transactions:
        writer.writerow(_transaction_row(txn))
    return output.getvalue()
