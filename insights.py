"""Rule-based insights over a ledger snapshot.

The battery is a fixed, ordered table of ``InsightRule`` entries. Each
rule pairs a predicate with a message renderer and both receive the full
``(transactions, categories)`` snapshot. ``evaluate_insights`` runs every
rule in order and emits one insight per rule whose predicate holds; adding
a rule means adding a table entry, the loop stays the same.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from ledger import (
    ZERO,
    InsightType,
    LedgerCategory,
    LedgerInputError,
    LedgerTransaction,
    RuleBasedInsight,
    ensure_categories,
    ensure_transactions,
    format_currency,
)
from metrics import ADVISOR_TOP_LIMIT, QUESTION_TOP_LIMIT, Metrics, top_categories

HIGH_SPENDING_THRESHOLD = Decimal("500")
DISCRETIONARY_THRESHOLD = Decimal("300")
RECURRING_MERCHANT_MIN_COUNT = 3
DISCRETIONARY_CATEGORIES = ("Dining", "Entertainment", "Shopping")

Transactions = tuple[LedgerTransaction, ...]
Categories = tuple[LedgerCategory, ...]


@dataclass(frozen=True)
class InsightRule:
    id: str
    name: str
    description: str
    type: InsightType
    condition: Callable[[Transactions, Categories], bool]
    generate_message: Callable[[Transactions, Categories], str]


def category_spending(transactions: Transactions) -> dict[str, Decimal]:
    # Only categorized expenses count here.
    spending: dict[str, Decimal] = {}
    for txn in transactions:
        if txn.is_expense and txn.category:
            spending[txn.category] = spending.get(txn.category, ZERO) - txn.amount
    return spending


def merchant_expense_counts(transactions: Transactions) -> dict[str, int]:
    counts: dict[str, int] = {}
    for txn in transactions:
        if txn.is_expense:
            counts[txn.merchant] = counts.get(txn.merchant, 0) + 1
    return counts


def income_and_expenses(transactions: Transactions) -> tuple[Decimal, Decimal]:
    income = sum((txn.amount for txn in transactions if txn.amount > 0), ZERO)
    expenses = sum((-txn.amount for txn in transactions if txn.amount < 0), ZERO)
    return income, expenses


def _high_spending(transactions: Transactions) -> list[tuple[str, Decimal]]:
    return [
        (name, amount)
        for name, amount in category_spending(transactions).items()
        if amount > HIGH_SPENDING_THRESHOLD
    ]


def _exceeded_budgets(
    transactions: Transactions, categories: Categories
) -> list[tuple[LedgerCategory, Decimal]]:
    spending = category_spending(transactions)
    exceeded = []
    for category in categories:
        if not category.has_budget:
            continue
        spent = spending.get(category.name, ZERO)
        if spent > category.budget:
            exceeded.append((category, spent))
    return exceeded


def _recurring_merchants(transactions: Transactions) -> list[tuple[str, int]]:
    return [
        (merchant, count)
        for merchant, count in merchant_expense_counts(transactions).items()
        if count >= RECURRING_MERCHANT_MIN_COUNT
    ]


def _discretionary_spending(transactions: Transactions) -> list[tuple[str, Decimal]]:
    return [
        (name, amount)
        for name, amount in category_spending(transactions).items()
        if name in DISCRETIONARY_CATEGORIES and amount > DISCRETIONARY_THRESHOLD
    ]


def _amount_list(items: list[tuple[str, Decimal]]) -> str:
    return ", ".join(f"{name} ({format_currency(amount)})" for name, amount in items)


def _high_spending_message(transactions: Transactions, _categories: Categories) -> str:
    listed = _amount_list(_high_spending(transactions))
    return (
        f"High spending detected in: {listed}. Consider reviewing these categories."
    )


def _budget_exceeded_message(transactions: Transactions, categories: Categories) -> str:
    listed = ", ".join(
        f"{category.name} ({format_currency(spent)} / "
        f"{format_currency(category.budget)})"
        for category, spent in _exceeded_budgets(transactions, categories)
    )
    return (
        f"Budget exceeded in: {listed}. "
        "Consider adjusting your spending or budget."
    )


def _recurring_message(transactions: Transactions, _categories: Categories) -> str:
    listed = ", ".join(
        f"{merchant} ({count} transactions)"
        for merchant, count in _recurring_merchants(transactions)
    )
    return (
        f"Potential recurring expenses detected: {listed}. "
        "Consider setting up a budget for these."
    )


def _savings_message(transactions: Transactions, _categories: Categories) -> str:
    listed = _amount_list(_discretionary_spending(transactions))
    return (
        "Savings opportunity: High spending in discretionary categories: "
        f"{listed}. Consider reducing these expenses."
    )


def _positive_flow(transactions: Transactions) -> bool:
    income, expenses = income_and_expenses(transactions)
    return income > expenses


def _positive_flow_message(transactions: Transactions, _categories: Categories) -> str:
    income, expenses = income_and_expenses(transactions)
    net = format_currency(income - expenses)
    return f"Great job! You have a positive net cash flow of {net} this month."


INSIGHT_RULES: tuple[InsightRule, ...] = (
    InsightRule(
        id="high-spending-category",
        name="High Spending in Category",
        description="Warn when spending in a category exceeds a threshold",
        type=InsightType.warning,
        condition=lambda txns, _cats: bool(_high_spending(txns)),
        generate_message=_high_spending_message,
    ),
    InsightRule(
        id="budget-exceeded",
        name="Budget Exceeded",
        description="Alert when spending exceeds budget in any category",
        type=InsightType.warning,
        condition=lambda txns, cats: bool(_exceeded_budgets(txns, cats)),
        generate_message=_budget_exceeded_message,
    ),
    InsightRule(
        id="recurring-expense-detected",
        name="Recurring Expense Detected",
        description="Identify potential recurring expenses",
        type=InsightType.info,
        condition=lambda txns, _cats: bool(_recurring_merchants(txns)),
        generate_message=_recurring_message,
    ),
    InsightRule(
        id="savings-opportunity",
        name="Savings Opportunity",
        description="Identify areas where you can save money",
        type=InsightType.info,
        condition=lambda txns, _cats: bool(_discretionary_spending(txns)),
        generate_message=_savings_message,
    ),
    InsightRule(
        id="positive-net-flow",
        name="Positive Cash Flow",
        description="Celebrate positive net cash flow",
        type=InsightType.success,
        condition=lambda txns, _cats: _positive_flow(txns),
        generate_message=_positive_flow_message,
    ),
)


def evaluate_insights(
    transactions: list[LedgerTransaction],
    categories: list[LedgerCategory],
    *,
    rules: tuple[InsightRule, ...] = INSIGHT_RULES,
    now: Optional[datetime] = None,
) -> tuple[RuleBasedInsight, ...]:
    txns = ensure_transactions(transactions)
    cats = ensure_categories(categories)
    if now is None:
        from periods import local_now

        now = local_now()

    insights: list[RuleBasedInsight] = []
    for rule in rules:
        if not rule.condition(txns, cats):
            continue
        insights.append(
            RuleBasedInsight(
                id=rule.id,
                title=rule.name,
                message=rule.generate_message(txns, cats),
                type=rule.type,
                date=now,
            )
        )
    return tuple(insights)


def build_advisor_prompt(metrics: Metrics, transaction_count: int) -> str:
    """Prompt text summarising the ledger for an external advisor model."""
    sign = "+" if metrics.net >= 0 else ""
    lines = [
        "You are a financial advisor analyzing this budget data:",
        f"- Total Income: ${metrics.income:.2f}",
        f"- Total Expenses: ${metrics.expenses:.2f}",
        f"- Net Savings: ${sign}{metrics.net:.2f}",
        "- Top Spending Categories: ",
    ]
    top = top_categories(metrics.category_totals, ADVISOR_TOP_LIMIT)
    for idx, item in enumerate(top, start=1):
        lines.append(f"  {idx}. {item.name}: ${item.amount:.2f}")
    lines.append(f"- Transactions Analyzed: {transaction_count}")
    lines.append("")
    lines.append("Provide 3-5 concise insights and recommendations based on this data.")
    lines.append("Focus on savings opportunities and spending patterns.")
    lines.append("Use simple, actionable language. Max 200 words.")
    return "\n".join(lines)


def build_question_messages(
    metrics: Metrics, transaction_count: int, question: str
) -> list[dict[str, str]]:
    """Chat messages that let an external model answer ``question``."""
    if not isinstance(question, str) or not question.strip():
        raise LedgerInputError("Invalid question")
    top = top_categories(metrics.category_totals, QUESTION_TOP_LIMIT)
    context = "\n".join(
        [
            "You are a financial assistant. Use this context to answer questions:",
            f"- Total Income: ${metrics.income:.2f}",
            f"- Total Expenses: ${metrics.expenses:.2f}",
            f"- Net Savings: ${metrics.net:.2f}",
            f"- Top Spending Categories: {', '.join(item.name for item in top)}",
            f"- Transactions Analyzed: {transaction_count}",
        ]
    )
    return [
        {"role": "system", "content": context},
        {"role": "user", "content": question.strip()},
    ]
