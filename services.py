from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, joinedload

from budgets import (
    BudgetStatus,
    budget_alerts,
    evaluate_budgets,
    pick_category_color,
)
from csv_utils import export_monthly_report, export_transactions
from insights import (
    build_advisor_prompt,
    build_question_messages,
    evaluate_insights,
)
from ledger import (
    BudgetAlert,
    LedgerCategory,
    LedgerTransaction,
    MonthlyReport,
    Recurrence,
    RuleBasedInsight,
    cents_to_decimal,
    decimal_to_cents,
)
from metrics import (
    DASHBOARD_TOP_LIMIT,
    CategoryAmount,
    Metrics,
    aggregate,
    savings_rate,
    top_categories,
)
from models import AuditAction, AuditEntity, AuditLog, Category, Transaction
from periods import Period, local_now, local_today, month_bounds
from recurrence import expand_occurrences
from reports import build_monthly_report
from schemas import CategoryIn, CategoryUpdate, TransactionIn, TransactionUpdate

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = (
    ("Housing", "bg-blue-100 text-blue-800"),
    ("Food", "bg-green-100 text-green-800"),
    ("Transportation", "bg-yellow-100 text-yellow-800"),
    ("Entertainment", "bg-purple-100 text-purple-800"),
    ("Utilities", "bg-red-100 text-red-800"),
    ("Healthcare", "bg-pink-100 text-pink-800"),
    ("Income", "bg-emerald-100 text-emerald-800"),
)


class NotFoundError(ValueError):
    pass


class DuplicateCategoryError(ValueError):
    pass


def get_current_user_id() -> int:
    return 1


def to_ledger_transaction(txn: Transaction) -> LedgerTransaction:
    return LedgerTransaction(
        id=txn.id,
        date=txn.date,
        merchant=txn.merchant,
        amount=cents_to_decimal(txn.amount_cents),
        category=txn.category.name if txn.category else None,
        description=txn.description,
        recurrence=txn.recurrence,
        next_occurrence=txn.next_occurrence,
    )


def to_ledger_category(category: Category) -> LedgerCategory:
    budget = (
        cents_to_decimal(category.budget_cents)
        if category.budget_cents is not None
        else None
    )
    return LedgerCategory(
        id=str(category.id),
        name=category.name,
        color=category.color,
        budget=budget,
    )


def _transaction_state(txn: Transaction) -> dict[str, object]:
    return {
        "date": txn.date.isoformat(),
        "merchant": txn.merchant,
        "amount_cents": txn.amount_cents,
        "category_id": txn.category_id,
        "description": txn.description,
        "recurrence": txn.recurrence.value,
        "next_occurrence": (
            txn.next_occurrence.isoformat() if txn.next_occurrence else None
        ),
    }


def _category_state(category: Category) -> dict[str, object]:
    return {
        "name": category.name,
        "color": category.color,
        "budget_cents": category.budget_cents,
    }


class AuditLogService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def record(
        self,
        action: AuditAction,
        entity_type: AuditEntity,
        entity_id: str,
        *,
        previous: Optional[dict[str, object]] = None,
        new: Optional[dict[str, object]] = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=self.user_id,
            timestamp=datetime.utcnow(),
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            previous_state=json.dumps(previous) if previous is not None else None,
            new_state=json.dumps(new) if new is not None else None,
        )
        self.session.add(entry)
        return entry

    def list(self, limit: int = 100) -> list[AuditLog]:
        stmt = (
            select(AuditLog)
            .where(AuditLog.user_id == self.user_id)
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())


class CategoryService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.audit = AuditLogService(session, self.user_id)

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.id)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        return category

    def _ensure_unique(self, name: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(Category.id).where(
            Category.user_id == self.user_id,
            func.lower(Category.name) == name.strip().lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if self.session.scalar(stmt) is not None:
            raise DuplicateCategoryError("Category with this name already exists")

    def create(self, data: CategoryIn) -> Category:
        self._ensure_unique(data.name)
        color = data.color
        if not color:
            color = pick_category_color([c.color for c in self.list_all()])
        category = Category(
            user_id=self.user_id,
            name=data.name.strip(),
            color=color,
            budget_cents=(
                decimal_to_cents(data.budget) if data.budget is not None else None
            ),
        )
        self.session.add(category)
        self.session.flush()
        self.audit.record(
            AuditAction.create,
            AuditEntity.category,
            str(category.id),
            new=_category_state(category),
        )
        self.session.commit()
        self.session.refresh(category)
        logger.info(f"category_created: id={category.id} name={category.name!r}")
        return category

    def update(self, category_id: int, data: CategoryUpdate) -> Category:
        category = self.get(category_id)
        changes = data.model_dump(exclude_unset=True)
        previous = _category_state(category)

        if "name" in changes and changes["name"] is not None:
            self._ensure_unique(changes["name"], exclude_id=category.id)
            category.name = changes["name"].strip()
        if changes.get("color"):
            category.color = changes["color"]
        budget_changed = False
        if "budget" in changes:
            budget = changes["budget"]
            new_cents = decimal_to_cents(budget) if budget is not None else None
            budget_changed = new_cents != category.budget_cents
            category.budget_cents = new_cents

        self.audit.record(
            AuditAction.update,
            AuditEntity.budget if budget_changed else AuditEntity.category,
            str(category.id),
            previous=previous,
            new=_category_state(category),
        )
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        previous = _category_state(category)
        self.session.execute(
            update(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.category_id == category.id,
            )
            .values(category_id=None)
        )
        self.session.delete(category)
        self.audit.record(
            AuditAction.delete_category,
            AuditEntity.category,
            str(category_id),
            previous=previous,
        )
        self.session.commit()
        logger.info(f"category_deleted: id={category_id}")

    def seed_defaults(self) -> list[Category]:
        if self.list_all():
            return []
        created = []
        for name, color in DEFAULT_CATEGORIES:
            category = Category(user_id=self.user_id, name=name, color=color)
            self.session.add(category)
            created.append(category)
        self.session.commit()
        logger.info(f"categories_seeded: user_id={self.user_id} count={len(created)}")
        return created


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.audit = AuditLogService(session, self.user_id)

    def list(self, period: Optional[Period] = None) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id)
        )
        if period is not None and period.slug != "all":
            stmt = stmt.where(Transaction.date.between(period.start, period.end))
        return list(self.session.scalars(stmt).all())

    def get(self, transaction_id: str) -> Transaction:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id,
                Transaction.id == transaction_id,
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def _check_category(self, category_id: Optional[int]) -> Optional[Category]:
        if category_id is None:
            return None
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise ValueError("Category not found")
        return category

    def create(self, data: TransactionIn) -> list[Transaction]:
        """Store a transaction; a recurring one also gets its future copies.

        Returns the stored rows, the original first.
        """
        category = self._check_category(data.category_id)
        txn_id = data.id or uuid.uuid4().hex
        if self.session.get(Transaction, txn_id) is not None:
            raise ValueError("Transaction with this id already exists")

        ledger_txn = LedgerTransaction(
            id=txn_id,
            date=data.date,
            merchant=data.merchant.strip(),
            amount=data.amount,
            category=category.name if category else None,
            description=data.description,
            recurrence=data.recurrence,
        )
        occurrences: tuple[LedgerTransaction, ...] = ()
        if ledger_txn.recurrence != Recurrence.none:
            occurrences = expand_occurrences(ledger_txn)

        rows = [self._row(ledger_txn, category, occurrences)]
        rows.extend(self._row(occ, category) for occ in occurrences)
        occurrence_ids = [row.id for row in rows[1:]]
        clashing = []
        if occurrence_ids:
            clashing = self.session.scalars(
                select(Transaction.id).where(Transaction.id.in_(occurrence_ids))
            ).all()
        if clashing:
            raise ValueError(f"Transaction ids already exist: {', '.join(clashing)}")

        self.session.add_all(rows)
        self.audit.record(
            AuditAction.create,
            AuditEntity.transaction,
            txn_id,
            new=_transaction_state(rows[0]),
        )
        self.session.commit()
        logger.info(
            f"transaction_created: id={txn_id} occurrences={len(occurrences)}"
        )
        return [self.get(row.id) for row in rows]

    def _row(
        self,
        txn: LedgerTransaction,
        category: Optional[Category],
        occurrences: tuple[LedgerTransaction, ...] = (),
    ) -> Transaction:
        next_occurrence = txn.next_occurrence
        if occurrences:
            next_occurrence = occurrences[0].date
        return Transaction(
            id=txn.id,
            user_id=self.user_id,
            date=txn.date,
            merchant=txn.merchant,
            amount_cents=decimal_to_cents(txn.amount),
            category_id=category.id if category else None,
            description=txn.description,
            recurrence=txn.recurrence,
            next_occurrence=next_occurrence,
        )

    def update(self, transaction_id: str, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        previous = _transaction_state(txn)
        changes = data.model_dump(exclude_unset=True)
        recurrence = changes.get("recurrence")
        # Occurrences are only materialized at creation.
        if recurrence not in (None, Recurrence.none, txn.recurrence):
            raise ValueError(
                "Recurrence can only be cleared; create a new recurring "
                "transaction instead"
            )

        if "category_id" in changes:
            self._check_category(changes["category_id"])
            txn.category_id = changes["category_id"]
        if changes.get("date") is not None:
            txn.date = changes["date"]
        if changes.get("merchant") is not None:
            txn.merchant = changes["merchant"].strip()
        if changes.get("amount") is not None:
            txn.amount_cents = decimal_to_cents(changes["amount"])
        if "description" in changes:
            txn.description = changes["description"]
        if recurrence == Recurrence.none:
            txn.recurrence = Recurrence.none
            txn.next_occurrence = None

        self.audit.record(
            AuditAction.update,
            AuditEntity.transaction,
            txn.id,
            previous=previous,
            new=_transaction_state(txn),
        )
        self.session.commit()
        self.session.expire(txn)
        return self.get(transaction_id)

    def delete(self, transaction_id: str) -> None:
        txn = self.get(transaction_id)
        previous = _transaction_state(txn)
        self.session.delete(txn)
        self.audit.record(
            AuditAction.delete,
            AuditEntity.transaction,
            transaction_id,
            previous=previous,
        )
        self.session.commit()
        logger.info(f"transaction_deleted: id={transaction_id}")

    def delete_all(self) -> int:
        result = self.session.execute(
            delete(Transaction).where(Transaction.user_id == self.user_id)
        )
        self.audit.record(AuditAction.reset, AuditEntity.all_transactions, "RESET")
        self.session.commit()
        count = result.rowcount or 0
        logger.info(f"transactions_reset: user_id={self.user_id} deleted={count}")
        return count


@dataclass(frozen=True)
class Summary:
    metrics: Metrics
    top_categories: tuple[CategoryAmount, ...]
    savings_rate: Decimal
    transaction_count: int


@dataclass(frozen=True)
class BudgetOverview:
    period: Period
    progress: tuple[BudgetStatus, ...]
    alerts: tuple[BudgetAlert, ...]


class AnalyticsService:
    """Runs the analytics functions over a fresh snapshot of a user's ledger."""

    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def snapshot(self) -> tuple[list[LedgerTransaction], list[LedgerCategory]]:
        transactions = TransactionService(self.session, self.user_id).list()
        categories = CategoryService(self.session, self.user_id).list_all()
        return (
            [to_ledger_transaction(txn) for txn in transactions],
            [to_ledger_category(cat) for cat in categories],
        )

    @staticmethod
    def _in_period(
        transactions: list[LedgerTransaction], period: Period
    ) -> list[LedgerTransaction]:
        if period.slug == "all":
            return transactions
        return [txn for txn in transactions if period.contains(txn.date)]

    def summary(self, period: Period, limit: int = DASHBOARD_TOP_LIMIT) -> Summary:
        transactions, _categories = self.snapshot()
        transactions = self._in_period(transactions, period)
        metrics = aggregate(transactions)
        return Summary(
            metrics=metrics,
            top_categories=top_categories(metrics.category_totals, limit),
            savings_rate=savings_rate(metrics),
            transaction_count=len(transactions),
        )

    def budget_overview(
        self, today: Optional[date] = None, now: Optional[datetime] = None
    ) -> BudgetOverview:
        today = today or local_today()
        start, end = month_bounds(today)
        transactions, categories = self.snapshot()
        totals = aggregate(transactions, start, end).category_totals
        alerts = budget_alerts(categories, totals, now=now or local_now())
        if alerts:
            logger.info(
                f"budget_alerts: user_id={self.user_id} month={start:%Y-%m} "
                f"count={len(alerts)}"
            )
        return BudgetOverview(
            period=Period("this_month", start, end),
            progress=evaluate_budgets(categories, totals),
            alerts=alerts,
        )

    def insights(
        self, period: Period, now: Optional[datetime] = None
    ) -> tuple[RuleBasedInsight, ...]:
        transactions, categories = self.snapshot()
        return evaluate_insights(
            self._in_period(transactions, period), categories, now=now
        )

    def monthly_report(self, start: date, end: date) -> MonthlyReport:
        transactions, categories = self.snapshot()
        return build_monthly_report(transactions, categories, start, end)

    def monthly_report_csv(self, start: date, end: date) -> str:
        return export_monthly_report(self.monthly_report(start, end))

    def transactions_csv(self, period: Period) -> str:
        transactions, _categories = self.snapshot()
        return export_transactions(self._in_period(transactions, period))

    def advisor_prompt(self, period: Period) -> str:
        transactions, _categories = self.snapshot()
        transactions = self._in_period(transactions, period)
        return build_advisor_prompt(aggregate(transactions), len(transactions))

    def question_messages(self, period: Period, question: str) -> list[dict[str, str]]:
        transactions, _categories = self.snapshot()
        transactions = self._in_period(transactions, period)
        return build_question_messages(
            aggregate(transactions), len(transactions), question
        )
