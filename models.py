from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from ledger import Recurrence


class AuditAction(str, Enum):
    create = "CREATE"
    update = "UPDATE"
    delete = "DELETE"
    reset = "RESET"
    delete_category = "DELETE_CATEGORY"


class AuditEntity(str, Enum):
    transaction = "TRANSACTION"
    category = "CATEGORY"
    budget = "BUDGET"
    all_transactions = "ALL_TRANSACTIONS"


def _values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


RECURRENCE_ENUM = SAEnum(Recurrence, name="recurrence", values_callable=_values)
AUDIT_ACTION_ENUM = SAEnum(AuditAction, name="auditaction", values_callable=_values)
AUDIT_ENTITY_ENUM = SAEnum(AuditEntity, name="auditentity", values_callable=_values)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(60), nullable=False)
    # NULL means no budget set; stored in cents like transaction amounts.
    budget_cents: Mapped[Optional[int]] = mapped_column(Integer)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="category", passive_deletes=True
    )

    __table_args__ = (Index("ix_categories_user_name", "user_id", "name"),)


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    merchant: Mapped[str] = mapped_column(String(200), nullable=False)
    # Signed: >= 0 is income, < 0 is an expense.
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )
    description: Mapped[Optional[str]] = mapped_column(Text)
    recurrence: Mapped[Recurrence] = mapped_column(
        RECURRENCE_ENUM, nullable=False, default=Recurrence.none
    )
    next_occurrence: Mapped[Optional[date]] = mapped_column(Date)

    category: Mapped[Optional["Category"]] = relationship(
        "Category", back_populates="transactions"
    )

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_category", "user_id", "category_id"),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    action: Mapped[AuditAction] = mapped_column(AUDIT_ACTION_ENUM, nullable=False)
    entity_type: Mapped[AuditEntity] = mapped_column(
        AUDIT_ENTITY_ENUM, nullable=False
    )
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    previous_state: Mapped[Optional[str]] = mapped_column(Text)
    new_state: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (Index("ix_audit_logs_user_timestamp", "user_id", "timestamp"),)
