"""initial schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


RECURRENCE = sa.Enum(
    "none", "daily", "weekly", "monthly", "yearly", name="recurrence"
)
AUDIT_ACTION = sa.Enum(
    "CREATE", "UPDATE", "DELETE", "RESET", "DELETE_CATEGORY", name="auditaction"
)
AUDIT_ENTITY = sa.Enum(
    "TRANSACTION", "CATEGORY", "BUDGET", "ALL_TRANSACTIONS", name="auditentity"
)


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("color", sa.String(length=60), nullable=False),
        sa.Column("budget_cents", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_categories_user_name", "categories", ["user_id", "name"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("merchant", sa.String(length=200), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
        ),
        sa.Column("description", sa.Text()),
        sa.Column(
            "recurrence", RECURRENCE, nullable=False, server_default="none"
        ),
        sa.Column("next_occurrence", sa.Date()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_category", "transactions", ["user_id", "category_id"]
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("action", AUDIT_ACTION, nullable=False),
        sa.Column("entity_type", AUDIT_ENTITY, nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("previous_state", sa.Text()),
        sa.Column("new_state", sa.Text()),
    )
    op.create_index(
        "ix_audit_logs_user_timestamp", "audit_logs", ["user_id", "timestamp"]
    )


def downgrade():
    op.drop_index("ix_audit_logs_user_timestamp", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_transactions_user_category", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_categories_user_name", table_name="categories")
    op.drop_table("categories")
