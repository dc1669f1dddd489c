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


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("spent_cents", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_budget_amount_positive"),
        sa.CheckConstraint("period_end > period_start", name="ck_budget_period_order"),
    )
    op.create_index(
        "ix_budgets_user_category_period",
        "budgets",
        ["user_id", "category", "period_start"],
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "budget_id",
            sa.String(length=36),
            sa.ForeignKey("budgets.id", ondelete="SET NULL"),
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_category_date",
        "transactions",
        ["user_id", "category", "date"],
    )
    op.create_index("ix_transactions_budget", "transactions", ["budget_id"])

    op.create_table(
        "pots",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("target_amount_cents", sa.BigInteger(), nullable=False),
        sa.Column(
            "current_amount_cents", sa.BigInteger(), nullable=False, server_default="0"
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("target_amount_cents > 0", name="ck_pot_target_positive"),
        sa.CheckConstraint(
            "current_amount_cents >= 0", name="ck_pot_current_non_negative"
        ),
    )
    op.create_index("ix_pots_user", "pots", ["user_id"])

    op.create_table(
        "pot_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "pot_id",
            sa.String(length=36),
            sa.ForeignKey("pots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("deposit", "withdraw", name="pottransactiontype"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_pot_transactions_pot_created", "pot_transactions", ["pot_id", "created_at"]
    )

    op.create_table(
        "recurring_bills",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "paid", "overdue", name="billstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_bill_amount_positive"),
    )
    op.create_index(
        "ix_recurring_bills_user_due", "recurring_bills", ["user_id", "due_date"]
    )
    op.create_index(
        "ix_recurring_bills_status_due", "recurring_bills", ["status", "due_date"]
    )


def downgrade():
    op.drop_index("ix_recurring_bills_status_due", table_name="recurring_bills")
    op.drop_index("ix_recurring_bills_user_due", table_name="recurring_bills")
    op.drop_table("recurring_bills")
    op.drop_index("ix_pot_transactions_pot_created", table_name="pot_transactions")
    op.drop_table("pot_transactions")
    op.drop_index("ix_pots_user", table_name="pots")
    op.drop_table("pots")
    op.drop_index("ix_transactions_budget", table_name="transactions")
    op.drop_index("ix_transactions_user_category_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_budgets_user_category_period", table_name="budgets")
    op.drop_table("budgets")
    op.drop_table("users")
