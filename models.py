import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class PotTransactionType(str, Enum):
    deposit = "deposit"
    withdraw = "withdraw"


class BillStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    overdue = "overdue"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Derived: sum of amount_cents over transactions whose budget_id is this row.
    spent_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="budget"
    )

    __table_args__ = (
        Index("ix_budgets_user_category_period", "user_id", "category", "period_start"),
        CheckConstraint("amount_cents > 0", name="ck_budget_amount_positive"),
        CheckConstraint("period_end > period_start", name="ck_budget_period_order"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    date: Mapped[date] = mapped_column(Date, nullable=False)
    budget_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("budgets.id", ondelete="SET NULL")
    )

    budget: Mapped[Optional["Budget"]] = relationship(
        "Budget", back_populates="transactions"
    )

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_category_date", "user_id", "category", "date"),
        Index("ix_transactions_budget", "budget_id"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )


class Pot(Base, TimestampMixin):
    __tablename__ = "pots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    target_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_amount_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    ledger: Mapped[list["PotTransaction"]] = relationship(
        "PotTransaction",
        back_populates="pot",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_pots_user", "user_id"),
        CheckConstraint("target_amount_cents > 0", name="ck_pot_target_positive"),
        CheckConstraint("current_amount_cents >= 0", name="ck_pot_current_non_negative"),
    )

    @property
    def progress(self) -> float:
        return self.current_amount_cents / self.target_amount_cents * 100


class PotTransaction(Base):
    __tablename__ = "pot_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    pot_id: Mapped[str] = mapped_column(
        ForeignKey("pots.id", ondelete="CASCADE"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[PotTransactionType] = mapped_column(
        SAEnum(PotTransactionType), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    pot: Mapped["Pot"] = relationship("Pot", back_populates="ledger")

    __table_args__ = (Index("ix_pot_transactions_pot_created", "pot_id", "created_at"),)


class RecurringBill(Base, TimestampMixin):
    __tablename__ = "recurring_bills"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[BillStatus] = mapped_column(
        SAEnum(BillStatus), nullable=False, default=BillStatus.pending
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        Index("ix_recurring_bills_user_due", "user_id", "due_date"),
        Index("ix_recurring_bills_status_due", "status", "due_date"),
        CheckConstraint("amount_cents > 0", name="ck_bill_amount_positive"),
    )
