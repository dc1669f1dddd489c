from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import BigInteger, create_engine, func, select
from sqlalchemy.orm import Session

from database import Base
from models import Budget, Pot, PotTransaction, RecurringBill, Transaction, User
from schemas import (
    BudgetIn,
    SortSpec,
    TransactionFilters,
    TransactionIn,
    TransactionUpdate,
)
from services import (
    BudgetService,
    NotFoundError,
    Page,
    TransactionService,
    find_matching_budget,
)


def _user(session: Session, email: str = "ana@example.com") -> User:
    user = User(email=email, password_hash="x", name="Ana")
    session.add(user)
    session.commit()
    return user


def _linked_sum(session: Session, budget_id: str) -> int:
    return session.execute(
        select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
            Transaction.budget_id == budget_id
        )
    ).scalar_one()


def test_groceries_budget_tracks_create_update_delete() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        budgets = BudgetService(session, user.id)
        txns = TransactionService(session, user.id)

        budget = budgets.create(
            BudgetIn(
                category="Groceries",
                amount=Decimal("500"),
                period_start=date(2025, 3, 1),
                period_end=date(2025, 3, 31),
            )
        )
        assert budget.spent_cents == 0

        txn = txns.create(
            TransactionIn(
                amount=Decimal("50.25"),
                category="Groceries",
                description="Market",
                date=date(2025, 3, 10),
            )
        )
        assert txn.budget_id == budget.id
        session.refresh(budget)
        assert budget.spent_cents == 5025

        txns.update(txn.id, TransactionUpdate(amount=Decimal("70")))
        session.refresh(budget)
        assert budget.spent_cents == 7000
        assert _linked_sum(session, budget.id) == 7000

        txns.delete(txn.id)
        session.refresh(budget)
        assert budget.spent_cents == 0
        assert session.get(Transaction, txn.id) is None


def test_transaction_outside_period_is_unlinked() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        budget = BudgetService(session, user.id).create(
            BudgetIn(
                category="Groceries",
                amount=Decimal("100"),
                period_start=date(2025, 3, 1),
                period_end=date(2025, 3, 31),
            )
        )
        txn = TransactionService(session, user.id).create(
            TransactionIn(amount=Decimal("20"), category="Groceries", date=date(2025, 4, 1))
        )
        assert txn.budget_id is None
        session.refresh(budget)
        assert budget.spent_cents == 0


def test_changing_category_moves_amount_between_budgets() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        budgets = BudgetService(session, user.id)
        groceries = budgets.create(
            BudgetIn(
                category="Groceries",
                amount=Decimal("300"),
                period_start=date(2025, 3, 1),
                period_end=date(2025, 3, 31),
            )
        )
        dining = budgets.create(
            BudgetIn(
                category="Dining",
                amount=Decimal("200"),
                period_start=date(2025, 3, 1),
                period_end=date(2025, 3, 31),
            )
        )
        txns = TransactionService(session, user.id)
        txn = txns.create(
            TransactionIn(amount=Decimal("40"), category="Groceries", date=date(2025, 3, 5))
        )

        moved = txns.update(txn.id, TransactionUpdate(category="Dining", amount=Decimal("45")))
        assert moved.budget_id == dining.id
        session.refresh(groceries)
        session.refresh(dining)
        assert groceries.spent_cents == 0
        assert dining.spent_cents == 4500

        # Out of every budget window.
        txns.update(txn.id, TransactionUpdate(date=date(2025, 2, 20)))
        session.refresh(dining)
        assert dining.spent_cents == 0
        assert txns.get(txn.id).budget_id is None


def test_description_only_update_keeps_budget_untouched() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        budget = BudgetService(session, user.id).create(
            BudgetIn(
                category="Fuel",
                amount=Decimal("150"),
                period_start=date(2025, 5, 1),
                period_end=date(2025, 5, 31),
            )
        )
        txns = TransactionService(session, user.id)
        txn = txns.create(
            TransactionIn(amount=Decimal("60"), category="Fuel", date=date(2025, 5, 2))
        )
        updated = txns.update(txn.id, TransactionUpdate(description="Highway"))
        assert updated.description == "Highway"
        assert updated.budget_id == budget.id
        session.refresh(budget)
        assert budget.spent_cents == 6000


def test_newest_budget_wins_when_periods_overlap() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        older = Budget(
            user_id=user.id,
            category="Groceries",
            amount_cents=10_000,
            period_start=date(2025, 3, 1),
            period_end=date(2025, 3, 31),
            created_at=datetime(2025, 1, 1, 9, 0),
        )
        newer = Budget(
            user_id=user.id,
            category="Groceries",
            amount_cents=20_000,
            period_start=date(2025, 3, 15),
            period_end=date(2025, 4, 15),
            created_at=datetime(2025, 2, 1, 9, 0),
        )
        session.add_all([older, newer])
        session.commit()

        match = find_matching_budget(session, user.id, "Groceries", date(2025, 3, 20))
        assert match.id == newer.id
        match = find_matching_budget(session, user.id, "Groceries", date(2025, 3, 2))
        assert match.id == older.id

        txn = TransactionService(session, user.id).create(
            TransactionIn(amount=Decimal("12"), category="Groceries", date=date(2025, 3, 20))
        )
        assert txn.budget_id == newer.id


def test_other_users_transaction_is_not_found() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _user(session)
        intruder = _user(session, email="eve@example.com")
        txn = TransactionService(session, owner.id).create(
            TransactionIn(amount=Decimal("10"), category="Misc", date=date(2025, 1, 3))
        )

        other = TransactionService(session, intruder.id)
        with pytest.raises(NotFoundError, match="Transaction not found or unauthorized"):
            other.get(txn.id)
        with pytest.raises(NotFoundError):
            other.update(txn.id, TransactionUpdate(amount=Decimal("1")))
        with pytest.raises(NotFoundError):
            other.delete(txn.id)
        assert session.get(Transaction, txn.id).amount_cents == 1000


def test_list_filters_sorts_and_paginates() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        txns = TransactionService(session, user.id)
        for day, amount, category in [
            (1, "10", "Food"),
            (2, "30", "Food"),
            (3, "20", "Rent"),
            (4, "5", "Food"),
        ]:
            txns.create(
                TransactionIn(amount=Decimal(amount), category=category, date=date(2025, 2, day))
            )

        items, total = txns.list(page=Page.of(1, 2))
        assert total == 4
        assert [t.date.day for t in items] == [4, 3]

        items, total = txns.list(
            TransactionFilters(category="Food", start_date=date(2025, 2, 2)),
            SortSpec(field="amount", order="asc"),
        )
        assert total == 2
        assert [t.amount_cents for t in items] == [500, 3000]

        with pytest.raises(ValueError, match="Cannot sort by"):
            txns.list(sort=SortSpec(field="password"))


def test_cents_columns_hold_the_largest_accepted_amount() -> None:
    cents_columns = [
        Budget.__table__.c.amount_cents,
        Budget.__table__.c.spent_cents,
        Transaction.__table__.c.amount_cents,
        Pot.__table__.c.target_amount_cents,
        Pot.__table__.c.current_amount_cents,
        PotTransaction.__table__.c.amount_cents,
        RecurringBill.__table__.c.amount_cents,
    ]
    assert all(isinstance(col.type, BigInteger) for col in cents_columns)

    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        budget = BudgetService(session, user.id).create(
            BudgetIn(
                category="Property",
                amount=Decimal("9999999999.99"),
                period_start=date(2025, 3, 1),
                period_end=date(2025, 3, 31),
            )
        )
        txn = TransactionService(session, user.id).create(
            TransactionIn(
                amount=Decimal("9999999999.99"), category="Property", date=date(2025, 3, 2)
            )
        )
        assert txn.amount_cents == 999_999_999_999
        session.refresh(budget)
        assert budget.spent_cents == 999_999_999_999
