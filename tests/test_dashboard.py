from datetime import date
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import BillStatus, User
from schemas import BudgetIn, PotIn, RecurringBillIn, TransactionIn
from services import (
    BudgetService,
    MetricsService,
    PotService,
    RecurringBillService,
    TransactionService,
)


def test_dashboard_summarises_current_month() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    today = date(2025, 3, 15)
    with Session(engine) as session:
        user = User(email="max@example.com", password_hash="x", name="Max")
        session.add(user)
        session.commit()

        BudgetService(session, user.id).create(
            BudgetIn(
                category="Groceries",
                amount=Decimal("100"),
                period_start=date(2025, 3, 1),
                period_end=date(2025, 3, 31),
            )
        )
        BudgetService(session, user.id).create(
            BudgetIn(
                category="Dining",
                amount=Decimal("100"),
                period_start=date(2025, 3, 1),
                period_end=date(2025, 3, 31),
            )
        )
        txns = TransactionService(session, user.id)
        txns.create(TransactionIn(amount=Decimal("3000"), category="Income", date=date(2025, 3, 1)))
        txns.create(TransactionIn(amount=Decimal("120.50"), category="Groceries", date=date(2025, 3, 5)))
        txns.create(TransactionIn(amount=Decimal("1000"), category="Rent", date=date(2025, 2, 28)))

        pots = PotService(session, user.id)
        pots.create(PotIn(name="Savings", target_amount=Decimal("1000"), current_amount=Decimal("200")))
        pots.create(PotIn(name="Trip", target_amount=Decimal("500")))

        bills = RecurringBillService(session, user.id)
        bills.create(
            RecurringBillIn(
                name="Power",
                amount=Decimal("60"),
                due_date=date(2025, 3, 10),
                status=BillStatus.overdue,
                category="Utilities",
            )
        )
        bills.create(
            RecurringBillIn(
                name="Water",
                amount=Decimal("25"),
                due_date=date(2025, 3, 18),
                category="Utilities",
            )
        )

        metrics = MetricsService(session, user.id).dashboard(today)

    assert metrics["period_start"] == date(2025, 3, 1)
    assert metrics["period_end"] == date(2025, 3, 31)
    assert metrics["income_cents"] == 300_000
    assert metrics["expenses_cents"] == 12_050
    assert metrics["cash_flow_cents"] == 287_950
    assert metrics["savings_current_cents"] == 20_000
    assert metrics["savings_target_cents"] == 150_000
    assert metrics["budget_count"] == 2
    assert metrics["budgets_over_limit"] == 1
    assert metrics["upcoming_bills"] == {"count": 1, "amount_cents": 2_500}
    assert metrics["overdue_bills"] == {"count": 1, "amount_cents": 6_000}
