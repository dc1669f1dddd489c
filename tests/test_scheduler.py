from contextlib import contextmanager
from datetime import date
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

import scheduler
from database import Base, atomic
from models import BillStatus, RecurringBill, User
from schemas import RecurringBillIn
from services import RecurringBillService


def test_scheduler_jobs_mark_bills_overdue(monkeypatch) -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = User(email="job@example.com", password_hash="x", name="Job")
        session.add(user)
        session.commit()
        bill = RecurringBillService(session, user.id).create(
            RecurringBillIn(
                name="Water",
                amount=Decimal("20"),
                due_date=date(2025, 4, 1),
                category="Utilities",
            )
        )

        @contextmanager
        def test_scope():
            with atomic(session):
                yield session

        monkeypatch.setattr(scheduler, "session_scope", test_scope)

        manager = scheduler.SchedulerManager()
        assert manager.run_job("test", today=date(2025, 4, 1)) == 0
        assert manager.run_job("test", today=date(2025, 4, 2)) == 1
        assert session.get(RecurringBill, bill.id).status == BillStatus.overdue

        manager.start()
        try:
            job_ids = {job.id for job in manager.scheduler.get_jobs()}
            assert job_ids == {"bills_overdue_daily", "bills_overdue_hourly"}
        finally:
            manager.stop()
