from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterator, Optional

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from database import atomic
from models import (
    BillStatus,
    Budget,
    Pot,
    PotTransaction,
    PotTransactionType,
    RecurringBill,
    Transaction,
    User,
)
from periods import local_today, month_period, upcoming_period
from schemas import (
    BudgetFilters,
    BudgetIn,
    BudgetUpdate,
    LoginIn,
    PotFilters,
    PotIn,
    PotUpdate,
    RecurringBillFilters,
    RecurringBillIn,
    RecurringBillUpdate,
    RegisterIn,
    SortSpec,
    TransactionFilters,
    TransactionIn,
    TransactionUpdate,
    to_cents,
)
from security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
INCOME_CATEGORY = "Income"


class NotFoundError(ValueError):
    """The row does not exist or belongs to another user; callers cannot tell which."""


class ConflictError(ValueError):
    pass


class AuthenticationError(ValueError):
    pass


class InsufficientFundsError(ValueError):
    pass


class ServiceError(RuntimeError):
    pass


@contextmanager
def db_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception(f"db_error: action={action}")
        raise ServiceError(f"Failed to {action}") from exc


@dataclass(frozen=True)
class Page:
    number: int
    limit: int

    @classmethod
    def of(cls, page: Optional[int] = None, limit: Optional[int] = None) -> Page:
        number = max(page or 1, 1)
        size = min(max(limit or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)
        return cls(number, size)

    @property
    def offset(self) -> int:
        return (self.number - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.limit)


def _order_by(
    columns: dict[str, object],
    sort: Optional[SortSpec],
    *,
    default: tuple[str, str],
    default_order: str,
    tiebreak,
) -> list:
    if sort is None or not sort.field:
        name, order = default
    else:
        if sort.field not in columns:
            options = ", ".join(sorted(columns))
            raise ValueError(f"Cannot sort by '{sort.field}'; expected one of: {options}")
        name, order = sort.field, sort.order or default_order
    column = columns[name]
    primary = column.asc() if order == "asc" else column.desc()
    return [primary, tiebreak.asc()]


def find_matching_budget(
    session: Session,
    user_id: str,
    category: str,
    on_date: date,
    *,
    exclude_id: Optional[str] = None,
) -> Optional[Budget]:
    """Budget whose category and period cover a transaction; newest budget wins on overlap."""
    stmt = select(Budget).where(
        Budget.user_id == user_id,
        Budget.category == category,
        Budget.period_start <= on_date,
        Budget.period_end >= on_date,
    )
    if exclude_id is not None:
        stmt = stmt.where(Budget.id != exclude_id)
    stmt = stmt.order_by(Budget.created_at.desc(), Budget.id.desc()).limit(1)
    return session.scalar(stmt)


def adjust_budget_spent(session: Session, budget_id: str, delta_cents: int) -> None:
    session.execute(
        update(Budget)
        .where(Budget.id == budget_id)
        .values(spent_cents=Budget.spent_cents + delta_cents)
    )


def recompute_budget_spent(session: Session, budget_id: str) -> bool:
    session.flush()
    total = int(
        session.execute(
            select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
                Transaction.budget_id == budget_id
            )
        ).scalar_one()
        or 0
    )
    budget = session.get(Budget, budget_id)
    if budget is None or budget.spent_cents == total:
        return False
    budget.spent_cents = total
    return True


def mark_overdue_bills(
    session: Session, today: date, user_id: Optional[str] = None
) -> int:
    stmt = (
        update(RecurringBill)
        .where(
            RecurringBill.status == BillStatus.pending,
            RecurringBill.due_date < today,
        )
        .values(status=BillStatus.overdue)
    )
    if user_id is not None:
        stmt = stmt.where(RecurringBill.user_id == user_id)
    result = session.execute(stmt)
    return int(result.rowcount or 0)


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.session.scalar(select(User).where(User.email == email.lower()))

    def register(self, data: RegisterIn) -> User:
        with db_errors("create user"):
            if self.get_by_email(data.email):
                raise ConflictError("User with this email already exists")
            user = User(
                email=data.email,
                password_hash=hash_password(data.password),
                name=data.name,
            )
            try:
                with atomic(self.session):
                    self.session.add(user)
            except IntegrityError as exc:
                raise ConflictError("User with this email already exists") from exc
            self.session.refresh(user)
        return user

    def login(self, data: LoginIn) -> tuple[str, User]:
        with db_errors("log in"):
            user = self.get_by_email(data.email)
        if not user or not verify_password(data.password, user.password_hash):
            raise AuthenticationError("Invalid email or password")
        return create_access_token(user.id, user.email), user


class TransactionService:
    SORT_COLUMNS = {
        "date": Transaction.date,
        "amount": Transaction.amount_cents,
        "category": Transaction.category,
        "description": Transaction.description,
        "created_at": Transaction.created_at,
    }

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list(
        self,
        filters: Optional[TransactionFilters] = None,
        sort: Optional[SortSpec] = None,
        page: Optional[Page] = None,
    ) -> tuple[list[Transaction], int]:
        filters = filters or TransactionFilters()
        page = page or Page.of()
        order = _order_by(
            self.SORT_COLUMNS,
            sort,
            default=("date", "desc"),
            default_order="desc",
            tiebreak=Transaction.id,
        )
        conditions = [Transaction.user_id == self.user_id]
        if filters.category:
            conditions.append(Transaction.category == filters.category)
        if filters.start_date:
            conditions.append(Transaction.date >= filters.start_date)
        if filters.end_date:
            conditions.append(Transaction.date <= filters.end_date)
        with db_errors("fetch transactions"):
            total = self.session.execute(
                select(func.count(Transaction.id)).where(*conditions)
            ).scalar_one()
            stmt = (
                select(Transaction)
                .where(*conditions)
                .order_by(*order)
                .offset(page.offset)
                .limit(page.limit)
            )
            items = list(self.session.scalars(stmt).all())
        return items, int(total or 0)

    def get(self, transaction_id: str) -> Transaction:
        txn = self.session.scalar(
            select(Transaction).where(
                Transaction.id == transaction_id, Transaction.user_id == self.user_id
            )
        )
        if not txn:
            raise NotFoundError("Transaction not found or unauthorized")
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        amount_cents = to_cents(data.amount)
        with db_errors("create transaction"):
            with atomic(self.session):
                budget = find_matching_budget(
                    self.session, self.user_id, data.category, data.date
                )
                txn = Transaction(
                    user_id=self.user_id,
                    amount_cents=amount_cents,
                    category=data.category,
                    description=data.description or "",
                    date=data.date,
                    budget_id=budget.id if budget else None,
                )
                self.session.add(txn)
                if budget is not None:
                    adjust_budget_spent(self.session, budget.id, amount_cents)
            self.session.refresh(txn)
        return txn

    def update(self, transaction_id: str, data: TransactionUpdate) -> Transaction:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        with db_errors("update transaction"):
            with atomic(self.session):
                txn = self.get(transaction_id)

                new_budget_id = txn.budget_id
                if "category" in changes or "date" in changes:
                    budget = find_matching_budget(
                        self.session,
                        self.user_id,
                        changes.get("category", txn.category),
                        changes.get("date", txn.date),
                    )
                    new_budget_id = budget.id if budget else None

                old_cents = txn.amount_cents
                new_cents = (
                    to_cents(changes["amount"]) if "amount" in changes else old_cents
                )
                # Debit and credit separately so a move between budgets touches both.
                if "amount" in changes or new_budget_id != txn.budget_id:
                    if txn.budget_id is not None:
                        adjust_budget_spent(self.session, txn.budget_id, -old_cents)
                    if new_budget_id is not None:
                        adjust_budget_spent(self.session, new_budget_id, new_cents)

                txn.amount_cents = new_cents
                for field in ("category", "description", "date"):
                    if field in changes:
                        setattr(txn, field, changes[field])
                txn.budget_id = new_budget_id
            self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: str) -> None:
        with db_errors("delete transaction"):
            with atomic(self.session):
                txn = self.get(transaction_id)
                if txn.budget_id is not None:
                    adjust_budget_spent(self.session, txn.budget_id, -txn.amount_cents)
                self.session.delete(txn)


class BudgetService:
    SORT_COLUMNS = {
        "category": Budget.category,
        "amount": Budget.amount_cents,
        "spent": Budget.spent_cents,
        "period_start": Budget.period_start,
        "period_end": Budget.period_end,
        "created_at": Budget.created_at,
    }

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list(
        self,
        filters: Optional[BudgetFilters] = None,
        sort: Optional[SortSpec] = None,
    ) -> list[Budget]:
        filters = filters or BudgetFilters()
        order = _order_by(
            self.SORT_COLUMNS,
            sort,
            default=("created_at", "desc"),
            default_order="asc",
            tiebreak=Budget.id,
        )
        stmt = select(Budget).where(Budget.user_id == self.user_id)
        if filters.category:
            like = f"%{filters.category.lower()}%"
            stmt = stmt.where(func.lower(Budget.category).like(like))
        if filters.period_start:
            stmt = stmt.where(Budget.period_start >= filters.period_start)
        if filters.period_end:
            stmt = stmt.where(Budget.period_end <= filters.period_end)
        with db_errors("fetch budgets"):
            return list(self.session.scalars(stmt.order_by(*order)).all())

    def get(self, budget_id: str) -> Budget:
        budget = self.session.scalar(
            select(Budget).where(Budget.id == budget_id, Budget.user_id == self.user_id)
        )
        if not budget:
            raise NotFoundError("Budget not found or unauthorized")
        return budget

    def create(self, data: BudgetIn) -> Budget:
        with db_errors("create budget"):
            with atomic(self.session):
                budget = Budget(
                    user_id=self.user_id,
                    category=data.category,
                    amount_cents=to_cents(data.amount),
                    spent_cents=0,
                    period_start=data.period_start,
                    period_end=data.period_end,
                )
                self.session.add(budget)
                self.session.flush()
                self._claim_unlinked(budget)
                recompute_budget_spent(self.session, budget.id)
            self.session.refresh(budget)
        return budget

    def update(self, budget_id: str, data: BudgetUpdate) -> Budget:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        with db_errors("update budget"):
            with atomic(self.session):
                budget = self.get(budget_id)
                start = changes.get("period_start", budget.period_start)
                end = changes.get("period_end", budget.period_end)
                if end <= start:
                    raise ValueError("End date must be after start date")

                scope_changed = any(
                    field in changes and changes[field] != getattr(budget, field)
                    for field in ("category", "period_start", "period_end")
                )
                if "amount" in changes:
                    budget.amount_cents = to_cents(changes["amount"])
                for field in ("category", "period_start", "period_end"):
                    if field in changes:
                        setattr(budget, field, changes[field])
                if scope_changed:
                    self._rescope(budget)
            self.session.refresh(budget)
        return budget

    def delete(self, budget_id: str) -> None:
        with db_errors("delete budget"):
            with atomic(self.session):
                budget = self.get(budget_id)
                linked = self.session.scalars(
                    select(Transaction).where(Transaction.budget_id == budget.id)
                ).all()
                touched = self._relink(linked, exclude_id=budget.id)
                self.session.flush()
                self.session.delete(budget)
                for other_id in touched:
                    recompute_budget_spent(self.session, other_id)

    def transactions(
        self, budget_id: str, page: Optional[Page] = None
    ) -> tuple[list[Transaction], int]:
        page = page or Page.of()
        budget = self.get(budget_id)
        conditions = [
            Transaction.user_id == self.user_id,
            Transaction.budget_id == budget.id,
        ]
        with db_errors("fetch budget transactions"):
            total = self.session.execute(
                select(func.count(Transaction.id)).where(*conditions)
            ).scalar_one()
            stmt = (
                select(Transaction)
                .where(*conditions)
                .order_by(Transaction.created_at.desc(), Transaction.id.desc())
                .offset(page.offset)
                .limit(page.limit)
            )
            items = list(self.session.scalars(stmt).all())
        return items, int(total or 0)

    def reconcile_all(self) -> int:
        with db_errors("reconcile budgets"):
            with atomic(self.session):
                budget_ids = self.session.scalars(
                    select(Budget.id).where(Budget.user_id == self.user_id)
                ).all()
                corrected = sum(
                    1
                    for budget_id in budget_ids
                    if recompute_budget_spent(self.session, budget_id)
                )
        logger.info(
            f"budget_reconcile: user_id={self.user_id} budgets={len(budget_ids)} corrected={corrected}"
        )
        return corrected

    def _claim_unlinked(self, budget: Budget) -> None:
        self.session.flush()
        self.session.execute(
            update(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.budget_id.is_(None),
                Transaction.category == budget.category,
                Transaction.date >= budget.period_start,
                Transaction.date <= budget.period_end,
            )
            .values(budget_id=budget.id)
        )

    def _relink(
        self, transactions: list[Transaction], *, exclude_id: str
    ) -> set[str]:
        touched: set[str] = set()
        for txn in transactions:
            match = find_matching_budget(
                self.session, self.user_id, txn.category, txn.date, exclude_id=exclude_id
            )
            txn.budget_id = match.id if match else None
            if match is not None:
                touched.add(match.id)
        return touched

    def _rescope(self, budget: Budget) -> None:
        self.session.flush()
        stale = self.session.scalars(
            select(Transaction).where(
                Transaction.budget_id == budget.id,
                or_(
                    Transaction.category != budget.category,
                    Transaction.date < budget.period_start,
                    Transaction.date > budget.period_end,
                ),
            )
        ).all()
        touched = self._relink(stale, exclude_id=budget.id)
        self._claim_unlinked(budget)
        touched.add(budget.id)
        for budget_id in touched:
            recompute_budget_spent(self.session, budget_id)


@dataclass
class PotMovement:
    kind: PotTransactionType
    action: str


class PotService:
    SORT_COLUMNS = {
        "name": Pot.name,
        "target_amount": Pot.target_amount_cents,
        "current_amount": Pot.current_amount_cents,
        "created_at": Pot.created_at,
    }

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list(
        self,
        filters: Optional[PotFilters] = None,
        sort: Optional[SortSpec] = None,
    ) -> tuple[list[Pot], int]:
        filters = filters or PotFilters()
        order = _order_by(
            self.SORT_COLUMNS,
            sort,
            default=("created_at", "desc"),
            default_order="asc",
            tiebreak=Pot.id,
        )
        stmt = select(Pot).where(Pot.user_id == self.user_id)
        if filters.search:
            like = f"%{filters.search.lower()}%"
            stmt = stmt.where(func.lower(Pot.name).like(like))
        with db_errors("fetch pots"):
            pots = list(self.session.scalars(stmt.order_by(*order)).all())
        if filters.min_progress is not None:
            pots = [p for p in pots if p.progress >= filters.min_progress]
        if filters.max_progress is not None:
            pots = [p for p in pots if p.progress <= filters.max_progress]
        return pots, len(pots)

    def get(self, pot_id: str) -> Pot:
        pot = self.session.scalar(
            select(Pot).where(Pot.id == pot_id, Pot.user_id == self.user_id)
        )
        if not pot:
            raise NotFoundError("Pot not found or unauthorized")
        return pot

    def create(self, data: PotIn) -> Pot:
        pot = Pot(
            user_id=self.user_id,
            name=data.name,
            target_amount_cents=to_cents(data.target_amount),
            current_amount_cents=to_cents(data.current_amount),
        )
        with db_errors("create pot"):
            with atomic(self.session):
                self.session.add(pot)
            self.session.refresh(pot)
        return pot

    def update(self, pot_id: str, data: PotUpdate) -> Pot:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        with db_errors("update pot"):
            with atomic(self.session):
                pot = self.get(pot_id)
                if "name" in changes:
                    pot.name = changes["name"]
                if "target_amount" in changes:
                    pot.target_amount_cents = to_cents(changes["target_amount"])
            self.session.refresh(pot)
        return pot

    def delete(self, pot_id: str) -> None:
        with db_errors("delete pot"):
            with atomic(self.session):
                self.session.delete(self.get(pot_id))

    def deposit(self, pot_id: str, amount: Decimal) -> Pot:
        # the target is not enforced; current may exceed it
        return self._move(
            pot_id,
            to_cents(amount),
            PotMovement(PotTransactionType.deposit, "deposit to pot"),
        )

    def withdraw(self, pot_id: str, amount: Decimal) -> Pot:
        return self._move(
            pot_id,
            to_cents(amount),
            PotMovement(PotTransactionType.withdraw, "withdraw from pot"),
        )

    def transactions(
        self, pot_id: str, page: Optional[Page] = None
    ) -> tuple[list[PotTransaction], int]:
        page = page or Page.of()
        pot = self.get(pot_id)
        with db_errors("fetch pot transactions"):
            total = self.session.execute(
                select(func.count(PotTransaction.id)).where(
                    PotTransaction.pot_id == pot.id
                )
            ).scalar_one()
            stmt = (
                select(PotTransaction)
                .where(PotTransaction.pot_id == pot.id)
                .order_by(PotTransaction.created_at.desc(), PotTransaction.id.desc())
                .offset(page.offset)
                .limit(page.limit)
            )
            items = list(self.session.scalars(stmt).all())
        return items, int(total or 0)

    def _move(self, pot_id: str, amount_cents: int, movement: PotMovement) -> Pot:
        with db_errors(movement.action):
            with atomic(self.session):
                pot = self.get(pot_id)
                if movement.kind == PotTransactionType.withdraw:
                    if amount_cents > pot.current_amount_cents:
                        raise InsufficientFundsError("Insufficient funds in pot")
                    pot.current_amount_cents = Pot.current_amount_cents - amount_cents
                else:
                    pot.current_amount_cents = Pot.current_amount_cents + amount_cents
                self.session.add(
                    PotTransaction(
                        pot_id=pot.id, amount_cents=amount_cents, type=movement.kind
                    )
                )
            self.session.refresh(pot)
        return pot


class RecurringBillService:
    SORT_COLUMNS = {
        "name": RecurringBill.name,
        "amount": RecurringBill.amount_cents,
        "due_date": RecurringBill.due_date,
        "status": RecurringBill.status,
        "category": RecurringBill.category,
        "created_at": RecurringBill.created_at,
    }

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list(
        self,
        filters: Optional[RecurringBillFilters] = None,
        sort: Optional[SortSpec] = None,
    ) -> tuple[list[RecurringBill], int]:
        filters = filters or RecurringBillFilters()
        order = _order_by(
            self.SORT_COLUMNS,
            sort,
            default=("due_date", "asc"),
            default_order="asc",
            tiebreak=RecurringBill.id,
        )
        stmt = select(RecurringBill).where(RecurringBill.user_id == self.user_id)
        if filters.status:
            stmt = stmt.where(RecurringBill.status == filters.status)
        if filters.category:
            stmt = stmt.where(RecurringBill.category == filters.category)
        if filters.search:
            like = f"%{filters.search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(RecurringBill.name).like(like),
                    func.lower(RecurringBill.category).like(like),
                )
            )
        with db_errors("fetch recurring bills"):
            bills = list(self.session.scalars(stmt.order_by(*order)).all())
        return bills, len(bills)

    def get(self, bill_id: str) -> RecurringBill:
        bill = self.session.scalar(
            select(RecurringBill).where(
                RecurringBill.id == bill_id, RecurringBill.user_id == self.user_id
            )
        )
        if not bill:
            raise NotFoundError("Recurring bill not found or unauthorized")
        return bill

    @staticmethod
    def _check_status(status: BillStatus, due_date: date) -> None:
        if status == BillStatus.overdue and due_date > local_today():
            raise ValueError(
                "A bill cannot be marked as overdue if the due date is in the future"
            )

    def create(self, data: RecurringBillIn) -> RecurringBill:
        self._check_status(data.status, data.due_date)
        bill = RecurringBill(
            user_id=self.user_id,
            name=data.name,
            amount_cents=to_cents(data.amount),
            due_date=data.due_date,
            status=data.status,
            category=data.category,
        )
        with db_errors("create recurring bill"):
            with atomic(self.session):
                self.session.add(bill)
            self.session.refresh(bill)
        return bill

    def update(self, bill_id: str, data: RecurringBillUpdate) -> RecurringBill:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        with db_errors("update recurring bill"):
            with atomic(self.session):
                bill = self.get(bill_id)
                self._check_status(
                    changes.get("status", bill.status),
                    changes.get("due_date", bill.due_date),
                )
                if "amount" in changes:
                    bill.amount_cents = to_cents(changes.pop("amount"))
                for field, value in changes.items():
                    setattr(bill, field, value)
            self.session.refresh(bill)
        return bill

    def delete(self, bill_id: str) -> None:
        with db_errors("delete recurring bill"):
            with atomic(self.session):
                self.session.delete(self.get(bill_id))

    def mark_overdue(self, today: Optional[date] = None) -> int:
        today = today or local_today()
        with db_errors("update bill statuses"):
            with atomic(self.session):
                return mark_overdue_bills(self.session, today, self.user_id)

    def summary(self, today: Optional[date] = None) -> dict[str, dict[str, int]]:
        window = upcoming_period(today)
        with db_errors("summarize recurring bills"):
            bills = self.session.scalars(
                select(RecurringBill).where(RecurringBill.user_id == self.user_id)
            ).all()

        def totals(items: list[RecurringBill]) -> dict[str, int]:
            return {
                "count": len(items),
                "amount_cents": sum(b.amount_cents for b in items),
            }

        return {
            "total": totals(list(bills)),
            "paid": totals([b for b in bills if b.status == BillStatus.paid]),
            "overdue": totals([b for b in bills if b.status == BillStatus.overdue]),
            "upcoming": totals(
                [
                    b
                    for b in bills
                    if b.status != BillStatus.paid and window.contains(b.due_date)
                ]
            ),
        }


class MetricsService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def _sum_transactions(self, *conditions) -> int:
        stmt = select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
            Transaction.user_id == self.user_id, *conditions
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def dashboard(self, today: Optional[date] = None) -> dict[str, object]:
        period = month_period(today)
        in_period = Transaction.date.between(period.start, period.end)
        with db_errors("build dashboard"):
            income = self._sum_transactions(
                in_period, Transaction.category == INCOME_CATEGORY
            )
            expenses = self._sum_transactions(
                in_period, Transaction.category != INCOME_CATEGORY
            )
            savings = self.session.execute(
                select(
                    func.coalesce(func.sum(Pot.current_amount_cents), 0),
                    func.coalesce(func.sum(Pot.target_amount_cents), 0),
                ).where(Pot.user_id == self.user_id)
            ).one()
            budgets = self.session.execute(
                select(
                    func.count(Budget.id),
                    func.coalesce(
                        func.sum(case((Budget.spent_cents > Budget.amount_cents, 1), else_=0)),
                        0,
                    ),
                ).where(Budget.user_id == self.user_id)
            ).one()
        bills = RecurringBillService(self.session, self.user_id).summary(today)
        return {
            "period_start": period.start,
            "period_end": period.end,
            "income_cents": income,
            "expenses_cents": expenses,
            "cash_flow_cents": income - expenses,
            "savings_current_cents": int(savings[0] or 0),
            "savings_target_cents": int(savings[1] or 0),
            "budget_count": int(budgets[0] or 0),
            "budgets_over_limit": int(budgets[1] or 0),
            "upcoming_bills": bills["upcoming"],
            "overdue_bills": bills["overdue"],
        }
