import logging
import traceback
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal
from models import BillStatus, Budget, Pot, PotTransaction, RecurringBill, Transaction, User
from scheduler import SchedulerManager
from schemas import (
    BudgetFilters,
    BudgetIn,
    BudgetUpdate,
    LoginIn,
    PotAmountIn,
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
    cents_to_amount,
)
from security import InvalidToken, decode_access_token
from services import (
    AuthenticationError,
    BudgetService,
    ConflictError,
    InsufficientFundsError,
    MetricsService,
    NotFoundError,
    Page,
    PotService,
    RecurringBillService,
    ServiceError,
    TransactionService,
    UserService,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Tracker API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="No token provided")
    try:
        payload = decode_access_token(credentials.credentials)
    except InvalidToken as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    user = UserService(db).get(payload["id"])
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    settings = get_settings()
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not set; every request will be rejected")
    if settings.scheduler_enabled:
        scheduler_manager.start()
    logger.info(
        f"startup: environment={settings.environment} port={settings.port} "
        f"scheduler={settings.scheduler_enabled}"
    )


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.middleware("http")
async def require_jwt_secret(request: Request, call_next):
    if not get_settings().jwt_secret:
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error: JWT configuration is missing"},
        )
    return await call_next(request)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400, content={"detail": "Validation failed", "errors": errors}
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        f"unhandled_error: method={request.method} path={request.url.path}",
        exc_info=exc,
    )
    content = {"detail": "Internal server error"}
    if not get_settings().is_production:
        content["trace"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return JSONResponse(status_code=500, content=content)


def _date_param(request: Request, name: str) -> Optional[date]:
    raw = (request.query_params.get(name) or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw.split("T", 1)[0])
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail=f"Invalid date for '{name}': {raw}"
        ) from exc


def _float_param(request: Request, name: str) -> Optional[float]:
    raw = (request.query_params.get(name) or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail=f"Invalid number for '{name}': {raw}"
        ) from exc


def _int_param(request: Request, name: str) -> Optional[int]:
    raw = (request.query_params.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail=f"Invalid integer for '{name}': {raw}"
        ) from exc


def page_from_request(request: Request) -> Page:
    return Page.of(_int_param(request, "page"), _int_param(request, "limit"))


def sort_from_request(request: Request) -> Optional[SortSpec]:
    field = (request.query_params.get("sort_by") or "").strip()
    order = (request.query_params.get("order") or "").strip().lower()
    if not field:
        return None
    if order and order not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail="order must be 'asc' or 'desc'")
    return SortSpec(field=field, order=order or None)


def _bill_status_param(request: Request) -> Optional[BillStatus]:
    raw = (request.query_params.get("status") or "").strip()
    if not raw:
        return None
    try:
        return BillStatus(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid status: {raw}") from exc


def _paginated(key: str, items: list, total: int, page: Page) -> dict:
    return {
        key: items,
        "total": total,
        "total_pages": page.total_pages(total),
        "page": page.number,
        "limit": page.limit,
    }


def user_json(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "created_at": user.created_at.isoformat(),
    }


def transaction_json(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "amount": cents_to_amount(txn.amount_cents),
        "category": txn.category,
        "description": txn.description,
        "date": txn.date.isoformat(),
        "budget_id": txn.budget_id,
        "created_at": txn.created_at.isoformat(),
        "updated_at": txn.updated_at.isoformat(),
    }


def budget_json(budget: Budget) -> dict:
    return {
        "id": budget.id,
        "category": budget.category,
        "amount": cents_to_amount(budget.amount_cents),
        "spent": cents_to_amount(budget.spent_cents),
        "remaining": cents_to_amount(max(budget.amount_cents - budget.spent_cents, 0)),
        "period_start": budget.period_start.isoformat(),
        "period_end": budget.period_end.isoformat(),
        "created_at": budget.created_at.isoformat(),
        "updated_at": budget.updated_at.isoformat(),
    }


def pot_json(pot: Pot) -> dict:
    return {
        "id": pot.id,
        "name": pot.name,
        "target_amount": cents_to_amount(pot.target_amount_cents),
        "current_amount": cents_to_amount(pot.current_amount_cents),
        "progress": round(pot.progress, 2),
        "created_at": pot.created_at.isoformat(),
        "updated_at": pot.updated_at.isoformat(),
    }


def pot_transaction_json(entry: PotTransaction) -> dict:
    return {
        "id": entry.id,
        "pot_id": entry.pot_id,
        "amount": cents_to_amount(entry.amount_cents),
        "type": entry.type.value,
        "timestamp": entry.created_at.isoformat(),
    }


def bill_json(bill: RecurringBill) -> dict:
    return {
        "id": bill.id,
        "name": bill.name,
        "amount": cents_to_amount(bill.amount_cents),
        "due_date": bill.due_date.isoformat(),
        "status": bill.status.value,
        "category": bill.category,
        "created_at": bill.created_at.isoformat(),
        "updated_at": bill.updated_at.isoformat(),
    }


def _bill_totals_json(totals: dict) -> dict:
    return {"count": totals["count"], "amount": cents_to_amount(totals["amount_cents"])}


@app.get("/")
def root():
    return {"message": "Finance Tracker API is running"}


# Auth


@app.post("/api/auth/register", status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    try:
        user = UserService(db).register(payload)
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    logger.info(f"user_registered: user_id={user.id}")
    return {"message": "User registered successfully", "user": user_json(user)}


@app.post("/api/auth/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    try:
        token, user = UserService(db).login(payload)
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return {"token": token, "user": user_json(user)}


@app.get("/api/auth/me")
def me(user: User = Depends(get_current_user)):
    return {"user": user_json(user)}


@app.post("/api/auth/logout")
def logout(user: User = Depends(get_current_user)):
    return {"message": "Logged out successfully"}


# Transactions


@app.get("/api/transactions")
def list_transactions(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = TransactionFilters(
        category=(request.query_params.get("category") or "").strip() or None,
        start_date=_date_param(request, "start_date"),
        end_date=_date_param(request, "end_date"),
    )
    page = page_from_request(request)
    try:
        items, total = TransactionService(db, user.id).list(
            filters, sort_from_request(request), page
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _paginated("transactions", [transaction_json(t) for t in items], total, page)


@app.post("/api/transactions", status_code=201)
def create_transaction(
    payload: TransactionIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    txn = TransactionService(db, user.id).create(payload)
    return transaction_json(txn)


@app.get("/api/transactions/{transaction_id}")
def get_transaction(
    transaction_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, user.id).get(transaction_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return transaction_json(txn)


@app.put("/api/transactions/{transaction_id}")
def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, user.id).update(transaction_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return transaction_json(txn)


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        TransactionService(db, user.id).delete(transaction_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


# Budgets


@app.get("/api/budgets")
def list_budgets(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = BudgetFilters(
        category=(request.query_params.get("category") or "").strip() or None,
        period_start=_date_param(request, "period_start"),
        period_end=_date_param(request, "period_end"),
    )
    try:
        budgets = BudgetService(db, user.id).list(filters, sort_from_request(request))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [budget_json(b) for b in budgets]


@app.post("/api/budgets", status_code=201)
def create_budget(
    payload: BudgetIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    budget = BudgetService(db, user.id).create(payload)
    return budget_json(budget)


@app.post("/api/budgets/reconcile")
def reconcile_budgets(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    updated = BudgetService(db, user.id).reconcile_all()
    return {"updated": updated}


@app.get("/api/budgets/{budget_id}")
def get_budget(
    budget_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        budget = BudgetService(db, user.id).get(budget_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return budget_json(budget)


@app.put("/api/budgets/{budget_id}")
def update_budget(
    budget_id: str,
    payload: BudgetUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        budget = BudgetService(db, user.id).update(budget_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return budget_json(budget)


@app.delete("/api/budgets/{budget_id}", status_code=204)
def delete_budget(
    budget_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        BudgetService(db, user.id).delete(budget_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/budgets/{budget_id}/transactions")
def budget_transactions(
    budget_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    page = page_from_request(request)
    try:
        items, total = BudgetService(db, user.id).transactions(budget_id, page)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _paginated("transactions", [transaction_json(t) for t in items], total, page)


# Pots


@app.get("/api/pots")
def list_pots(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = PotFilters(
        search=(request.query_params.get("search") or "").strip() or None,
        min_progress=_float_param(request, "min_progress"),
        max_progress=_float_param(request, "max_progress"),
    )
    try:
        pots, total = PotService(db, user.id).list(filters, sort_from_request(request))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"pots": [pot_json(p) for p in pots], "total": total}


@app.post("/api/pots", status_code=201)
def create_pot(
    payload: PotIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return pot_json(PotService(db, user.id).create(payload))


@app.get("/api/pots/{pot_id}")
def get_pot(
    pot_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        pot = PotService(db, user.id).get(pot_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return pot_json(pot)


@app.put("/api/pots/{pot_id}")
def update_pot(
    pot_id: str,
    payload: PotUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        pot = PotService(db, user.id).update(pot_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return pot_json(pot)


@app.delete("/api/pots/{pot_id}", status_code=204)
def delete_pot(
    pot_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        PotService(db, user.id).delete(pot_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.post("/api/pots/{pot_id}/deposit")
def deposit_to_pot(
    pot_id: str,
    payload: PotAmountIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        pot = PotService(db, user.id).deposit(pot_id, payload.amount)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return pot_json(pot)


@app.post("/api/pots/{pot_id}/withdraw")
def withdraw_from_pot(
    pot_id: str,
    payload: PotAmountIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        pot = PotService(db, user.id).withdraw(pot_id, payload.amount)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InsufficientFundsError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return pot_json(pot)


@app.get("/api/pots/{pot_id}/transactions")
def pot_transactions(
    pot_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    page = page_from_request(request)
    try:
        items, total = PotService(db, user.id).transactions(pot_id, page)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _paginated(
        "transactions", [pot_transaction_json(e) for e in items], total, page
    )


# Recurring bills


@app.get("/api/recurring-bills")
def list_recurring_bills(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = RecurringBillFilters(
        status=_bill_status_param(request),
        category=(request.query_params.get("category") or "").strip() or None,
        search=(request.query_params.get("search") or "").strip() or None,
    )
    service = RecurringBillService(db, user.id)
    service.mark_overdue()
    try:
        bills, total = service.list(filters, sort_from_request(request))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"recurring_bills": [bill_json(b) for b in bills], "total": total}


@app.get("/api/recurring-bills/summary")
def recurring_bills_summary(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    service = RecurringBillService(db, user.id)
    service.mark_overdue()
    summary = service.summary()
    return {name: _bill_totals_json(totals) for name, totals in summary.items()}


@app.post("/api/recurring-bills", status_code=201)
def create_recurring_bill(
    payload: RecurringBillIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        bill = RecurringBillService(db, user.id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return bill_json(bill)


@app.get("/api/recurring-bills/{bill_id}")
def get_recurring_bill(
    bill_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        bill = RecurringBillService(db, user.id).get(bill_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return bill_json(bill)


@app.put("/api/recurring-bills/{bill_id}")
def update_recurring_bill(
    bill_id: str,
    payload: RecurringBillUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        bill = RecurringBillService(db, user.id).update(bill_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return bill_json(bill)


@app.delete("/api/recurring-bills/{bill_id}", status_code=204)
def delete_recurring_bill(
    bill_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        RecurringBillService(db, user.id).delete(bill_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


# Dashboard


@app.get("/api/dashboard")
def dashboard(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    RecurringBillService(db, user.id).mark_overdue()
    metrics = MetricsService(db, user.id).dashboard()
    return {
        "period_start": metrics["period_start"].isoformat(),
        "period_end": metrics["period_end"].isoformat(),
        "income": cents_to_amount(metrics["income_cents"]),
        "expenses": cents_to_amount(metrics["expenses_cents"]),
        "cash_flow": cents_to_amount(metrics["cash_flow_cents"]),
        "savings": {
            "current": cents_to_amount(metrics["savings_current_cents"]),
            "target": cents_to_amount(metrics["savings_target_cents"]),
        },
        "budgets": {
            "count": metrics["budget_count"],
            "over_limit": metrics["budgets_over_limit"],
        },
        "bills": {
            "upcoming": _bill_totals_json(metrics["upcoming_bills"]),
            "overdue": _bill_totals_json(metrics["overdue_bills"]),
        },
    }


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=get_settings().port, reload=False)


if __name__ == "__main__":
    main()
