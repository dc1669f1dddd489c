import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models import BillStatus
from periods import local_today

SortOrder = Literal["asc", "desc"]


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_amount(cents: int) -> float:
    return cents / 100


def _not_in_future(value: Optional[dt.date]) -> Optional[dt.date]:
    if value is not None and value > local_today():
        raise ValueError("Transaction date cannot be in the future")
    return value


class RegisterIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(
        ..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
    )
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class LoginIn(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class TransactionIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    date: dt.date

    @field_validator("date")
    @classmethod
    def check_date(cls, value: dt.date) -> dt.date:
        return _not_in_future(value)


class TransactionUpdate(BaseModel):
    """Partial update; only the fields present in the request body are applied."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    amount: Optional[Decimal] = Field(
        default=None, gt=0, max_digits=12, decimal_places=2
    )
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[dt.date] = None

    @field_validator("date")
    @classmethod
    def check_date(cls, value: Optional[dt.date]) -> Optional[dt.date]:
        return _not_in_future(value)


class BudgetIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    period_start: dt.date
    period_end: dt.date

    @model_validator(mode="after")
    def check_period(self) -> "BudgetIn":
        if self.period_end <= self.period_start:
            raise ValueError("End date must be after start date")
        return self


class BudgetUpdate(BaseModel):
    # spent is derived from linked transactions and is never accepted here
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(
        default=None, gt=0, max_digits=12, decimal_places=2
    )
    period_start: Optional[dt.date] = None
    period_end: Optional[dt.date] = None


class PotIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    current_amount: Decimal = Field(
        default=Decimal("0"), ge=0, max_digits=12, decimal_places=2
    )


class PotUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    target_amount: Optional[Decimal] = Field(
        default=None, gt=0, max_digits=12, decimal_places=2
    )


class PotAmountIn(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class RecurringBillIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    due_date: dt.date
    status: BillStatus = BillStatus.pending
    category: str = Field(..., min_length=1, max_length=100)


class RecurringBillUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(
        default=None, gt=0, max_digits=12, decimal_places=2
    )
    due_date: Optional[dt.date] = None
    status: Optional[BillStatus] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)


class SortSpec(BaseModel):
    field: Optional[str] = None
    order: Optional[SortOrder] = None


class TransactionFilters(BaseModel):
    category: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None


class BudgetFilters(BaseModel):
    category: Optional[str] = None
    period_start: Optional[dt.date] = None
    period_end: Optional[dt.date] = None


class PotFilters(BaseModel):
    search: Optional[str] = None
    min_progress: Optional[float] = None
    max_progress: Optional[float] = None


class RecurringBillFilters(BaseModel):
    status: Optional[BillStatus] = None
    category: Optional[str] = None
    search: Optional[str] = None
