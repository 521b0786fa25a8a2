"""Pydantic schemas for serialising spendtrack data."""
from __future__ import annotations

import math
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Generic, List, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

Money = Annotated[Decimal, Field(max_digits=12, decimal_places=2)]
PositiveMoney = Annotated[Decimal, Field(gt=0, max_digits=12, decimal_places=2)]
ColorCode = Annotated[str, Field(pattern=r"^#?[0-9A-Fa-f]{6}$")]

DataT = TypeVar("DataT")


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PaginationMeta(BaseModel):
    total_count: int
    page: int
    per_page: int
    total_pages: int

    @classmethod
    def build(cls, total_count: int, page: int, per_page: int) -> "PaginationMeta":
        total_pages = math.ceil(total_count / per_page) if per_page > 0 else 0
        return cls(total_count=total_count, page=page, per_page=per_page, total_pages=total_pages)


class Envelope(BaseModel, Generic[DataT]):
    """Uniform response body returned by every endpoint."""

    status_code: int
    message: str
    data: Optional[DataT] = None
    meta: Optional[PaginationMeta] = None


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


# Timestamps are stored as naive UTC.
UtcDatetime = Annotated[datetime, AfterValidator(_naive_utc)]


# Categories


class CategoryCreate(BaseModel):
    name: str = Field(..., max_length=50)
    description: Optional[str] = None
    color_code: Optional[ColorCode] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    color_code: Optional[ColorCode] = None


class CategoryRead(ORMModel):
    id: uuid.UUID
    user_id: Optional[uuid.UUID]
    name: str
    description: Optional[str]
    color_code: Optional[str]
    is_default: bool
    created_at: datetime
    updated_at: datetime


# Receipts


class ReceiptCreate(BaseModel):
    image_url: str = Field(..., min_length=1)
    ocr_data: Optional[str] = None
    scanned_date: Optional[UtcDatetime] = None


class ReceiptRead(ORMModel):
    id: uuid.UUID
    user_id: uuid.UUID
    image_url: str
    ocr_data: Optional[str]
    scanned_date: datetime
    created_at: datetime


# Expenses


class RecurrenceInterval(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ExpenseCreate(BaseModel):
    category_id: uuid.UUID
    amount: PositiveMoney
    date: Optional[UtcDatetime] = None
    description: Optional[str] = None
    receipt_id: Optional[uuid.UUID] = None
    is_recurring: Optional[bool] = None
    recurrence_interval: Optional[RecurrenceInterval] = None


class ExpenseUpdate(BaseModel):
    category_id: Optional[uuid.UUID] = None
    amount: Optional[PositiveMoney] = None
    date: Optional[UtcDatetime] = None
    description: Optional[str] = None
    receipt_id: Optional[uuid.UUID] = None
    is_recurring: Optional[bool] = None
    recurrence_interval: Optional[RecurrenceInterval] = None


class ExpenseRead(ORMModel):
    id: uuid.UUID
    user_id: uuid.UUID
    category_id: uuid.UUID
    amount: Money
    date: datetime
    description: Optional[str]
    receipt_id: Optional[uuid.UUID]
    is_recurring: bool
    recurrence_interval: Optional[RecurrenceInterval]
    created_at: datetime
    updated_at: datetime


class CategoryShare(BaseModel):
    category_id: uuid.UUID
    category_name: str
    total: Money
    count: int
    percentage: Decimal


class CategoryFrequency(BaseModel):
    category_id: uuid.UUID
    category_name: str
    count: int


class PeriodTotal(BaseModel):
    period: str
    total: Money
    count: int


class ExpenseAnalysisRead(BaseModel):
    """Aggregates over a user's expenses; sections that failed stay ``None``."""

    period: str
    total_spent: Optional[Money] = None
    expense_count: Optional[int] = None
    average_expense: Optional[Money] = None
    max_expense: Optional[Money] = None
    active_days: Optional[int] = None
    daily_average: Optional[Money] = None
    by_category: Optional[List[CategoryShare]] = None
    most_frequent_category: Optional[CategoryFrequency] = None
    by_period: Optional[List[PeriodTotal]] = None
    failed_sections: List[str] = Field(default_factory=list)


# Budgets


class BudgetPeriod(str, Enum):
    CURRENT = "current"
    UPCOMING = "upcoming"
    PAST = "past"


class BudgetStatus(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"
    ALL = "all"


class BudgetCreate(BaseModel):
    category_id: uuid.UUID
    amount: PositiveMoney
    start_date: date
    end_date: date


class BudgetUpdate(BaseModel):
    category_id: Optional[uuid.UUID] = None
    amount: Optional[PositiveMoney] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class BudgetRead(ORMModel):
    id: uuid.UUID
    user_id: uuid.UUID
    category_id: uuid.UUID
    amount: Money
    start_date: date
    end_date: date
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None


class BudgetAnalysisItem(BaseModel):
    budget_id: uuid.UUID
    category_id: uuid.UUID
    category: str
    start_date: date
    end_date: date
    budgeted_amount: Money
    total_spent: Money
    remaining_budget: Money
    percentage_spent: Decimal
    exceeds_budget: bool
