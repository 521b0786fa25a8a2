"""SQLAlchemy models for the spendtrack backend."""
from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
)

from .database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every DateTime column."""

    return datetime.now(UTC).replace(tzinfo=None)


class TimestampMixin:
    # Mixin columns stay unannotated; declarative copies them onto each table.
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class SoftDeleteMixin:
    deleted_at = Column(DateTime, nullable=True, index=True)

    def mark_deleted(self) -> None:
        self.deleted_at = utcnow()


class Category(TimestampMixin, Base):
    __tablename__ = "categories"

    id: uuid.UUID = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # NULL owner marks a system default category.
    user_id: Optional[uuid.UUID] = Column(Uuid, nullable=True, index=True)
    name: str = Column(String(50), nullable=False)
    description: Optional[str] = Column(Text, nullable=True)
    color_code: Optional[str] = Column(String(7), nullable=True)
    is_default: bool = Column(Boolean, nullable=False, default=False)


class Receipt(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "receipts"

    id: uuid.UUID = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: uuid.UUID = Column(Uuid, nullable=False, index=True)
    image_url: str = Column(Text, nullable=False)
    ocr_data: Optional[str] = Column(Text, nullable=True)
    scanned_date: datetime = Column(DateTime, nullable=False, default=utcnow)


class Expense(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "expenses"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        Index("ix_expenses_user_date", "user_id", "date"),
    )

    id: uuid.UUID = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: uuid.UUID = Column(Uuid, nullable=False, index=True)
    # No FK: a category deleted later leaves the expense pointing at nothing.
    category_id: uuid.UUID = Column(Uuid, nullable=False, index=True)
    amount: Decimal = Column(Numeric(12, 2), nullable=False)
    date: datetime = Column(DateTime, nullable=False, default=utcnow)
    description: Optional[str] = Column(Text, nullable=True)
    receipt_id: Optional[uuid.UUID] = Column(Uuid, ForeignKey("receipts.id"), nullable=True)
    is_recurring: bool = Column(Boolean, nullable=False, default=False)
    recurrence_interval: Optional[str] = Column(String(16), nullable=True)


class Budget(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "budgets"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_budgets_amount_non_negative"),
        CheckConstraint("end_date >= start_date", name="ck_budgets_period_ordered"),
        Index("ix_budgets_user_category", "user_id", "category_id"),
    )

    id: uuid.UUID = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: uuid.UUID = Column(Uuid, nullable=False)
    category_id: uuid.UUID = Column(Uuid, nullable=False)
    amount: Decimal = Column(Numeric(12, 2), nullable=False)
    start_date: date = Column(Date, nullable=False)
    end_date: date = Column(Date, nullable=False)
