"""Expense helpers: validated writes, filtered listing and aggregate analysis."""
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from .amounts import ZERO, percentage_of, to_money
from .categories import category_exists, category_name_map
from .errors import EntityNotFoundError, InvalidInputError
from .receipts import find_receipt

LOG = logging.getLogger(__name__)

SORT_COLUMNS = {
    "date": models.Expense.date,
    "amount": models.Expense.amount,
    "created_at": models.Expense.created_at,
    "description": models.Expense.description,
}
SORT_ORDERS = ("asc", "desc")
ANALYSIS_PERIODS = ("day", "week", "month", "year")
MAX_PAGE_SIZE = 100
UNKNOWN_CATEGORY = "Unknown"

_NON_NULLABLE = ("category_id", "amount", "date")


def owned_expense_conditions(
    user_id: uuid.UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category_id: Optional[uuid.UUID] = None,
) -> list:
    """WHERE clauses selecting a user's live expenses inside an inclusive day window."""

    conditions = [models.Expense.user_id == user_id, models.Expense.deleted_at.is_(None)]
    if start_date is not None:
        conditions.append(models.Expense.date >= datetime.combine(start_date, time.min))
    if end_date is not None:
        # Expenses carry a time of day; the end day is included in full.
        conditions.append(models.Expense.date < datetime.combine(end_date + timedelta(days=1), time.min))
    if category_id is not None:
        conditions.append(models.Expense.category_id == category_id)
    return conditions


def _validate_category(session: Session, category_id: uuid.UUID) -> None:
    if not category_exists(session, category_id):
        raise InvalidInputError("Invalid category ID")


def _validate_receipt(session: Session, user_id: uuid.UUID, receipt_id: uuid.UUID) -> None:
    # Only the caller's own receipts can be attached.
    if find_receipt(session, user_id, receipt_id) is None:
        raise InvalidInputError("Invalid receipt ID")


def _validate_date(value: datetime) -> None:
    if value > models.utcnow():
        raise InvalidInputError("Date cannot be in the future")


def _resolve_recurrence(
    is_recurring: Optional[bool],
    interval: Optional[schemas.RecurrenceInterval | str],
) -> Tuple[bool, Optional[str]]:
    if interval is not None:
        if is_recurring is False:
            raise InvalidInputError("recurrence_interval requires is_recurring to be true")
        return True, schemas.RecurrenceInterval(interval).value
    if is_recurring:
        raise InvalidInputError("recurrence_interval is required for recurring expenses")
    return False, None


def create_expense(
    session: Session,
    user_id: uuid.UUID,
    expense_in: schemas.ExpenseCreate,
) -> models.Expense:
    expense_date = expense_in.date or models.utcnow()
    _validate_date(expense_date)
    _validate_category(session, expense_in.category_id)
    if expense_in.receipt_id is not None:
        _validate_receipt(session, user_id, expense_in.receipt_id)
    is_recurring, interval = _resolve_recurrence(expense_in.is_recurring, expense_in.recurrence_interval)

    expense = models.Expense(
        user_id=user_id,
        category_id=expense_in.category_id,
        amount=expense_in.amount,
        date=expense_date,
        description=expense_in.description,
        receipt_id=expense_in.receipt_id,
        is_recurring=is_recurring,
        recurrence_interval=interval,
    )
    session.add(expense)
    session.flush()
    session.refresh(expense)
    LOG.info("Created expense %s for user %s", expense.id, user_id)
    return expense


def list_expenses(
    session: Session,
    user_id: uuid.UUID,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category_id: Optional[uuid.UUID] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    sort: str = "date",
    order: str = "asc",
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[models.Expense], schemas.PaginationMeta]:
    """Return one page of the user's expenses together with pagination metadata."""

    if sort not in SORT_COLUMNS:
        raise InvalidInputError(f"Invalid sort field '{sort}'; expected one of {', '.join(SORT_COLUMNS)}")
    if order not in SORT_ORDERS:
        raise InvalidInputError("Invalid order; expected 'asc' or 'desc'")
    if page < 1:
        raise InvalidInputError("page must be greater than or equal to 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidInputError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    conditions = owned_expense_conditions(user_id, start_date, end_date, category_id)
    if min_amount is not None:
        conditions.append(models.Expense.amount >= min_amount)
    if max_amount is not None:
        conditions.append(models.Expense.amount <= max_amount)

    total = session.scalar(select(func.count(models.Expense.id)).where(*conditions)) or 0
    column = SORT_COLUMNS[sort]
    stmt = (
        select(models.Expense)
        .where(*conditions)
        .order_by(column.desc() if order == "desc" else column.asc(), models.Expense.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(session.scalars(stmt)), schemas.PaginationMeta.build(total, page, limit)


def get_expense(session: Session, user_id: uuid.UUID, expense_id: uuid.UUID) -> models.Expense:
    stmt = select(models.Expense).where(
        models.Expense.id == expense_id,
        *owned_expense_conditions(user_id),
    )
    expense = session.scalars(stmt).first()
    if expense is None:
        raise EntityNotFoundError(f"Expense {expense_id} not found")
    return expense


def update_expense(
    session: Session,
    user_id: uuid.UUID,
    expense_id: uuid.UUID,
    update_in: schemas.ExpenseUpdate,
) -> models.Expense:
    expense = get_expense(session, user_id, expense_id)
    changes = update_in.model_dump(exclude_unset=True)
    if not changes:
        raise InvalidInputError("No valid fields to update")
    for field in _NON_NULLABLE:
        if field in changes and changes[field] is None:
            raise InvalidInputError(f"{field} cannot be null")

    if "category_id" in changes:
        _validate_category(session, changes["category_id"])
    if changes.get("receipt_id") is not None:
        _validate_receipt(session, user_id, changes["receipt_id"])
    if "date" in changes:
        _validate_date(changes["date"])

    if "is_recurring" in changes or "recurrence_interval" in changes:
        if "recurrence_interval" in changes:
            interval = changes["recurrence_interval"]
        elif changes.get("is_recurring") is False:
            interval = None
        else:
            interval = expense.recurrence_interval
        expense.is_recurring, expense.recurrence_interval = _resolve_recurrence(
            changes.get("is_recurring"), interval
        )

    for field in ("category_id", "amount", "date", "description", "receipt_id"):
        if field in changes:
            setattr(expense, field, changes[field])
    session.flush()
    session.refresh(expense)
    return expense


def delete_expense(session: Session, user_id: uuid.UUID, expense_id: uuid.UUID) -> None:
    """Soft-delete the expense and its receipt; both flags land in the caller's transaction."""

    expense = get_expense(session, user_id, expense_id)
    if expense.receipt_id is not None:
        receipt = find_receipt(session, user_id, expense.receipt_id)
        if receipt is not None:
            receipt.mark_deleted()
    expense.mark_deleted()
    session.flush()
    LOG.info("Deleted expense %s for user %s", expense_id, user_id)


def period_label(value: datetime | date | str, period: str) -> str:
    """Bucket label for ``value``: ``2024-01-05``, ``2024-W01``, ``2024-01`` or ``2024``."""

    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if period == "day":
        return value.strftime("%Y-%m-%d")
    if period == "week":
        iso_year, iso_week, _ = value.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if period == "month":
        return value.strftime("%Y-%m")
    return value.strftime("%Y")


def _totals_section(session: Session, conditions: list, result: schemas.ExpenseAnalysisRead) -> None:
    stmt = select(
        func.sum(models.Expense.amount),
        func.count(models.Expense.id),
        func.avg(models.Expense.amount),
        func.max(models.Expense.amount),
    ).where(*conditions)
    total, count, average, maximum = session.execute(stmt).one()
    result.total_spent = to_money(total)
    result.expense_count = int(count or 0)
    result.average_expense = to_money(average)
    result.max_expense = to_money(maximum)


def _daily_section(session: Session, conditions: list, result: schemas.ExpenseAnalysisRead) -> None:
    stmt = select(models.Expense.date, models.Expense.amount).where(*conditions)
    days = set()
    total = ZERO
    for row in session.execute(stmt):
        days.add(period_label(row.date, "day"))
        total += to_money(row.amount)
    result.active_days = len(days)
    result.daily_average = to_money(total / len(days)) if days else ZERO


def _category_section(session: Session, conditions: list, result: schemas.ExpenseAnalysisRead) -> None:
    stmt = (
        select(
            models.Expense.category_id,
            func.sum(models.Expense.amount).label("total"),
            func.count(models.Expense.id).label("count"),
        )
        .where(*conditions)
        .group_by(models.Expense.category_id)
        .order_by(func.sum(models.Expense.amount).desc())
    )
    rows = session.execute(stmt).all()
    names = category_name_map(session, (row.category_id for row in rows))
    grand_total = sum((to_money(row.total) for row in rows), ZERO)
    result.by_category = [
        schemas.CategoryShare(
            category_id=row.category_id,
            category_name=names.get(row.category_id, UNKNOWN_CATEGORY),
            total=to_money(row.total),
            count=int(row.count),
            percentage=percentage_of(to_money(row.total), grand_total),
        )
        for row in rows
    ]


def _frequency_section(session: Session, conditions: list, result: schemas.ExpenseAnalysisRead) -> None:
    count = func.count(models.Expense.id)
    stmt = (
        select(models.Expense.category_id, count.label("count"))
        .where(*conditions)
        .group_by(models.Expense.category_id)
        .order_by(count.desc(), func.sum(models.Expense.amount).desc())
        .limit(1)
    )
    row = session.execute(stmt).first()
    if row is None:
        result.most_frequent_category = None
        return
    names = category_name_map(session, [row.category_id])
    result.most_frequent_category = schemas.CategoryFrequency(
        category_id=row.category_id,
        category_name=names.get(row.category_id, UNKNOWN_CATEGORY),
        count=int(row.count),
    )


def _period_section(
    session: Session,
    conditions: list,
    result: schemas.ExpenseAnalysisRead,
    period: str,
) -> None:
    stmt = select(models.Expense.date, models.Expense.amount).where(*conditions)
    totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    counts: Dict[str, int] = defaultdict(int)
    for row in session.execute(stmt):
        label = period_label(row.date, period)
        totals[label] += to_money(row.amount)
        counts[label] += 1
    result.by_period = [
        schemas.PeriodTotal(period=label, total=totals[label], count=counts[label])
        for label in sorted(totals)
    ]


def analyze_expenses(
    session: Session,
    user_id: uuid.UUID,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category_id: Optional[uuid.UUID] = None,
    period: str = "month",
) -> schemas.ExpenseAnalysisRead:
    """Compute spending aggregates; each section succeeds or fails on its own.

    Each section runs in its own savepoint. A section whose query raises is
    logged, left as ``None`` and listed in ``failed_sections``; the remaining
    figures are still returned.
    """

    if period not in ANALYSIS_PERIODS:
        raise InvalidInputError(f"Invalid period '{period}'; expected one of {', '.join(ANALYSIS_PERIODS)}")
    if start_date is not None and end_date is not None and end_date < start_date:
        raise InvalidInputError("end_date must be later than or equal to start_date")

    conditions = owned_expense_conditions(user_id, start_date, end_date, category_id)
    result = schemas.ExpenseAnalysisRead(period=period)
    sections: List[Tuple[str, Callable[[], None]]] = [
        ("totals", lambda: _totals_section(session, conditions, result)),
        ("daily", lambda: _daily_section(session, conditions, result)),
        ("by_category", lambda: _category_section(session, conditions, result)),
        ("most_frequent_category", lambda: _frequency_section(session, conditions, result)),
        ("by_period", lambda: _period_section(session, conditions, result, period)),
    ]
    for name, run in sections:
        try:
            with session.begin_nested():
                run()
        except SQLAlchemyError:
            LOG.warning("Expense analysis section %s failed for user %s", name, user_id, exc_info=True)
            result.failed_sections.append(name)
    return result
