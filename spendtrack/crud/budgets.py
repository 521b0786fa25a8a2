"""Budget helpers: non-overlapping periods per category and spend-vs-budget analysis."""
from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy import func, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from .amounts import percentage_of, to_money
from .categories import category_exists, category_name_map
from .errors import EntityConflictError, EntityNotFoundError, InvalidInputError
from .expenses import UNKNOWN_CATEGORY, owned_expense_conditions

LOG = logging.getLogger(__name__)

OVERLAP_MESSAGE = "Budget period overlaps with an existing budget for the same category"
_NON_NULLABLE = ("category_id", "amount", "start_date", "end_date")


class SpendStatus(NamedTuple):
    remaining: Decimal
    percentage: Decimal
    exceeds: bool


def budget_status(amount: Decimal, total_spent: Decimal) -> SpendStatus:
    """Remaining amount, percentage spent and overrun flag for one budget.

    The percentage is ``0`` for a zero budget, whatever has been spent.
    """

    budgeted = Decimal(str(amount))
    spent = Decimal(str(total_spent))
    return SpendStatus(
        remaining=to_money(budgeted - spent),
        percentage=percentage_of(spent, budgeted),
        exceeds=spent > budgeted,
    )


def periods_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Inclusive interval overlap: the periods share at least one day."""

    return not (end_a < start_b or start_a > end_b)


def _validate_period(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise InvalidInputError("end_date must be later than or equal to start_date")


def _validate_category(session: Session, category_id: uuid.UUID) -> None:
    if not category_exists(session, category_id):
        raise InvalidInputError("Invalid category ID")


def _lock_budget_scope(session: Session, user_id: uuid.UUID, category_id: uuid.UUID) -> None:
    """Serialise overlap check + write for one (user, category) until the transaction ends.

    PostgreSQL gets a transaction scoped advisory lock. SQLite engines open every
    transaction with ``BEGIN IMMEDIATE`` (see ``database.build_engine``), which
    already holds the database write lock here.
    """

    if session.get_bind().dialect.name != "postgresql":
        return
    digest = hashlib.blake2b(f"{user_id}:{category_id}".encode(), digest_size=8).digest()
    key = int.from_bytes(digest, "big", signed=True)
    session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})


def _ensure_no_overlap(
    session: Session,
    user_id: uuid.UUID,
    category_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    stmt = select(func.count(models.Budget.id)).where(
        models.Budget.user_id == user_id,
        models.Budget.category_id == category_id,
        models.Budget.deleted_at.is_(None),
        ~or_(models.Budget.end_date < start_date, models.Budget.start_date > end_date),
    )
    if exclude_id is not None:
        stmt = stmt.where(models.Budget.id != exclude_id)
    if session.scalar(stmt):
        raise EntityConflictError(OVERLAP_MESSAGE)


def create_budget(
    session: Session,
    user_id: uuid.UUID,
    budget_in: schemas.BudgetCreate,
) -> models.Budget:
    _validate_period(budget_in.start_date, budget_in.end_date)
    _validate_category(session, budget_in.category_id)
    _lock_budget_scope(session, user_id, budget_in.category_id)
    _ensure_no_overlap(session, user_id, budget_in.category_id, budget_in.start_date, budget_in.end_date)

    budget = models.Budget(user_id=user_id, **budget_in.model_dump())
    session.add(budget)
    session.flush()
    session.refresh(budget)
    LOG.info(
        "Created budget %s for user %s (%s..%s)",
        budget.id,
        user_id,
        budget.start_date,
        budget.end_date,
    )
    return budget


def _filtered_budgets_stmt(
    user_id: uuid.UUID,
    category_id: Optional[uuid.UUID],
    start_date: Optional[date],
    end_date: Optional[date],
):
    stmt = select(models.Budget).where(models.Budget.user_id == user_id)
    if category_id is not None:
        stmt = stmt.where(models.Budget.category_id == category_id)
    if start_date is not None:
        stmt = stmt.where(models.Budget.start_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(models.Budget.end_date <= end_date)
    return stmt


def _coerce_enum(enum_cls, value, label: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_cls)
        raise InvalidInputError(f"Invalid {label} '{value}'; expected one of {choices}") from exc


def list_budgets(
    session: Session,
    user_id: uuid.UUID,
    *,
    category_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    period: Optional[schemas.BudgetPeriod | str] = None,
    status: Optional[schemas.BudgetStatus | str] = None,
    today: Optional[date] = None,
) -> List[models.Budget]:
    """Return the user's budgets matching every supplied filter.

    ``period`` selects budgets relative to ``today`` (``current``, ``upcoming``
    or ``past``) and ``status`` picks live (default), soft-deleted or all rows.
    """

    period = _coerce_enum(schemas.BudgetPeriod, period, "period")
    status = _coerce_enum(schemas.BudgetStatus, status, "status") or schemas.BudgetStatus.ACTIVE
    today = today or models.utcnow().date()

    stmt = _filtered_budgets_stmt(user_id, category_id, start_date, end_date)
    if status is schemas.BudgetStatus.ACTIVE:
        stmt = stmt.where(models.Budget.deleted_at.is_(None))
    elif status is schemas.BudgetStatus.DELETED:
        stmt = stmt.where(models.Budget.deleted_at.is_not(None))

    if period is schemas.BudgetPeriod.CURRENT:
        stmt = stmt.where(models.Budget.start_date <= today, models.Budget.end_date >= today)
    elif period is schemas.BudgetPeriod.UPCOMING:
        stmt = stmt.where(models.Budget.start_date > today)
    elif period is schemas.BudgetPeriod.PAST:
        stmt = stmt.where(models.Budget.end_date < today)
    return list(session.scalars(stmt))


def get_budget(session: Session, user_id: uuid.UUID, budget_id: uuid.UUID) -> models.Budget:
    stmt = select(models.Budget).where(
        models.Budget.id == budget_id,
        models.Budget.user_id == user_id,
        models.Budget.deleted_at.is_(None),
    )
    budget = session.scalars(stmt).first()
    if budget is None:
        raise EntityNotFoundError(f"Budget {budget_id} not found")
    return budget


def update_budget(
    session: Session,
    user_id: uuid.UUID,
    budget_id: uuid.UUID,
    update_in: schemas.BudgetUpdate,
) -> models.Budget:
    """Apply the supplied fields and re-check the merged record.

    Dates are always validated against the record they end up in: a lone
    ``end_date`` against the stored start and a lone ``start_date`` against the
    stored end. The merged period must not overlap another live budget.
    """

    budget = get_budget(session, user_id, budget_id)
    changes = update_in.model_dump(exclude_unset=True)
    for field in _NON_NULLABLE:
        if field in changes and changes[field] is None:
            raise InvalidInputError(f"{field} cannot be null")

    start_date = changes.get("start_date", budget.start_date)
    end_date = changes.get("end_date", budget.end_date)
    category_id = changes.get("category_id", budget.category_id)
    _validate_period(start_date, end_date)
    if "category_id" in changes:
        _validate_category(session, category_id)

    if {"start_date", "end_date", "category_id"} & changes.keys():
        _lock_budget_scope(session, user_id, category_id)
        _ensure_no_overlap(session, user_id, category_id, start_date, end_date, exclude_id=budget.id)

    for field, value in changes.items():
        setattr(budget, field, value)
    session.flush()
    session.refresh(budget)
    return budget


def delete_budget(session: Session, user_id: uuid.UUID, budget_id: uuid.UUID) -> None:
    budget = get_budget(session, user_id, budget_id)
    budget.mark_deleted()
    session.flush()
    LOG.info("Deleted budget %s for user %s", budget_id, user_id)


def _spend_by_category(
    session: Session,
    user_id: uuid.UUID,
    category_id: Optional[uuid.UUID],
    start_date: Optional[date],
    end_date: Optional[date],
) -> Dict[uuid.UUID, Decimal]:
    stmt = (
        select(models.Expense.category_id, func.sum(models.Expense.amount).label("total_spent"))
        .where(*owned_expense_conditions(user_id, start_date, end_date, category_id))
        .group_by(models.Expense.category_id)
    )
    return {row.category_id: to_money(row.total_spent) for row in session.execute(stmt)}


def _resolve_category_names(session: Session, category_ids: List[uuid.UUID]) -> Dict[uuid.UUID, str]:
    try:
        with session.begin_nested():
            return category_name_map(session, category_ids)
    except SQLAlchemyError:
        LOG.warning("Failed to fetch category names for budget analysis", exc_info=True)
        return {}


def analyze_budgets(
    session: Session,
    user_id: uuid.UUID,
    *,
    category_id: Optional[uuid.UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[schemas.BudgetAnalysisItem]:
    """Compare spending against every matching budget.

    Spending is summed per category over the same user, date and category
    filters used to select the budgets. An empty list means no budget matched.
    Category names that cannot be resolved fall back to ``"Unknown"``.
    """

    if start_date is not None and end_date is not None and end_date < start_date:
        raise InvalidInputError("end_date must be later than or equal to start_date")

    stmt = _filtered_budgets_stmt(user_id, category_id, start_date, end_date).where(
        models.Budget.deleted_at.is_(None)
    )
    budgets = list(session.scalars(stmt))
    if not budgets:
        return []

    spent = _spend_by_category(session, user_id, category_id, start_date, end_date)
    names = _resolve_category_names(session, [budget.category_id for budget in budgets])

    results: List[schemas.BudgetAnalysisItem] = []
    for budget in budgets:
        total_spent = spent.get(budget.category_id, to_money(0))
        status = budget_status(budget.amount, total_spent)
        results.append(
            schemas.BudgetAnalysisItem(
                budget_id=budget.id,
                category_id=budget.category_id,
                category=names.get(budget.category_id, UNKNOWN_CATEGORY),
                start_date=budget.start_date,
                end_date=budget.end_date,
                budgeted_amount=to_money(budget.amount),
                total_spent=total_spent,
                remaining_budget=status.remaining,
                percentage_spent=status.percentage,
                exceeds_budget=status.exceeds,
            )
        )
    return results
