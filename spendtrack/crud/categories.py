"""Category helpers: system defaults plus per-user custom categories."""
from __future__ import annotations

import logging
import random
import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .. import models, schemas
from .errors import EntityConflictError, EntityNotFoundError, ForbiddenError, InvalidInputError

LOG = logging.getLogger(__name__)


def generate_color_code(rng: Optional[random.Random] = None) -> str:
    """Return a random ``#RRGGBB`` colour in upper case."""

    value = (rng or random).randrange(0x1000000)
    return f"#{value:06X}"


def normalise_color_code(value: str) -> str:
    return "#" + value.lstrip("#").upper()


def list_default_categories(session: Session) -> List[models.Category]:
    stmt = (
        select(models.Category)
        .where(models.Category.is_default.is_(True))
        .order_by(models.Category.name)
    )
    return list(session.scalars(stmt))


def list_categories(session: Session, user_id: uuid.UUID) -> List[models.Category]:
    """Defaults first, then the user's custom categories, each sorted by name."""

    custom_stmt = (
        select(models.Category)
        .where(
            models.Category.user_id == user_id,
            models.Category.is_default.is_(False),
        )
        .order_by(models.Category.name)
    )
    return list_default_categories(session) + list(session.scalars(custom_stmt))


def get_category(session: Session, user_id: uuid.UUID, category_id: uuid.UUID) -> models.Category:
    stmt = select(models.Category).where(
        models.Category.id == category_id,
        or_(models.Category.is_default.is_(True), models.Category.user_id == user_id),
    )
    category = session.scalars(stmt).first()
    if category is None:
        raise EntityNotFoundError(f"Category {category_id} not found")
    return category


def category_exists(session: Session, category_id: uuid.UUID) -> bool:
    """Return ``True`` when a category with ``category_id`` exists for any owner."""

    stmt = select(models.Category.id).where(models.Category.id == category_id)
    return session.scalar(stmt) is not None


def category_name_map(session: Session, category_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, str]:
    """Map ids to display names; ids without a row are simply absent."""

    ids = set(category_ids)
    if not ids:
        return {}
    stmt = select(models.Category.id, models.Category.name).where(models.Category.id.in_(ids))
    return {row.id: row.name for row in session.execute(stmt)}


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidInputError("Category name is required")
    return cleaned


def _ensure_unique_name(
    session: Session,
    user_id: uuid.UUID,
    name: str,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    stmt = select(models.Category.id).where(
        models.Category.user_id == user_id,
        func.lower(models.Category.name) == name.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(models.Category.id != exclude_id)
    if session.scalar(stmt) is not None:
        raise EntityConflictError("Category name already exists")


def create_category(
    session: Session,
    user_id: uuid.UUID,
    category_in: schemas.CategoryCreate,
) -> models.Category:
    name = _clean_name(category_in.name)
    _ensure_unique_name(session, user_id, name)
    color = category_in.color_code
    category = models.Category(
        user_id=user_id,
        name=name,
        description=category_in.description,
        color_code=normalise_color_code(color) if color else generate_color_code(),
        is_default=False,
    )
    session.add(category)
    session.flush()
    session.refresh(category)
    LOG.info("Created category %s for user %s", category.id, user_id)
    return category


def _get_mutable_category(
    session: Session,
    user_id: uuid.UUID,
    category_id: uuid.UUID,
) -> models.Category:
    stmt = select(models.Category).where(models.Category.id == category_id)
    category = session.scalars(stmt).first()
    if category is None or (not category.is_default and category.user_id != user_id):
        raise EntityNotFoundError(f"Category {category_id} not found")
    if category.is_default:
        raise ForbiddenError("Default categories cannot be modified")
    return category


def update_category(
    session: Session,
    user_id: uuid.UUID,
    category_id: uuid.UUID,
    update_in: schemas.CategoryUpdate,
) -> models.Category:
    category = _get_mutable_category(session, user_id, category_id)
    changes = update_in.model_dump(exclude_unset=True)
    if "name" in changes:
        name = _clean_name(changes["name"])
        _ensure_unique_name(session, user_id, name, exclude_id=category.id)
        category.name = name
    if "description" in changes:
        category.description = changes["description"]
    if changes.get("color_code"):
        category.color_code = normalise_color_code(changes["color_code"])
    elif not category.color_code:
        category.color_code = generate_color_code()
    session.flush()
    session.refresh(category)
    return category


def delete_category(session: Session, user_id: uuid.UUID, category_id: uuid.UUID) -> None:
    """Permanently remove a custom category; expenses and budgets keep their reference."""

    category = _get_mutable_category(session, user_id, category_id)
    session.delete(category)
    session.flush()
    LOG.info("Deleted category %s for user %s", category_id, user_id)
