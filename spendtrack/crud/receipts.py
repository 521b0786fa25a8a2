"""Receipt records that expenses may reference."""
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models, schemas
from .errors import EntityNotFoundError


def find_receipt(session: Session, user_id: uuid.UUID, receipt_id: uuid.UUID) -> Optional[models.Receipt]:
    """Live receipt ``receipt_id`` owned by ``user_id``, or ``None``."""

    stmt = select(models.Receipt).where(
        models.Receipt.id == receipt_id,
        models.Receipt.user_id == user_id,
        models.Receipt.deleted_at.is_(None),
    )
    return session.scalars(stmt).first()


def get_receipt(session: Session, user_id: uuid.UUID, receipt_id: uuid.UUID) -> models.Receipt:
    receipt = find_receipt(session, user_id, receipt_id)
    if receipt is None:
        raise EntityNotFoundError(f"Receipt {receipt_id} not found")
    return receipt


def create_receipt(session: Session, user_id: uuid.UUID, receipt_in: schemas.ReceiptCreate) -> models.Receipt:
    data = receipt_in.model_dump(exclude_none=True)
    receipt = models.Receipt(user_id=user_id, **data)
    session.add(receipt)
    session.flush()
    session.refresh(receipt)
    return receipt
