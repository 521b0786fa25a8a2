"""CRUD helper functions for the spendtrack backend.

Every function takes the SQLAlchemy session and the verified user id
explicitly and only ever flushes; committing is left to the caller's
transactional scope.
"""
from __future__ import annotations

from . import budgets, categories, expenses, receipts
from .errors import (
    EntityConflictError,
    EntityNotFoundError,
    ForbiddenError,
    InvalidInputError,
    ServiceError,
    UnauthorizedError,
)

__all__ = [
    "EntityConflictError",
    "EntityNotFoundError",
    "ForbiddenError",
    "InvalidInputError",
    "ServiceError",
    "UnauthorizedError",
    "budgets",
    "categories",
    "expenses",
    "receipts",
]
