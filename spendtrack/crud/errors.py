"""Domain errors raised by the CRUD layer and mapped to HTTP statuses by the server."""
from __future__ import annotations


class ServiceError(RuntimeError):
    """Base class for failures that are reported to the caller verbatim."""

    status_code = 500


class UnauthorizedError(ServiceError):
    """Raised when the request carries no usable user identity."""

    status_code = 401


class InvalidInputError(ServiceError):
    """Raised when input is malformed or violates a field rule."""

    status_code = 400


class EntityNotFoundError(ServiceError):
    """Raised when an entity cannot be located in the database."""

    status_code = 404


class EntityConflictError(ServiceError):
    """Raised when a write would break a uniqueness or overlap rule."""

    status_code = 409


class ForbiddenError(ServiceError):
    """Raised when the caller targets a record it may not modify."""

    status_code = 403


__all__ = [
    "EntityConflictError",
    "EntityNotFoundError",
    "ForbiddenError",
    "InvalidInputError",
    "ServiceError",
    "UnauthorizedError",
]
