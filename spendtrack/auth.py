"""Request identity supplied by the upstream authentication gateway."""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Header

from .crud.errors import UnauthorizedError

USER_HEADER = "X-User-ID"


def current_user_id(x_user_id: Optional[str] = Header(None, alias=USER_HEADER)) -> uuid.UUID:
    """FastAPI dependency returning the verified user id of the request.

    Token verification happens before the request reaches this service; the
    gateway forwards the resulting user id in the ``X-User-ID`` header.
    """

    if not x_user_id:
        raise UnauthorizedError("User ID not found")
    try:
        return uuid.UUID(x_user_id.strip())
    except ValueError as exc:
        raise UnauthorizedError("Invalid user ID") from exc
