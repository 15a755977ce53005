"""Read-only access to request rows written by the intake form."""

from __future__ import annotations

from sqlalchemy.orm import Session

from .. import models
from ..errors import NotFound


def get_request(db: Session, request_id: str) -> models.Request | None:
    return db.get(models.Request, request_id)


def require_request(db: Session, request_id: str) -> models.Request:
    request = get_request(db, request_id)
    if request is None:
        raise NotFound("Request", request_id)
    return request
