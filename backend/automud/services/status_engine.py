"""Lifecycle transitions for purchase requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..codes import AUTOMATIC_ACTIONS, VALID_STATUS_CODES, RequestStatusCode
from ..errors import InvalidInput, StoreUnavailable
from . import intake, management

# purpose: record status changes, resolve the current status, and map close reasons to actions
# status: active

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StatusChangeResult:
    """Outcome of a status change plus follow-ups the caller must act on."""

    record: models.RequestStatus
    warnings: list[str] = field(default_factory=list)
    automatic_action: str | None = None


def required_action(close_reason: int | None) -> str | None:
    if close_reason is None:
        return None
    return AUTOMATIC_ACTIONS.get(close_reason)


def _validate_status(new_status) -> int:
    if new_status is None:
        raise InvalidInput("new_status is required")
    if isinstance(new_status, bool) or not isinstance(new_status, int):
        raise InvalidInput("new_status must be an integer status code")
    if new_status not in VALID_STATUS_CODES:
        allowed = ", ".join(str(code) for code in sorted(VALID_STATUS_CODES))
        raise InvalidInput(f"new_status must be one of {allowed}")
    return int(new_status)


def _default_status(request: models.Request) -> models.RequestStatus:
    # never added to the session
    return models.RequestStatus(
        id=0,
        request_id=request.id,
        status=int(RequestStatusCode.AWAITING_CALL),
        change_date=request.created_at,
        final_outcome=None,
        close_reason=None,
        notes=None,
    )


def change_status(
    db: Session,
    request_id: str,
    new_status,
    final_outcome: int | None = None,
    close_reason: int | None = None,
    notes: str | None = None,
) -> StatusChangeResult:
    """Append a status row for ``request_id``.

    Any status may follow any other. Entering the final outcome status with
    an outcome or close reason also copies the close reason onto the
    management record; a failure there is returned as a warning and the new
    status row stays in place.
    """

    status_code = _validate_status(new_status)
    intake.require_request(db, request_id)

    record = models.RequestStatus(
        request_id=request_id,
        status=status_code,
        change_date=datetime.now(timezone.utc),
        final_outcome=final_outcome,
        close_reason=close_reason,
        notes=notes,
    )
    db.add(record)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        _logger.error("Failed to record status %s for request %s", status_code, request_id, exc_info=True)
        raise StoreUnavailable("Could not record the status change") from exc
    db.refresh(record)
    _logger.info("Request %s moved to status %s", request_id, status_code)

    result = StatusChangeResult(record=record)
    if status_code != RequestStatusCode.FINAL_OUTCOME:
        # close reasons only trigger actions once the request is closed
        return result

    result.automatic_action = required_action(close_reason)
    if final_outcome is not None or close_reason is not None:
        try:
            management.update_final_outcome(db, request_id, final_outcome, close_reason)
        except SQLAlchemyError as exc:
            db.rollback()
            _logger.warning(
                "Status recorded for request %s but management close reason was not updated",
                request_id,
                exc_info=True,
            )
            result.warnings.append(f"Management record not updated: {exc.__class__.__name__}")
    return result


def history(db: Session, request_id: str) -> list[models.RequestStatus]:
    """Return every status row oldest first, or the synthesized default."""

    request = intake.require_request(db, request_id)
    rows = (
        db.query(models.RequestStatus)
        .filter(models.RequestStatus.request_id == request_id)
        .order_by(models.RequestStatus.change_date.asc(), models.RequestStatus.id.asc())
        .all()
    )
    if not rows:
        return [_default_status(request)]
    return rows


def current_status(db: Session, request_id: str) -> models.RequestStatus:
    request = intake.require_request(db, request_id)
    latest = (
        db.query(models.RequestStatus)
        .filter(models.RequestStatus.request_id == request_id)
        .order_by(models.RequestStatus.change_date.desc(), models.RequestStatus.id.desc())
        .first()
    )
    if latest is None:
        return _default_status(request)
    return latest
