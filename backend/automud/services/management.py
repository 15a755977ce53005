"""Management record resolution for purchase requests.

A request has at most one management row. The row is created lazily the
first time an editor saves something, so absence is a normal state that
callers either report as ``None`` or fill with defaults.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from .. import models, schemas

# purpose: read, default, and replace per-request management records
# status: active

_logger = logging.getLogger(__name__)

MANAGEMENT_FIELDS = (
    "notes",
    "range_min",
    "range_max",
    "registration_cost",
    "transport_cost",
    "purchase_price",
    "sale_price",
    "close_reason",
)


def get(db: Session, request_id: str) -> models.RequestManagement | None:
    return db.get(models.RequestManagement, request_id)


def with_defaults(
    request_id: str, record: models.RequestManagement | None
) -> schemas.ManagementOut:
    """Return a management view that is always populated.

    Missing rows read as zero prices, an empty note and close reason 0.
    """

    if record is None:
        return schemas.ManagementOut(request_id=request_id)
    return schemas.ManagementOut.model_validate(record)


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"upsert is not supported on {dialect}")


def upsert(db: Session, values: Mapping[str, Any]) -> models.RequestManagement:
    """Replace the whole management record for ``values['request_id']``.

    Fields missing from ``values`` are written with their defaults, so
    partial editors must merge onto the current record first.
    """

    request_id = values["request_id"]
    defaults = with_defaults(request_id, None).model_dump()
    row = {"request_id": request_id}
    for field in MANAGEMENT_FIELDS:
        value = values.get(field)
        row[field] = defaults[field] if value is None else value

    insert = _insert_for(db)
    stmt = insert(models.RequestManagement).values(**row)
    stmt = stmt.on_conflict_do_update(
        index_elements=[models.RequestManagement.request_id],
        set_={field: stmt.excluded[field] for field in MANAGEMENT_FIELDS},
    )
    db.execute(stmt)
    db.commit()
    # the ORM identity map does not see the core statement
    return db.get(models.RequestManagement, request_id, populate_existing=True)


def apply_changes(
    db: Session, request_id: str, changes: Mapping[str, Any]
) -> tuple[models.RequestManagement, bool]:
    """Overlay ``changes`` on the current record and upsert the merge.

    Returns the saved record and whether it was newly created.
    """

    current = get(db, request_id)
    merged = with_defaults(request_id, current).model_dump()
    for field, value in changes.items():
        if field in MANAGEMENT_FIELDS and value is not None:
            merged[field] = value
    record = upsert(db, merged)
    return record, current is None


def update_final_outcome(
    db: Session,
    request_id: str,
    final_outcome: int | None,
    close_reason: int | None,
) -> models.RequestManagement | None:
    """Copy ``close_reason`` onto an existing management row.

    There is no outcome column on the management table, so ``final_outcome``
    is accepted for symmetry with the status row and dropped. Requests without
    a management row are left alone.
    """

    record = get(db, request_id)
    if record is None:
        _logger.info("No management record for request %s; close reason not copied", request_id)
        return None
    record.close_reason = close_reason or 0
    db.commit()
    db.refresh(record)
    return record
