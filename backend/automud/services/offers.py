"""Partner offers attached to a purchase request."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy.orm import Session

from .. import models
from ..errors import InvalidInput

# purpose: field-level offer edits, kept apart from the record-level management upsert
# status: active

OFFER_FIELDS = ("description", "price")


def add(db: Session, request_id: str, description: str, price: float) -> models.RequestOffer:
    offer = models.RequestOffer(
        request_id=request_id,
        description=description,
        price=price,
        offer_date=datetime.now(timezone.utc),
    )
    db.add(offer)
    db.commit()
    db.refresh(offer)
    return offer


def _load(db: Session, offer_id: int, request_id: str | None) -> models.RequestOffer | None:
    offer = db.get(models.RequestOffer, offer_id)
    if offer is None:
        return None
    if request_id is not None and offer.request_id != request_id:
        return None
    return offer


def update(
    db: Session,
    offer_id: int,
    changes: Mapping[str, Any],
    request_id: str | None = None,
) -> models.RequestOffer | None:
    """Write only the supplied offer fields; ``None`` when the offer is missing."""

    patch = {key: value for key, value in changes.items() if key in OFFER_FIELDS and value is not None}
    if not patch:
        raise InvalidInput("No offer fields to update")
    offer = _load(db, offer_id, request_id)
    if offer is None:
        return None
    for key, value in patch.items():
        setattr(offer, key, value)
    db.commit()
    db.refresh(offer)
    return offer


def delete(db: Session, offer_id: int, request_id: str | None = None) -> bool:
    offer = _load(db, offer_id, request_id)
    if offer is None:
        return False
    db.delete(offer)
    db.commit()
    return True


def list_by_request(db: Session, request_id: str) -> list[models.RequestOffer]:
    return (
        db.query(models.RequestOffer)
        .filter(models.RequestOffer.request_id == request_id)
        .order_by(models.RequestOffer.offer_date.desc(), models.RequestOffer.id.desc())
        .all()
    )
