import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFound
from ..services import intake, management, offers, status_engine
from .. import schemas, tasks

_logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/request", tags=["requests"])


@router.get("/{request_id}", response_model=schemas.RequestDetailOut)
def get_request_detail(request_id: str, db: Session = Depends(get_db)):
    request = intake.require_request(db, request_id)
    record = management.get(db, request_id)
    base = schemas.RequestOut.model_validate(request).model_dump()
    return schemas.RequestDetailOut(
        **base,
        management=management.with_defaults(request_id, record),
        offers=[schemas.OfferOut.model_validate(o) for o in offers.list_by_request(db, request_id)],
        status_history=[
            schemas.StatusRecordOut.model_validate(s) for s in status_engine.history(db, request_id)
        ],
        current_status=schemas.StatusRecordOut.model_validate(
            status_engine.current_status(db, request_id)
        ),
    )


@router.put("/{request_id}/status", response_model=schemas.StatusChangeOut)
def change_status(
    request_id: str,
    payload: schemas.StatusChangeIn,
    db: Session = Depends(get_db),
):
    result = status_engine.change_status(
        db,
        request_id,
        payload.new_status,
        final_outcome=payload.final_outcome,
        close_reason=payload.close_reason,
        notes=payload.notes,
    )
    warnings = list(result.warnings)
    if result.automatic_action:
        request = intake.require_request(db, request_id)
        try:
            tasks.dispatch_automatic_action(result.automatic_action, request, payload.close_reason)
        except Exception as exc:
            _logger.warning(
                "Automatic action %s for request %s was not queued",
                result.automatic_action,
                request_id,
                exc_info=True,
            )
            warnings.append(f"Automatic action {result.automatic_action} not queued: {exc}")
    return schemas.StatusChangeOut(
        message="Status updated",
        new_status=schemas.StatusRecordOut.model_validate(result.record),
        warnings=warnings,
        automatic_action=result.automatic_action,
    )


def _save_management(db: Session, request_id: str, changes: dict, response: Response, what: str):
    intake.require_request(db, request_id)
    record, created = management.apply_changes(db, request_id, changes)
    response.status_code = 201 if created else 200
    return schemas.ManagementWriteOut(
        message=f"{what} {'created' if created else 'updated'}",
        management=management.with_defaults(request_id, record),
    )


@router.put("/{request_id}/notes", response_model=schemas.ManagementWriteOut)
def update_notes(
    request_id: str,
    payload: schemas.NotesUpdate,
    response: Response,
    db: Session = Depends(get_db),
):
    return _save_management(db, request_id, payload.model_dump(), response, "Notes")


@router.put("/{request_id}/pricing", response_model=schemas.ManagementWriteOut)
def update_pricing(
    request_id: str,
    payload: schemas.PricingUpdate,
    response: Response,
    db: Session = Depends(get_db),
):
    return _save_management(db, request_id, payload.model_dump(exclude_none=True), response, "Pricing")


@router.put("/{request_id}/range", response_model=schemas.ManagementWriteOut)
def update_range(
    request_id: str,
    payload: schemas.RangeUpdate,
    response: Response,
    db: Session = Depends(get_db),
):
    return _save_management(db, request_id, payload.model_dump(exclude_none=True), response, "Range")


@router.post("/{request_id}/offers", response_model=schemas.OfferWriteOut, status_code=201)
def add_offer(
    request_id: str,
    payload: schemas.OfferCreate,
    db: Session = Depends(get_db),
):
    intake.require_request(db, request_id)
    offer = offers.add(db, request_id, payload.description, payload.price)
    return schemas.OfferWriteOut(message="Offer added", offer=schemas.OfferOut.model_validate(offer))


@router.put("/{request_id}/offers/{offer_id}", response_model=schemas.OfferWriteOut)
def update_offer(
    request_id: str,
    offer_id: int,
    payload: schemas.OfferUpdate,
    db: Session = Depends(get_db),
):
    intake.require_request(db, request_id)
    offer = offers.update(db, offer_id, payload.model_dump(exclude_unset=True), request_id=request_id)
    if offer is None:
        raise NotFound("Offer", offer_id)
    return schemas.OfferWriteOut(message="Offer updated", offer=schemas.OfferOut.model_validate(offer))


@router.delete("/{request_id}/offers/{offer_id}")
def delete_offer(request_id: str, offer_id: int, db: Session = Depends(get_db)):
    intake.require_request(db, request_id)
    if not offers.delete(db, offer_id, request_id=request_id):
        raise NotFound("Offer", offer_id)
    return {"success": True, "message": "Offer deleted", "offer_id": offer_id}
