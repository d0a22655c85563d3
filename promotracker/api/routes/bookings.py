from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from promotracker.core.deps import get_db, not_found
from promotracker.engine.errors import NotFoundError
from promotracker.models.booking import Booking
from promotracker.schemas.booking import BookingCreate, BookingOut, BookingUpdate
from promotracker.schemas.booking_promotion import (
    BookingPromotionOut,
    ReevaluateSubsequentRequest,
    ReevaluationReportOut,
)
from promotracker.services import booking_service
from promotracker.services.reevaluation_service import (
    get_applied_promotions,
    match_for_booking,
    reevaluate_subsequent,
)

router = APIRouter()


@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def create_booking(payload: BookingCreate, request: Request, background: BackgroundTasks, db: Session = Depends(get_db)):
    return booking_service.create_booking(db, payload, background=background, request=request)


@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, db: Session = Depends(get_db)):
    b = db.get(Booking, booking_id)
    if not b:
        raise HTTPException(status_code=404, detail="Not found")
    return b


@router.patch("/{booking_id}", response_model=BookingOut)
def update_booking(
    booking_id: str,
    payload: BookingUpdate,
    request: Request,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        return booking_service.update_booking(db, booking_id, payload, background=background, request=request)
    except NotFoundError as exc:
        raise not_found(exc)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(booking_id: str, request: Request, background: BackgroundTasks, db: Session = Depends(get_db)):
    try:
        booking_service.delete_booking(db, booking_id, background=background, request=request)
    except NotFoundError as exc:
        raise not_found(exc)


@router.get("/{booking_id}/promotions", response_model=list[BookingPromotionOut])
def list_booking_promotions(booking_id: str, db: Session = Depends(get_db)):
    if db.get(Booking, booking_id) is None:
        raise HTTPException(status_code=404, detail="Not found")
    return get_applied_promotions(db, booking_id)


@router.post("/{booking_id}/match", response_model=list[BookingPromotionOut])
def match_booking(booking_id: str, db: Session = Depends(get_db)):
    try:
        return match_for_booking(db, booking_id)
    except NotFoundError as exc:
        raise not_found(exc)


@router.post("/{booking_id}/reevaluate-subsequent", response_model=ReevaluationReportOut)
def reevaluate_after_booking(
    booking_id: str,
    payload: ReevaluateSubsequentRequest | None = None,
    db: Session = Depends(get_db),
):
    touched = payload.touched_promotion_ids if payload is not None else None
    try:
        return reevaluate_subsequent(db, booking_id, touched)
    except NotFoundError as exc:
        raise not_found(exc)
