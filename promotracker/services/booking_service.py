"""Booking writes. Each write re-runs the engine for the booking and cascades."""

from __future__ import annotations

import logging
from typing import Any, Callable

from fastapi import BackgroundTasks, HTTPException, Request
from sqlalchemy.orm import Session

from promotracker.core.config import get_settings
from promotracker.db.session import SessionLocal
from promotracker.engine.errors import NotFoundError
from promotracker.models.booking import Booking, BookingCertificate
from promotracker.models.hotel_chain import HotelChain, HotelChainSubBrand
from promotracker.schemas.booking import BookingCreate, BookingUpdate
from promotracker.services.audit_service import write_audit_log
from promotracker.services.booking_store import load_booking, load_snapshot
from promotracker.services.loyalty_service import points_for_booking
from promotracker.services.reevaluation_service import (
    match_for_booking,
    reevaluate_after,
    reevaluate_subsequent,
)

logger = logging.getLogger("promotracker.bookings")


def _validate_refs(db: Session, hotel_chain_id: str, sub_brand_id: str | None) -> None:
    if db.get(HotelChain, hotel_chain_id) is None:
        raise HTTPException(status_code=400, detail="Unknown hotel chain")
    if sub_brand_id is not None:
        sb = db.get(HotelChainSubBrand, sub_brand_id)
        if sb is None or sb.hotel_chain_id != hotel_chain_id:
            raise HTTPException(status_code=400, detail="Sub-brand does not belong to the hotel chain")


def _validate_dates(b: Booking) -> None:
    if b.check_out <= b.check_in:
        raise HTTPException(status_code=400, detail="check_out must be after check_in")


def _promotion_ids(b: Booking) -> set[str]:
    return {bp.promotion_id for bp in b.booking_promotions}


def _run_detached(job: Callable[..., Any], *args: Any) -> None:
    db = SessionLocal()
    try:
        job(db, *args)
    except NotFoundError as exc:
        # The trigger booking was removed before the cascade got to run
        logger.warning("Background cascade skipped: %s", exc)
    finally:
        db.close()


def _cascade(db: Session, background: BackgroundTasks | None, job: Callable[..., Any], *args: Any) -> None:
    if background is not None and get_settings().cascade_in_background:
        background.add_task(_run_detached, job, *args)
        return
    job(db, *args)


def create_booking(
    db: Session,
    payload: BookingCreate,
    *,
    background: BackgroundTasks | None = None,
    request: Request | None = None,
) -> Booking:
    _validate_refs(db, payload.hotel_chain_id, payload.hotel_chain_sub_brand_id)

    data = payload.model_dump(exclude={"certificates"})
    b = Booking(**data)
    _validate_dates(b)
    if b.num_nights is None:
        b.num_nights = (b.check_out - b.check_in).days
    if b.total_cost is None:
        b.total_cost = b.pretax_cost + b.tax_amount
    b.certificates = [BookingCertificate(cert_type=c) for c in payload.certificates]
    db.add(b)
    db.flush()

    if b.loyalty_points_earned is None:
        b.loyalty_points_earned = points_for_booking(db, b)

    write_audit_log(
        db,
        actor="api",
        action_type="BOOKING_CREATE",
        target_type="booking",
        target_id=b.id,
        summary=f"Created booking {b.property_name or b.id} ({b.check_in.isoformat()})",
        diff_json={"after": payload.model_dump(mode="json")},
        request=request,
        commit=False,
    )
    db.commit()

    match_for_booking(db, b.id)
    db.refresh(b)
    _cascade(db, background, reevaluate_subsequent, b.id, sorted(_promotion_ids(b)))
    return load_booking(db, b.id)


def update_booking(
    db: Session,
    booking_id: str,
    payload: BookingUpdate,
    *,
    background: BackgroundTasks | None = None,
    request: Request | None = None,
) -> Booking:
    b = load_booking(db, booking_id)
    before_snapshot = load_snapshot(db, booking_id)
    before_promotions = _promotion_ids(b)

    data = payload.model_dump(exclude_unset=True)
    certificates = data.pop("certificates", None)
    before = {k: getattr(b, k) for k in data}

    for k, v in data.items():
        setattr(b, k, v)
    _validate_refs(db, b.hotel_chain_id, b.hotel_chain_sub_brand_id)
    _validate_dates(b)

    if "num_nights" not in data and ({"check_in", "check_out"} & data.keys()):
        b.num_nights = (b.check_out - b.check_in).days
    if "total_cost" not in data and ({"pretax_cost", "tax_amount"} & data.keys()):
        b.total_cost = b.pretax_cost + b.tax_amount
    if certificates is not None:
        b.certificates = [BookingCertificate(cert_type=c) for c in certificates]
    if "loyalty_points_earned" not in data and (
        {"pretax_cost", "hotel_chain_id", "hotel_chain_sub_brand_id"} & data.keys()
    ):
        db.flush()
        db.refresh(b, ["hotel_chain", "sub_brand"])
        b.loyalty_points_earned = points_for_booking(db, b)

    write_audit_log(
        db,
        actor="api",
        action_type="BOOKING_UPDATE",
        target_type="booking",
        target_id=b.id,
        summary=f"Updated booking {b.property_name or b.id}",
        diff_json={"before": before, "after": data},
        request=request,
        commit=False,
    )
    db.commit()

    match_for_booking(db, b.id)
    db.refresh(b)
    touched = sorted(before_promotions | _promotion_ids(b))
    # A stay moved later also changes what the bookings it jumped over see
    _cascade(db, background, reevaluate_subsequent, b.id, touched, before_snapshot)
    return load_booking(db, b.id)


def delete_booking(
    db: Session,
    booking_id: str,
    *,
    background: BackgroundTasks | None = None,
    request: Request | None = None,
) -> None:
    b = load_booking(db, booking_id)
    key = load_snapshot(db, booking_id).sort_key

    db.delete(b)
    write_audit_log(
        db,
        actor="api",
        action_type="BOOKING_DELETE",
        target_type="booking",
        target_id=booking_id,
        summary=f"Deleted booking {b.property_name or booking_id}",
        diff_json={"check_in": b.check_in, "hotel_chain_id": b.hotel_chain_id},
        request=request,
        commit=False,
    )
    db.commit()

    # Nothing left to narrow by, so every later booking is re-run
    _cascade(db, background, reevaluate_after, key)
