from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from promotracker.core.deps import get_db, not_found
from promotracker.engine.errors import NotFoundError
from promotracker.schemas.booking_promotion import ReevaluateRequest, ReevaluationReportOut
from promotracker.services.audit_service import write_audit_log
from promotracker.services.loyalty_service import recalculate_loyalty_for_chain
from promotracker.services.reevaluation_service import (
    ReevaluationReport,
    reevaluate,
    reevaluate_all,
    reevaluate_for_promotion,
)

router = APIRouter()


def _audit(db: Session, request: Request, action_type: str, target_type: str, target_id: str, report: ReevaluationReport) -> None:
    write_audit_log(
        db,
        actor="api",
        action_type=action_type,
        target_type=target_type,
        target_id=target_id,
        summary=f"Re-evaluated {len(report.processed)} booking(s)",
        report=report,
        request=request,
    )


@router.post("/reevaluate", response_model=ReevaluationReportOut)
def reevaluate_bookings(payload: ReevaluateRequest, request: Request, db: Session = Depends(get_db)):
    report = reevaluate(db, payload.booking_ids)
    _audit(db, request, "REEVALUATE", "booking", ",".join(payload.booking_ids)[:64], report)
    return report


@router.post("/reevaluate-all", response_model=ReevaluationReportOut)
def reevaluate_everything(request: Request, db: Session = Depends(get_db)):
    report = reevaluate_all(db)
    _audit(db, request, "REEVALUATE_ALL", "booking", "*", report)
    return report


@router.post("/promotions/{promotion_id}/reevaluate", response_model=ReevaluationReportOut)
def reevaluate_promotion(promotion_id: str, request: Request, db: Session = Depends(get_db)):
    try:
        report = reevaluate_for_promotion(db, promotion_id)
    except NotFoundError as exc:
        raise not_found(exc)
    _audit(db, request, "REEVALUATE_PROMOTION", "promotion", promotion_id, report)
    return report


@router.post("/hotel-chains/{hotel_chain_id}/recalculate-loyalty", response_model=ReevaluationReportOut)
def recalculate_loyalty(
    hotel_chain_id: str,
    request: Request,
    today: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        report = recalculate_loyalty_for_chain(db, hotel_chain_id, today)
    except NotFoundError as exc:
        raise not_found(exc)
    _audit(db, request, "RECALCULATE_LOYALTY", "hotel_chain", hotel_chain_id, report)
    return report
