from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from promotracker.core.deps import get_db
from promotracker.models.audit_log import AuditLog
from promotracker.models.booking import Booking
from promotracker.schemas.audit import AuditLogOut

router = APIRouter()


def _newest_first(q: Select, limit: int, offset: int) -> Select:
    return q.order_by(AuditLog.created_at.desc(), AuditLog.id).offset(offset).limit(limit)


@router.get("/audit-logs", response_model=list[AuditLogOut])
def list_audit_logs(
    from_: datetime | None = Query(default=None, alias="from"),
    to: datetime | None = None,
    actor: str | None = None,
    action_type: str | None = None,
    target_type: str | None = None,
    target_id: str | None = None,
    limit: int = Query(default=200, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    q = select(AuditLog)
    filters = [
        (AuditLog.actor, actor),
        (AuditLog.action_type, action_type),
        (AuditLog.target_type, target_type),
        (AuditLog.target_id, target_id),
    ]
    for column, value in filters:
        if value:
            q = q.where(column == value)
    if from_:
        q = q.where(AuditLog.created_at >= from_)
    if to:
        q = q.where(AuditLog.created_at <= to)

    return db.execute(_newest_first(q, limit, offset)).scalars().all()


@router.get("/bookings/{booking_id}/history", response_model=list[AuditLogOut])
def booking_history(
    booking_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    # Deleted bookings keep their history, so only reject ids never seen at all
    q = select(AuditLog).where(AuditLog.target_type == "booking", AuditLog.target_id == booking_id)
    logs = db.execute(_newest_first(q, limit, 0)).scalars().all()
    if not logs and db.get(Booking, booking_id) is None:
        raise HTTPException(status_code=404, detail="Not found")
    return logs
