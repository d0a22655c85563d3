from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from promotracker.models.booking_promotion import BookingPromotion


def applied(db, booking_id: str, promotion_id: str | None = None) -> list[BookingPromotion]:
    q = select(BookingPromotion).where(BookingPromotion.booking_id == booking_id)
    if promotion_id is not None:
        q = q.where(BookingPromotion.promotion_id == promotion_id)
    return list(db.execute(q.order_by(BookingPromotion.id)).scalars().all())


def applied_value(db, booking_id: str, promotion_id: str) -> Decimal | None:
    rows = [r for r in applied(db, booking_id, promotion_id) if r.auto_applied]
    return rows[0].applied_value if rows else None
