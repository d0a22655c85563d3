from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from promotracker.engine.errors import NotFoundError
from promotracker.models.booking import Booking
from promotracker.models.hotel_chain import HotelChain, HotelChainEliteStatus, UserStatus
from promotracker.services.booking_store import effective_base_rate
from promotracker.services.reevaluation_service import ReevaluationReport, reevaluate

logger = logging.getLogger("promotracker.loyalty")


def _round_points(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_points(
    pretax_cost: Decimal,
    base_point_rate: Decimal | None,
    elite: HotelChainEliteStatus | None = None,
) -> int:
    """Loyalty points a stay earns, base plus elite bonus."""
    pretax_cost = Decimal(pretax_cost or 0)
    if elite is not None and elite.is_fixed and elite.fixed_rate is not None:
        return _round_points(pretax_cost * Decimal(elite.fixed_rate))
    if base_point_rate is None:
        return 0
    base = Decimal(base_point_rate)
    if elite is not None and elite.bonus_percentage is not None:
        return _round_points(pretax_cost * base * (1 + Decimal(elite.bonus_percentage)))
    return _round_points(pretax_cost * base)


def current_elite_status(db: Session, hotel_chain_id: str) -> HotelChainEliteStatus | None:
    status = db.execute(
        select(UserStatus).where(UserStatus.hotel_chain_id == hotel_chain_id).options(selectinload(UserStatus.elite_status))
    ).scalars().first()
    return status.elite_status if status is not None else None


def points_for_booking(db: Session, booking: Booking) -> int:
    return calculate_points(booking.pretax_cost, effective_base_rate(booking), current_elite_status(db, booking.hotel_chain_id))


def recalculate_loyalty_for_chain(db: Session, hotel_chain_id: str, today: date | None = None) -> ReevaluationReport:
    """Refresh earned points on the chain's upcoming stays and re-run the engine on them.

    Past stays keep whatever was actually posted.
    """
    chain = db.get(HotelChain, hotel_chain_id)
    if chain is None:
        raise NotFoundError("hotel chain", hotel_chain_id)
    today = today or datetime.now(timezone.utc).date()

    bookings = db.execute(
        select(Booking)
        .where(Booking.hotel_chain_id == hotel_chain_id, Booking.check_in >= today)
        .options(selectinload(Booking.hotel_chain), selectinload(Booking.sub_brand))
    ).scalars().all()
    elite = current_elite_status(db, hotel_chain_id)

    changed = 0
    for b in bookings:
        points = calculate_points(b.pretax_cost, effective_base_rate(b), elite)
        if b.loyalty_points_earned != points:
            b.loyalty_points_earned = points
            changed += 1
    db.commit()
    logger.info("Chain %s: recalculated %d upcoming booking(s), %d changed", hotel_chain_id, len(bookings), changed)

    return reevaluate(db, [b.id for b in bookings])
