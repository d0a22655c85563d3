"""SQLAlchemy side of the engine: ORM rows in, snapshots out, results back."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Sequence

from sqlalchemy import ColumnElement, delete, or_, select
from sqlalchemy.orm import Session, selectinload

from promotracker.core.config import get_settings
from promotracker.engine.errors import NotFoundError
from promotracker.engine.types import (
    BenefitDef,
    BookingSnapshot,
    MatchedPromotion,
    MultiplierBasis,
    PromotionDef,
    PromotionDiagnostic,
    PromotionType,
    RestrictionSet,
    RewardType,
    TierDef,
    ValuationRow,
    ValueType,
)
from promotracker.models.benefit_valuation import BenefitValuation
from promotracker.models.booking import Booking
from promotracker.models.booking_promotion import BookingPromotion, BookingPromotionBenefit
from promotracker.models.hotel_chain import HotelChain
from promotracker.models.promotion import Promotion, PromotionBenefit, PromotionRestrictions, PromotionTier

logger = logging.getLogger("promotracker.store")

SortKey = tuple[date, datetime, str]


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def chain_point_value(chain: HotelChain | None) -> Decimal:
    """Dollar value of one point of the chain's currency."""
    if chain is not None and chain.point_type is not None and chain.point_type.cents_per_point is not None:
        return Decimal(chain.point_type.cents_per_point) / Decimal("100")
    return get_settings().default_cents_per_point / Decimal("100")


def effective_base_rate(booking: Booking) -> Decimal | None:
    if booking.sub_brand is not None and booking.sub_brand.base_point_rate is not None:
        return Decimal(booking.sub_brand.base_point_rate)
    if booking.hotel_chain is not None and booking.hotel_chain.base_point_rate is not None:
        return Decimal(booking.hotel_chain.base_point_rate)
    return None


def to_snapshot(booking: Booking) -> BookingSnapshot:
    return BookingSnapshot(
        id=booking.id,
        check_in=booking.check_in,
        check_out=booking.check_out,
        created_at=_aware(booking.created_at),
        num_nights=booking.num_nights,
        pretax_cost=Decimal(booking.pretax_cost or 0),
        total_cost=Decimal(booking.total_cost or 0),
        hotel_chain_id=booking.hotel_chain_id,
        hotel_chain_sub_brand_id=booking.hotel_chain_sub_brand_id,
        credit_card_id=booking.credit_card_id,
        shopping_portal_id=booking.shopping_portal_id,
        booking_source=booking.booking_source,
        points_redeemed=booking.points_redeemed or 0,
        certificate_count=len(booking.certificates),
        loyalty_points_earned=booking.loyalty_points_earned,
        base_point_rate=effective_base_rate(booking),
        point_value=chain_point_value(booking.hotel_chain),
    )


def _booking_query():
    return select(Booking).options(
        selectinload(Booking.hotel_chain).selectinload(HotelChain.point_type),
        selectinload(Booking.sub_brand),
        selectinload(Booking.certificates),
    )


def load_booking(db: Session, booking_id: str) -> Booking:
    booking = db.execute(_booking_query().where(Booking.id == booking_id)).scalars().first()
    if booking is None:
        raise NotFoundError("booking", booking_id)
    return booking


def load_snapshot(db: Session, booking_id: str) -> BookingSnapshot:
    return to_snapshot(load_booking(db, booking_id))


def load_timeline(db: Session, until_key: SortKey | None = None) -> list[BookingSnapshot]:
    """Every booking in chronological order, optionally stopping at ``until_key``."""
    q = _booking_query().order_by(Booking.check_in, Booking.created_at, Booking.id)
    if until_key is not None:
        q = q.where(Booking.check_in <= until_key[0])
    snapshots = [to_snapshot(b) for b in db.execute(q).scalars().all()]
    # Re-sort on normalized timestamps; the database may compare naive values
    snapshots.sort(key=lambda s: s.sort_key)
    if until_key is not None:
        snapshots = [s for s in snapshots if s.sort_key <= until_key]
    return snapshots


def load_sort_keys(db: Session, booking_ids: Iterable[str]) -> dict[str, SortKey]:
    """Sort keys of the given bookings without loading them; unknown ids are absent."""
    ids = list(booking_ids)
    if not ids:
        return {}
    rows = db.execute(select(Booking.id, Booking.check_in, Booking.created_at).where(Booking.id.in_(ids))).all()
    return {bid: (check_in, _aware(created_at), bid) for bid, check_in, created_at in rows}


def linked_booking_filter(db: Session, promotion_ids: Iterable[str]) -> list[ColumnElement[bool]]:
    """Conditions selecting bookings a promotion can apply to, one per link kind."""
    ids = list(promotion_ids)
    if not ids:
        return []
    rows = db.execute(
        select(Promotion.type, Promotion.hotel_chain_id, Promotion.credit_card_id, Promotion.shopping_portal_id).where(
            Promotion.id.in_(ids)
        )
    ).all()
    chains: set[str] = set()
    cards: set[str] = set()
    portals: set[str] = set()
    for ptype, chain_id, card_id, portal_id in rows:
        if ptype == PromotionType.LOYALTY.value and chain_id is not None:
            chains.add(chain_id)
        elif ptype == PromotionType.CREDIT_CARD.value and card_id is not None:
            cards.add(card_id)
        elif ptype == PromotionType.PORTAL.value and portal_id is not None:
            portals.add(portal_id)

    conds = []
    if chains:
        conds.append(Booking.hotel_chain_id.in_(chains))
    if cards:
        conds.append(Booking.credit_card_id.in_(cards))
    if portals:
        conds.append(Booking.shopping_portal_id.in_(portals))
    return conds


def load_bookings_after(
    db: Session,
    key: SortKey,
    promotion_ids: Iterable[str] | None = None,
) -> list[str]:
    """Ids of bookings strictly later than ``key``.

    With ``promotion_ids`` the result narrows to bookings holding one of those
    promotions or linked to one through its chain, card or portal.
    """
    q = select(Booking.id, Booking.check_in, Booking.created_at).where(Booking.check_in >= key[0])
    if promotion_ids is not None:
        ids = list(promotion_ids)
        if not ids:
            return []
        holders = select(BookingPromotion.booking_id).where(BookingPromotion.promotion_id.in_(ids))
        q = q.where(or_(Booking.id.in_(holders), *linked_booking_filter(db, ids)))
    rows = db.execute(q).all()
    later = [(check_in, _aware(created_at), bid) for bid, check_in, created_at in rows]
    return [k[2] for k in sorted(later) if k > key]


def to_restriction_set(r: PromotionRestrictions | None) -> RestrictionSet | None:
    if r is None:
        return None
    include = frozenset(s.hotel_chain_sub_brand_id for s in r.sub_brand_restrictions if s.mode == "include")
    exclude = frozenset(s.hotel_chain_sub_brand_id for s in r.sub_brand_restrictions if s.mode == "exclude")
    return RestrictionSet(
        min_spend=r.min_spend,
        min_nights_required=r.min_nights_required,
        nights_stackable=bool(r.nights_stackable),
        span_stays=bool(r.span_stays),
        max_stay_count=r.max_stay_count,
        max_reward_count=r.max_reward_count,
        max_redemption_value=r.max_redemption_value,
        max_total_bonus_points=r.max_total_bonus_points,
        once_per_sub_brand=bool(r.once_per_sub_brand),
        sub_brand_include_ids=include,
        sub_brand_exclude_ids=exclude,
        allowed_payment_types=tuple(r.allowed_payment_types or ()),
        allowed_booking_sources=tuple(r.allowed_booking_sources or ()),
        tie_in_credit_card_ids=frozenset(c.credit_card_id for c in r.tie_in_cards),
        tie_in_requires_payment=bool(r.tie_in_requires_payment),
        hotel_chain_id=r.hotel_chain_id,
        prerequisite_stay_count=r.prerequisite_stay_count,
        prerequisite_night_count=r.prerequisite_night_count,
        book_by_date=r.book_by_date,
        registration_deadline=r.registration_deadline,
        valid_days_after_registration=r.valid_days_after_registration,
        registration_date=r.registration_date,
    )


def to_benefit_def(b: PromotionBenefit) -> BenefitDef:
    return BenefitDef(
        id=b.id,
        reward_type=RewardType(b.reward_type),
        value_type=ValueType(b.value_type),
        value=Decimal(b.value),
        cert_type=b.cert_type,
        points_multiplier_basis=MultiplierBasis(b.points_multiplier_basis or MultiplierBasis.BASE_ONLY.value),
        is_tie_in=bool(b.is_tie_in),
        sort_order=b.sort_order or 0,
        restrictions=to_restriction_set(b.restrictions),
    )


def to_promotion_def(p: Promotion) -> PromotionDef:
    return PromotionDef(
        id=p.id,
        name=p.name,
        type=PromotionType(p.type),
        hotel_chain_id=p.hotel_chain_id,
        credit_card_id=p.credit_card_id,
        shopping_portal_id=p.shopping_portal_id,
        start_date=p.start_date,
        end_date=p.end_date,
        is_active=bool(p.is_active),
        is_single_use=bool(p.is_single_use),
        restrictions=to_restriction_set(p.restrictions),
        benefits=tuple(to_benefit_def(b) for b in p.benefits),
        tiers=tuple(
            TierDef(
                id=t.id,
                min_stays=t.min_stays,
                max_stays=t.max_stays,
                min_nights=t.min_nights,
                max_nights=t.max_nights,
                benefits=tuple(to_benefit_def(b) for b in t.benefits),
            )
            for t in p.tiers
        ),
    )


def _restriction_loads(attr):
    return (
        selectinload(attr).selectinload(PromotionRestrictions.sub_brand_restrictions),
        selectinload(attr).selectinload(PromotionRestrictions.tie_in_cards),
    )


def load_active_promotions(
    db: Session,
    diagnostics: list[PromotionDiagnostic] | None = None,
) -> list[PromotionDef]:
    """Active promotions, fully expanded. Rows with unknown enum values are skipped."""
    q = (
        select(Promotion)
        .where(Promotion.is_active.is_(True))
        .order_by(Promotion.created_at, Promotion.id)
        .options(
            *_restriction_loads(Promotion.restrictions),
            selectinload(Promotion.benefits).options(*_restriction_loads(PromotionBenefit.restrictions)),
            selectinload(Promotion.tiers)
            .selectinload(PromotionTier.benefits)
            .options(*_restriction_loads(PromotionBenefit.restrictions)),
        )
    )
    out: list[PromotionDef] = []
    for p in db.execute(q).scalars().all():
        try:
            out.append(to_promotion_def(p))
        except ValueError as exc:
            logger.warning("Skipping promotion %s with unreadable definition: %s", p.id, exc)
            if diagnostics is not None:
                diagnostics.append(PromotionDiagnostic("", p.id, "InvalidConfigurationError", str(exc)))
    return out


def load_valuations(db: Session) -> list[ValuationRow]:
    rows = db.execute(select(BenefitValuation)).scalars().all()
    return [
        ValuationRow(
            value=Decimal(v.value),
            value_type=v.value_type,
            hotel_chain_id=v.hotel_chain_id,
            is_eqn=bool(v.is_eqn),
            cert_type=v.cert_type,
        )
        for v in rows
    ]


def delete_auto_applied(db: Session, booking_id: str) -> None:
    auto_ids = select(BookingPromotion.id).where(
        BookingPromotion.booking_id == booking_id, BookingPromotion.auto_applied.is_(True)
    )
    db.execute(
        delete(BookingPromotionBenefit)
        .where(BookingPromotionBenefit.booking_promotion_id.in_(auto_ids))
        .execution_options(synchronize_session=False)
    )
    db.execute(
        delete(BookingPromotion)
        .where(BookingPromotion.booking_id == booking_id, BookingPromotion.auto_applied.is_(True))
        .execution_options(synchronize_session=False)
    )
    booking = db.get(Booking, booking_id)
    if booking is not None:
        db.expire(booking, ["booking_promotions"])


def replace_auto_applied(
    db: Session,
    booking_id: str,
    matched: Sequence[MatchedPromotion],
) -> list[BookingPromotion]:
    """Swap the booking's engine-owned rows for ``matched`` in one step."""
    delete_auto_applied(db, booking_id)
    rows: list[BookingPromotion] = []
    for m in matched:
        bp = BookingPromotion(
            booking_id=booking_id,
            promotion_id=m.promotion_id,
            applied_value=m.applied_value,
            bonus_points_applied=int(m.bonus_points_applied),
            eligible_nights_at_booking=m.eligible_nights_at_booking,
            auto_applied=True,
            verified=False,
        )
        bp.benefit_applications = [
            BookingPromotionBenefit(
                promotion_benefit_id=a.promotion_benefit_id,
                applied_value=a.applied_value,
                bonus_points_applied=int(a.bonus_points_applied),
                eligible_nights_at_booking=a.eligible_nights_at_booking,
            )
            for a in m.benefit_applications
        ]
        db.add(bp)
        rows.append(bp)
    db.flush()
    return rows
