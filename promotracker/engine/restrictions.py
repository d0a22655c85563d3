"""Restriction evaluation.

A restriction set can hang off a promotion, a tier benefit or a flat benefit.
Each level is evaluated on its own and the results are ANDed by the caller;
nothing here reads or writes the usage ledger, counters are passed in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from promotracker.engine.errors import ComputationDomainError, InvalidConfigurationError
from promotracker.engine.proration import CycleSegment, SpanCycle
from promotracker.engine.types import BookingSnapshot, PaymentType, PromotionType, RestrictionSet

ONE = Decimal("1")

# Failure reasons. PREREQUISITE is special: a stay failing only on it still
# counts as activity toward the prerequisite itself.
PREREQUISITE = "prerequisite"


@dataclass(frozen=True)
class RestrictionOutcome:
    eligible: bool
    multiplier: Decimal = ONE
    reason: str | None = None
    segments: tuple[CycleSegment, ...] = field(default_factory=tuple)

    @classmethod
    def fail(cls, reason: str) -> "RestrictionOutcome":
        return cls(eligible=False, multiplier=Decimal("0"), reason=reason)


PASS = RestrictionOutcome(eligible=True)


def classify_payment_type(booking: BookingSnapshot) -> PaymentType:
    parts = []
    if booking.pretax_cost > 0:
        parts.append("cash")
    if booking.points_redeemed > 0:
        parts.append("points")
    if booking.certificate_count > 0:
        parts.append("cert")
    if not parts:
        return PaymentType.CASH
    return PaymentType("_".join(parts))


def payment_type_allowed(allowed: tuple[str, ...], booking: BookingSnapshot) -> bool:
    if not allowed:
        return True
    payment = classify_payment_type(booking)
    if payment.value in allowed:
        return True
    return all(part in allowed for part in payment.components)


def tie_in_satisfied(card_ids: frozenset[str], requires_payment: bool, booking: BookingSnapshot) -> bool:
    if booking.credit_card_id is None:
        return False
    if card_ids and booking.credit_card_id not in card_ids:
        return False
    if requires_payment and booking.pretax_cost <= 0:
        return False
    return True


def validate_restrictions(restrictions: RestrictionSet, owner_id: str) -> None:
    if restrictions.sub_brand_include_ids and restrictions.sub_brand_exclude_ids:
        raise InvalidConfigurationError(owner_id, "sub-brand include and exclude lists are mutually exclusive")
    if restrictions.min_nights_required is not None and restrictions.min_nights_required <= 0:
        raise ComputationDomainError("minimum nights must be positive", owner_id)
    for name in ("max_stay_count", "max_reward_count", "max_redemption_value", "max_total_bonus_points"):
        cap = getattr(restrictions, name)
        if cap is not None and cap < 0:
            raise ComputationDomainError(f"{name} is negative", owner_id)


def in_promotion_window(
    start_date: date | None,
    end_date: date | None,
    restrictions: RestrictionSet | None,
    booking: BookingSnapshot,
) -> bool:
    """Check-in must fall in the promotion window.

    A registered promotion swaps the global window for a personal one that
    opens on the registration date.
    """
    check_in = booking.check_in
    reg = restrictions.registration_date if restrictions is not None else None
    if reg is None:
        if start_date is not None and check_in < start_date:
            return False
        if end_date is not None and check_in > end_date:
            return False
        return True

    if restrictions.registration_deadline is not None and reg > restrictions.registration_deadline:
        return False
    if check_in < reg:
        return False
    if restrictions.valid_days_after_registration is not None:
        return check_in <= reg + timedelta(days=restrictions.valid_days_after_registration)
    if end_date is not None:
        return check_in <= end_date
    return True


def evaluate(
    restrictions: RestrictionSet | None,
    booking: BookingSnapshot,
    *,
    promotion_type: PromotionType,
    prior_stays: int = 0,
    prior_nights: int = 0,
    cycle_nights_before: int = 0,
    owner_id: str = "",
) -> RestrictionOutcome:
    """Evaluate one restriction level against a booking.

    ``prior_stays``/``prior_nights`` are the activity counters used by
    prerequisites; ``cycle_nights_before`` feeds span-stay proration.
    """
    if restrictions is None:
        return PASS
    validate_restrictions(restrictions, owner_id)
    r = restrictions

    if r.min_spend is not None and booking.total_cost < r.min_spend:
        return RestrictionOutcome.fail("min_spend")

    if not payment_type_allowed(r.allowed_payment_types, booking):
        return RestrictionOutcome.fail("payment_type")

    if r.allowed_booking_sources and booking.booking_source not in r.allowed_booking_sources:
        return RestrictionOutcome.fail("booking_source")

    if r.hotel_chain_id is not None and promotion_type != PromotionType.LOYALTY:
        if booking.hotel_chain_id != r.hotel_chain_id:
            return RestrictionOutcome.fail("hotel_chain")

    sub_brand = booking.hotel_chain_sub_brand_id
    if r.sub_brand_include_ids and sub_brand not in r.sub_brand_include_ids:
        return RestrictionOutcome.fail("sub_brand")
    if r.sub_brand_exclude_ids and sub_brand is not None and sub_brand in r.sub_brand_exclude_ids:
        return RestrictionOutcome.fail("sub_brand")

    if r.tie_in_credit_card_ids and not tie_in_satisfied(r.tie_in_credit_card_ids, r.tie_in_requires_payment, booking):
        return RestrictionOutcome.fail("tie_in")

    if r.book_by_date is not None and booking.created_at.date() > r.book_by_date:
        return RestrictionOutcome.fail("book_by_date")

    multiplier = ONE
    segments: tuple[CycleSegment, ...] = ()
    n = r.min_nights_required
    if n is not None and not r.span_stays:
        if booking.num_nights < n:
            return RestrictionOutcome.fail("min_nights")
        if r.nights_stackable:
            multiplier = Decimal(booking.num_nights // n)

    if r.prerequisite_stay_count is not None:
        if prior_stays == 0 or prior_stays < r.prerequisite_stay_count:
            return RestrictionOutcome.fail(PREREQUISITE)
    if r.prerequisite_night_count is not None:
        if prior_nights == 0 or prior_nights < r.prerequisite_night_count:
            return RestrictionOutcome.fail(PREREQUISITE)

    if n is not None and r.span_stays:
        cycle = SpanCycle(n, cycle_nights_before, repeating=r.nights_stackable)
        segments = tuple(cycle.advance(booking.num_nights))
        if not segments:
            return RestrictionOutcome.fail("span_exhausted")
        multiplier = Decimal(sum(s.nights_credited for s in segments)) / Decimal(n)

    return RestrictionOutcome(eligible=True, multiplier=multiplier, segments=segments)
