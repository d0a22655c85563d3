"""Promotion matching.

``match_booking`` runs one booking against the promotion catalog:

1. the promotion type picks which booking field must equal the link field;
2. promotion-level restrictions gate the whole promotion;
3. tiered promotions pick the first tier containing this stay's ordinal;
4. each candidate benefit is gated again by its own restrictions;
5. surviving benefits are valued, prorated and capped against the ledger;
6. the promotion row is emitted whenever the gate passed, even at 0.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Sequence

from promotracker.engine.errors import ComputationDomainError, InvalidConfigurationError
from promotracker.engine.ledger import (
    BenefitDelta,
    BenefitUsage,
    CapBudget,
    PromotionDelta,
    PromotionUsage,
    UsageLedger,
    count_capped,
    promotion_state,
)
from promotracker.engine.restrictions import (
    PREREQUISITE,
    evaluate,
    in_promotion_window,
    tie_in_satisfied,
    validate_restrictions,
)
from promotracker.engine.types import (
    BenefitApplicationResult,
    BenefitDef,
    BookingSnapshot,
    MatchedPromotion,
    PromotionDef,
    PromotionDiagnostic,
    ValuationRow,
)
from promotracker.engine.valuation import DEFAULT_EQN_VALUE, validate_benefit, value_benefit

logger = logging.getLogger("promotracker.engine")

ZERO = Decimal("0")


def _all_benefits(promotion: PromotionDef) -> list[BenefitDef]:
    out = list(promotion.benefits)
    for tier in promotion.tiers:
        out.extend(tier.benefits)
    return out


def validate_promotion(promotion: PromotionDef) -> None:
    """Raise InvalidConfigurationError if the definition cannot be matched safely."""
    pid = promotion.id
    if promotion.benefits and promotion.tiers:
        raise InvalidConfigurationError(pid, "has both flat benefits and tiers")
    if not promotion.benefits and not promotion.tiers:
        raise InvalidConfigurationError(pid, "has neither benefits nor tiers")
    for tier in promotion.tiers:
        if tier.min_stays < 0:
            raise InvalidConfigurationError(pid, f"tier {tier.id} has a negative stay range")
        if tier.max_stays is not None and tier.min_stays > tier.max_stays:
            raise InvalidConfigurationError(pid, f"tier {tier.id} stay range is inverted")
        if tier.min_nights is not None and tier.max_nights is not None and tier.min_nights > tier.max_nights:
            raise InvalidConfigurationError(pid, f"tier {tier.id} night range is inverted")
    if promotion.restrictions is not None:
        validate_restrictions(promotion.restrictions, pid)
    for benefit in _all_benefits(promotion):
        validate_benefit(benefit, pid)
        if benefit.restrictions is not None:
            validate_restrictions(benefit.restrictions, pid)


def get_constrained_promotions(promotions: Iterable[PromotionDef]) -> list[PromotionDef]:
    """Promotions whose outcome for a booking depends on earlier bookings."""
    out = []
    for p in promotions:
        if p.is_tiered or p.is_single_use:
            out.append(p)
        elif p.restrictions is not None and p.restrictions.depends_on_history:
            out.append(p)
        elif any(b.restrictions is not None and b.restrictions.depends_on_history for b in p.benefits):
            out.append(p)
    return out


def _tie_in_gate(benefit: BenefitDef, promotion: PromotionDef, booking: BookingSnapshot) -> bool:
    # A tie-in benefit without its own card list falls back to the promotion's
    for r in (benefit.restrictions, promotion.restrictions):
        if r is not None and r.tie_in_credit_card_ids:
            return tie_in_satisfied(r.tie_in_credit_card_ids, r.tie_in_requires_payment, booking)
    return tie_in_satisfied(frozenset(), False, booking)


def _evaluate_promotion(
    promotion: PromotionDef,
    booking: BookingSnapshot,
    usage: PromotionUsage,
    valuations: Sequence[ValuationRow],
    default_eqn_value: Decimal,
) -> tuple[MatchedPromotion | None, PromotionDelta | None, bool]:
    """Return (row, ledger delta, counts-as-activity) without touching the ledger."""
    validate_promotion(promotion)
    r = promotion.restrictions
    sub_brand = booking.hotel_chain_sub_brand_id

    if not in_promotion_window(promotion.start_date, promotion.end_date, r, booking):
        return None, None, False

    gate = evaluate(
        r,
        booking,
        promotion_type=promotion.type,
        prior_stays=usage.activity_stays,
        prior_nights=usage.activity_nights,
        cycle_nights_before=usage.qualifying_nights,
        owner_id=promotion.id,
    )
    if not gate.eligible:
        return None, None, gate.reason == PREREQUISITE

    delta = PromotionDelta(promotion.id, booking.num_nights, sub_brand, qualifying=True)
    cumulative_nights = usage.qualifying_nights + booking.num_nights

    tier_id = None
    benefits: Sequence[BenefitDef] = promotion.benefits
    if promotion.is_tiered:
        ordinal = usage.qualifying_stays + 1
        tier = next((t for t in promotion.tiers if t.contains(ordinal, cumulative_nights)), None)
        if tier is None:
            return None, delta, True
        tier_id = tier.id
        benefits = tier.benefits

    promotion_capped = count_capped(r, usage, sub_brand, single_use=promotion.is_single_use)
    promotion_budget = CapBudget.for_scope(r, usage.total_value, usage.total_bonus_points, promotion.id)

    matched = MatchedPromotion(promotion.id, eligible_nights_at_booking=cumulative_nights, tier_id=tier_id)
    for benefit in sorted(benefits, key=lambda b: (b.sort_order, b.id)):
        br = benefit.restrictions
        bu = usage.benefits.get(benefit.id) or BenefitUsage()

        if benefit.is_tie_in and not _tie_in_gate(benefit, promotion, booking):
            continue
        outcome = evaluate(
            br,
            booking,
            promotion_type=promotion.type,
            prior_stays=usage.activity_stays,
            prior_nights=usage.activity_nights,
            cycle_nights_before=bu.nights,
            owner_id=promotion.id,
        )
        if not outcome.eligible:
            continue

        raw = value_benefit(benefit, booking, valuations, default_eqn_value).scaled(gate.multiplier * outcome.multiplier)
        if promotion_capped or count_capped(br, bu, sub_brand):
            value, points = ZERO, ZERO
        else:
            benefit_budget = CapBudget.for_scope(br, bu.total_value, bu.total_points, promotion.id)
            value, points = benefit_budget.take(raw.value, raw.bonus_points)
            value, points = promotion_budget.take(value, points)

        matched.benefit_applications.append(
            BenefitApplicationResult(
                promotion_benefit_id=benefit.id,
                applied_value=value,
                bonus_points_applied=points,
                eligible_nights_at_booking=bu.nights + booking.num_nights,
                raw_value=raw.value,
                raw_bonus_points=raw.bonus_points,
            )
        )
        delta.benefits.append(BenefitDelta(benefit.id, booking.num_nights, value, points))

    matched.applied_value = sum((a.applied_value for a in matched.benefit_applications), ZERO)
    matched.bonus_points_applied = sum((a.bonus_points_applied for a in matched.benefit_applications), ZERO)
    delta.value = matched.applied_value
    delta.points = matched.bonus_points_applied
    return matched, delta, True


def match_booking(
    booking: BookingSnapshot,
    promotions: Iterable[PromotionDef],
    ledger: UsageLedger,
    valuations: Sequence[ValuationRow] = (),
    diagnostics: list[PromotionDiagnostic] | None = None,
    *,
    default_eqn_value: Decimal = DEFAULT_EQN_VALUE,
) -> list[MatchedPromotion]:
    """Match one booking and advance the ledger by its consumption.

    A promotion with a broken definition is skipped and reported through
    ``diagnostics``; it never prevents the others from matching.
    """
    results: list[MatchedPromotion] = []
    for promotion in promotions:
        if not promotion.is_active or not promotion.link_matches(booking):
            continue
        try:
            matched, delta, activity = _evaluate_promotion(
                promotion, booking, ledger.usage(promotion.id), valuations, default_eqn_value
            )
        except (InvalidConfigurationError, ComputationDomainError) as exc:
            logger.warning("Skipping promotion %s for booking %s: %s", promotion.id, booking.id, exc)
            if diagnostics is not None:
                diagnostics.append(PromotionDiagnostic(booking.id, promotion.id, type(exc).__name__, str(exc)))
            continue

        if activity:
            ledger.record_activity(promotion.id, booking.num_nights)
        if delta is not None:
            ledger.apply(delta)
        if matched is not None:
            matched.state = promotion_state(promotion, ledger.usage(promotion.id))
            results.append(matched)
    return results
