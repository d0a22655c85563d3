"""Usage ledger.

One ``UsageLedger`` is built per re-evaluation run and threaded through every
booking of that run in chronological order. It is the only mutable state the
engine has; matching reads the counters as they stood *before* the current
booking and applies that booking's delta once the promotion is fully
evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from promotracker.engine.errors import ComputationDomainError
from promotracker.engine.types import PromotionDef, PromotionState, RestrictionSet
from promotracker.engine.valuation import q_money, q_points

ZERO = Decimal("0")


@dataclass
class BenefitUsage:
    qualifying_stays: int = 0
    nights: int = 0
    rewarded_stays: int = 0
    total_value: Decimal = ZERO
    total_points: Decimal = ZERO
    rewarded_sub_brands: set[str | None] = field(default_factory=set)


@dataclass
class PromotionUsage:
    # Stays passing every promotion-level rule except the prerequisite
    activity_stays: int = 0
    activity_nights: int = 0
    qualifying_stays: int = 0
    qualifying_nights: int = 0
    rewarded_stays: int = 0
    total_value: Decimal = ZERO
    total_bonus_points: Decimal = ZERO
    rewarded_sub_brands: set[str | None] = field(default_factory=set)
    benefits: dict[str, BenefitUsage] = field(default_factory=dict)

    def benefit(self, benefit_id: str) -> BenefitUsage:
        return self.benefits.setdefault(benefit_id, BenefitUsage())


@dataclass
class BenefitDelta:
    benefit_id: str
    nights: int = 0
    value: Decimal = ZERO
    points: Decimal = ZERO

    @property
    def rewarded(self) -> bool:
        return self.value > 0 or self.points > 0


@dataclass
class PromotionDelta:
    promotion_id: str
    nights: int
    sub_brand: str | None
    qualifying: bool = False
    value: Decimal = ZERO
    points: Decimal = ZERO
    benefits: list[BenefitDelta] = field(default_factory=list)

    @property
    def rewarded(self) -> bool:
        return self.value > 0 or self.points > 0


class UsageLedger:
    def __init__(self) -> None:
        self._usage: dict[str, PromotionUsage] = {}

    def __contains__(self, promotion_id: str) -> bool:
        return promotion_id in self._usage

    def usage(self, promotion_id: str) -> PromotionUsage:
        return self._usage.setdefault(promotion_id, PromotionUsage())

    def seed(self, promotion_id: str, **counters) -> PromotionUsage:
        """Set counters directly; used to build a hand-made history."""
        usage = self.usage(promotion_id)
        for name, value in counters.items():
            if not hasattr(usage, name):
                raise AttributeError(f"PromotionUsage has no counter {name!r}")
            setattr(usage, name, value)
        return usage

    def record_activity(self, promotion_id: str, nights: int) -> None:
        usage = self.usage(promotion_id)
        usage.activity_stays += 1
        usage.activity_nights += nights

    def apply(self, delta: PromotionDelta) -> None:
        usage = self.usage(delta.promotion_id)
        if delta.qualifying:
            usage.qualifying_stays += 1
            usage.qualifying_nights += delta.nights
        usage.total_value += delta.value
        usage.total_bonus_points += delta.points
        if delta.rewarded:
            usage.rewarded_stays += 1
            usage.rewarded_sub_brands.add(delta.sub_brand)
        for bd in delta.benefits:
            b = usage.benefit(bd.benefit_id)
            b.qualifying_stays += 1
            b.nights += bd.nights
            b.total_value += bd.value
            b.total_points += bd.points
            if bd.rewarded:
                b.rewarded_stays += 1
                b.rewarded_sub_brands.add(delta.sub_brand)


def count_capped(
    restrictions: RestrictionSet | None,
    usage: PromotionUsage | BenefitUsage,
    sub_brand: str | None,
    *,
    single_use: bool = False,
) -> bool:
    """True when a stay/reward count cap already denies any further value."""
    if single_use and usage.rewarded_stays >= 1:
        return True
    if restrictions is None:
        return False
    if restrictions.max_stay_count is not None and usage.qualifying_stays >= restrictions.max_stay_count:
        return True
    if restrictions.max_reward_count is not None and usage.rewarded_stays >= restrictions.max_reward_count:
        return True
    if restrictions.once_per_sub_brand and sub_brand in usage.rewarded_sub_brands:
        return True
    return False


class CapBudget:
    """Remaining dollar and point budget for one capped scope.

    ``take`` grants as much of a raw value as still fits, in call order.
    """

    def __init__(self, value_remaining: Decimal | None = None, points_remaining: Decimal | None = None):
        if value_remaining is not None and value_remaining < 0:
            value_remaining = ZERO
        if points_remaining is not None and points_remaining < 0:
            points_remaining = ZERO
        self.value_remaining = value_remaining
        self.points_remaining = points_remaining

    @classmethod
    def for_scope(
        cls,
        restrictions: RestrictionSet | None,
        granted_value: Decimal,
        granted_points: Decimal,
        owner_id: str = "",
    ) -> "CapBudget":
        if restrictions is None:
            return cls()
        value_cap = restrictions.max_redemption_value
        points_cap = restrictions.max_total_bonus_points
        if value_cap is not None and value_cap < 0:
            raise ComputationDomainError("max_redemption_value is negative", owner_id or None)
        if points_cap is not None and points_cap < 0:
            raise ComputationDomainError("max_total_bonus_points is negative", owner_id or None)
        return cls(
            None if value_cap is None else Decimal(value_cap) - granted_value,
            None if points_cap is None else Decimal(points_cap) - granted_points,
        )

    @property
    def unlimited(self) -> bool:
        return self.value_remaining is None and self.points_remaining is None

    @property
    def exhausted(self) -> bool:
        return (self.value_remaining is not None and self.value_remaining <= 0) or (
            self.points_remaining is not None and self.points_remaining <= 0
        )

    def take(self, value: Decimal, points: Decimal) -> tuple[Decimal, Decimal]:
        if self.points_remaining is not None and points > 0:
            granted = min(points, self.points_remaining)
            if granted < points:
                # Dollar value follows the capped point amount
                value = q_money(value * granted / points)
            points = granted
            self.points_remaining -= granted
        if self.value_remaining is not None:
            granted = min(value, self.value_remaining)
            if granted < value:
                # Points follow the capped dollar amount
                kept = q_points(points * granted / value) if granted > 0 else ZERO
                if self.points_remaining is not None:
                    self.points_remaining += points - kept
                points = kept
            value = granted
            self.value_remaining -= value
        return value, points


def promotion_state(promotion: PromotionDef, usage: PromotionUsage | None) -> PromotionState:
    """Lifecycle state of a promotion given the counters accumulated so far."""
    usage = usage or PromotionUsage()
    r = promotion.restrictions
    if r is not None:
        if r.prerequisite_stay_count is not None and (
            usage.activity_stays == 0 or usage.activity_stays < r.prerequisite_stay_count
        ):
            return PromotionState.NOT_YET_ELIGIBLE
        if r.prerequisite_night_count is not None and (
            usage.activity_nights == 0 or usage.activity_nights < r.prerequisite_night_count
        ):
            return PromotionState.NOT_YET_ELIGIBLE

    if promotion.is_single_use and usage.rewarded_stays >= 1:
        return PromotionState.ELIGIBLE_CAPPED_EXHAUSTED
    if r is not None:
        if r.max_stay_count is not None and usage.qualifying_stays >= r.max_stay_count:
            return PromotionState.ELIGIBLE_CAPPED_EXHAUSTED
        if r.max_reward_count is not None and usage.rewarded_stays >= r.max_reward_count:
            return PromotionState.ELIGIBLE_CAPPED_EXHAUSTED

    budget = CapBudget.for_scope(r, usage.total_value, usage.total_bonus_points, promotion.id)
    if budget.unlimited:
        return PromotionState.ELIGIBLE_UNCAPPED
    if budget.exhausted:
        return PromotionState.ELIGIBLE_CAPPED_EXHAUSTED
    if usage.total_value > 0 or usage.total_bonus_points > 0:
        return PromotionState.ELIGIBLE_CAPPED_PARTIAL
    return PromotionState.ELIGIBLE_UNCAPPED
