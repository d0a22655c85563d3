"""Value types consumed and produced by the promotion engine.

Everything here is immutable input except the result types, which the
matching engine builds once per booking. No type in this module touches
the database; the store adapter converts ORM rows into these snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

ZERO = Decimal("0")


class PromotionType(str, Enum):
    LOYALTY = "loyalty"
    CREDIT_CARD = "credit_card"
    PORTAL = "portal"


class RewardType(str, Enum):
    POINTS = "points"
    CASHBACK = "cashback"
    CERTIFICATE = "certificate"
    EQN = "eqn"


class ValueType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    MULTIPLIER = "multiplier"


class MultiplierBasis(str, Enum):
    BASE_ONLY = "base_only"
    BASE_AND_ELITE = "base_and_elite"


class PaymentType(str, Enum):
    CASH = "cash"
    POINTS = "points"
    CERT = "cert"
    CASH_POINTS = "cash_points"
    CASH_CERT = "cash_cert"
    POINTS_CERT = "points_cert"
    CASH_POINTS_CERT = "cash_points_cert"

    @property
    def components(self) -> tuple[str, ...]:
        return tuple(self.value.split("_"))


class BookingSource(str, Enum):
    DIRECT_WEB = "direct_web"
    DIRECT_APP = "direct_app"
    OTA = "ota"
    OTHER = "other"


class PromotionState(str, Enum):
    NOT_YET_ELIGIBLE = "not_yet_eligible"
    ELIGIBLE_UNCAPPED = "eligible_uncapped"
    ELIGIBLE_CAPPED_PARTIAL = "eligible_capped_partial"
    ELIGIBLE_CAPPED_EXHAUSTED = "eligible_capped_exhausted"


@dataclass(frozen=True)
class BookingSnapshot:
    id: str
    check_in: date
    created_at: datetime
    num_nights: int
    pretax_cost: Decimal
    total_cost: Decimal
    hotel_chain_id: str | None = None
    hotel_chain_sub_brand_id: str | None = None
    credit_card_id: str | None = None
    shopping_portal_id: str | None = None
    booking_source: str | None = None
    check_out: date | None = None
    points_redeemed: int = 0
    certificate_count: int = 0
    loyalty_points_earned: int | None = None
    # Base earn rate (sub-brand override already resolved) and dollar value of one point
    base_point_rate: Decimal | None = None
    point_value: Decimal | None = None

    @property
    def sort_key(self) -> tuple[date, datetime, str]:
        return (self.check_in, self.created_at, self.id)


@dataclass(frozen=True)
class RestrictionSet:
    """One restriction shape shared by promotions, tiers' benefits and flat benefits."""

    min_spend: Decimal | None = None
    min_nights_required: int | None = None
    nights_stackable: bool = False
    span_stays: bool = False

    max_stay_count: int | None = None
    max_reward_count: int | None = None
    max_redemption_value: Decimal | None = None
    max_total_bonus_points: int | None = None

    once_per_sub_brand: bool = False
    sub_brand_include_ids: frozenset[str] = frozenset()
    sub_brand_exclude_ids: frozenset[str] = frozenset()

    allowed_payment_types: tuple[str, ...] = ()
    allowed_booking_sources: tuple[str, ...] = ()

    tie_in_credit_card_ids: frozenset[str] = frozenset()
    tie_in_requires_payment: bool = False

    hotel_chain_id: str | None = None

    prerequisite_stay_count: int | None = None
    prerequisite_night_count: int | None = None

    book_by_date: date | None = None
    registration_deadline: date | None = None
    valid_days_after_registration: int | None = None
    registration_date: date | None = None

    @property
    def has_caps(self) -> bool:
        return any(
            v is not None
            for v in (self.max_stay_count, self.max_reward_count, self.max_redemption_value, self.max_total_bonus_points)
        ) or self.once_per_sub_brand

    @property
    def depends_on_history(self) -> bool:
        return (
            self.has_caps
            or self.span_stays
            or self.prerequisite_stay_count is not None
            or self.prerequisite_night_count is not None
        )


@dataclass(frozen=True)
class BenefitDef:
    id: str
    reward_type: RewardType
    value_type: ValueType
    value: Decimal
    cert_type: str | None = None
    points_multiplier_basis: MultiplierBasis | None = None
    is_tie_in: bool = False
    sort_order: int = 0
    restrictions: RestrictionSet | None = None


@dataclass(frozen=True)
class TierDef:
    id: str
    min_stays: int
    max_stays: int | None = None
    min_nights: int | None = None
    max_nights: int | None = None
    benefits: tuple[BenefitDef, ...] = ()

    def contains(self, stay_number: int, cumulative_nights: int) -> bool:
        if stay_number < self.min_stays:
            return False
        if self.max_stays is not None and stay_number > self.max_stays:
            return False
        if self.min_nights is not None and cumulative_nights < self.min_nights:
            return False
        if self.max_nights is not None and cumulative_nights > self.max_nights:
            return False
        return True


@dataclass(frozen=True)
class PromotionDef:
    id: str
    type: PromotionType
    name: str = ""
    hotel_chain_id: str | None = None
    credit_card_id: str | None = None
    shopping_portal_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True
    is_single_use: bool = False
    restrictions: RestrictionSet | None = None
    benefits: tuple[BenefitDef, ...] = ()
    tiers: tuple[TierDef, ...] = ()

    @property
    def is_tiered(self) -> bool:
        return len(self.tiers) > 0

    def link_matches(self, booking: BookingSnapshot) -> bool:
        if self.type == PromotionType.CREDIT_CARD:
            return self.credit_card_id is not None and self.credit_card_id == booking.credit_card_id
        if self.type == PromotionType.PORTAL:
            return self.shopping_portal_id is not None and self.shopping_portal_id == booking.shopping_portal_id
        return self.hotel_chain_id is not None and self.hotel_chain_id == booking.hotel_chain_id


@dataclass(frozen=True)
class ValuationRow:
    value: Decimal
    value_type: str = "dollar"  # dollar|points
    hotel_chain_id: str | None = None
    is_eqn: bool = False
    cert_type: str | None = None


@dataclass
class BenefitApplicationResult:
    promotion_benefit_id: str
    applied_value: Decimal = ZERO
    bonus_points_applied: Decimal = ZERO
    eligible_nights_at_booking: int = 0
    raw_value: Decimal = ZERO
    raw_bonus_points: Decimal = ZERO

    @property
    def valued(self) -> bool:
        return self.applied_value > 0 or self.bonus_points_applied > 0

    @property
    def capped(self) -> bool:
        return self.applied_value < self.raw_value or self.bonus_points_applied < self.raw_bonus_points


@dataclass
class MatchedPromotion:
    promotion_id: str
    applied_value: Decimal = ZERO
    bonus_points_applied: Decimal = ZERO
    eligible_nights_at_booking: int = 0
    tier_id: str | None = None
    state: PromotionState = PromotionState.ELIGIBLE_UNCAPPED
    benefit_applications: list[BenefitApplicationResult] = field(default_factory=list)
    matched: bool = True

    @property
    def valued(self) -> bool:
        return self.applied_value > 0 or self.bonus_points_applied > 0


@dataclass(frozen=True)
class PromotionDiagnostic:
    booking_id: str
    promotion_id: str
    error: str
    message: str
