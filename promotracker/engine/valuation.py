"""Raw (pre-cap) benefit valuation."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from promotracker.engine.errors import InvalidConfigurationError
from promotracker.engine.types import (
    BenefitDef,
    BookingSnapshot,
    MultiplierBasis,
    RewardType,
    ValuationRow,
    ValueType,
)

CENTS = Decimal("0.01")
WHOLE = Decimal("1")
ZERO = Decimal("0")

DEFAULT_POINT_VALUE = Decimal("0.01")
DEFAULT_EQN_VALUE = Decimal("10")

# Point cost of free-night certificates, used when no valuation row exists.
CERT_TYPE_POINTS: dict[str, int] = {
    "marriott_35k": 35000,
    "marriott_40k": 40000,
    "marriott_50k": 50000,
    "marriott_85k": 85000,
    "hyatt_cat1_4": 15000,
    "hyatt_cat1_7": 30000,
    "ihg_40k": 40000,
}


def q_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def q_points(value: Decimal) -> Decimal:
    return value.quantize(WHOLE, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RawValue:
    value: Decimal
    bonus_points: Decimal = ZERO

    def scaled(self, factor: Decimal) -> "RawValue":
        if factor == 1:
            return self
        return RawValue(q_money(self.value * factor), q_points(self.bonus_points * factor))


def validate_benefit(benefit: BenefitDef, promotion_id: str) -> None:
    if benefit.value_type == ValueType.MULTIPLIER and benefit.reward_type != RewardType.POINTS:
        raise InvalidConfigurationError(promotion_id, f"benefit {benefit.id}: multiplier is only valid for points")
    if benefit.value_type == ValueType.PERCENTAGE and benefit.reward_type != RewardType.CASHBACK:
        raise InvalidConfigurationError(promotion_id, f"benefit {benefit.id}: percentage is only valid for cashback")
    if benefit.value < 0:
        raise InvalidConfigurationError(promotion_id, f"benefit {benefit.id}: negative value")


def point_value_of(booking: BookingSnapshot) -> Decimal:
    return booking.point_value if booking.point_value is not None else DEFAULT_POINT_VALUE


def _row_dollars(row: ValuationRow, point_value: Decimal) -> Decimal:
    if row.value_type == "points":
        return row.value * point_value
    return row.value


def resolve_valuation(
    reward_type: RewardType,
    cert_type: str | None,
    booking: BookingSnapshot,
    valuations: Iterable[ValuationRow],
    default_eqn_value: Decimal = DEFAULT_EQN_VALUE,
) -> Decimal:
    """Dollar value of one certificate or one EQN for this booking's chain.

    Chain-specific rows win over global rows; a row naming the exact cert
    type wins over a generic one.
    """
    pv = point_value_of(booking)
    is_eqn = reward_type == RewardType.EQN
    rows = [r for r in valuations if r.is_eqn == is_eqn]

    chain = booking.hotel_chain_id
    candidates = [(chain, cert_type), (chain, None), (None, cert_type), (None, None)]
    if is_eqn:
        candidates = [(chain, None), (None, None)]
    for chain_id, ctype in candidates:
        for row in rows:
            if row.hotel_chain_id == chain_id and (is_eqn or row.cert_type == ctype):
                return _row_dollars(row, pv)

    if is_eqn:
        return default_eqn_value
    if cert_type is not None and cert_type in CERT_TYPE_POINTS:
        return Decimal(CERT_TYPE_POINTS[cert_type]) * pv
    return ZERO


def _basis_points(benefit: BenefitDef, booking: BookingSnapshot) -> Decimal:
    if benefit.points_multiplier_basis == MultiplierBasis.BASE_AND_ELITE:
        return Decimal(booking.loyalty_points_earned or 0)
    if booking.base_point_rate is None:
        return ZERO
    return q_points(booking.pretax_cost * booking.base_point_rate)


def value_benefit(
    benefit: BenefitDef,
    booking: BookingSnapshot,
    valuations: Iterable[ValuationRow] = (),
    default_eqn_value: Decimal = DEFAULT_EQN_VALUE,
) -> RawValue:
    pv = point_value_of(booking)

    if benefit.reward_type == RewardType.CASHBACK:
        if benefit.value_type == ValueType.PERCENTAGE:
            return RawValue(q_money(booking.total_cost * benefit.value / Decimal("100")))
        if benefit.value_type == ValueType.FIXED:
            return RawValue(q_money(benefit.value))

    elif benefit.reward_type == RewardType.POINTS:
        if benefit.value_type == ValueType.FIXED:
            points = q_points(benefit.value)
            return RawValue(q_money(points * pv), points)
        if benefit.value_type == ValueType.MULTIPLIER:
            points = q_points(_basis_points(benefit, booking) * (benefit.value - 1))
            if points < 0:
                points = ZERO
            return RawValue(q_money(points * pv), points)

    elif benefit.reward_type in (RewardType.CERTIFICATE, RewardType.EQN):
        if benefit.value_type == ValueType.FIXED:
            unit = resolve_valuation(benefit.reward_type, benefit.cert_type, booking, valuations, default_eqn_value)
            return RawValue(q_money(benefit.value * unit))

    raise InvalidConfigurationError(
        benefit.id, f"{benefit.value_type.value} is not valid for {benefit.reward_type.value}"
    )
