from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from promotracker.db.base import Base
from promotracker.models._mixins import TimestampMixin


class PromotionRestrictions(Base):
    """One restriction shape shared by promotions and benefits."""

    __tablename__ = "promotion_restrictions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    min_spend: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    min_nights_required: Mapped[int | None] = mapped_column(Integer, nullable=True)
    nights_stackable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    span_stays: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    max_stay_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_reward_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_redemption_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    max_total_bonus_points: Mapped[int | None] = mapped_column(Integer, nullable=True)

    once_per_sub_brand: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    allowed_payment_types: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    allowed_booking_sources: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    tie_in_requires_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    hotel_chain_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("hotel_chains.id"), nullable=True)

    prerequisite_stay_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    prerequisite_night_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    book_by_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    registration_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    valid_days_after_registration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    registration_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    sub_brand_restrictions: Mapped[list["PromotionSubBrandRestriction"]] = relationship(
        "PromotionSubBrandRestriction", back_populates="restrictions", cascade="all, delete-orphan"
    )
    tie_in_cards: Mapped[list["PromotionTieInCard"]] = relationship(
        "PromotionTieInCard", back_populates="restrictions", cascade="all, delete-orphan"
    )


class PromotionSubBrandRestriction(Base):
    __tablename__ = "promotion_sub_brand_restrictions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    restrictions_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("promotion_restrictions.id"), nullable=False, index=True
    )
    hotel_chain_sub_brand_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hotel_chain_sub_brands.id"), nullable=False
    )
    mode: Mapped[str] = mapped_column(String(16), nullable=False, default="include")  # include/exclude

    restrictions: Mapped[PromotionRestrictions] = relationship(
        "PromotionRestrictions", back_populates="sub_brand_restrictions"
    )


class PromotionTieInCard(Base):
    __tablename__ = "promotion_tie_in_cards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    restrictions_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("promotion_restrictions.id"), nullable=False, index=True
    )
    credit_card_id: Mapped[str] = mapped_column(String(36), ForeignKey("credit_cards.id"), nullable=False)

    restrictions: Mapped[PromotionRestrictions] = relationship("PromotionRestrictions", back_populates="tie_in_cards")


class Promotion(Base, TimestampMixin):
    __tablename__ = "promotions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # loyalty/credit_card/portal

    hotel_chain_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("hotel_chains.id"), nullable=True)
    credit_card_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("credit_cards.id"), nullable=True)
    shopping_portal_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("shopping_portals.id"), nullable=True)

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    is_single_use: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    restrictions_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("promotion_restrictions.id"), nullable=True
    )

    restrictions: Mapped[PromotionRestrictions | None] = relationship(
        "PromotionRestrictions", cascade="all, delete-orphan", single_parent=True
    )
    benefits: Mapped[list["PromotionBenefit"]] = relationship(
        "PromotionBenefit",
        back_populates="promotion",
        cascade="all, delete-orphan",
        foreign_keys="PromotionBenefit.promotion_id",
        order_by="PromotionBenefit.sort_order",
    )
    tiers: Mapped[list["PromotionTier"]] = relationship(
        "PromotionTier", back_populates="promotion", cascade="all, delete-orphan", order_by="PromotionTier.sort_order"
    )


class PromotionTier(Base):
    __tablename__ = "promotion_tiers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    promotion_id: Mapped[str] = mapped_column(String(36), ForeignKey("promotions.id"), nullable=False, index=True)

    min_stays: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_stays: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_nights: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_nights: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    promotion: Mapped[Promotion] = relationship("Promotion", back_populates="tiers")
    benefits: Mapped[list["PromotionBenefit"]] = relationship(
        "PromotionBenefit",
        back_populates="tier",
        cascade="all, delete-orphan",
        foreign_keys="PromotionBenefit.promotion_tier_id",
        order_by="PromotionBenefit.sort_order",
    )


class PromotionBenefit(Base):
    """A reward attached to either a promotion or one of its tiers, never both."""

    __tablename__ = "promotion_benefits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    promotion_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("promotions.id"), nullable=True, index=True)
    promotion_tier_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("promotion_tiers.id"), nullable=True, index=True
    )

    reward_type: Mapped[str] = mapped_column(String(16), nullable=False)  # points/cashback/certificate/eqn
    value_type: Mapped[str] = mapped_column(String(16), nullable=False)  # fixed/percentage/multiplier
    value: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    cert_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    points_multiplier_basis: Mapped[str] = mapped_column(String(16), nullable=False, default="base_only")

    is_tie_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    restrictions_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("promotion_restrictions.id"), nullable=True
    )

    promotion: Mapped[Promotion | None] = relationship(
        "Promotion", back_populates="benefits", foreign_keys=[promotion_id]
    )
    tier: Mapped[PromotionTier | None] = relationship(
        "PromotionTier", back_populates="benefits", foreign_keys=[promotion_tier_id]
    )
    restrictions: Mapped[PromotionRestrictions | None] = relationship(
        "PromotionRestrictions", cascade="all, delete-orphan", single_parent=True
    )
