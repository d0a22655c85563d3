from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from promotracker.db.base import Base
from promotracker.models._mixins import TimestampMixin
from promotracker.models.booking import Booking
from promotracker.models.promotion import Promotion, PromotionBenefit


class BookingPromotion(Base, TimestampMixin):
    """A promotion applied to a booking.

    Rows with auto_applied set are owned by the engine and replaced wholesale
    on every re-evaluation; the rest are curated by hand and never touched.
    """

    __tablename__ = "booking_promotions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    promotion_id: Mapped[str] = mapped_column(String(36), ForeignKey("promotions.id"), nullable=False, index=True)

    applied_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    bonus_points_applied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    eligible_nights_at_booking: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    auto_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    booking: Mapped[Booking] = relationship("Booking", back_populates="booking_promotions")
    promotion: Mapped[Promotion] = relationship("Promotion")
    benefit_applications: Mapped[list["BookingPromotionBenefit"]] = relationship(
        "BookingPromotionBenefit", back_populates="booking_promotion", cascade="all, delete-orphan"
    )


class BookingPromotionBenefit(Base):
    __tablename__ = "booking_promotion_benefits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_promotion_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("booking_promotions.id"), nullable=False, index=True
    )
    promotion_benefit_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("promotion_benefits.id"), nullable=False, index=True
    )

    applied_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    bonus_points_applied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    eligible_nights_at_booking: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    booking_promotion: Mapped[BookingPromotion] = relationship("BookingPromotion", back_populates="benefit_applications")
    promotion_benefit: Mapped[PromotionBenefit] = relationship("PromotionBenefit")
