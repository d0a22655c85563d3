from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from promotracker.db.base import Base
from promotracker.models._mixins import TimestampMixin
from promotracker.models.hotel_chain import HotelChain, HotelChainSubBrand


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    hotel_chain_id: Mapped[str] = mapped_column(String(36), ForeignKey("hotel_chains.id"), nullable=False, index=True)
    hotel_chain_sub_brand_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("hotel_chain_sub_brands.id"), nullable=True, index=True
    )
    property_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    check_in: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    num_nights: Mapped[int] = mapped_column(Integer, nullable=False)

    pretax_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    credit_card_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("credit_cards.id"), nullable=True)
    shopping_portal_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("shopping_portals.id"), nullable=True)
    booking_source: Mapped[str | None] = mapped_column(String(16), nullable=True)  # direct_web/direct_app/ota/other

    loyalty_points_earned: Mapped[int | None] = mapped_column(Integer, nullable=True)
    points_redeemed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    hotel_chain: Mapped[HotelChain] = relationship("HotelChain")
    sub_brand: Mapped[HotelChainSubBrand | None] = relationship("HotelChainSubBrand")
    certificates: Mapped[list["BookingCertificate"]] = relationship(
        "BookingCertificate", back_populates="booking", cascade="all, delete-orphan"
    )
    booking_promotions: Mapped[list["BookingPromotion"]] = relationship(
        "BookingPromotion", back_populates="booking", cascade="all, delete-orphan"
    )


class BookingCertificate(Base):
    __tablename__ = "booking_certificates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    cert_type: Mapped[str] = mapped_column(String(32), nullable=False)

    booking: Mapped[Booking] = relationship("Booking", back_populates="certificates")
