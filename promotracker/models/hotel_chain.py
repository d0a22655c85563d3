from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from promotracker.db.base import Base
from promotracker.models._mixins import TimestampMixin
from promotracker.models.point_type import PointType


class HotelChain(Base, TimestampMixin):
    __tablename__ = "hotel_chains"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    loyalty_program: Mapped[str] = mapped_column(String(128), nullable=False, default="")

    # Base points earned per dollar of pre-tax spend
    base_point_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    point_type_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("point_types.id"), nullable=True)

    point_type: Mapped[PointType | None] = relationship("PointType")
    sub_brands: Mapped[list["HotelChainSubBrand"]] = relationship(
        "HotelChainSubBrand", back_populates="hotel_chain", cascade="all, delete-orphan"
    )
    elite_statuses: Mapped[list["HotelChainEliteStatus"]] = relationship(
        "HotelChainEliteStatus", back_populates="hotel_chain", cascade="all, delete-orphan"
    )


class HotelChainSubBrand(Base, TimestampMixin):
    __tablename__ = "hotel_chain_sub_brands"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    hotel_chain_id: Mapped[str] = mapped_column(String(36), ForeignKey("hotel_chains.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)

    # Overrides the chain's base rate when set
    base_point_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)

    hotel_chain: Mapped[HotelChain] = relationship("HotelChain", back_populates="sub_brands")


class HotelChainEliteStatus(Base, TimestampMixin):
    __tablename__ = "hotel_chain_elite_statuses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    hotel_chain_id: Mapped[str] = mapped_column(String(36), ForeignKey("hotel_chains.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)

    bonus_percentage: Mapped[Decimal | None] = mapped_column(Numeric(6, 4), nullable=True)  # 0.5 = +50% on base
    fixed_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    is_fixed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    hotel_chain: Mapped[HotelChain] = relationship("HotelChain", back_populates="elite_statuses")


class UserStatus(Base, TimestampMixin):
    """The traveler's current elite status with one chain."""

    __tablename__ = "user_statuses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    hotel_chain_id: Mapped[str] = mapped_column(String(36), ForeignKey("hotel_chains.id"), nullable=False, unique=True)
    elite_status_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("hotel_chain_elite_statuses.id"), nullable=True
    )

    elite_status: Mapped[HotelChainEliteStatus | None] = relationship("HotelChainEliteStatus")
