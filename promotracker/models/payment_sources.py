from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from promotracker.db.base import Base
from promotracker.models._mixins import TimestampMixin
from promotracker.models.point_type import PointType


class CreditCard(Base, TimestampMixin):
    __tablename__ = "credit_cards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False, default="points")  # points/cashback
    reward_rate: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, default=Decimal("1"))
    point_type_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("point_types.id"), nullable=True)

    point_type: Mapped[PointType | None] = relationship("PointType")


class ShoppingPortal(Base, TimestampMixin):
    __tablename__ = "shopping_portals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False, default="cashback")  # points/cashback
    point_type_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("point_types.id"), nullable=True)

    point_type: Mapped[PointType | None] = relationship("PointType")
