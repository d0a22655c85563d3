from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from promotracker.db.base import Base
from promotracker.models._mixins import TimestampMixin


class PointType(Base, TimestampMixin):
    __tablename__ = "point_types"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="hotel")  # hotel/airline/transferable

    # Dollar value of one point is cents_per_point / 100
    cents_per_point: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, default=Decimal("1.0"))
