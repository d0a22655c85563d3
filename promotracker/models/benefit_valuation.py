from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from promotracker.db.base import Base
from promotracker.models._mixins import TimestampMixin


class BenefitValuation(Base, TimestampMixin):
    """What one certificate or one EQN is worth.

    A null hotel_chain_id is the global default for that kind of benefit.
    """

    __tablename__ = "benefit_valuations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    hotel_chain_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("hotel_chains.id"), nullable=True, index=True)

    is_eqn: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cert_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    value: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    value_type: Mapped[str] = mapped_column(String(16), nullable=False, default="dollar")  # dollar/points
