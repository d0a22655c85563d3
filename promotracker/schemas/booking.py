from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

BookingSourceLiteral = Literal["direct_web", "direct_app", "ota", "other"]


class BookingCreate(BaseModel):
    hotel_chain_id: str
    hotel_chain_sub_brand_id: str | None = None
    property_name: str = Field(default="", max_length=255)

    check_in: date
    check_out: date
    num_nights: int | None = Field(default=None, ge=1)

    pretax_cost: Decimal = Field(default=Decimal("0"), ge=0)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0)
    total_cost: Decimal | None = Field(default=None, ge=0)

    credit_card_id: str | None = None
    shopping_portal_id: str | None = None
    booking_source: BookingSourceLiteral | None = None

    # Computed from the chain and elite status when omitted
    loyalty_points_earned: int | None = Field(default=None, ge=0)
    points_redeemed: int = Field(default=0, ge=0)
    certificates: list[str] = Field(default_factory=list)  # cert types used as payment

    notes: str = ""


class BookingUpdate(BaseModel):
    hotel_chain_id: str | None = None
    hotel_chain_sub_brand_id: str | None = None
    property_name: str | None = Field(default=None, max_length=255)

    check_in: date | None = None
    check_out: date | None = None
    num_nights: int | None = Field(default=None, ge=1)

    pretax_cost: Decimal | None = Field(default=None, ge=0)
    tax_amount: Decimal | None = Field(default=None, ge=0)
    total_cost: Decimal | None = Field(default=None, ge=0)

    credit_card_id: str | None = None
    shopping_portal_id: str | None = None
    booking_source: BookingSourceLiteral | None = None

    loyalty_points_earned: int | None = Field(default=None, ge=0)
    points_redeemed: int | None = Field(default=None, ge=0)
    certificates: list[str] | None = None

    notes: str | None = None


class BookingCertificateOut(BaseModel):
    id: str
    cert_type: str

    class Config:
        from_attributes = True


class BookingOut(BaseModel):
    id: str
    hotel_chain_id: str
    hotel_chain_sub_brand_id: str | None
    property_name: str
    check_in: date
    check_out: date
    num_nights: int
    pretax_cost: Decimal
    tax_amount: Decimal
    total_cost: Decimal
    credit_card_id: str | None
    shopping_portal_id: str | None
    booking_source: str | None
    loyalty_points_earned: int | None
    points_redeemed: int
    certificates: list[BookingCertificateOut]
    notes: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
