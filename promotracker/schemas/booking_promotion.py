from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class BenefitApplicationOut(BaseModel):
    id: str
    promotion_benefit_id: str
    applied_value: Decimal
    bonus_points_applied: int
    eligible_nights_at_booking: int

    class Config:
        from_attributes = True


class BookingPromotionOut(BaseModel):
    id: str
    booking_id: str
    promotion_id: str
    applied_value: Decimal
    bonus_points_applied: int
    eligible_nights_at_booking: int
    auto_applied: bool
    verified: bool
    benefit_applications: list[BenefitApplicationOut]

    class Config:
        from_attributes = True


class ReevaluateRequest(BaseModel):
    booking_ids: list[str] = Field(min_length=1)


class ReevaluateSubsequentRequest(BaseModel):
    # Omit to re-scan every later booking
    touched_promotion_ids: list[str] | None = None


class DiagnosticOut(BaseModel):
    booking_id: str
    promotion_id: str
    error: str
    message: str

    class Config:
        from_attributes = True


class ReevaluationReportOut(BaseModel):
    processed: list[str]
    skipped: list[str]
    diagnostics: list[DiagnosticOut]

    class Config:
        from_attributes = True
