# Import all models so that SQLAlchemy registers them for metadata.create_all
from promotracker.models.point_type import PointType
from promotracker.models.hotel_chain import HotelChain, HotelChainEliteStatus, HotelChainSubBrand, UserStatus
from promotracker.models.payment_sources import CreditCard, ShoppingPortal
from promotracker.models.benefit_valuation import BenefitValuation
from promotracker.models.promotion import (
    Promotion,
    PromotionBenefit,
    PromotionRestrictions,
    PromotionSubBrandRestriction,
    PromotionTieInCard,
    PromotionTier,
)
from promotracker.models.booking import Booking, BookingCertificate
from promotracker.models.booking_promotion import BookingPromotion, BookingPromotionBenefit
from promotracker.models.audit_log import AuditLog

__all__ = [
    "PointType",
    "HotelChain",
    "HotelChainSubBrand",
    "HotelChainEliteStatus",
    "UserStatus",
    "CreditCard",
    "ShoppingPortal",
    "BenefitValuation",
    "Promotion",
    "PromotionRestrictions",
    "PromotionSubBrandRestriction",
    "PromotionTieInCard",
    "PromotionTier",
    "PromotionBenefit",
    "Booking",
    "BookingCertificate",
    "BookingPromotion",
    "BookingPromotionBenefit",
    "AuditLog",
]
