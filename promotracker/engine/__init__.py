"""Pure promotion engine: no database or HTTP access happens below this package."""

from promotracker.engine.errors import (
    ComputationDomainError,
    InvalidConfigurationError,
    NotFoundError,
    PromotionEngineError,
)
from promotracker.engine.ledger import UsageLedger
from promotracker.engine.matching import get_constrained_promotions, match_booking, validate_promotion

__all__ = [
    "ComputationDomainError",
    "InvalidConfigurationError",
    "NotFoundError",
    "PromotionEngineError",
    "UsageLedger",
    "get_constrained_promotions",
    "match_booking",
    "validate_promotion",
]
