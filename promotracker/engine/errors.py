from __future__ import annotations


class PromotionEngineError(Exception):
    """Base class for errors raised by the promotion engine."""


class NotFoundError(PromotionEngineError):
    """A referenced booking or promotion no longer exists."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class InvalidConfigurationError(PromotionEngineError):
    """A promotion definition violates a data-integrity invariant.

    The engine refuses to match against such a promotion instead of guessing.
    """

    def __init__(self, promotion_id: str, reason: str):
        super().__init__(f"promotion {promotion_id}: {reason}")
        self.promotion_id = promotion_id
        self.reason = reason


class ComputationDomainError(PromotionEngineError):
    """A numeric rule cannot be evaluated (zero night threshold, negative cap)."""

    def __init__(self, reason: str, promotion_id: str | None = None):
        super().__init__(reason if promotion_id is None else f"promotion {promotion_id}: {reason}")
        self.promotion_id = promotion_id
        self.reason = reason
