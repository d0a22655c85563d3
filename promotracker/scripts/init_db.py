from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from promotracker.core.config import get_settings
from promotracker.db.base import Base
from promotracker.db.session import SessionLocal, engine
from promotracker.engine.valuation import CERT_TYPE_POINTS

# Import models to register with SQLAlchemy
import promotracker.models  # noqa: F401
from promotracker.models.benefit_valuation import BenefitValuation


def default_valuations() -> list[dict]:
    """Global (chain-less) valuation rows: one per known certificate type plus EQN."""
    rows = [
        {"is_eqn": False, "cert_type": cert_type, "value": Decimal(points), "value_type": "points"}
        for cert_type, points in CERT_TYPE_POINTS.items()
    ]
    rows.append({"is_eqn": True, "cert_type": None, "value": get_settings().default_eqn_value, "value_type": "dollar"})
    return rows


def main() -> int:
    # Create tables
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        added = 0
        for v in default_valuations():
            existing = db.execute(
                select(BenefitValuation.id).where(
                    BenefitValuation.hotel_chain_id.is_(None),
                    BenefitValuation.is_eqn == v["is_eqn"],
                    BenefitValuation.cert_type.is_(None) if v["cert_type"] is None else BenefitValuation.cert_type == v["cert_type"],
                )
            ).first()
            if existing is None:
                db.add(BenefitValuation(hotel_chain_id=None, **v))
                added += 1
        db.commit()
    finally:
        db.close()

    print(f"DB initialized (seeded {added} valuation row(s))")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
