from __future__ import annotations

import itertools
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import promotracker.models  # noqa: F401
from promotracker.db.base import Base
from promotracker.models.booking import Booking
from promotracker.models.hotel_chain import HotelChain
from promotracker.models.payment_sources import CreditCard
from promotracker.models.point_type import PointType
from promotracker.models.promotion import Promotion, PromotionBenefit, PromotionRestrictions, PromotionTier


@pytest.fixture()
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def chain(db):
    pt = PointType(name="Bonvoy", category="hotel", cents_per_point=Decimal("0.7"))
    c = HotelChain(name="Marriott", loyalty_program="Bonvoy", base_point_rate=Decimal("10"), point_type=pt)
    db.add(c)
    db.commit()
    return c


@pytest.fixture()
def card(db):
    c = CreditCard(name="Amex Gold", reward_type="points", reward_rate=Decimal("3"))
    db.add(c)
    db.commit()
    return c


_created = itertools.count(1)


@pytest.fixture()
def make_booking(db, chain):
    def _make(check_in: date, nights: int = 2, **kw) -> Booking:
        data = dict(
            hotel_chain_id=chain.id,
            check_in=check_in,
            check_out=check_in + timedelta(days=nights),
            num_nights=nights,
            pretax_cost=Decimal("200"),
            tax_amount=Decimal("30"),
            total_cost=Decimal("230"),
            loyalty_points_earned=2000,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=next(_created)),
        )
        data.update(kw)
        b = Booking(**data)
        db.add(b)
        db.commit()
        return b

    return _make


@pytest.fixture()
def make_promotion(db, chain):
    """Flat cashback promotion by default; pass ``tiers=[(min, max, value), ...]`` for a tiered one."""

    def _make(value=50, *, restrictions: dict | None = None, tiers=None, **kw) -> Promotion:
        data = dict(name="Test promo", type="loyalty", hotel_chain_id=chain.id)
        data.update(kw)
        p = Promotion(**data)
        if restrictions is not None:
            p.restrictions = PromotionRestrictions(**restrictions)
        if tiers:
            p.tiers = [
                PromotionTier(
                    min_stays=lo,
                    max_stays=hi,
                    sort_order=i,
                    benefits=[PromotionBenefit(reward_type="cashback", value_type="fixed", value=Decimal(str(v)))],
                )
                for i, (lo, hi, v) in enumerate(tiers)
            ]
        else:
            p.benefits = [PromotionBenefit(reward_type="cashback", value_type="fixed", value=Decimal(str(value)))]
        db.add(p)
        db.commit()
        return p

    return _make
