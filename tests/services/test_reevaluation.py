from datetime import date, timedelta
from decimal import Decimal

import pytest

from promotracker.engine.errors import NotFoundError
from promotracker.models.booking_promotion import BookingPromotion
from promotracker.models.hotel_chain import HotelChain
from promotracker.models.promotion import PromotionBenefit, PromotionTier
from promotracker.schemas.booking import BookingCreate, BookingUpdate
from promotracker.services import booking_service, reevaluation_service
from promotracker.services.booking_store import load_sort_keys, load_timeline
from promotracker.services.reevaluation_service import (
    match_for_booking,
    reevaluate,
    reevaluate_all,
    reevaluate_for_promotion,
    reevaluate_subsequent,
)
from tests.helpers import applied, applied_value


def state_of(db, booking_ids):
    """Comparable view of every auto-applied row for the given bookings."""
    out = []
    for bid in booking_ids:
        for r in applied(db, bid):
            if not r.auto_applied:
                continue
            db.refresh(r)
            benefits = sorted(
                (a.promotion_benefit_id, a.applied_value, a.bonus_points_applied, a.eligible_nights_at_booking)
                for a in r.benefit_applications
            )
            out.append((bid, r.promotion_id, r.applied_value, r.bonus_points_applied, r.eligible_nights_at_booking, benefits))
    return sorted(out)


class TestRedemptionCapCascade:
    def test_values_follow_check_in_order(self, db, make_booking, make_promotion):
        p = make_promotion(50, restrictions={"max_redemption_value": Decimal("100")})
        b3 = make_booking(date(2025, 3, 20))
        b1 = make_booking(date(2025, 3, 1))
        b2 = make_booking(date(2025, 3, 10))

        reevaluate_all(db)
        assert [applied_value(db, b.id, p.id) for b in (b1, b2, b3)] == [Decimal("50"), Decimal("50"), Decimal("0")]

    def test_deleting_first_booking_frees_budget(self, db, make_booking, make_promotion):
        p = make_promotion(50, restrictions={"max_redemption_value": Decimal("100")})
        b1 = make_booking(date(2025, 3, 1))
        b2 = make_booking(date(2025, 3, 10))
        b3 = make_booking(date(2025, 3, 20))
        reevaluate_all(db)

        booking_service.delete_booking(db, b1.id)

        assert applied_value(db, b2.id, p.id) == Decimal("50")
        assert applied_value(db, b3.id, p.id) == Decimal("50")

    def test_edit_making_booking_ineligible_cascades(self, db, make_booking, make_promotion):
        p = make_promotion(50, restrictions={"max_redemption_value": Decimal("100"), "min_spend": Decimal("100")})
        a = make_booking(date(2025, 3, 1))
        b = make_booking(date(2025, 3, 10))
        c = make_booking(date(2025, 3, 20))
        reevaluate_all(db)
        assert applied_value(db, c.id, p.id) == Decimal("0")

        booking_service.update_booking(db, a.id, BookingUpdate(total_cost=Decimal("50")))

        assert applied_value(db, a.id, p.id) is None
        assert applied_value(db, b.id, p.id) == Decimal("50")
        assert applied_value(db, c.id, p.id) == Decimal("50")

    def test_moving_a_stay_later_rereads_the_ones_it_passed(self, db, make_booking, make_promotion):
        p = make_promotion(50, restrictions={"max_redemption_value": Decimal("100")})
        a = make_booking(date(2025, 3, 1))
        b = make_booking(date(2025, 3, 10))
        c = make_booking(date(2025, 3, 20))
        reevaluate_all(db)

        booking_service.update_booking(
            db, a.id, BookingUpdate(check_in=date(2025, 4, 1), check_out=date(2025, 4, 3))
        )

        assert applied_value(db, b.id, p.id) == Decimal("50")
        assert applied_value(db, c.id, p.id) == Decimal("50")
        assert applied_value(db, a.id, p.id) == Decimal("0")


class TestIdempotence:
    def test_reevaluating_twice_gives_identical_rows(self, db, make_booking, make_promotion):
        make_promotion(40, restrictions={"max_redemption_value": Decimal("100")})
        make_promotion(tiers=[(1, 1, 50), (2, None, 75)])
        ids = [make_booking(date(2025, 3, d)).id for d in (1, 5, 9, 13)]

        reevaluate(db, ids)
        first = state_of(db, ids)
        reevaluate(db, list(reversed(ids)))
        assert state_of(db, ids) == first

    def test_narrowed_cascade_matches_full_rescan(self, db, make_booking, make_promotion):
        p = make_promotion(30, restrictions={"max_redemption_value": Decimal("70")})
        ids = [make_booking(date(2025, 3, d)).id for d in (1, 5, 9)]
        reevaluate_all(db)

        reevaluate_subsequent(db, ids[0], [p.id])
        narrowed = state_of(db, ids)
        reevaluate_subsequent(db, ids[0])
        assert state_of(db, ids) == narrowed


def create(db, chain, check_in, nights=2):
    return booking_service.create_booking(
        db,
        BookingCreate(
            hotel_chain_id=chain.id,
            check_in=check_in,
            check_out=check_in + timedelta(days=nights),
            pretax_cost=Decimal("200"),
        ),
    )


def assert_same_as_full_rescan(db, booking_ids):
    cascaded = state_of(db, booking_ids)
    reevaluate_all(db)
    assert state_of(db, booking_ids) == cascaded


class TestCascadeWithoutRows:
    def test_prerequisite_stay_unlocks_later_booking(self, db, chain, make_booking, make_promotion):
        p = make_promotion(50, restrictions={"prerequisite_stay_count": 1})
        later = make_booking(date(2025, 3, 10))
        reevaluate_all(db)
        assert applied_value(db, later.id, p.id) is None

        earlier = create(db, chain, date(2025, 3, 1))

        # The earlier stay earns nothing itself but counts as activity
        assert applied_value(db, earlier.id, p.id) is None
        assert applied_value(db, later.id, p.id) == Decimal("50")
        assert_same_as_full_rescan(db, [earlier.id, later.id])

    def test_uncovered_ordinal_pushes_later_stay_into_tier(self, db, chain, make_booking, make_promotion):
        p = make_promotion(tiers=[(2, None, 75)])
        later = make_booking(date(2025, 4, 1))
        reevaluate_all(db)
        assert applied_value(db, later.id, p.id) is None

        earlier = create(db, chain, date(2025, 3, 1))

        assert applied_value(db, earlier.id, p.id) is None
        assert applied_value(db, later.id, p.id) == Decimal("75")
        assert_same_as_full_rescan(db, [earlier.id, later.id])

    def test_moving_activity_to_another_chain_relocks(self, db, chain, make_booking, make_promotion):
        other = HotelChain(name="Hyatt", loyalty_program="World of Hyatt", base_point_rate=Decimal("5"))
        db.add(other)
        db.commit()
        p = make_promotion(50, restrictions={"prerequisite_stay_count": 1})
        earlier = make_booking(date(2025, 3, 1))
        later = make_booking(date(2025, 3, 10))
        reevaluate_all(db)
        assert applied_value(db, later.id, p.id) == Decimal("50")

        booking_service.update_booking(db, earlier.id, BookingUpdate(hotel_chain_id=other.id))

        assert applied_value(db, later.id, p.id) is None
        assert_same_as_full_rescan(db, [earlier.id, later.id])

    def test_unrelated_chain_does_not_cascade(self, db, make_booking, make_promotion):
        other = HotelChain(name="Hilton", loyalty_program="Honors", base_point_rate=Decimal("10"))
        db.add(other)
        db.commit()
        make_promotion(50, restrictions={"prerequisite_stay_count": 1})
        make_booking(date(2025, 3, 10))

        b = create(db, other, date(2025, 3, 1))
        report = reevaluate_subsequent(db, b.id, [])
        assert report.processed == []


class TestTiers:
    def test_ordinal_follows_check_in_not_creation(self, db, chain, make_promotion):
        p = make_promotion(tiers=[(1, 1, 50), (2, None, 75)])
        later = booking_service.create_booking(
            db,
            BookingCreate(hotel_chain_id=chain.id, check_in=date(2025, 5, 1), check_out=date(2025, 5, 3), pretax_cost=Decimal("200")),
        )
        assert applied_value(db, later.id, p.id) == Decimal("50")

        earlier = booking_service.create_booking(
            db,
            BookingCreate(hotel_chain_id=chain.id, check_in=date(2025, 4, 1), check_out=date(2025, 4, 3), pretax_cost=Decimal("200")),
        )
        assert applied_value(db, earlier.id, p.id) == Decimal("50")
        assert applied_value(db, later.id, p.id) == Decimal("75")

    def test_tiered_promotion_loaded_from_database(self, db, make_booking, make_promotion):
        p = make_promotion(tiers=[(1, 1, 50), (2, None, 75)])
        tiers = db.query(PromotionTier).filter_by(promotion_id=p.id).all()
        assert len(tiers) == 2
        b1 = make_booking(date(2025, 3, 1))
        b2 = make_booking(date(2025, 3, 5))
        reevaluate_all(db)
        assert [applied_value(db, b.id, p.id) for b in (b1, b2)] == [Decimal("50"), Decimal("75")]
        [row] = applied(db, b2.id, p.id)
        db.refresh(row)
        assert len(row.benefit_applications) == 1


class TestRunBehaviour:
    def test_manual_rows_are_never_touched(self, db, make_booking, make_promotion):
        auto_promo = make_promotion(25)
        manual_promo = make_promotion(10, type="portal", hotel_chain_id=None, shopping_portal_id=None)
        b = make_booking(date(2025, 3, 1))
        db.add(BookingPromotion(booking_id=b.id, promotion_id=manual_promo.id, applied_value=Decimal("12"), auto_applied=False, verified=True))
        db.commit()

        reevaluate_all(db)
        reevaluate_all(db)

        rows = {(r.promotion_id, r.auto_applied) for r in applied(db, b.id)}
        assert rows == {(auto_promo.id, True), (manual_promo.id, False)}
        [manual] = [r for r in applied(db, b.id) if not r.auto_applied]
        assert manual.applied_value == Decimal("12") and manual.verified

    def test_missing_bookings_are_skipped(self, db, make_booking, make_promotion):
        p = make_promotion(25)
        b = make_booking(date(2025, 3, 1))
        report = reevaluate(db, ["does-not-exist", b.id])
        assert report.skipped == ["does-not-exist"]
        assert report.processed == [b.id]
        assert applied_value(db, b.id, p.id) == Decimal("25")

    def test_broken_promotion_reported_others_still_apply(self, db, make_booking, make_promotion):
        good = make_promotion(25)
        bad = make_promotion(10)
        bad.tiers = [PromotionTier(min_stays=1, benefits=[PromotionBenefit(reward_type="cashback", value_type="fixed", value=Decimal("5"))])]
        db.commit()
        b = make_booking(date(2025, 3, 1))

        report = reevaluate(db, [b.id])

        assert applied_value(db, b.id, good.id) == Decimal("25")
        assert applied_value(db, b.id, bad.id) is None
        assert [(d.promotion_id, d.error) for d in report.diagnostics] == [(bad.id, "InvalidConfigurationError")]

    def test_replay_stops_at_last_batch_booking(self, db, make_booking, make_promotion, monkeypatch):
        make_promotion(25)
        first = make_booking(date(2025, 3, 1))
        second = make_booking(date(2025, 3, 5))
        make_booking(date(2025, 3, 20))
        replayed = []

        def recording_timeline(db, until_key=None):
            timeline = load_timeline(db, until_key)
            replayed.extend(s.id for s in timeline)
            return timeline

        monkeypatch.setattr(reevaluation_service, "load_timeline", recording_timeline)
        reevaluate(db, [second.id])
        assert replayed == [first.id, second.id]

    def test_sort_keys_skip_unknown_ids(self, db, make_booking):
        b = make_booking(date(2025, 3, 1))
        keys = load_sort_keys(db, [b.id, "gone"])
        assert list(keys) == [b.id]
        assert keys[b.id][0] == date(2025, 3, 1)

    def test_match_for_unknown_booking(self, db):
        with pytest.raises(NotFoundError):
            match_for_booking(db, "missing")

    def test_match_for_booking_seeds_from_earlier_stays(self, db, make_booking, make_promotion):
        p = make_promotion(50, restrictions={"max_redemption_value": Decimal("60")})
        first = make_booking(date(2025, 3, 1))
        second = make_booking(date(2025, 3, 2))
        rows = match_for_booking(db, second.id)
        assert [r.applied_value for r in rows] == [Decimal("10")]
        # Earlier stays only feed the ledger; their rows are not written
        assert applied(db, first.id) == []

    def test_reevaluate_for_promotion(self, db, chain, card, make_booking, make_promotion):
        p = make_promotion(15, type="credit_card", hotel_chain_id=None, credit_card_id=card.id)
        with_card = make_booking(date(2025, 3, 1), credit_card_id=card.id)
        without = make_booking(date(2025, 3, 2))
        report = reevaluate_for_promotion(db, p.id)
        assert report.processed == [with_card.id]
        assert applied_value(db, with_card.id, p.id) == Decimal("15")
        assert applied(db, without.id) == []

    def test_reevaluate_for_unknown_promotion(self, db):
        with pytest.raises(NotFoundError):
            reevaluate_for_promotion(db, "missing")
