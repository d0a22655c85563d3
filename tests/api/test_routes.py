from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from promotracker.core.deps import get_db
from promotracker.main import app
from promotracker.models.promotion import PromotionBenefit, PromotionTier


@pytest.fixture()
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def create(client, chain, **kw):
    body = {
        "hotel_chain_id": chain.id,
        "check_in": "2025-03-01",
        "check_out": "2025-03-03",
        "pretax_cost": "200",
        "tax_amount": "30",
    }
    body.update(kw)
    return client.post("/api/bookings", json=body)


class TestBookingRoutes:
    def test_create_derives_fields_and_matches(self, client, chain, make_promotion):
        p = make_promotion(50)
        res = create(client, chain)
        assert res.status_code == 201
        data = res.json()
        assert data["num_nights"] == 2
        assert Decimal(data["total_cost"]) == Decimal("230")
        assert data["loyalty_points_earned"] == 2000

        promos = client.get(f"/api/bookings/{data['id']}/promotions").json()
        assert [(r["promotion_id"], Decimal(r["applied_value"]), r["auto_applied"]) for r in promos] == [
            (p.id, Decimal("50"), True)
        ]
        assert len(promos[0]["benefit_applications"]) == 1

    def test_create_rejects_unknown_chain(self, client, chain):
        assert create(client, chain, hotel_chain_id="nope").status_code == 400

    def test_create_rejects_inverted_dates(self, client, chain):
        assert create(client, chain, check_out="2025-02-27").status_code == 400

    def test_patch_recomputes_points(self, client, chain):
        booking_id = create(client, chain).json()["id"]
        res = client.patch(f"/api/bookings/{booking_id}", json={"pretax_cost": "100"})
        assert res.status_code == 200
        data = res.json()
        assert data["loyalty_points_earned"] == 1000
        assert Decimal(data["total_cost"]) == Decimal("130")

    def test_delete_then_get(self, client, chain):
        booking_id = create(client, chain).json()["id"]
        assert client.delete(f"/api/bookings/{booking_id}").status_code == 204
        assert client.get(f"/api/bookings/{booking_id}").status_code == 404

    def test_unknown_booking_is_404_everywhere(self, client):
        assert client.get("/api/bookings/missing").status_code == 404
        assert client.patch("/api/bookings/missing", json={"notes": "x"}).status_code == 404
        assert client.delete("/api/bookings/missing").status_code == 404
        assert client.get("/api/bookings/missing/promotions").status_code == 404
        assert client.post("/api/bookings/missing/match").status_code == 404
        assert client.post("/api/bookings/missing/reevaluate-subsequent").status_code == 404

    def test_match_and_reevaluate_subsequent(self, client, chain, make_booking, make_promotion):
        p = make_promotion(50, restrictions={"max_redemption_value": Decimal("80")})
        first = make_booking(date(2025, 3, 1))
        second = make_booking(date(2025, 3, 5))

        rows = client.post(f"/api/bookings/{first.id}/match").json()
        assert [Decimal(r["applied_value"]) for r in rows] == [Decimal("50")]

        report = client.post(f"/api/bookings/{first.id}/reevaluate-subsequent", json={"touched_promotion_ids": None})
        assert report.status_code == 200
        assert report.json()["processed"] == [second.id]
        promos = client.get(f"/api/bookings/{second.id}/promotions").json()
        assert [(r["promotion_id"], Decimal(r["applied_value"])) for r in promos] == [(p.id, Decimal("30"))]


class TestAdminRoutes:
    def test_reevaluate_requires_ids(self, client):
        assert client.post("/api/admin/reevaluate", json={"booking_ids": []}).status_code == 422

    def test_reevaluate_reports_and_audits(self, client, make_booking, make_promotion):
        make_promotion(20)
        b = make_booking(date(2025, 3, 1))
        res = client.post("/api/admin/reevaluate", json={"booking_ids": [b.id, "gone"]})
        assert res.status_code == 200
        assert res.json() == {"processed": [b.id], "skipped": ["gone"], "diagnostics": []}

        logs = client.get("/api/admin/audit-logs", params={"action_type": "REEVALUATE"}).json()
        assert len(logs) == 1
        assert logs[0]["report_json"] == {"processed": [b.id], "skipped": ["gone"], "diagnostics": []}

    def test_reevaluate_all(self, client, make_booking):
        ids = {make_booking(date(2025, 3, d)).id for d in (1, 2)}
        res = client.post("/api/admin/reevaluate-all")
        assert set(res.json()["processed"]) == ids

    def test_unknown_promotion_and_chain(self, client):
        assert client.post("/api/admin/promotions/missing/reevaluate").status_code == 404
        assert client.post("/api/admin/hotel-chains/missing/recalculate-loyalty").status_code == 404

    def test_recalculate_loyalty(self, client, chain, make_booking):
        b = make_booking(date(2025, 6, 1))
        res = client.post(f"/api/admin/hotel-chains/{chain.id}/recalculate-loyalty", params={"today": "2025-01-01"})
        assert res.status_code == 200
        assert res.json()["processed"] == [b.id]

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"


class TestAuditRoutes:
    def test_booking_history_survives_delete(self, client, chain):
        booking_id = create(client, chain).json()["id"]
        client.patch(f"/api/bookings/{booking_id}", json={"notes": "late checkout"})
        client.delete(f"/api/bookings/{booking_id}")

        history = client.get(f"/api/admin/bookings/{booking_id}/history").json()
        assert sorted(h["action_type"] for h in history) == ["BOOKING_CREATE", "BOOKING_DELETE", "BOOKING_UPDATE"]
        [update] = [h for h in history if h["action_type"] == "BOOKING_UPDATE"]
        assert update["diff_json"]["after"]["notes"] == "<redacted>"

    def test_history_of_unknown_booking(self, client):
        assert client.get("/api/admin/bookings/missing/history").status_code == 404

    def test_filter_by_actor(self, client, chain):
        create(client, chain)
        assert len(client.get("/api/admin/audit-logs", params={"actor": "api"}).json()) == 1
        assert client.get("/api/admin/audit-logs", params={"actor": "script"}).json() == []

    def test_run_report_keeps_diagnostics(self, client, db, make_booking, make_promotion):
        bad = make_promotion(10)
        bad.tiers = [PromotionTier(min_stays=1, benefits=[PromotionBenefit(reward_type="cashback", value_type="fixed", value=Decimal("5"))])]
        db.commit()
        make_booking(date(2025, 3, 1))

        client.post("/api/admin/reevaluate-all")

        [log] = client.get("/api/admin/audit-logs", params={"action_type": "REEVALUATE_ALL"}).json()
        diagnostics = log["report_json"]["diagnostics"]
        assert [(d["promotion_id"], d["error"]) for d in diagnostics] == [(bad.id, "InvalidConfigurationError")]
