"""
Dashboard statistics and expiry notifications.
"""
from datetime import date, timedelta

from ims.models.models import Contract, Notification
from ims.schemas.contracts import ContractIn
from ims.services.contracts import create_contract
from ims.services.notifications import notify_expiring_contracts
from ims.services.scheduling import today_local


def _period(start_offset, end_offset, today=None):
    today = today or today_local()
    return {
        "start_date": (today + timedelta(days=start_offset)).isoformat(),
        "end_date": (today + timedelta(days=end_offset)).isoformat(),
    }


class TestDashboard:
    def test_stats(self, client, user_headers, new_contract):
        client.post("/api/contracts", json=new_contract(customer_name="Expired", **_period(-400, -5)), headers=user_headers)
        client.post("/api/contracts", json=new_contract(customer_name="Expiring", **_period(-300, 10)), headers=user_headers)
        client.post(
            "/api/contracts",
            json=new_contract(
                customer_name="Active",
                items=[{"category": "SW", "item": "EDR", "product": "E1"}],
                **_period(-30, 200),
            ),
            headers=user_headers,
        )

        stats = client.get("/api/dashboard/stats", headers=user_headers).json()
        assert stats["totalContracts"] == 3
        assert stats["expiredContracts"] == 1
        assert stats["expiringContracts"] == 1
        assert stats["activeContracts"] == 1
        assert stats["totalAssets"] == 5
        assert stats["hwAssets"] == 2
        assert stats["swAssets"] == 3
        assert [c["customer_name"] for c in stats["recentContracts"]] == ["Active", "Expiring", "Expired"]
        assert "files" not in stats["recentContracts"][0]

    def test_empty(self, client, user_headers):
        stats = client.get("/api/dashboard/stats", headers=user_headers).json()
        assert stats["totalContracts"] == 0
        assert stats["totalAssets"] == 0
        assert stats["recentContracts"] == []


def _contract(db_session, name, start, end):
    return create_contract(
        db_session,
        ContractIn.model_validate(
            {"customer_name": name, "project_title": f"{name} project", "start_date": start, "end_date": end}
        ),
    )


class TestExpiryNotifications:
    def test_service(self, db_session):
        today = date(2025, 6, 1)
        _contract(db_session, "Lapsed", "2024-06-01", "2025-05-20")
        _contract(db_session, "Soon", "2024-07-01", "2025-06-20")
        _contract(db_session, "Later", "2024-07-01", "2025-12-31")

        assert notify_expiring_contracts(db_session, days=30, today=today) == 2
        # unread notifications suppress duplicates
        assert notify_expiring_contracts(db_session, days=30, today=today) == 0

        rows = {n.title: n for n in db_session.query(Notification).all()}
        assert rows["[Lapsed] contract expiring"].severity == "error"
        assert rows["[Soon] contract expiring"].severity == "warning"
        assert "19 day(s)" in rows["[Soon] contract expiring"].message

        # once read, the contract is notified again
        for n in rows.values():
            n.is_read = True
        db_session.commit()
        assert notify_expiring_contracts(db_session, days=30, today=today) == 2

    def test_endpoints(self, client, user_headers, new_contract, db_session):
        client.post("/api/contracts", json=new_contract(customer_name="Soon", **_period(-300, 10)), headers=user_headers)
        client.post("/api/contracts", json=new_contract(customer_name="Far", **_period(-30, 200)), headers=user_headers)

        resp = client.post("/api/notifications/generate/expiring", json={"days": 30}, headers=user_headers)
        assert resp.json()["created"] == 1

        notes = client.get("/api/notifications", headers=user_headers).json()
        assert len(notes) == 1
        assert notes[0]["is_read"] is False

        resp = client.put(f"/api/notifications/{notes[0]['id']}/read", headers=user_headers)
        assert resp.status_code == 200
        assert resp.json()["is_read"] is True
        assert resp.json()["read_at"] is not None

        assert client.get("/api/notifications", params={"unread_only": True}, headers=user_headers).json() == []

        # wider window picks up the other contract
        client.post("/api/notifications/generate/expiring", json={"days": 365}, headers=user_headers)
        resp = client.put("/api/notifications/read-all", headers=user_headers)
        assert resp.json()["updated"] == 2

    def test_mark_missing(self, client, user_headers):
        assert client.put("/api/notifications/nope/read", headers=user_headers).status_code == 404

    def test_contract_delete_drops_notifications(self, client, user_headers, new_contract, db_session):
        cid = client.post("/api/contracts", json=new_contract(**_period(-300, 10)), headers=user_headers).json()["id"]
        client.post("/api/notifications/generate/expiring", headers=user_headers)
        assert db_session.query(Notification).count() == 1

        client.delete(f"/api/contracts/{cid}", headers=user_headers)
        db_session.expire_all()
        assert db_session.query(Contract).count() == 0
        assert db_session.query(Notification).count() == 0
