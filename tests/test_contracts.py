"""
Contracts: composite create/update/delete, history, attachments and Excel.
"""
import io
from datetime import date, timedelta

import pytest
from openpyxl import Workbook

from ims.config import settings
from ims.models.models import Asset, AssetDetail, CalendarEvent, Contract, ContractFile, VersionHistory
from ims.schemas.contracts import ContractIn
from ims.services import contracts as contract_service
from ims.services.audit import record_version
from ims.services.contracts import create_contracts
from ims.services.excel import CONTRACT_HEADERS, parse_workbook


def _create(client, headers, payload):
    resp = client.post("/api/contracts", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _upload(client, headers, contract_id, *files):
    multipart = [("files", (name, content, "text/plain")) for name, content in files]
    return client.post(f"/api/contracts/{contract_id}/files", files=multipart, headers=headers)


class TestContractCrud:
    def test_create_and_get(self, client, user_headers, new_contract):
        cid = _create(client, user_headers, new_contract())

        resp = client.get(f"/api/contracts/{cid}", headers=user_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["customer_name"] == "Acme Corp"
        assert body["start_date"] == "2025-01-15"
        assert [a["item"] for a in body["items"]] == ["Firewall", "SIEM"]

        firewall = body["items"][0]
        assert firewall["qty"] == 2
        assert firewall["engineer"]["main"]["name"] == "Kim"
        assert firewall["engineer"]["sub"]["name"] is None
        # blank detail rows are dropped, unit defaults to "ea"
        assert firewall["details"] == [{"content": "PSU", "qty": "2", "unit": "ea"}]
        assert body["files"] == []

    def test_missing_contract(self, client, user_headers):
        assert client.get("/api/contracts/999", headers=user_headers).status_code == 404
        assert client.delete("/api/contracts/999", headers=user_headers).status_code == 404

    def test_end_before_start_is_rejected(self, client, user_headers, new_contract):
        resp = client.post(
            "/api/contracts",
            json=new_contract(start_date="2025-06-01", end_date="2025-05-31"),
            headers=user_headers,
        )
        assert resp.status_code == 400

    def test_asset_requires_item_and_product(self, client, user_headers, new_contract):
        resp = client.post(
            "/api/contracts",
            json=new_contract(items=[{"category": "HW", "item": "", "product": "X"}]),
            headers=user_headers,
        )
        assert resp.status_code == 400

    def test_category_is_normalized(self, client, user_headers, new_contract, db_session):
        cid = _create(client, user_headers, new_contract(items=[{"category": "sw", "item": "DB", "product": "PG"}]))
        asset = db_session.query(Asset).filter(Asset.contract_id == cid).one()
        assert asset.category == "SW"
        assert asset.qty == 1

    def test_update_replaces_all_assets(self, client, user_headers, new_contract, db_session):
        cid = _create(client, user_headers, new_contract())
        old_ids = {a.id for a in db_session.query(Asset).filter(Asset.contract_id == cid)}

        payload = new_contract(
            customer_name="Acme Holdings",
            items=[{"category": "HW", "item": "Switch", "product": "SW-48", "details": [{"content": "SFP", "qty": "4"}]}],
        )
        resp = client.put(f"/api/contracts/{cid}", json=payload, headers=user_headers)
        assert resp.status_code == 200

        db_session.expire_all()
        assets = db_session.query(Asset).filter(Asset.contract_id == cid).all()
        assert [a.item for a in assets] == ["Switch"]
        assert not old_ids & {a.id for a in assets}
        assert db_session.query(AssetDetail).count() == 1
        assert db_session.get(Contract, cid).customer_name == "Acme Holdings"

    def test_delete_cascades(self, client, user_headers, new_contract, db_session):
        cid = _create(client, user_headers, new_contract())
        asset_id = db_session.query(Asset).filter(Asset.contract_id == cid).first().id
        event = client.post(
            "/api/events",
            json={
                "title": "Visit",
                "type": "maintenance",
                "start": "2025-02-01T10:00:00",
                "contract_id": cid,
                "asset_id": asset_id,
            },
            headers=user_headers,
        ).json()

        resp = client.delete(f"/api/contracts/{cid}", headers=user_headers)
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.query(Contract).count() == 0
        assert db_session.query(Asset).count() == 0
        assert db_session.query(AssetDetail).count() == 0
        e = db_session.get(CalendarEvent, event["id"])
        assert e is not None
        assert e.contract_id is None
        assert e.asset_id is None


class TestContractList:
    def test_search_and_paging(self, client, user_headers, new_contract):
        _create(client, user_headers, new_contract())
        _create(client, user_headers, new_contract(customer_name="Globex", project_title="Network Upgrade"))
        _create(client, user_headers, new_contract(customer_name="Initech", project_title="Acme Migration"))

        resp = client.get("/api/contracts", params={"search": "Acme"}, headers=user_headers)
        body = resp.json()
        assert body["total"] == 2
        assert {c["customer_name"] for c in body["contracts"]} == {"Acme Corp", "Initech"}

        resp = client.get("/api/contracts", params={"page": 2, "limit": 2}, headers=user_headers)
        body = resp.json()
        assert body["total"] == 3
        assert body["page"] == 2
        assert len(body["contracts"]) == 1

    def test_status_filter(self, client, user_headers, new_contract):
        today = date.today()
        _create(client, user_headers, new_contract(customer_name="Old", start_date="2020-01-01", end_date="2020-12-31"))
        _create(
            client,
            user_headers,
            new_contract(
                customer_name="Soon",
                start_date=(today - timedelta(days=300)).isoformat(),
                end_date=(today + timedelta(days=10)).isoformat(),
            ),
        )
        _create(
            client,
            user_headers,
            new_contract(
                customer_name="Far",
                start_date=(today - timedelta(days=10)).isoformat(),
                end_date=(today + timedelta(days=200)).isoformat(),
            ),
        )

        def names(status):
            resp = client.get("/api/contracts", params={"status": status}, headers=user_headers)
            return {c["customer_name"] for c in resp.json()["contracts"]}

        assert names("expired") == {"Old"}
        assert names("expiring") == {"Soon"}
        assert names("active") == {"Soon", "Far"}

        far = next(c for c in client.get("/api/contracts", headers=user_headers).json()["contracts"] if c["customer_name"] == "Far")
        assert far["status"] == "active"


class TestContractHistory:
    def test_versions_newest_first_with_diff(self, client, user_headers, new_contract):
        cid = _create(client, user_headers, new_contract())
        client.put(f"/api/contracts/{cid}", json=new_contract(notes="renewed"), headers=user_headers)

        history = client.get(f"/api/contracts/{cid}/history", headers=user_headers).json()
        assert [h["version"] for h in history] == [2, 1]
        assert [h["change_type"] for h in history] == ["update", "create"]
        assert history[0]["created_by"] == "user"
        assert "notes" in history[0]["diff"]
        assert history[0]["diff"]["notes"]["new"] == "renewed"

    def test_delete_records_a_version(self, client, user_headers, new_contract, db_session):
        cid = _create(client, user_headers, new_contract())
        client.delete(f"/api/contracts/{cid}", headers=user_headers)
        rows = db_session.query(VersionHistory).filter(VersionHistory.entity_id == cid).order_by(VersionHistory.version).all()
        assert [r.change_type for r in rows] == ["create", "delete"]
        assert rows[-1].diff is None
        assert rows[-1].data["customer_name"] == "Acme Corp"


class TestContractFiles:
    def test_upload_list_download(self, client, user_headers, manager_headers, new_contract):
        cid = _create(client, user_headers, new_contract())

        resp = _upload(client, user_headers, cid, ("report.txt", b"hello"), ("scan.pdf", b"%PDF"))
        assert resp.status_code == 201
        saved = resp.json()["files"]
        assert [f["original_name"] for f in saved] == ["report.txt", "scan.pdf"]
        assert saved[0]["file_path"].startswith("/uploads/contracts/")
        assert saved[0]["stored_name"].endswith(".txt")
        assert saved[0]["file_size"] == 5
        assert saved[0]["uploaded_by"] == "user"

        listed = client.get(f"/api/contracts/{cid}/files", headers=user_headers).json()
        assert len(listed) == 2

        file_id = saved[0]["id"]
        url = f"/api/contracts/{cid}/files/{file_id}/download"
        assert client.get(url, headers=user_headers).status_code == 403
        resp = client.get(url, headers=manager_headers)
        assert resp.status_code == 200
        assert resp.content == b"hello"

    def test_no_files(self, client, user_headers, new_contract):
        cid = _create(client, user_headers, new_contract())
        resp = client.post(f"/api/contracts/{cid}/files", headers=user_headers)
        assert resp.status_code == 400

    def test_unknown_contract(self, client, user_headers):
        resp = _upload(client, user_headers, 404, ("a.txt", b"a"))
        assert resp.status_code == 404

    def test_too_large_is_rejected_and_cleaned_up(self, client, user_headers, new_contract, storage, db_session, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 8)
        cid = _create(client, user_headers, new_contract())

        resp = _upload(client, user_headers, cid, ("small.txt", b"ok"), ("big.txt", b"x" * 64))
        assert resp.status_code == 400
        assert db_session.query(ContractFile).count() == 0
        assert list((storage.base_dir / "contracts").glob("*")) == []

    def test_too_many_files(self, client, user_headers, new_contract, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_files", 1)
        cid = _create(client, user_headers, new_contract())
        resp = _upload(client, user_headers, cid, ("a.txt", b"a"), ("b.txt", b"b"))
        assert resp.status_code == 400

    def test_delete_file(self, client, user_headers, new_contract, storage):
        cid = _create(client, user_headers, new_contract())
        saved = _upload(client, user_headers, cid, ("a.txt", b"a")).json()["files"][0]
        assert storage.exists(saved["file_path"])

        resp = client.delete(f"/api/contracts/{cid}/files/{saved['id']}", headers=user_headers)
        assert resp.status_code == 200
        assert not storage.exists(saved["file_path"])
        assert client.get(f"/api/contracts/{cid}/files", headers=user_headers).json() == []

    def test_contract_delete_removes_stored_files(self, client, user_headers, new_contract, storage):
        cid = _create(client, user_headers, new_contract())
        saved = _upload(client, user_headers, cid, ("a.txt", b"a")).json()["files"][0]

        client.delete(f"/api/contracts/{cid}", headers=user_headers)
        assert not storage.exists(saved["file_path"])


class TestContractExcel:
    def test_export_then_import(self, client, user_headers, new_contract):
        _create(client, user_headers, new_contract())

        resp = client.get("/api/contracts/export", headers=user_headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/vnd.openxmlformats")
        assert "IMS_contracts_assets_" in resp.headers["content-disposition"]

        resp = client.post(
            "/api/contracts/import",
            files={"file": ("contracts.xlsx", resp.content, "application/octet-stream")},
            headers=user_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["imported"] == 1

        new_id = resp.json()["ids"][0]
        imported = client.get(f"/api/contracts/{new_id}", headers=user_headers).json()
        assert imported["customer_name"] == "Acme Corp"
        assert imported["end_date"] == "2025-12-31"
        assert [(a["item"], a["qty"], a["cycle"]) for a in imported["items"]] == [
            ("Firewall", 2, "month"),
            ("SIEM", 1, "quarter"),
        ]

    def test_template_parses(self, client, user_headers):
        resp = client.get("/api/contracts/export/template", headers=user_headers)
        assert resp.status_code == 200
        contracts = parse_workbook(resp.content)
        assert len(contracts) == 1
        assert contracts[0]["customer_name"] == "Example Corp"
        assert contracts[0]["items"][0]["item"] == "Firewall"

    def test_import_rejects_garbage(self, client, user_headers):
        resp = client.post(
            "/api/contracts/import",
            files={"file": ("x.xlsx", b"not a workbook", "application/octet-stream")},
            headers=user_headers,
        )
        assert resp.status_code == 400

    def test_import_reports_row(self, client, user_headers, db_session):
        wb = Workbook()
        ws = wb.active
        ws.title = "Contracts"
        ws.append(CONTRACT_HEADERS)
        ws.append([1, "Good", "P1", "2025-01-01", "2025-12-31"])
        ws.append([2, "Bad", "P2", "2025-06-01", "2025-01-01"])
        buf = io.BytesIO()
        wb.save(buf)

        resp = client.post(
            "/api/contracts/import",
            files={"file": ("x.xlsx", buf.getvalue(), "application/octet-stream")},
            headers=user_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("Row 2:")
        assert db_session.query(Contract).count() == 0

    def test_import_is_all_or_nothing(self, db_session, new_contract, monkeypatch):
        calls = []

        def flaky_record_version(db, *args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError("history write failed")
            return record_version(db, *args, **kwargs)

        monkeypatch.setattr(contract_service, "record_version", flaky_record_version)
        payloads = [
            ContractIn.model_validate(new_contract(customer_name="First")),
            ContractIn.model_validate(new_contract(customer_name="Second")),
        ]
        with pytest.raises(RuntimeError):
            create_contracts(db_session, payloads, created_by="user")

        assert db_session.query(Contract).count() == 0
        assert db_session.query(Asset).count() == 0
        assert db_session.query(VersionHistory).count() == 0

    def test_batch_create(self, db_session, new_contract):
        payloads = [ContractIn.model_validate(new_contract(customer_name=name)) for name in ("First", "Second")]
        ids = create_contracts(db_session, payloads, created_by="user")
        assert len(ids) == 2
        assert {c.customer_name for c in db_session.query(Contract).all()} == {"First", "Second"}
        assert db_session.query(VersionHistory).count() == 2
