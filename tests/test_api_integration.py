"""
Integration tests for the Somiti Ledger API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from somiti.api import create_app
from somiti.api import dependencies
from somiti.api.dependencies import SomitiSystem, get_somiti_system
from somiti.config import SomitiConfig
from somiti.errors import NotificationFailure
from somiti.notifications import NotificationService, SmsProvider, SmsResult
from somiti.storage import InMemoryStorage


@pytest.fixture
def sms_provider():
    provider = MagicMock(spec=SmsProvider)
    provider.send.return_value = SmsResult(success=True, response={"success": True})
    return provider


@pytest.fixture
def system(sms_provider):
    """In-memory ledger with synchronous SMS dispatch"""
    config = SomitiConfig(database_url="memory://", timezone="Asia/Dhaka")
    notifier = NotificationService(sms_provider, async_dispatch=False)
    return SomitiSystem(storage=InMemoryStorage(), config=config, notifier=notifier)


@pytest.fixture
def client(system):
    app = create_app()
    app.dependency_overrides[get_somiti_system] = lambda: system
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def member(client):
    r = client.post("/members", json={
        "member_id": "M001",
        "name": "Rahima Begum",
        "mobile_number": "01711000001",
        "address": "Savar"
    })
    assert r.status_code == 201
    return r.json()["member_id"]


@pytest.fixture
def loan_id(client, member):
    r = client.post("/loans", json={
        "member_id": member,
        "principal": "1000",
        "dividend": "10",
        "dividend_type": "%",
        "installment_type": "daily",
        "installment_count": 10,
        "start_date": "2024-01-01"
    })
    assert r.status_code == 201
    return r.json()["loan_id"]


class TestHealthEndpoints:

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert "loans" in r.json()["endpoints"]


    def test_shutdown_closes_system(self, system, monkeypatch):
        monkeypatch.setattr(dependencies, "_system", system)
        with TestClient(create_app()) as client:
            assert client.get("/health").status_code == 200
        assert dependencies._system is None


class TestMemberFlow:

    def test_register_and_get(self, client, member):
        r = client.get(f"/members/{member}")
        assert r.status_code == 200
        data = r.json()
        assert data["name"] == "Rahima Begum"
        assert data["role"] == "member"
        assert data["address"] == "Savar"

    def test_duplicate_member(self, client, member):
        r = client.post("/members", json={
            "member_id": member, "name": "Other", "mobile_number": "0"
        })
        assert r.status_code == 400

    def test_missing_member(self, client):
        assert client.get("/members/M404").status_code == 404

    def test_update_member(self, client, member):
        r = client.put(f"/members/{member}", json={"mobile_number": "01911000001", "status": "inactive"})
        assert r.status_code == 200
        assert r.json()["mobile_number"] == "01911000001"

        data = client.get(f"/members/{member}").json()
        assert data["status"] == "inactive"
        assert data["address"] == "Savar"
        assert data["name"] == "Rahima Begum"

    def test_update_member_errors(self, client, member):
        assert client.put("/members/M404", json={"name": "X"}).status_code == 404
        assert client.put(f"/members/{member}", json={"name": " "}).status_code == 400
        assert client.put(f"/members/{member}", json={"role": "boss"}).status_code == 400

    def test_list_by_role(self, client, member):
        client.post("/members", json={
            "member_id": "A001", "name": "Agent", "mobile_number": "01811000000", "role": "agent"
        })
        r = client.get("/members", params={"role": "agent"})
        assert [m["member_id"] for m in r.json()["members"]] == ["A001"]
        assert client.get("/members", params={"role": "boss"}).status_code == 400


class TestLoanFlow:

    def test_issue_loan_totals(self, client, member):
        r = client.post("/loans", json={
            "member_id": member, "principal": "1000", "dividend": "10", "dividend_type": "%",
            "installment_type": "daily", "installment_count": 10, "start_date": "2024-01-01"
        })
        assert r.status_code == 201
        data = r.json()
        assert data["total_loan"] == "1100.00"
        assert data["installment_amount"] == "110.00"

    def test_unknown_cadence_rejected(self, client, member):
        r = client.post("/loans", json={
            "member_id": member, "principal": "1000", "installment_type": "quarterly",
            "installment_count": 4
        })
        assert r.status_code == 400

    def test_unknown_member(self, client):
        r = client.post("/loans", json={
            "member_id": "M404", "principal": "1000", "installment_type": "daily",
            "installment_count": 4
        })
        assert r.status_code == 404

    def test_collections_floor_at_zero(self, client, loan_id):
        r = client.post("/loans/collection", json={
            "loan_id": loan_id, "amount": "500", "collection_date": "2024-01-02"
        })
        assert r.status_code == 200
        assert r.json()["total_loan"] == "600.00"

        r = client.post("/loans/collection", json={
            "loan_id": loan_id, "amount": "700", "collection_date": "2024-01-03"
        })
        assert r.json()["total_loan"] == "0.00"
        assert r.json()["paid_off"] is True

        loan = client.get(f"/loans/{loan_id}").json()
        assert loan["total_paid"] == "1200.00"
        assert len(loan["collections"]) == 2

    def test_schedule_past_calendar_rejected(self, client, member):
        r = client.post("/loans", json={
            "member_id": member, "principal": "1000", "installment_type": "semiannual",
            "installment_count": 20000
        })
        assert r.status_code == 400

    def test_update_loan(self, client, loan_id):
        client.post("/loans/collection", json={
            "loan_id": loan_id, "amount": "100", "collection_date": "2024-01-01"
        })
        r = client.patch(f"/loans/{loan_id}", json={"principal": "2000", "installment_count": 20})
        assert r.status_code == 200
        data = r.json()
        assert data["total_payable"] == "2200.00"
        assert data["installment_amount"] == "110.00"
        assert data["total_loan"] == "2100.00"
        assert data["installment_count"] == 20

    def test_update_loan_errors(self, client, loan_id):
        assert client.patch("/loans/nope", json={"description": "x"}).status_code == 404
        r = client.patch(f"/loans/{loan_id}", json={"installment_type": "quarterly"})
        assert r.status_code == 400
        assert client.get(f"/loans/{loan_id}").json()["installment_type"] == "daily"

    def test_close_member_loans(self, client, member, loan_id):
        r = client.delete(f"/loans/member/{member}")
        assert r.status_code == 200
        assert r.json()["closed_loans"] == [loan_id]

        assert client.get(f"/loans/{loan_id}").status_code == 404
        assert client.get("/loans", params={"member_id": member}).json()["loans"] == []
        assert client.delete("/loans/member/M404").status_code == 404

    def test_collection_on_missing_loan(self, client):
        r = client.post("/loans/collection", json={"loan_id": "nope", "amount": "10"})
        assert r.status_code == 404

    def test_arrears(self, client, loan_id):
        r = client.get(f"/loans/{loan_id}/arrears", params={"as_of": "2024-01-04"})
        assert r.status_code == 200
        data = r.json()
        assert [i["installment_no"] for i in data["overdue"]] == [1, 2, 3, 4]
        assert [i["installment_no"] for i in data["due_today"]] == [4]
        assert data["outstanding_balance"] == "1100.00"

    def test_list_loans_for_member(self, client, member, loan_id):
        r = client.get("/loans", params={"member_id": member})
        assert [l["loan_id"] for l in r.json()["loans"]] == [loan_id]

    def test_collection_saved_when_sms_gateway_fails(self, client, loan_id, sms_provider):
        sms_provider.send.side_effect = NotificationFailure("gateway down")
        r = client.post("/loans/collection", json={
            "loan_id": loan_id, "amount": "100", "collection_date": "2024-01-01", "send_sms": True
        })
        assert r.status_code == 200
        assert r.json()["total_loan"] == "1000.00"

        sms_provider.send.assert_called_once()
        assert client.get(f"/loans/{loan_id}").json()["total_loan"] == "1000.00"

    def test_sms_on_collection(self, client, loan_id, sms_provider):
        client.post("/loans/collection", json={
            "loan_id": loan_id, "amount": "110", "collection_date": "2024-01-01", "send_sms": True
        })
        sms_provider.send.assert_called_once()
        assert sms_provider.send.call_args[0][0] == "01711000001"


class TestInstallmentViews:

    def test_today_and_overdue(self, client, loan_id):
        client.post("/loans/collection", json={
            "loan_id": loan_id, "amount": "110", "collection_date": "2024-01-01"
        })

        today = client.get("/installments/today", params={"as_of": "2024-01-03"}).json()
        assert [i["installment_no"] for i in today["installments"]] == [3]
        assert today["installments"][0]["member_name"] == "Rahima Begum"

        overdue = client.get("/installments/overdue", params={"as_of": "2024-01-03"}).json()
        assert [i["installment_no"] for i in overdue["installments"]] == [2, 3]

    def test_bad_date(self, client):
        r = client.get("/installments/today", params={"as_of": "03/01/2024"})
        assert r.status_code == 400

    def test_member_installments(self, client, member, loan_id):
        client.post("/loans/collection", json={
            "loan_id": loan_id, "amount": "110", "collection_date": "2024-01-01"
        })
        r = client.get(f"/installments/member/{member}", params={"as_of": "2024-01-03"})
        rows = r.json()["installments"]

        assert len(rows) == 10
        assert [i["status"] for i in rows[:4]] == ["paid", "overdue", "due_today", "upcoming"]

    def test_views_survive_loan_past_calendar(self, client, system, loan_id):
        client.post("/members", json={
            "member_id": "M002", "name": "Karim Uddin", "mobile_number": "01711000002"
        })
        r = client.post("/loans", json={
            "member_id": "M002", "principal": "500", "installment_type": "daily",
            "installment_count": 3, "start_date": "2024-01-01"
        })
        bad_id = r.json()["loan_id"]
        data = system.storage.load("loans", bad_id)
        data["installment_type"] = "semiannual"
        data["installment_count"] = 20000
        system.storage.save("loans", bad_id, data)

        overdue = client.get("/installments/overdue", params={"as_of": "2024-01-03"})
        assert overdue.status_code == 200
        assert {i["loan_id"] for i in overdue.json()["installments"]} == {loan_id}

        today = client.get("/installments/today", params={"as_of": "2024-01-03"})
        assert [i["loan_id"] for i in today.json()["installments"]] == [loan_id]

        member_rows = client.get("/installments/member/M002").json()["installments"]
        assert member_rows == []


class TestDpsFlow:

    def test_scheme_enroll_collect(self, client, member):
        r = client.post("/dps/schemes", json={
            "duration_months": 12, "monthly_amount": "500", "dps_type": "profit", "interest_rate": "10"
        })
        assert r.status_code == 201
        scheme = r.json()
        assert scheme["target_amount"] == "6600.00"

        r = client.post("/dps/settings", json={
            "member_id": member, "scheme_id": scheme["scheme_id"], "start_date": "2024-01-15"
        })
        assert r.status_code == 201

        r = client.post("/dps/collections", json={
            "member_id": member, "scheme_id": scheme["scheme_id"], "amount": "500",
            "collection_date": "2024-01-15"
        })
        assert r.json()["balance"] == "500.00"

        settings = client.get(f"/dps/settings/member/{member}").json()["settings"]
        assert settings[0]["total_collected"] == "500.00"

        due = client.get("/dps/today", params={"as_of": "2024-02-15"}).json()
        assert [s["member_id"] for s in due["settings"]] == [member]

        assert len(client.get("/dps/schemes").json()["schemes"]) == 1

    def test_setting_schedule(self, client, member):
        scheme = client.post("/dps/schemes", json={
            "duration_months": 3, "monthly_amount": "500", "dps_type": "non_profit"
        }).json()
        setting = client.post("/dps/settings", json={
            "member_id": member, "scheme_id": scheme["scheme_id"], "start_date": "2024-01-31"
        }).json()

        r = client.get(f"/dps/settings/{setting['setting_id']}/schedule")
        assert r.status_code == 200
        assert [m["due_date"] for m in r.json()["schedule"]] == [
            "2024-01-31", "2024-02-29", "2024-03-31"
        ]
        assert client.get("/dps/settings/nope/schedule").status_code == 404

    def test_enroll_unknown_scheme(self, client, member):
        r = client.post("/dps/settings", json={"member_id": member, "scheme_id": "nope"})
        assert r.status_code == 404


class TestReports:

    def test_reports(self, client, member, loan_id):
        client.post("/loans/collection", json={
            "loan_id": loan_id, "amount": "300", "collection_date": "2024-01-02"
        })

        balances = client.get("/reports/loan-balances").json()
        assert balances["members"][0]["total_due"] == "800.00"

        collections = client.get("/reports/collections",
                                 params={"start": "2024-01-01", "end": "2024-01-31"}).json()
        assert collections["loan_total"] == "300.00"

        assert client.get("/reports/collections",
                          params={"start": "2024-02-01", "end": "2024-01-01"}).status_code == 400
        assert client.get("/reports/dps").json() == {"settings": []}


class TestNotifications:

    def test_send_sms(self, client, sms_provider):
        r = client.post("/notifications/sms", json={"mobile_number": "01711000001", "message": "hi"})
        assert r.status_code == 200
        sms_provider.send.assert_called_once_with("01711000001", "hi")

    def test_gateway_failure(self, client, sms_provider):
        sms_provider.send.side_effect = NotificationFailure("rejected")
        r = client.post("/notifications/sms", json={"mobile_number": "01711000001", "message": "hi"})
        assert r.status_code == 502

    def test_blank_message(self, client):
        r = client.post("/notifications/sms", json={"mobile_number": "01711000001", "message": " "})
        assert r.status_code == 400
