"""
Integration tests for the Installment Engine API
Tests end-to-end workflows using FastAPI TestClient
"""

import os
import pytest
from datetime import date
from fastapi.testclient import TestClient

from installment_engine.api import create_app
from installment_engine.api.dependencies import FinanceSystem, get_finance_system
from installment_engine.config import FinanceConfig


TERMS = {
    "productPrice": 12000,
    "downPayment": 2000,
    "interestRate": 12,
    "tenure": 6,
    "startDate": "2024-01-01",
}


@pytest.fixture
def system(tmp_path):
    """In-memory finance system with a fixed business date"""
    return FinanceSystem(
        config=FinanceConfig(storage_backend="memory", upload_dir=str(tmp_path / "uploads")),
        clock=lambda: date(2024, 1, 15)
    )


@pytest.fixture
def client(system):
    """Create a test client wired to the test system"""
    app = create_app()
    app.dependency_overrides[get_finance_system] = lambda: system
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def customer_id(client):
    r = client.post("/customers", json={"name": "Ali Khan", "phone": "0300-1234567"})
    assert r.status_code == 201
    return r.json()["id"]


@pytest.fixture
def plan(client, customer_id):
    r = client.post("/installments", json={**TERMS, "customerId": customer_id, "productId": "prod-42"})
    assert r.status_code == 201
    return r.json()


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert "installments" in r.json()["endpoints"]


class TestPreviewAndCreate:
    """Test quoting and creating plans"""

    def test_preview(self, client):
        """Test preview response shape and values"""
        r = client.post("/installments/preview", json=TERMS)
        assert r.status_code == 200
        data = r.json()

        assert data["financedAmount"] == 10000
        assert data["totalInterest"] == 600
        assert data["totalPayable"] == 10600
        assert data["emiAmount"] == 1766.67
        assert data["financeAmount"] is None
        assert [row["emiAmount"] for row in data["schedule"]] == [1766.67] * 5 + [1766.65]
        assert data["schedule"][0]["dueDate"] == "2024-02-01"
        assert data["schedule"][-1]["balance"] == 0

    def test_preview_persists_nothing(self, client):
        client.post("/installments/preview", json=TERMS)
        assert client.get("/installments").json() == []

    def test_invalid_terms(self, client):
        """Test engine validation surfaces as 400"""
        r = client.post("/installments/preview", json={**TERMS, "tenure": 0})
        assert r.status_code == 400
        assert r.json()["error"] == "validation_error"

    def test_malformed_body(self, client):
        """Test schema validation rejects missing fields"""
        r = client.post("/installments/preview", json={"productPrice": 100})
        assert r.status_code == 422

    def test_create_matches_preview(self, client, plan):
        preview = client.post("/installments/preview", json=TERMS).json()
        assert [row["emiAmount"] for row in plan["schedule"]] == [row["emiAmount"] for row in preview["schedule"]]
        assert plan["status"] == "active"
        assert plan["guarantors"] == []
        assert plan["customerName"] == "Ali Khan"
        assert plan["schedule"][0]["status"] == "upcoming"
        assert plan["nextDueDate"] == "2024-02-01"

    def test_create_unknown_customer(self, client):
        r = client.post("/installments", json={**TERMS, "customerId": "missing", "productId": "p"})
        assert r.status_code == 404

    def test_get_and_list(self, client, plan):
        assert client.get(f"/installments/{plan['id']}").json()["id"] == plan["id"]
        assert [p["id"] for p in client.get("/installments").json()] == [plan["id"]]
        assert client.get("/installments/missing").status_code == 404

    def test_paged(self, client, plan):
        r = client.get("/installments/paged", params={"page": 1, "pageSize": 5, "search": "ali"})
        assert r.status_code == 200
        data = r.json()
        assert data["totalCount"] == 1
        assert data["totalPages"] == 1
        assert data["pageSize"] == 5
        assert data["items"][0]["id"] == plan["id"]


class TestPayments:
    """Test the pay endpoint"""

    def test_overpayment(self, client, plan, customer_id):
        """Test 2000 against 1766.67"""
        r = client.put(f"/installments/{plan['id']}/pay/1", json={"amount": 2000, "useMiscBalance": False})
        assert r.status_code == 200
        data = r.json()

        assert data["status"] == "paid"
        assert data["overpayment"] == 233.33
        assert data["actualPaidAmount"] == 1766.67
        assert data["remainingForEntry"] == 0
        assert data["message"] == "Payment processed successfully"

        assert client.get(f"/miscellaneousregister/customer/{customer_id}/balance").json() == 233.33

    def test_misc_balance_draw(self, client, plan, customer_id):
        """Test 1000 cash plus ledger balance"""
        client.post("/miscellaneousregister", json={
            "customerId": customer_id, "transactionType": "Credit",
            "amount": 2000, "description": "Advance"
        })

        r = client.put(f"/installments/{plan['id']}/pay/1", json={"amount": 1000, "useMiscBalance": True})
        data = r.json()

        assert data["status"] == "paid"
        assert data["miscAdjustedAmount"] == 766.67
        assert client.get(f"/miscellaneousregister/customer/{customer_id}/balance").json() == 1233.33

    def test_already_paid(self, client, plan):
        """Test second payment carries remaining due and status"""
        client.put(f"/installments/{plan['id']}/pay/1", json={"amount": 1766.67})
        r = client.put(f"/installments/{plan['id']}/pay/1", json={"amount": 10})

        assert r.status_code == 409
        body = r.json()
        assert body["error"] == "already_paid"
        assert body["remainingDue"] == 0
        assert body["status"] == "paid"

    def test_zero_amount_rejected(self, client, plan):
        r = client.put(f"/installments/{plan['id']}/pay/1", json={"amount": 0})
        assert r.status_code == 400

    def test_partial_then_entry_status(self, client, plan):
        r = client.put(f"/installments/{plan['id']}/pay/2", json={"amount": 500, "paymentMethod": "Cash"})
        assert r.json()["status"] == "partial"
        assert r.json()["remainingForEntry"] == 1266.67

        fetched = client.get(f"/installments/{plan['id']}").json()
        assert fetched["schedule"][1]["status"] == "partial"
        assert fetched["schedule"][1]["actualPaidAmount"] == 500

        receipts = client.get(f"/installments/{plan['id']}/payments").json()
        assert receipts[0]["paymentMethod"] == "Cash"
        assert receipts[0]["status"] == "partial"

    def test_cancelled_plan(self, client, plan):
        assert client.delete(f"/installments/{plan['id']}").status_code == 204
        assert client.get(f"/installments/{plan['id']}").json()["status"] == "cancelled"

        r = client.put(f"/installments/{plan['id']}/pay/1", json={"amount": 100})
        assert r.status_code == 409
        assert r.json()["error"] == "invalid_plan_state"
        assert r.json()["remainingDue"] == 1766.67
        assert r.json()["status"] == "upcoming"


class TestGuarantors:
    """Test guarantor endpoints"""

    def test_crud(self, client, plan):
        r = client.post(f"/installments/{plan['id']}/guarantors", data={
            "name": "Usman Tariq", "so": "Tariq Mehmood", "relationship": "Brother"
        })
        assert r.status_code == 200
        guarantor = r.json()
        assert guarantor["picture"] is None

        r = client.put(f"/installments/guarantors/{guarantor['id']}", data={"name": "Usman T.", "phone": "0321"})
        assert r.json()["name"] == "Usman T."

        assert client.get(f"/installments/{plan['id']}").json()["guarantors"][0]["phone"] == "0321"
        assert client.delete(f"/installments/guarantors/{guarantor['id']}").status_code == 204
        assert client.get(f"/installments/{plan['id']}").json()["guarantors"] == []

    def test_picture_upload(self, client, plan, system):
        """Test the picture is stored and kept when an update sends none"""
        r = client.post(
            f"/installments/{plan['id']}/guarantors",
            data={"name": "Usman Tariq"},
            files={"picture": ("face.JPG", b"\xff\xd8jpeg-bytes", "image/jpeg")}
        )
        assert r.status_code == 200
        guarantor = r.json()
        picture = guarantor["picture"]
        assert picture.startswith("/uploads/guarantors/")
        assert picture.endswith(".jpg")

        stored = os.path.join(system.config.upload_dir, "guarantors", picture.rsplit("/", 1)[1])
        with open(stored, "rb") as f:
            assert f.read() == b"\xff\xd8jpeg-bytes"

        r = client.put(f"/installments/guarantors/{guarantor['id']}", data={"name": "Usman T."})
        assert r.json()["picture"] == picture

        r = client.put(
            f"/installments/guarantors/{guarantor['id']}",
            data={"name": "Usman T."},
            files={"picture": ("new.png", b"png-bytes", "image/png")}
        )
        assert r.json()["picture"] != picture
        assert r.json()["picture"].endswith(".png")

    def test_oversized_picture_rejected(self, client, plan, system):
        system.config.max_upload_size_mb = 0
        r = client.post(
            f"/installments/{plan['id']}/guarantors",
            data={"name": "Usman Tariq"},
            files={"picture": ("face.jpg", b"x", "image/jpeg")}
        )
        assert r.status_code == 400
        assert client.get(f"/installments/{plan['id']}").json()["guarantors"] == []

    def test_unknown_plan(self, client):
        r = client.post("/installments/missing/guarantors", data={"name": "Usman"})
        assert r.status_code == 404



class TestMiscRegister:
    """Test ledger endpoints"""

    def test_post_history_delete(self, client, customer_id):
        r = client.post("/miscellaneousregister", json={
            "customerId": customer_id, "transactionType": "Credit",
            "amount": 500, "description": "Deposit"
        })
        assert r.status_code == 201
        credit = r.json()
        assert credit["transactionType"] == "Credit"
        assert credit["createdBy"] == "Admin"
        assert len(credit["createdAt"]) == len("2024-01-15 10:30")

        client.post("/miscellaneousregister", json={
            "customerId": customer_id, "transactionType": "Adjustment",
            "amount": -100, "description": "Correction"
        })

        history = client.get(f"/miscellaneousregister/customer/{customer_id}").json()
        assert [t["transactionType"] for t in history] == ["Adjustment", "Credit"]
        assert history[0]["balance"] == 400

        assert client.delete(f"/miscellaneousregister/{history[0]['id']}").status_code == 204
        assert client.get(f"/miscellaneousregister/customer/{customer_id}/balance").json() == 500

    def test_insufficient_balance(self, client, customer_id):
        r = client.post("/miscellaneousregister", json={
            "customerId": customer_id, "transactionType": "Debit",
            "amount": 1, "description": "Spend"
        })
        assert r.status_code == 422
        assert r.json()["error"] == "insufficient_balance"

    def test_bad_type_and_reference(self, client, customer_id):
        base = {"customerId": customer_id, "amount": 1, "description": "x"}
        assert client.post("/miscellaneousregister", json={**base, "transactionType": "Gift"}).status_code == 400
        assert client.post("/miscellaneousregister", json={
            **base, "transactionType": "Credit", "referenceType": "Installment"
        }).status_code == 400

    def test_summary(self, client, customer_id):
        client.post("/miscellaneousregister", json={
            "customerId": customer_id, "transactionType": "Credit",
            "amount": 750, "description": "Deposit"
        })
        summary = client.get("/miscellaneousregister/summary").json()
        assert summary[0]["customerName"] == "Ali Khan"
        assert summary[0]["balance"] == 750
        assert summary[0]["transactionCount"] == 1

    def test_unknown_customer(self, client):
        assert client.get("/miscellaneousregister/customer/missing").status_code == 404
        assert client.get("/miscellaneousregister/customer/missing/balance").status_code == 404
