"""Integration tests for API endpoints"""

import pytest
from unittest.mock import AsyncMock, patch
from datetime import date, timedelta
from fastapi.testclient import TestClient
from school_ledger.infrastructure.database.repositories import (
    LATE_FEE_ENABLED_KEY,
    LATE_FEE_PERCENT_KEY,
    SettingsRepository,
)

pytestmark = pytest.mark.integration


def post_debt(client: TestClient, student_id: int, concept_id: int, amount: str, due_date: date):
    response = client.post(
        "/v1/debts",
        json={
            "student_id": student_id,
            "concept_id": concept_id,
            "amount": amount,
            "due_date": due_date.isoformat(),
        },
    )
    assert response.status_code == 201
    return response.json()


def post_payment(client: TestClient, student_id: int, concept_id: int, amount: str, method: str = "cash"):
    response = client.post(
        "/v1/payments",
        json={
            "student_id": student_id,
            "concept_id": concept_id,
            "amount": amount,
            "payment_date": date.today().isoformat(),
            "method": method,
        },
    )
    assert response.status_code == 201
    return response.json()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "ledger_allocation_outcomes_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_create_debt_and_payment(client: TestClient, student, concept):
    debt = post_debt(client, student.id, concept.id, "1500.5", date(2024, 9, 1))
    transfer = post_payment(client, student.id, concept.id, "200", method="transfer")
    cash = post_payment(client, student.id, concept.id, "200")

    assert debt["status"] == "pending"
    assert debt["amount"] == "1500.50"
    assert transfer["status"] == "pending"
    assert cash["status"] == "confirmed"
    assert cash["debt_id"] is None


def test_create_debt_unknown_student(client: TestClient, concept):
    response = client.post(
        "/v1/debts",
        json={"student_id": 999, "concept_id": concept.id, "amount": "10", "due_date": "2024-09-01"},
    )
    assert response.status_code == 404


def test_create_payment_rejects_zero_amount(client: TestClient, student, concept):
    response = client.post(
        "/v1/payments",
        json={
            "student_id": student.id,
            "concept_id": concept.id,
            "amount": "0",
            "payment_date": "2024-09-01",
            "method": "cash",
        },
    )
    assert response.status_code == 422


def test_allocation_then_statement(client: TestClient, student, concept):
    """Debt of 800 with payment of 300 -> partial; balance shows full debt"""
    debt = post_debt(client, student.id, concept.id, "800", date.today() + timedelta(days=10))
    payment = post_payment(client, student.id, concept.id, "300")

    response = client.post(f"/v1/students/{student.id}/allocations")
    assert response.status_code == 200
    allocation = response.json()
    assert allocation["payments_applied"] == 1
    assert allocation["debts_settled"] == 0
    assert allocation["steps"][0]["kind"] == "applied"
    assert allocation["steps"][0]["debt_status"] == "partial"

    statement = client.get(f"/v1/students/{student.id}/statement").json()
    assert statement["student"]["full_name"] == "Ana Torres"
    assert statement["debts"][0]["status"] == "partial"
    assert statement["payments"][0]["debt_id"] == debt["id"]
    assert statement["payments"][0]["id"] == payment["id"]
    assert statement["total_debt"] == "800.00"
    assert statement["balance"] == "-800.00"
    assert statement["risk_tier"] == "low"
    assert statement["late_fee_policy"]["enabled"] is False


def test_second_allocation_is_no_op(client: TestClient, student, concept):
    post_debt(client, student.id, concept.id, "500", date.today())
    post_payment(client, student.id, concept.id, "500")

    client.post(f"/v1/students/{student.id}/allocations")
    second = client.post(f"/v1/students/{student.id}/allocations").json()

    assert second["payments_applied"] == 0
    assert second["steps"] == []


def test_allocation_unknown_student(client: TestClient):
    response = client.post("/v1/students/999/allocations")
    assert response.status_code == 404


def test_allocation_sweep(client: TestClient, student, concept):
    post_debt(client, student.id, concept.id, "500", date.today())
    post_payment(client, student.id, concept.id, "500")

    response = client.post("/v1/allocations/sweep")

    assert response.status_code == 200
    assert response.json()["success"] == 1


def store_late_fee_settings(db, enabled: str, percent: str):
    settings = SettingsRepository(db)
    settings.set_value(LATE_FEE_ENABLED_KEY, enabled)
    settings.set_value(LATE_FEE_PERCENT_KEY, percent)
    db.commit()


def test_statement_applies_stored_late_fee_policy(client: TestClient, db, student, concept):
    store_late_fee_settings(db, "true", "10")
    post_debt(client, student.id, concept.id, "1000", date.today() - timedelta(days=5))

    statement = client.get(f"/v1/students/{student.id}/statement").json()

    assert statement["debts"][0]["late_fee"] == "100.00"
    assert statement["debts"][0]["is_overdue"] is True
    assert statement["total_with_late_fees"] == "1100.00"
    assert statement["overdue_count"] == 1
    assert statement["risk_tier"] == "medium"


@pytest.mark.parametrize("stored_percent", ["abc", "-5"])
def test_unusable_stored_percent_disables_late_fees(client: TestClient, db, student, concept, stored_percent):
    store_late_fee_settings(db, "true", stored_percent)
    post_debt(client, student.id, concept.id, "1000", date.today() - timedelta(days=5))

    statement = client.get(f"/v1/students/{student.id}/statement").json()

    assert statement["late_fee_policy"]["enabled"] is False
    assert statement["debts"][0]["is_overdue"] is True
    assert statement["debts"][0]["late_fee"] == "0.00"
    assert statement["total_with_late_fees"] == "1000.00"


def test_confirmed_transfer_is_allocated(client: TestClient, student, concept):
    post_debt(client, student.id, concept.id, "500", date.today())
    transfer = post_payment(client, student.id, concept.id, "500", method="transfer")
    assert transfer["status"] == "pending"

    waiting = client.post(f"/v1/students/{student.id}/allocations").json()
    assert waiting["payments_applied"] == 0

    response = client.post(f"/v1/payments/{transfer['id']}/confirm")
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

    applied = client.post(f"/v1/students/{student.id}/allocations").json()
    assert applied["payments_applied"] == 1
    assert applied["debts_settled"] == 1


def test_confirm_unknown_payment(client: TestClient):
    response = client.post("/v1/payments/999/confirm")
    assert response.status_code == 404


def test_statement_unknown_student(client: TestClient):
    response = client.get("/v1/students/999/statement")
    assert response.status_code == 404


def test_statement_without_payments(client: TestClient, student):
    statement = client.get(f"/v1/students/{student.id}/statement").json()

    assert statement["payments"] == []
    assert statement["balance"] == "0.00"
    assert statement["compliance_percent"] == 100
    assert statement["last_payment_date"] is None


def test_delete_debt(client: TestClient, student, concept):
    debt = post_debt(client, student.id, concept.id, "100", date.today())

    assert client.delete(f"/v1/debts/{debt['id']}").status_code == 204
    assert client.delete(f"/v1/debts/{debt['id']}").status_code == 404

    statement = client.get(f"/v1/students/{student.id}/statement").json()
    assert statement["debts"] == []


@patch("school_ledger.infrastructure.clients.notifier.NotificationClient.send_reminder")
def test_reminder_sweep_endpoint(mock_send: AsyncMock, client: TestClient, student, concept):
    """Test POST /v1/reminders/sweep with the webhook mocked"""
    mock_send.return_value = None
    debt = post_debt(client, student.id, concept.id, "500", date.today() - timedelta(days=3))

    response = client.post("/v1/reminders/sweep")
    assert response.status_code == 200
    assert response.json()["success"] == 1
    assert mock_send.await_count == 1

    again = client.post("/v1/reminders/sweep").json()
    assert again["success"] == 0
    assert again["details"][0].startswith("sweep already ran at")

    eligibility = client.get(f"/v1/debts/{debt['id']}/reminder-eligibility").json()
    assert eligibility["should_send"] is False


def test_reminder_eligibility_for_new_debt(client: TestClient, student, concept):
    debt = post_debt(client, student.id, concept.id, "500", date.today())

    response = client.get(f"/v1/debts/{debt['id']}/reminder-eligibility")

    assert response.status_code == 200
    assert response.json() == {"debt_id": debt["id"], "should_send": True}


def test_reminder_eligibility_unknown_debt(client: TestClient):
    response = client.get("/v1/debts/999/reminder-eligibility")
    assert response.status_code == 404


def test_risk_snapshot_endpoints(client: TestClient, student):
    created = client.post("/v1/risk-snapshots", json={"month": 3, "year": 2024})
    assert created.status_code == 201
    assert created.json()["success"] == 1

    repeat = client.post("/v1/risk-snapshots", json={"month": 3, "year": 2024}).json()
    assert repeat["omitted"] == 1

    listing = client.get("/v1/risk-snapshots", params={"month": 3, "year": 2024}).json()
    assert len(listing["snapshots"]) == 1
    assert listing["snapshots"][0]["student_id"] == student.id
    assert listing["snapshots"][0]["risk_tier"] == "low"


def test_risk_snapshot_rejects_bad_month(client: TestClient):
    response = client.post("/v1/risk-snapshots", json={"month": 13, "year": 2024})
    assert response.status_code == 422
