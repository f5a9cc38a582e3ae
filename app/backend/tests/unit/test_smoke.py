"""Integration-flavored smoke tests for the FastAPI app."""

from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.backend.src.core.config import get_settings
from app.backend.src.main import app
from app.backend.src.models import InvoiceStatus, SessionInvoice


@pytest.fixture()
def client(database) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def headers(practice) -> dict[str, str]:
    return {"X-Organization-Id": str(practice.organization.id)}


@pytest.fixture()
def cron_secret(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "s3cret")
    get_settings.cache_clear()
    yield "s3cret"
    monkeypatch.delenv("CRON_SECRET")
    get_settings.cache_clear()


@pytest.fixture()
def webhook_secret(monkeypatch):
    monkeypatch.setenv("PAYMENT_PROVIDER_WEBHOOK_SECRET", "hook-s3cret")
    get_settings.cache_clear()
    yield "hook-s3cret"
    monkeypatch.delenv("PAYMENT_PROVIDER_WEBHOOK_SECRET")
    get_settings.cache_clear()


def _create_session(client, headers, practice, service_type, clients, **extra) -> int:
    payload = {
        "service_type_id": service_type.id,
        "contractor_id": practice.contractor.id,
        "date": "2026-03-05",
        "client_ids": [item.id for item in clients],
        **extra,
    }
    response = client.post("/api/sessions", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    assert response.json()["status"] == "draft"
    return response.json()["session_id"]


def test_health_and_metrics(client) -> None:
    assert client.get("/api/health/live").json() == {"status": "live"}
    ready = client.get("/api/health/ready").json()
    assert ready["status"] == "ready"
    assert ready["database"] == "sqlite"
    assert ready["payment_provider"] == "disabled"
    metrics = client.get("/api/metrics")
    assert metrics.status_code == 200
    assert "session_transitions_total" in metrics.text


def test_session_lifecycle_over_http(client, headers, practice) -> None:
    session_id = _create_session(client, headers, practice, practice.individual, [practice.private])

    submitted = client.post(f"/api/sessions/{session_id}/submit", headers=headers)
    assert submitted.status_code == 200, submitted.text
    invoice_ids = submitted.json()["invoice_ids"]
    assert len(invoice_ids) == 1

    invoice = client.get(f"/api/invoices/{invoice_ids[0]}", headers=headers)
    assert invoice.status_code == 200
    body = invoice.json()
    assert body["invoice_type"] == "single"
    assert body["status"] == "pending"
    assert Decimal(str(body["amount"])) == Decimal("100.00")
    assert body["session_id"] == session_id

    approved = client.post(f"/api/sessions/{session_id}/approve", headers=headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    missing_reason = client.post(f"/api/sessions/{session_id}/reject", headers=headers)
    assert missing_reason.status_code == 422

    rejected = client.post(
        f"/api/sessions/{session_id}/reject",
        json={"reason": "Wrong date"},
        headers=headers,
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "draft"
    assert rejected.json()["reconciliation"]["deleted_invoice_ids"] == invoice_ids

    gone = client.get(f"/api/invoices/{invoice_ids[0]}", headers=headers)
    assert gone.status_code == 404

    deleted = client.delete(f"/api/sessions/{session_id}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["status"] == "deleted"


def test_business_conflicts_map_to_409(client, headers, practice) -> None:
    session_id = _create_session(client, headers, practice, practice.individual, [practice.private])

    response = client.post(f"/api/sessions/{session_id}/approve", headers=headers)

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "invalid-transition"


def test_bulk_approve_endpoint(client, headers, practice) -> None:
    submitted = _create_session(client, headers, practice, practice.individual, [practice.private])
    draft = _create_session(client, headers, practice, practice.individual, [practice.private])
    client.post(f"/api/sessions/{submitted}/submit", headers=headers)

    response = client.post(
        "/api/sessions/bulk-approve",
        json={"session_ids": [submitted, draft]},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["approved_count"] == 1
    assert body["auto_sent_sessions"] == 0
    assert body["approved"][0]["session_id"] == submitted
    assert body["approved"][0]["status"] == "approved"
    assert body["failures"] == [
        {
            "session_id": draft,
            "code": "invalid-transition",
            "message": "Cannot approve a session that is draft",
        }
    ]


def test_organization_header_is_required(client, practice) -> None:
    missing = client.post("/api/sessions/1/submit")
    unknown = client.post("/api/sessions/1/submit", headers={"X-Organization-Id": "999"})

    assert missing.status_code == 422
    assert unknown.status_code == 404


def test_batch_invoice_endpoints(client, headers, practice) -> None:
    session_id = _create_session(
        client, headers, practice, practice.scholarship_group, [practice.scholar]
    )
    client.post(f"/api/sessions/{session_id}/submit", headers=headers)
    payload = {"client_id": practice.scholar.id, "billing_period": "2026-03"}

    created = client.post("/api/invoices/batch", json=payload, headers=headers)
    duplicate = client.post("/api/invoices/batch", json=payload, headers=headers)

    assert created.status_code == 201, created.text
    assert created.json()["line_item_count"] == 1
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "already-exists"

    invoice = client.get(f"/api/invoices/{created.json()['invoice_id']}", headers=headers).json()
    assert invoice["invoice_type"] == "batch"
    assert invoice["billing_period"] == "2026-03"
    assert invoice["line_items"][0]["description"] == "Community Group - 30 min"

    bad_period = client.post(
        "/api/invoices/batch",
        json={"client_id": practice.scholar.id, "billing_period": "2026-3"},
        headers=headers,
    )
    assert bad_period.status_code == 422


def test_generate_all_endpoint(client, headers, practice) -> None:
    session_id = _create_session(
        client, headers, practice, practice.scholarship_group, [practice.scholar]
    )
    client.post(f"/api/sessions/{session_id}/submit", headers=headers)

    response = client.post("/api/invoices/batch/generate-all", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert len(body["created"]) == 1
    assert body["failures"] == []


def test_payment_provider_webhook_unknown_invoice(client, database, webhook_secret) -> None:
    response = client.post(
        "/api/invoices/webhooks/payment-provider",
        json={"provider_invoice_id": "inv_nope", "status": "paid"},
        headers={"Authorization": f"Bearer {webhook_secret}"},
    )

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "not-found"


def test_cron_sweep_open_without_secret_outside_production(client, headers, practice) -> None:
    session_id = _create_session(
        client, headers, practice, practice.scholarship_group, [practice.scholar]
    )
    client.post(f"/api/sessions/{session_id}/submit", headers=headers)

    response = client.post("/api/cron/batch-invoices", params={"run_date": "2026-04-01"})

    assert response.status_code == 200
    assert response.json()["invoices_created"] == 1


def test_cron_sweep_requires_bearer_secret(client, practice, cron_secret) -> None:
    unauthorized = client.post("/api/cron/batch-invoices", params={"run_date": "2026-04-02"})
    wrong = client.post(
        "/api/cron/batch-invoices",
        params={"run_date": "2026-04-02"},
        headers={"Authorization": "Bearer nope"},
    )
    authorized = client.post(
        "/api/cron/batch-invoices",
        params={"run_date": "2026-04-02"},
        headers={"Authorization": f"Bearer {cron_secret}"},
    )

    assert unauthorized.status_code == 401
    assert wrong.status_code == 401
    assert authorized.status_code == 200
    assert authorized.json()["organizations"] == []


def _sent_invoice(db, practice, make_session, provider_invoice_id: str) -> int:
    session_id = make_session(practice.individual, [practice.private], submit=True)
    invoice = db.query(SessionInvoice).filter(SessionInvoice.session_id == session_id).one()
    invoice.provider_invoice_id = provider_invoice_id
    invoice.status = InvoiceStatus.SENT
    db.commit()
    return invoice.id


def test_payment_provider_webhook_requires_bearer_secret(
    client, db, headers, practice, make_session, webhook_secret
) -> None:
    invoice_id = _sent_invoice(db, practice, make_session, "prov-1")
    payload = {"provider_invoice_id": "prov-1", "status": "paid"}

    anonymous = client.post("/api/invoices/webhooks/payment-provider", json=payload)
    wrong = client.post(
        "/api/invoices/webhooks/payment-provider",
        json=payload,
        headers={"Authorization": "Bearer nope"},
    )
    unchanged = client.get(f"/api/invoices/{invoice_id}", headers=headers)

    assert anonymous.status_code == 401
    assert wrong.status_code == 401
    assert unchanged.json()["status"] == "sent"

    authorized = client.post(
        "/api/invoices/webhooks/payment-provider",
        json=payload,
        headers={"Authorization": f"Bearer {webhook_secret}"},
    )

    assert authorized.status_code == 200
    assert authorized.json() == {"invoice_id": invoice_id, "status": "paid"}
    paid = client.get(f"/api/invoices/{invoice_id}", headers=headers).json()
    assert paid["status"] == "paid"
    assert paid["paid_date"] is not None


def test_payment_provider_webhook_closed_without_secret(
    client, db, practice, make_session
) -> None:
    _sent_invoice(db, practice, make_session, "prov-2")

    response = client.post(
        "/api/invoices/webhooks/payment-provider",
        json={"provider_invoice_id": "prov-2", "status": "paid"},
        headers={"Authorization": "Bearer anything"},
    )

    assert response.status_code == 503
