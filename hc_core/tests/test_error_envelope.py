import uuid

import pytest

pytestmark = pytest.mark.django_db


def test_unauthenticated_request_returns_error_envelope(client):
    r = client.get("/api/v1/patients/")

    assert r.status_code == 401
    body = r.json()
    assert body["error"]["code"] == "not_authenticated"
    assert body["error"]["request_id"]


def test_domain_error_renders_code_and_details(doctor_client):
    missing = uuid.uuid4()
    r = doctor_client.get(f"/api/v1/patients/{missing}/")

    assert r.status_code == 404, r.data
    assert r.data["error"]["code"] == "patient_not_found"
    assert r.data["error"]["details"] == {"patient_id": str(missing)}


def test_inbound_request_id_is_echoed(doctor_client):
    r = doctor_client.get(f"/api/v1/patients/{uuid.uuid4()}/", HTTP_X_REQUEST_ID="req-abc-123")

    assert r["X-Request-Id"] == "req-abc-123"
    assert r.data["error"]["request_id"] == "req-abc-123"


def test_validation_error_uses_validation_code(doctor_client):
    r = doctor_client.post("/api/v1/patients/", {"name": "No Mobile"}, format="json")

    assert r.status_code == 400
    assert r.data["error"]["code"] == "validation_error"
    assert "mobile" in r.data["error"]["details"]
