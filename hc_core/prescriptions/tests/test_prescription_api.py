import pytest

from hc_core.prescriptions.models import Prescription
from hc_core.prescriptions.services import LineItem, PrescriptionService

pytestmark = pytest.mark.django_db


def _payload(patient, *lines, **extra):
    return {
        "patient_id": str(patient.id),
        "medicines": [{"item_id": str(item.id), "quantity": qty, "dosage": "1 tab"} for item, qty in lines],
        **extra,
    }


def test_issue_returns_prescription_and_warnings(doctor_client, patient, make_item):
    item = make_item(quantity=10)

    r = doctor_client.post(
        "/api/v1/prescriptions/",
        _payload(patient, (item, 2), diagnosis="Cold"),
        format="json",
    )

    assert r.status_code == 201, r.data
    assert r.data["prescription"]["prescription_number"].startswith("RX")
    assert r.data["prescription"]["medicines"][0]["quantity_given"] == 2
    assert r.data["warnings"] == []


def test_insufficient_stock_is_conflict(doctor_client, patient, make_item):
    item = make_item(name="Paracetamol", quantity=1)

    r = doctor_client.post("/api/v1/prescriptions/", _payload(patient, (item, 2)), format="json")

    assert r.status_code == 409
    assert r.data["error"]["code"] == "insufficient_stock"
    assert r.data["error"]["message"] == "Insufficient quantity for Paracetamol. Available: 1, Required: 2"
    assert not Prescription.objects.exists()


def test_retry_with_same_idempotency_key_replays_first_issue(doctor_client, patient, make_item):
    item = make_item(quantity=10)
    payload = _payload(patient, (item, 3), diagnosis="Cold")

    first = doctor_client.post("/api/v1/prescriptions/", payload, format="json", HTTP_IDEMPOTENCY_KEY="rx-retry-1")
    retry = doctor_client.post("/api/v1/prescriptions/", payload, format="json", HTTP_IDEMPOTENCY_KEY="rx-retry-1")

    assert first.status_code == 201, first.data
    assert retry.status_code == 201, retry.data
    assert retry.data["prescription"]["id"] == first.data["prescription"]["id"]
    assert retry.data["prescription"]["prescription_number"] == first.data["prescription"]["prescription_number"]
    assert Prescription.objects.count() == 1
    item.refresh_from_db()
    assert item.quantity == 7

    fresh = doctor_client.post("/api/v1/prescriptions/", payload, format="json", HTTP_IDEMPOTENCY_KEY="rx-retry-2")

    assert fresh.status_code == 201, fresh.data
    assert fresh.data["prescription"]["id"] != first.data["prescription"]["id"]
    assert Prescription.objects.count() == 2
    item.refresh_from_db()
    assert item.quantity == 4


def test_empty_medicines_rejected(doctor_client, patient):
    r = doctor_client.post("/api/v1/prescriptions/", _payload(patient), format="json")
    assert r.status_code == 400
    assert r.data["error"]["code"] == "validation_error"


def test_patient_cannot_issue(patient_client, registered_patient, make_item):
    item = make_item()
    r = patient_client.post("/api/v1/prescriptions/", _payload(registered_patient, (item, 1)), format="json")
    assert r.status_code == 403


def test_patient_sees_own_prescriptions(patient_client, registered_patient, practitioner, make_item):
    item = make_item(quantity=10)
    rx = PrescriptionService.issue(
        patient_id=registered_patient.id,
        practitioner_id=practitioner.id,
        line_items=[LineItem(item_id=item.id, quantity=1)],
    ).prescription

    listed = patient_client.get("/api/v1/prescriptions/")
    detail = patient_client.get(f"/api/v1/prescriptions/{rx.id}/")

    assert listed.data["count"] == 1
    assert detail.status_code == 200, detail.data
    assert detail.data["prescription_number"] == rx.prescription_number


def test_delete_then_delete_again(doctor_client, patient, practitioner, make_item):
    item = make_item(quantity=10)
    rx = PrescriptionService.issue(
        patient_id=patient.id,
        practitioner_id=practitioner.id,
        line_items=[LineItem(item_id=item.id, quantity=3)],
    ).prescription

    first = doctor_client.delete(f"/api/v1/prescriptions/{rx.id}/")
    second = doctor_client.delete(f"/api/v1/prescriptions/{rx.id}/")

    assert first.status_code == 204
    assert second.status_code == 409
    assert second.data["error"]["code"] == "invalid_transition"
    item.refresh_from_db()
    assert item.quantity == 10


def test_other_practitioner_cannot_complete(other_doctor_client, patient, practitioner, make_item):
    item = make_item(quantity=10)
    rx = PrescriptionService.issue(
        patient_id=patient.id,
        practitioner_id=practitioner.id,
        line_items=[LineItem(item_id=item.id, quantity=1)],
    ).prescription

    r = other_doctor_client.post(f"/api/v1/prescriptions/{rx.id}/complete/", {}, format="json")
    assert r.status_code == 403
    assert r.data["error"]["code"] == "unauthorized_owner"


def test_stats(doctor_client, patient, practitioner, make_item):
    item = make_item(name="Paracetamol", quantity=10)
    for qty in (1, 2):
        PrescriptionService.issue(
            patient_id=patient.id,
            practitioner_id=practitioner.id,
            line_items=[LineItem(item_id=item.id, quantity=qty)],
        )

    r = doctor_client.get("/api/v1/prescriptions/stats/")

    assert r.status_code == 200, r.data
    assert r.data["total"] == 2
    assert r.data["last_30_days"] == 2
    assert r.data["top_items"][0] == {"item_name": "Paracetamol", "quantity": 3, "prescriptions": 2}
