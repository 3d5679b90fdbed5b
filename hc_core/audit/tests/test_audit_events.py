import pytest

from hc_core.audit.models import AuditEvent
from hc_core.audit.services import AuditService

pytestmark = pytest.mark.django_db


def test_log_persists_event(patient, practitioner):
    record = AuditService.log(
        event_code="patient.viewed",
        entity_type="Patient",
        entity_id=patient.id,
        actor_user_id=practitioner.id,
        metadata={"via": "test"},
    )

    assert record.entity_id == patient.id
    assert AuditEvent.objects.filter(event_code="patient.viewed", entity_id=patient.id).count() == 1


def test_events_are_immutable(patient):
    event = AuditEvent.objects.get(event_code="patient.created")
    event.event_code = "patient.tampered"
    with pytest.raises(ValueError):
        event.save()


def test_timeline_is_admin_only(doctor_client, admin_client, patient):
    assert doctor_client.get("/api/v1/audit/events/").status_code == 403

    r = admin_client.get(f"/api/v1/audit/events/?entity_type=Patient&entity_id={patient.id}")
    assert r.status_code == 200, r.data
    assert [e["event_code"] for e in r.data["results"]] == ["patient.created"]


def test_timeline_rejects_bad_filters(admin_client):
    r = admin_client.get("/api/v1/audit/events/?entity_id=not-a-uuid")
    assert r.status_code == 400
    assert r.data["error"]["details"]["entity_id"]
