from datetime import date

import pytest

from hc_core.audit.models import AuditEvent
from hc_core.common.errors import InsufficientStock, InvalidTransition, PatientNotFound, UnauthorizedOwner
from hc_core.patients.models import Patient, Visit
from hc_core.patients.services import PatientService
from hc_core.prescriptions.models import Prescription, PrescriptionStatus
from hc_core.prescriptions.services import NOTIFY_FAILED_WARNING, LineItem, PrescriptionService

pytestmark = pytest.mark.django_db

DAY = date(2030, 1, 15)


@pytest.fixture
def issue(practitioner):
    def _issue(patient, *lines, **kwargs):
        kwargs.setdefault("practitioner_id", practitioner.id)
        kwargs.setdefault("today", DAY)
        return PrescriptionService.issue(patient_id=patient.id, line_items=list(lines), **kwargs)

    return _issue


def test_issue_applies_every_effect(issue, registered_patient, practitioner, make_item, mailoutbox):
    paracetamol = make_item(name="Paracetamol", quantity=10)
    cetirizine = make_item(name="Cetirizine", quantity=5)

    result = issue(
        registered_patient,
        LineItem(item_id=paracetamol.id, quantity=3, dosage="500mg", frequency="1-0-1"),
        LineItem(item_id=cetirizine.id, quantity=5),
        diagnosis="Viral fever",
        follow_up_date=date(2030, 1, 22),
    )

    rx = result.prescription
    assert rx.prescription_number == "RX20300115001"
    assert rx.status == PrescriptionStatus.ACTIVE
    assert [line.item_name for line in rx.lines.order_by("item_name")] == ["Cetirizine", "Paracetamol"]
    assert result.warnings == []

    paracetamol.refresh_from_db()
    cetirizine.refresh_from_db()
    assert (paracetamol.quantity, cetirizine.quantity) == (7, 0)

    registered_patient.refresh_from_db()
    assert registered_patient.assigned_practitioner_id == practitioner.id
    assert registered_patient.next_appointment == date(2030, 1, 22)

    visit = Visit.objects.get(patient=registered_patient)
    assert visit.prescription_id == rx.id
    assert visit.medicines_given[0]["name"] == "Paracetamol"
    assert registered_patient.last_visit == visit.visited_at

    assert AuditEvent.objects.filter(event_code="prescription.issued", entity_id=rx.id).exists()
    assert mailoutbox[0].subject == "Prescription RX20300115001"


def test_numbers_are_sequential_per_day(issue, patient, make_item):
    item = make_item(quantity=10)

    first = issue(patient, LineItem(item_id=item.id, quantity=1)).prescription
    second = issue(patient, LineItem(item_id=item.id, quantity=1)).prescription
    next_day = issue(patient, LineItem(item_id=item.id, quantity=1), today=date(2030, 1, 16)).prescription

    assert first.prescription_number == "RX20300115001"
    assert second.prescription_number == "RX20300115002"
    assert next_day.prescription_number == "RX20300116001"


def test_insufficient_stock_leaves_no_trace(issue, registered_patient, make_item, mailoutbox):
    paracetamol = make_item(name="Paracetamol", quantity=1)

    with pytest.raises(InsufficientStock) as exc:
        issue(registered_patient, LineItem(item_id=paracetamol.id, quantity=2))

    assert "Available: 1, Required: 2" in str(exc.value.detail)
    paracetamol.refresh_from_db()
    assert paracetamol.quantity == 1
    assert not Prescription.objects.exists()
    assert not Visit.objects.exists()
    registered_patient.refresh_from_db()
    assert registered_patient.assigned_practitioner_id is None
    assert mailoutbox == []

    # the number was not consumed
    paracetamol.quantity = 5
    paracetamol.save(update_fields=["quantity"])
    ok = issue(registered_patient, LineItem(item_id=paracetamol.id, quantity=2))
    assert ok.prescription.prescription_number == "RX20300115001"


def test_shortage_on_later_line_credits_earlier_lines(issue, patient, make_item):
    plenty = make_item(name="Paracetamol", quantity=10)
    scarce = make_item(name="Azithromycin", quantity=1)

    with pytest.raises(InsufficientStock):
        issue(
            patient,
            LineItem(item_id=plenty.id, quantity=4),
            LineItem(item_id=scarce.id, quantity=3),
        )

    plenty.refresh_from_db()
    scarce.refresh_from_db()
    assert (plenty.quantity, scarce.quantity) == (10, 1)


def test_repeated_item_lines_are_checked_against_their_total(issue, patient, make_item):
    item = make_item(name="Amoxicillin", quantity=3)

    with pytest.raises(InsufficientStock) as exc:
        issue(
            patient,
            LineItem(item_id=item.id, quantity=2, dosage="250mg"),
            LineItem(item_id=item.id, quantity=2, dosage="500mg"),
        )

    assert exc.value.details == {"item_name": "Amoxicillin", "available": 3, "requested": 4}
    item.refresh_from_db()
    assert item.quantity == 3
    assert not Prescription.objects.exists()

    rx = issue(
        patient,
        LineItem(item_id=item.id, quantity=1, dosage="250mg"),
        LineItem(item_id=item.id, quantity=2, dosage="500mg"),
    ).prescription
    item.refresh_from_db()
    assert item.quantity == 0
    assert rx.lines.count() == 2


def test_failure_after_insert_unwinds_everything(issue, registered_patient, make_item, monkeypatch):
    item = make_item(quantity=10)

    def broken_visit(**kwargs):
        raise RuntimeError("visit store unavailable")

    monkeypatch.setattr(PatientService, "record_visit", staticmethod(broken_visit))

    with pytest.raises(RuntimeError):
        issue(registered_patient, LineItem(item_id=item.id, quantity=4), follow_up_date=date(2030, 2, 1))

    item.refresh_from_db()
    registered_patient.refresh_from_db()
    assert item.quantity == 10
    assert not Prescription.objects.exists()
    assert registered_patient.assigned_practitioner_id is None
    assert registered_patient.next_appointment is None


def test_failure_after_visit_restores_visit_dates(issue, patient, make_item, monkeypatch):
    item = make_item(quantity=10)
    Patient.objects.filter(id=patient.id).update(next_appointment=date(2030, 3, 3))

    def broken_audit(**kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr("hc_core.prescriptions.services.AuditService.log", broken_audit)

    with pytest.raises(RuntimeError):
        issue(patient, LineItem(item_id=item.id, quantity=1), follow_up_date=date(2030, 2, 1))

    patient.refresh_from_db()
    assert not Visit.objects.exists()
    assert patient.last_visit is None
    assert patient.next_appointment == date(2030, 3, 3)


def test_missing_email_adds_warning(issue, make_patient, make_item):
    no_email = make_patient(name="Walk In", mobile="9500000001")
    item = make_item(quantity=10)

    result = issue(no_email, LineItem(item_id=item.id, quantity=1))

    assert result.warnings == [NOTIFY_FAILED_WARNING]
    assert Prescription.objects.count() == 1


def test_validation_happens_before_any_effect(issue, patient, make_item, other_practitioner):
    mine = make_item(quantity=10)
    theirs = make_item(name="Ibuprofen", owner=other_practitioner, quantity=10)

    with pytest.raises(UnauthorizedOwner):
        issue(patient, LineItem(item_id=mine.id, quantity=1), LineItem(item_id=theirs.id, quantity=1))
    with pytest.raises(ValueError):
        issue(patient, LineItem(item_id=mine.id, quantity=0))
    with pytest.raises(ValueError):
        issue(patient)

    mine.refresh_from_db()
    assert mine.quantity == 10


def test_patient_of_another_practitioner_is_refused(issue, make_patient, make_item, other_practitioner):
    theirs = make_patient(practitioner_id=other_practitioner.id)
    item = make_item(quantity=10)

    with pytest.raises(UnauthorizedOwner):
        issue(theirs, LineItem(item_id=item.id, quantity=2))

    item.refresh_from_db()
    assert item.quantity == 10


def test_inactive_patient_is_not_found(issue, patient, make_item):
    Patient.objects.filter(id=patient.id).update(is_active=False)
    item = make_item()

    with pytest.raises(PatientNotFound):
        issue(patient, LineItem(item_id=item.id, quantity=1))


def test_delete_credits_stock_and_removes_visit(issue, patient, practitioner, make_item):
    item = make_item(quantity=10)
    rx = issue(patient, LineItem(item_id=item.id, quantity=4)).prescription

    deleted = PrescriptionService.delete(prescription_id=rx.id, practitioner_id=practitioner.id)

    item.refresh_from_db()
    patient.refresh_from_db()
    assert deleted.is_active is False
    assert item.quantity == 10
    assert not Visit.objects.filter(prescription=rx).exists()
    assert patient.last_visit is None

    with pytest.raises(InvalidTransition):
        PrescriptionService.delete(prescription_id=rx.id, practitioner_id=practitioner.id)


def test_completed_prescription_is_frozen(issue, patient, practitioner, make_item):
    item = make_item(quantity=10)
    rx = issue(patient, LineItem(item_id=item.id, quantity=1)).prescription

    completed = PrescriptionService.complete(prescription_id=rx.id, practitioner_id=practitioner.id)
    assert completed.status == PrescriptionStatus.COMPLETED
    assert completed.completed_at is not None

    with pytest.raises(InvalidTransition):
        PrescriptionService.delete(prescription_id=rx.id, practitioner_id=practitioner.id)
    with pytest.raises(InvalidTransition):
        PrescriptionService.update(prescription_id=rx.id, practitioner_id=practitioner.id, data={"notes": "x"})
    with pytest.raises(InvalidTransition):
        PrescriptionService.discontinue(prescription_id=rx.id, practitioner_id=practitioner.id)


def test_update_follow_up_moves_next_appointment(issue, patient, practitioner, make_item):
    item = make_item(quantity=10)
    rx = issue(patient, LineItem(item_id=item.id, quantity=1)).prescription

    updated = PrescriptionService.update(
        prescription_id=rx.id,
        practitioner_id=practitioner.id,
        data={"follow_up_date": date(2030, 4, 1), "prescription_number": "RX0"},
    )

    patient.refresh_from_db()
    assert updated.follow_up_date == date(2030, 4, 1)
    assert updated.prescription_number == "RX20300115001"
    assert patient.next_appointment == date(2030, 4, 1)
