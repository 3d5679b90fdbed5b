from datetime import date, datetime, time, timedelta

import pytest
from django.utils import timezone

from hc_core.appointments.models import Appointment, AppointmentStatus
from hc_core.appointments.selectors import available_slots
from hc_core.appointments.services import SlotLedger
from hc_core.common.errors import InvalidTransition, SlotTaken, UnauthorizedOwner

pytestmark = pytest.mark.django_db


@pytest.fixture
def book(practitioner, future_day):
    def _book(patient, slot_label="10:00 AM", **kwargs):
        kwargs.setdefault("practitioner_id", practitioner.id)
        kwargs.setdefault("day", future_day)
        return SlotLedger.book(slot_label=slot_label, patient_id=patient.id, **kwargs)

    return _book


def test_booking_starts_pending_and_holds_slot(book, patient, practitioner, future_day):
    appointment = book(patient)

    assert appointment.status == AppointmentStatus.PENDING
    assert "10:00 AM" not in available_slots(practitioner_id=practitioner.id, day=future_day)


def test_second_booking_of_held_slot_is_refused(book, patient, registered_patient):
    book(patient)

    with pytest.raises(SlotTaken) as exc:
        book(registered_patient)

    assert exc.value.status_code == 409
    assert Appointment.objects.count() == 1


def test_concurrent_insert_is_caught_by_constraint(book, patient, registered_patient, monkeypatch):
    book(patient)
    # both requests passed the availability check before either inserted
    monkeypatch.setattr("hc_core.appointments.services.slot_is_held", lambda **kwargs: False)

    with pytest.raises(SlotTaken):
        book(registered_patient)

    assert Appointment.objects.filter(status__in=["pending", "approved"]).count() == 1


def test_same_slot_with_another_practitioner_is_free(book, patient, other_practitioner):
    book(patient)
    other = book(patient, practitioner_id=other_practitioner.id)
    assert other.practitioner_id == other_practitioner.id


def test_rejected_slot_can_be_rebooked(book, patient, registered_patient, practitioner):
    first = book(patient)
    SlotLedger.reject(appointment_id=first.id, practitioner_id=practitioner.id, reason="On leave")

    again = book(registered_patient)
    assert again.status == AppointmentStatus.PENDING


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"slot_label": "01:00 PM"}, "Unknown slot"),
        ({"day": date(2000, 1, 1)}, "past"),
    ],
)
def test_booking_validation(book, patient, kwargs, message):
    with pytest.raises(ValueError, match=message):
        book(patient, **kwargs)


def test_booking_requires_a_practitioner(book, patient, patient_user):
    with pytest.raises(ValueError, match="Practitioner not found"):
        book(patient, practitioner_id=patient_user.id)


def test_approve_sets_next_appointment_and_notifies(book, patient, practitioner, future_day, mailoutbox):
    appointment = book(patient)

    approved = SlotLedger.approve(appointment_id=appointment.id, practitioner_id=practitioner.id, notes="Fasting")

    patient.refresh_from_db()
    assert approved.status == AppointmentStatus.APPROVED
    assert approved.practitioner_notes == "Fasting"
    assert patient.next_appointment == future_day
    assert mailoutbox[0].to == ["sita@example.com"]


def test_only_owner_decides(book, patient, other_practitioner):
    appointment = book(patient)
    with pytest.raises(UnauthorizedOwner):
        SlotLedger.approve(appointment_id=appointment.id, practitioner_id=other_practitioner.id)


def test_illegal_transitions_raise(book, patient, practitioner):
    appointment = book(patient)

    with pytest.raises(InvalidTransition):
        SlotLedger.complete(appointment_id=appointment.id, practitioner_id=practitioner.id)

    SlotLedger.approve(appointment_id=appointment.id, practitioner_id=practitioner.id)
    SlotLedger.complete(appointment_id=appointment.id, practitioner_id=practitioner.id)

    with pytest.raises(InvalidTransition):
        SlotLedger.reject(appointment_id=appointment.id, practitioner_id=practitioner.id)
    with pytest.raises(InvalidTransition):
        SlotLedger.reverse(appointment_id=appointment.id, practitioner_id=practitioner.id)


def test_reverse_toggles_between_approved_and_rejected(book, patient, practitioner):
    appointment = book(patient)
    SlotLedger.approve(appointment_id=appointment.id, practitioner_id=practitioner.id)

    reversed_once = SlotLedger.reverse(appointment_id=appointment.id, practitioner_id=practitioner.id, reason="x")
    assert reversed_once.status == AppointmentStatus.REJECTED

    reversed_twice = SlotLedger.reverse(appointment_id=appointment.id, practitioner_id=practitioner.id)
    assert reversed_twice.status == AppointmentStatus.APPROVED
    assert reversed_twice.rejection_reason == ""


def test_reapproval_refused_when_slot_rebooked(book, patient, registered_patient, practitioner):
    first = book(patient)
    SlotLedger.reject(appointment_id=first.id, practitioner_id=practitioner.id)
    book(registered_patient)

    with pytest.raises(SlotTaken):
        SlotLedger.reverse(appointment_id=first.id, practitioner_id=practitioner.id)

    first.refresh_from_db()
    assert first.status == AppointmentStatus.REJECTED


def test_patient_cancels_with_notice(book, registered_patient, patient_user, practitioner, mailoutbox):
    appointment = book(registered_patient)

    cancelled = SlotLedger.cancel(appointment_id=appointment.id, account_id=patient_user.id, reason=" Travelling ")

    assert cancelled.status == AppointmentStatus.CANCELLED
    assert cancelled.cancellation_reason == "Travelling"
    assert mailoutbox[-1].to == [practitioner.email]


def test_cancel_too_late_is_refused(book, registered_patient, patient_user, future_day):
    appointment = book(registered_patient)
    starts = timezone.make_aware(datetime.combine(future_day, time.min))

    with pytest.raises(InvalidTransition):
        SlotLedger.cancel(
            appointment_id=appointment.id,
            account_id=patient_user.id,
            reason="Sick",
            now=starts - timedelta(hours=2),
        )


def test_cancel_requires_reason_and_ownership(book, registered_patient, patient, patient_user):
    mine = book(registered_patient)
    theirs = book(patient, slot_label="11:00 AM")

    with pytest.raises(ValueError):
        SlotLedger.cancel(appointment_id=mine.id, account_id=patient_user.id, reason="  ")
    with pytest.raises(UnauthorizedOwner):
        SlotLedger.cancel(appointment_id=theirs.id, account_id=patient_user.id, reason="Sick")


def test_delete_frees_slot(book, patient, practitioner, future_day):
    appointment = book(patient)

    SlotLedger.delete(appointment_id=appointment.id, practitioner_id=practitioner.id)

    assert "10:00 AM" in available_slots(practitioner_id=practitioner.id, day=future_day)
