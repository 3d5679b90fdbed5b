# hc_core/appointments/services.py
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from uuid import UUID

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from hc_core.appointments.models import ACTIVE_STATUSES, Appointment, AppointmentStatus
from hc_core.appointments.selectors import get_appointment, slot_is_held, slot_labels
from hc_core.audit.services import AuditService
from hc_core.common.errors import InvalidTransition, SlotTaken, UnauthorizedOwner
from hc_core.common.principal import is_practitioner
from hc_core.notifications import templates
from hc_core.notifications.services import notify
from hc_core.patients.models import Patient
from hc_core.patients.selectors import get_patient

logger = logging.getLogger(__name__)


def _display_name(user) -> str:
    if user is None:
        return ""
    return user.get_full_name() or user.get_username()


def _notify_patient(appointment: Appointment, template_kind: str, **extra) -> None:
    patient = appointment.patient
    notify(
        patient.email,
        template_kind,
        {
            "patient_name": patient.name,
            "practitioner_name": _display_name(appointment.practitioner),
            "date": appointment.date.isoformat(),
            "slot_label": appointment.slot_label,
            **extra,
        },
    )


def _owned_by_practitioner(appointment_id: UUID, practitioner_id: int) -> Appointment:
    appointment = get_appointment(appointment_id=appointment_id)
    if appointment.practitioner_id != practitioner_id:
        raise UnauthorizedOwner("Appointment belongs to another practitioner.")
    return appointment


def _move(appointment: Appointment, *, to_status: str, allowed_from: tuple, **fields) -> Appointment:
    """
    Compare-and-set status change. Fails if someone else moved the appointment first.
    Re-entering an active status can collide with a newer booking of the same slot.
    """
    now = timezone.now()
    try:
        with transaction.atomic():
            moved = Appointment.objects.filter(id=appointment.id, status__in=allowed_from).update(
                status=to_status,
                status_changed_at=now,
                updated_at=now,
                **fields,
            )
    except IntegrityError:
        raise SlotTaken(details={"date": appointment.date.isoformat(), "slot_label": appointment.slot_label})

    if not moved:
        appointment.refresh_from_db(fields=["status"])
        raise InvalidTransition(
            f"Cannot change appointment from {appointment.status} to {to_status}.",
            details={"from": appointment.status, "to": to_status},
        )

    appointment.refresh_from_db()
    return appointment


def _audit(appointment: Appointment, event_code: str, actor_user_id: int | None, **metadata) -> None:
    AuditService.log(
        event_code=event_code,
        entity_type="Appointment",
        entity_id=appointment.id,
        actor_user_id=actor_user_id,
        metadata={"status": appointment.status, **metadata},
    )


class SlotLedger:
    @staticmethod
    def book(
        *,
        practitioner_id: int,
        day: date,
        slot_label: str,
        patient_id: UUID,
        reason: str = "",
        visit_type: str = Appointment.VisitType.CONSULTATION,
        actor_user_id: int | None = None,
        today: date | None = None,
    ) -> Appointment:
        if slot_label not in slot_labels():
            raise ValueError(f"Unknown slot {slot_label!r}.")
        if day < (today or timezone.localdate()):
            raise ValueError("Cannot book an appointment in the past.")

        if not is_practitioner(practitioner_id):
            raise ValueError("Practitioner not found.")

        patient = get_patient(patient_id=patient_id)
        if not patient.is_active:
            raise ValueError("Patient record is inactive.")

        if slot_is_held(practitioner_id=practitioner_id, day=day, slot_label=slot_label):
            raise SlotTaken(details={"date": day.isoformat(), "slot_label": slot_label})

        try:
            with transaction.atomic():
                appointment = Appointment.objects.create(
                    patient=patient,
                    practitioner_id=practitioner_id,
                    date=day,
                    slot_label=slot_label,
                    reason=reason or "",
                    visit_type=visit_type,
                    status=AppointmentStatus.PENDING,
                )
        except IntegrityError:
            # lost the race to a concurrent booking of the same slot
            logger.info("Slot %s %s taken concurrently (practitioner %s)", day, slot_label, practitioner_id)
            raise SlotTaken(details={"date": day.isoformat(), "slot_label": slot_label})

        _audit(appointment, "appointment.booked", actor_user_id, slot_label=slot_label, date=day.isoformat())
        return appointment

    @staticmethod
    def approve(*, appointment_id: UUID, practitioner_id: int, notes: str = "") -> Appointment:
        appointment = _owned_by_practitioner(appointment_id, practitioner_id)
        appointment = _move(
            appointment,
            to_status=AppointmentStatus.APPROVED,
            allowed_from=(AppointmentStatus.PENDING,),
            practitioner_notes=notes or appointment.practitioner_notes,
        )
        Patient.objects.filter(id=appointment.patient_id).update(next_appointment=appointment.date)

        _audit(appointment, "appointment.approved", practitioner_id)
        _notify_patient(appointment, templates.APPOINTMENT_APPROVED)
        return appointment

    @staticmethod
    def reject(*, appointment_id: UUID, practitioner_id: int, reason: str = "") -> Appointment:
        appointment = _owned_by_practitioner(appointment_id, practitioner_id)
        appointment = _move(
            appointment,
            to_status=AppointmentStatus.REJECTED,
            allowed_from=(AppointmentStatus.PENDING,),
            rejection_reason=reason or "",
        )

        _audit(appointment, "appointment.rejected", practitioner_id)
        _notify_patient(appointment, templates.APPOINTMENT_REJECTED, reason=reason or "")
        return appointment

    @staticmethod
    def complete(*, appointment_id: UUID, practitioner_id: int, notes: str = "") -> Appointment:
        appointment = _owned_by_practitioner(appointment_id, practitioner_id)
        appointment = _move(
            appointment,
            to_status=AppointmentStatus.COMPLETED,
            allowed_from=(AppointmentStatus.APPROVED,),
            practitioner_notes=notes or appointment.practitioner_notes,
        )

        _audit(appointment, "appointment.completed", practitioner_id)
        _notify_patient(appointment, templates.APPOINTMENT_COMPLETED)
        return appointment

    @staticmethod
    def reverse(*, appointment_id: UUID, practitioner_id: int, reason: str = "") -> Appointment:
        """
        Administrative toggle approved <-> rejected. Re-approving needs the slot to be free.
        """
        appointment = _owned_by_practitioner(appointment_id, practitioner_id)

        if appointment.status == AppointmentStatus.APPROVED:
            appointment = _move(
                appointment,
                to_status=AppointmentStatus.REJECTED,
                allowed_from=(AppointmentStatus.APPROVED,),
                rejection_reason=reason or "",
            )
            _notify_patient(appointment, templates.APPOINTMENT_REJECTED, reason=reason or "")
        elif appointment.status == AppointmentStatus.REJECTED:
            if slot_is_held(
                practitioner_id=appointment.practitioner_id,
                day=appointment.date,
                slot_label=appointment.slot_label,
                exclude_id=appointment.id,
            ):
                raise SlotTaken(
                    details={"date": appointment.date.isoformat(), "slot_label": appointment.slot_label}
                )
            appointment = _move(
                appointment,
                to_status=AppointmentStatus.APPROVED,
                allowed_from=(AppointmentStatus.REJECTED,),
                rejection_reason="",
            )
            Patient.objects.filter(id=appointment.patient_id).update(next_appointment=appointment.date)
            _notify_patient(appointment, templates.APPOINTMENT_APPROVED)
        else:
            raise InvalidTransition(
                f"Only approved or rejected appointments can be reversed (is {appointment.status}).",
                details={"from": appointment.status},
            )

        _audit(appointment, "appointment.reversed", practitioner_id)
        return appointment

    @staticmethod
    def cancel(
        *,
        appointment_id: UUID,
        account_id: int,
        reason: str,
        now: datetime | None = None,
    ) -> Appointment:
        """
        Patient-initiated cancellation. Keeps the record with its reason.
        """
        appointment = get_appointment(appointment_id=appointment_id)
        if appointment.patient.account_id != account_id:
            raise UnauthorizedOwner("Appointment belongs to another patient.")

        if not (reason or "").strip():
            raise ValueError("A cancellation reason is required.")

        if appointment.status not in ACTIVE_STATUSES:
            raise InvalidTransition(
                f"Cannot cancel a {appointment.status} appointment.",
                details={"from": appointment.status, "to": AppointmentStatus.CANCELLED.value},
            )

        notice = timedelta(hours=int(getattr(settings, "APPOINTMENT_CANCEL_MIN_NOTICE_HOURS", 24)))
        starts = timezone.make_aware(datetime.combine(appointment.date, time.min))
        if starts - (now or timezone.now()) < notice:
            raise InvalidTransition(
                "Appointments can only be cancelled with enough notice.",
                details={"min_notice_hours": int(notice.total_seconds() // 3600)},
            )

        appointment = _move(
            appointment,
            to_status=AppointmentStatus.CANCELLED,
            allowed_from=ACTIVE_STATUSES,
            cancellation_reason=reason.strip(),
        )

        _audit(appointment, "appointment.cancelled", account_id, reason=reason.strip())
        notify(
            appointment.practitioner.email,
            templates.APPOINTMENT_CANCELLED,
            {
                "patient_name": appointment.patient.name,
                "practitioner_name": _display_name(appointment.practitioner),
                "date": appointment.date.isoformat(),
                "slot_label": appointment.slot_label,
                "reason": reason.strip(),
            },
        )
        return appointment

    @staticmethod
    @transaction.atomic
    def delete(*, appointment_id: UUID, practitioner_id: int) -> None:
        appointment = _owned_by_practitioner(appointment_id, practitioner_id)
        _audit(appointment, "appointment.deleted", practitioner_id, date=appointment.date.isoformat())
        appointment.delete()
