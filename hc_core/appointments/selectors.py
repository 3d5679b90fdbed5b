# hc_core/appointments/selectors.py
from __future__ import annotations

from datetime import date
from uuid import UUID

from django.conf import settings
from django.db.models import Count, QuerySet
from django.utils import timezone

from hc_core.appointments.models import ACTIVE_STATUSES, Appointment, AppointmentStatus
from hc_core.common.errors import AppointmentNotFound
from hc_core.common.principal import ROLE_ADMIN, Principal


def slot_labels() -> list[str]:
    return list(getattr(settings, "CLINIC_SLOT_LABELS", []))


def get_appointment(*, appointment_id: UUID) -> Appointment:
    try:
        return Appointment.objects.select_related("patient", "practitioner").get(id=appointment_id)
    except Appointment.DoesNotExist:
        raise AppointmentNotFound(details={"appointment_id": str(appointment_id)})


def slot_is_held(*, practitioner_id: int, day: date, slot_label: str, exclude_id: UUID | None = None) -> bool:
    qs = Appointment.objects.filter(
        practitioner_id=practitioner_id,
        date=day,
        slot_label=slot_label,
        status__in=ACTIVE_STATUSES,
    )
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def available_slots(*, practitioner_id: int, day: date) -> list[str]:
    held = set(
        Appointment.objects.filter(
            practitioner_id=practitioner_id,
            date=day,
            status__in=ACTIVE_STATUSES,
        ).values_list("slot_label", flat=True)
    )
    return [label for label in slot_labels() if label not in held]


def list_appointments(
    *,
    principal: Principal,
    status: str | None = None,
    day: date | None = None,
) -> QuerySet[Appointment]:
    qs = Appointment.objects.select_related("patient", "practitioner")

    if principal.is_patient:
        qs = qs.filter(patient__account_id=principal.id)
    elif principal.role != ROLE_ADMIN:
        qs = qs.filter(practitioner_id=principal.id)

    if status:
        qs = qs.filter(status=status)
    if day:
        qs = qs.filter(date=day)

    return qs.order_by("-date", "-created_at")


def appointment_stats(*, practitioner_id: int, today: date | None = None) -> dict:
    day = today or timezone.localdate()
    qs = Appointment.objects.filter(practitioner_id=practitioner_id)

    by_status = {row["status"]: row["n"] for row in qs.values("status").annotate(n=Count("id"))}
    stats = {s.value: by_status.get(s.value, 0) for s in AppointmentStatus}
    stats["total"] = sum(by_status.values())
    stats["today_active"] = qs.filter(date=day, status__in=ACTIVE_STATUSES).count()
    return stats
