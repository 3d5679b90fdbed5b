# hc_core/prescriptions/selectors.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from uuid import UUID

from django.db.models import Count, QuerySet, Sum
from django.utils import timezone

from hc_core.common.errors import PrescriptionNotFound, UnauthorizedOwner
from hc_core.common.principal import ROLE_ADMIN, Principal
from hc_core.prescriptions.models import Prescription, PrescriptionLine, PrescriptionStatus

TOP_ITEMS_LIMIT = 5


def get_prescription(*, prescription_id: UUID) -> Prescription:
    try:
        return (
            Prescription.objects.select_related("patient", "practitioner")
            .prefetch_related("lines")
            .get(id=prescription_id)
        )
    except Prescription.DoesNotExist:
        raise PrescriptionNotFound(details={"prescription_id": str(prescription_id)})


def get_owned_prescription(*, prescription_id: UUID, practitioner_id: int) -> Prescription:
    prescription = get_prescription(prescription_id=prescription_id)
    if prescription.practitioner_id != practitioner_id:
        raise UnauthorizedOwner("Prescription was issued by another practitioner.")
    return prescription


def get_visible_prescription(*, principal: Principal, prescription_id: UUID) -> Prescription:
    prescription = get_prescription(prescription_id=prescription_id)
    if principal.role == ROLE_ADMIN:
        return prescription
    owner = prescription.patient.account_id if principal.is_patient else prescription.practitioner_id
    if owner != principal.id:
        raise UnauthorizedOwner()
    return prescription


def list_prescriptions(
    *,
    principal: Principal,
    status: str | None = None,
    patient_id: UUID | None = None,
    include_inactive: bool = False,
) -> QuerySet[Prescription]:
    qs = Prescription.objects.select_related("patient").prefetch_related("lines")

    if principal.is_patient:
        qs = qs.filter(patient__account_id=principal.id)
    elif principal.role != ROLE_ADMIN:
        qs = qs.filter(practitioner_id=principal.id)

    if not include_inactive:
        qs = qs.filter(is_active=True)
    if status:
        qs = qs.filter(status=status)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)

    return qs.order_by("-created_at")


def patient_prescriptions(*, patient_id: UUID) -> QuerySet[Prescription]:
    return (
        Prescription.objects.filter(patient_id=patient_id, is_active=True)
        .prefetch_related("lines")
        .order_by("-created_at")
    )


def prescription_stats(*, practitioner_id: int, today: date | None = None) -> dict:
    day = today or timezone.localdate()
    qs = Prescription.objects.filter(practitioner_id=practitioner_id, is_active=True)

    by_status = {row["status"]: row["n"] for row in qs.values("status").annotate(n=Count("id"))}
    since = timezone.make_aware(datetime.combine(day - timedelta(days=30), time.min))

    top_items = (
        PrescriptionLine.objects.filter(
            prescription__practitioner_id=practitioner_id,
            prescription__is_active=True,
        )
        .values("item_name")
        .annotate(quantity=Sum("quantity_given"), prescriptions=Count("prescription", distinct=True))
        .order_by("-quantity", "item_name")[:TOP_ITEMS_LIMIT]
    )

    return {
        "total": sum(by_status.values()),
        "by_status": {s.value: by_status.get(s.value, 0) for s in PrescriptionStatus},
        "last_30_days": qs.filter(created_at__gte=since).count(),
        "top_items": list(top_items),
    }
