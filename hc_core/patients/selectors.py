# hc_core/patients/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import Q, QuerySet

from hc_core.common.errors import PatientNotFound, UnauthorizedOwner
from hc_core.common.principal import ROLE_ADMIN, Principal
from hc_core.patients.models import Patient, Visit


def get_patient(*, patient_id: UUID) -> Patient:
    try:
        return Patient.objects.get(id=patient_id)
    except Patient.DoesNotExist:
        raise PatientNotFound(details={"patient_id": str(patient_id)})


def ensure_patient_access(principal: Principal, patient: Patient) -> None:
    """
    Practitioners reach their own and unassigned patients.
    Patients reach only the record linked to their account.
    """
    if principal.role == ROLE_ADMIN:
        return
    if principal.is_patient:
        if patient.account_id != principal.id:
            raise UnauthorizedOwner()
        return
    if patient.assigned_practitioner_id not in (None, principal.id):
        raise UnauthorizedOwner("Patient is assigned to another practitioner.")


def get_visible_patient(*, principal: Principal, patient_id: UUID) -> Patient:
    patient = get_patient(patient_id=patient_id)
    ensure_patient_access(principal, patient)
    return patient


def visible_patients(
    *,
    principal: Principal,
    q: str | None = None,
    include_inactive: bool = False,
) -> QuerySet[Patient]:
    qs = Patient.objects.all()

    if principal.is_patient:
        qs = qs.filter(account_id=principal.id)
    elif principal.role != ROLE_ADMIN:
        qs = qs.filter(Q(assigned_practitioner_id=principal.id) | Q(assigned_practitioner__isnull=True))

    if not include_inactive:
        qs = qs.filter(is_active=True)

    qv = (q or "").strip()
    if qv:
        qs = qs.filter(
            Q(name__icontains=qv)
            | Q(patient_code__icontains=qv)
            | Q(mobile__icontains=qv)
            | Q(email__icontains=qv)
        )

    return qs.order_by("-created_at")


def visit_history(*, principal: Principal, patient_id: UUID) -> QuerySet[Visit]:
    patient = get_visible_patient(principal=principal, patient_id=patient_id)
    return patient.visits.select_related("prescription").order_by("-visited_at")
