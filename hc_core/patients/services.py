# hc_core/patients/services.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from hc_core.audit.services import AuditService
from hc_core.common.errors import UnauthorizedOwner
from hc_core.common.principal import Principal, is_practitioner
from hc_core.common.sequences import SequenceAllocator, patient_code_scope
from hc_core.patients.models import Patient, Visit
from hc_core.patients.selectors import get_patient, get_visible_patient

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "name",
    "mobile",
    "email",
    "age",
    "gender",
    "address",
    "medical_history",
    "next_appointment",
}

# scheduling stays with the clinic
PATIENT_EDITABLE_FIELDS = EDITABLE_FIELDS - {"next_appointment"}

_KEEP = object()


def _allocate_patient(**fields: Any) -> Patient:
    return SequenceAllocator.allocate(
        patient_code_scope(),
        lambda code: Patient.objects.create(patient_code=code, **fields),
    )


class PatientService:
    @staticmethod
    @transaction.atomic
    def register_self(
        *,
        account,
        mobile: str,
        age: int | None = None,
        gender: str = "",
        address: str = "",
        medical_history: str = "",
    ) -> Patient:
        """
        Patient-initiated registration. Contact fields come from the login account.
        """
        if Patient.objects.filter(account=account).exists():
            raise ValueError("A patient profile already exists for this account.")

        patient = _allocate_patient(
            account=account,
            name=account.get_full_name() or account.get_username(),
            email=account.email or "",
            mobile=mobile.strip(),
            age=age,
            gender=gender or "",
            address=address or "",
            medical_history=medical_history or "",
            source=Patient.Source.SELF_REGISTRATION,
        )

        AuditService.log(
            event_code="patient.registered",
            entity_type="Patient",
            entity_id=patient.id,
            actor_user_id=account.id,
            metadata={"patient_code": patient.patient_code},
        )
        logger.info("Patient %s self-registered", patient.patient_code)
        return patient

    @staticmethod
    @transaction.atomic
    def create_patient(
        *,
        practitioner_id: int | None,
        actor_user_id: int | None,
        name: str,
        mobile: str,
        email: str = "",
        age: int | None = None,
        gender: str = "",
        address: str = "",
        medical_history: str = "",
        source: str = Patient.Source.WALK_IN,
    ) -> Patient:
        mobile = mobile.strip()
        duplicate = Patient.objects.filter(
            assigned_practitioner_id=practitioner_id,
            mobile=mobile,
            is_active=True,
        ).exists()
        if duplicate:
            raise ValueError("A patient with this mobile number already exists.")

        patient = _allocate_patient(
            assigned_practitioner_id=practitioner_id,
            name=name.strip(),
            mobile=mobile,
            email=email or "",
            age=age,
            gender=gender or "",
            address=address or "",
            medical_history=medical_history or "",
            source=source,
        )

        AuditService.log(
            event_code="patient.created",
            entity_type="Patient",
            entity_id=patient.id,
            actor_user_id=actor_user_id,
            metadata={"patient_code": patient.patient_code, "source": source},
        )
        logger.info("Patient %s created (%s)", patient.patient_code, source)
        return patient

    @staticmethod
    @transaction.atomic
    def update_patient(*, principal: Principal, patient_id: UUID, data: dict) -> Patient:
        patient = get_visible_patient(principal=principal, patient_id=patient_id)

        allowed = PATIENT_EDITABLE_FIELDS if principal.is_patient else EDITABLE_FIELDS
        updates = {k: v for k, v in (data or {}).items() if k in allowed}
        for k, v in updates.items():
            setattr(patient, k, v)

        if updates:
            patient.save(update_fields=[*updates.keys(), "updated_at"])

        AuditService.log(
            event_code="patient.updated",
            entity_type="Patient",
            entity_id=patient.id,
            actor_user_id=principal.id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return patient

    @staticmethod
    def claim(*, patient_id: UUID, practitioner_id: int) -> bool:
        """
        Assign an unassigned patient to `practitioner_id` with a single conditional update.
        Returns True if this call made the assignment, False if it already belonged to them.
        """
        claimed = Patient.objects.filter(id=patient_id, assigned_practitioner__isnull=True).update(
            assigned_practitioner_id=practitioner_id,
            updated_at=timezone.now(),
        )
        if claimed:
            return True

        patient = get_patient(patient_id=patient_id)
        if patient.assigned_practitioner_id != practitioner_id:
            raise UnauthorizedOwner("Patient is assigned to another practitioner.")
        return False

    @staticmethod
    def release(*, patient_id: UUID, practitioner_id: int) -> None:
        Patient.objects.filter(id=patient_id, assigned_practitioner_id=practitioner_id).update(
            assigned_practitioner=None,
            updated_at=timezone.now(),
        )

    @staticmethod
    @transaction.atomic
    def assign_to_practitioner(
        *,
        patient_id: UUID,
        practitioner_id: int,
        actor_user_id: int | None,
    ) -> Patient:
        if not is_practitioner(practitioner_id):
            raise ValueError("Practitioner not found.")

        if PatientService.claim(patient_id=patient_id, practitioner_id=practitioner_id):
            AuditService.log(
                event_code="patient.assigned",
                entity_type="Patient",
                entity_id=patient_id,
                actor_user_id=actor_user_id,
                metadata={"practitioner_id": practitioner_id},
            )
        return get_patient(patient_id=patient_id)

    @staticmethod
    @transaction.atomic
    def soft_delete(*, principal: Principal, patient_id: UUID) -> Patient:
        patient = get_visible_patient(principal=principal, patient_id=patient_id)
        if patient.is_active:
            patient.is_active = False
            patient.save(update_fields=["is_active", "updated_at"])

            AuditService.log(
                event_code="patient.deactivated",
                entity_type="Patient",
                entity_id=patient.id,
                actor_user_id=principal.id,
                metadata={"patient_code": patient.patient_code},
            )
        return patient

    @staticmethod
    @transaction.atomic
    def record_visit(
        *,
        patient_id: UUID,
        practitioner_id: int,
        prescription=None,
        symptoms: str = "",
        diagnosis: str = "",
        medicines_given: list[dict] | None = None,
        follow_up_date: date | None = None,
        notes: str = "",
    ) -> Visit:
        visit = Visit.objects.create(
            patient_id=patient_id,
            practitioner_id=practitioner_id,
            prescription=prescription,
            symptoms=symptoms or "",
            diagnosis=diagnosis or "",
            medicines_given=medicines_given or [],
            follow_up_date=follow_up_date,
            notes=notes or "",
        )

        updates: dict[str, Any] = {"last_visit": visit.visited_at, "updated_at": timezone.now()}
        if follow_up_date:
            updates["next_appointment"] = follow_up_date
        Patient.objects.filter(id=patient_id).update(**updates)
        return visit

    @staticmethod
    @transaction.atomic
    def remove_visits(*, patient_id: UUID, visit_ids: list[UUID], next_appointment: Any = _KEEP) -> None:
        """
        Remove visits that belong to a withdrawn prescription and recompute `last_visit`
        from what remains. `next_appointment` is restored only when passed.
        """
        Visit.objects.filter(patient_id=patient_id, id__in=visit_ids).delete()

        latest = Visit.objects.filter(patient_id=patient_id).aggregate(latest=Max("visited_at"))["latest"]
        updates: dict[str, Any] = {"last_visit": latest, "updated_at": timezone.now()}
        if next_appointment is not _KEEP:
            updates["next_appointment"] = next_appointment
        Patient.objects.filter(id=patient_id).update(**updates)
