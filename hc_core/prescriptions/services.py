# hc_core/prescriptions/services.py
"""
Prescription issuance.

Issuing touches four things that live in different tables and are written
by independent requests: the patient's assignment, stock counters, the
prescription itself and the patient's visit history. The steps are NOT run
inside one database transaction; each forward step pushes its inverse on a
CompensationStack, and any failure unwinds everything already applied:

    1. claim an unassigned patient            <- release
    2. deduct stock per item (floor at 0)     <- credit
    3. allocate RX number + insert the row    <- discard row
    4. append the visit, bump visit dates     <- remove visit, restore dates

The patient notification runs after the unit of work and can only add a
warning to the result.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from hc_core.audit.services import AuditService
from hc_core.common.compensation import CompensationStack
from hc_core.common.errors import InvalidTransition, PatientNotFound
from hc_core.common.sequences import SequenceAllocator, prescription_number_scope
from hc_core.inventory.models import InventoryItem
from hc_core.inventory.selectors import get_owned_item
from hc_core.inventory.services import InventoryLedger
from hc_core.notifications import templates
from hc_core.notifications.services import DeliveryStatus, notify
from hc_core.patients.models import Patient, Visit
from hc_core.patients.selectors import get_patient
from hc_core.patients.services import PatientService
from hc_core.prescriptions.models import Prescription, PrescriptionLine, PrescriptionStatus
from hc_core.prescriptions.selectors import get_owned_prescription

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"symptoms", "diagnosis", "notes", "follow_up_date"}

NOTIFY_FAILED_WARNING = "Prescription saved, but the patient could not be notified."


@dataclass(frozen=True)
class LineItem:
    item_id: UUID
    quantity: int
    dosage: str = ""
    frequency: str = ""
    duration: str = ""
    timing: str = ""
    instructions: str = ""


@dataclass
class IssuanceResult:
    prescription: Prescription
    warnings: list[str] = field(default_factory=list)


def _snapshot(line: LineItem, item: InventoryItem) -> dict:
    return {
        "item_id": str(item.id),
        "name": item.name,
        "dosage": line.dosage,
        "frequency": line.frequency,
        "duration": line.duration,
        "timing": line.timing,
        "quantity": line.quantity,
        "instructions": line.instructions,
    }


def _insert_prescription(
    number: str,
    *,
    patient_id: UUID,
    practitioner_id: int,
    lines: Sequence[tuple[LineItem, InventoryItem]],
    symptoms: str,
    diagnosis: str,
    notes: str,
    follow_up_date: date | None,
) -> Prescription:
    prescription = Prescription.objects.create(
        prescription_number=number,
        patient_id=patient_id,
        practitioner_id=practitioner_id,
        symptoms=symptoms or "",
        diagnosis=diagnosis or "",
        notes=notes or "",
        follow_up_date=follow_up_date,
        status=PrescriptionStatus.ACTIVE,
    )
    PrescriptionLine.objects.bulk_create(
        [
            PrescriptionLine(
                prescription=prescription,
                inventory_item=item,
                item_name=item.name,
                dosage=line.dosage,
                frequency=line.frequency,
                duration=line.duration,
                timing=line.timing,
                quantity_given=line.quantity,
                instructions=line.instructions,
            )
            for line, item in lines
        ]
    )
    return prescription


def _discard_prescription(prescription_id: UUID) -> None:
    Prescription.objects.filter(id=prescription_id).delete()


def _notify_issued(patient: Patient, prescription: Prescription, practitioner_name: str) -> DeliveryStatus:
    medicines = "\n".join(
        f"- {line.item_name} {line.dosage} {line.frequency} {line.duration}".rstrip()
        for line in prescription.lines.all()
    )
    return notify(
        patient.email,
        templates.PRESCRIPTION_ISSUED,
        {
            "patient_name": patient.name,
            "prescription_number": prescription.prescription_number,
            "practitioner_name": practitioner_name,
            "diagnosis": prescription.diagnosis,
            "follow_up_date": prescription.follow_up_date.isoformat() if prescription.follow_up_date else "-",
            "medicines": medicines,
        },
    )


class PrescriptionService:
    @staticmethod
    def issue(
        *,
        patient_id: UUID,
        practitioner_id: int,
        line_items: Sequence[LineItem],
        symptoms: str = "",
        diagnosis: str = "",
        follow_up_date: date | None = None,
        notes: str = "",
        today: date | None = None,
    ) -> IssuanceResult:
        if not line_items:
            raise ValueError("At least one medicine is required.")

        patient = get_patient(patient_id=patient_id)
        if not patient.is_active:
            raise PatientNotFound(details={"patient_id": str(patient_id)})

        # Validate every line before touching any counter.
        lines = [(line, get_owned_item(owner_id=practitioner_id, item_id=line.item_id)) for line in line_items]
        for line, _ in lines:
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
                raise ValueError("Quantity must be a positive integer.")

        # one deduction per item, so repeated lines are checked against their total
        totals: dict[UUID, list] = {}
        for line, item in lines:
            totals.setdefault(item.id, [item, 0])[1] += line.quantity

        day = today or timezone.localdate()
        previous_next_appointment = patient.next_appointment

        with CompensationStack(f"issue prescription ({patient.patient_code})") as undo:
            if PatientService.claim(patient_id=patient.id, practitioner_id=practitioner_id):
                undo.push(
                    "release patient",
                    PatientService.release,
                    patient_id=patient.id,
                    practitioner_id=practitioner_id,
                )

            for item, quantity in totals.values():
                InventoryLedger.reserve_and_deduct(item_id=item.id, quantity=quantity)
                undo.push(f"credit {item.id}", InventoryLedger.credit, item_id=item.id, quantity=quantity)

            prescription = SequenceAllocator.allocate(
                prescription_number_scope(day),
                lambda number: _insert_prescription(
                    number,
                    patient_id=patient.id,
                    practitioner_id=practitioner_id,
                    lines=lines,
                    symptoms=symptoms,
                    diagnosis=diagnosis,
                    notes=notes,
                    follow_up_date=follow_up_date,
                ),
            )
            undo.push("discard prescription", _discard_prescription, prescription.id)

            visit = PatientService.record_visit(
                patient_id=patient.id,
                practitioner_id=practitioner_id,
                prescription=prescription,
                symptoms=symptoms,
                diagnosis=diagnosis,
                medicines_given=[_snapshot(line, item) for line, item in lines],
                follow_up_date=follow_up_date,
                notes=notes,
            )
            undo.push(
                "remove visit",
                PatientService.remove_visits,
                patient_id=patient.id,
                visit_ids=[visit.id],
                next_appointment=previous_next_appointment,
            )

            AuditService.log(
                event_code="prescription.issued",
                entity_type="Prescription",
                entity_id=prescription.id,
                actor_user_id=practitioner_id,
                metadata={
                    "prescription_number": prescription.prescription_number,
                    "patient_code": patient.patient_code,
                    "lines": [{"item_id": str(item.id), "quantity": line.quantity} for line, item in lines],
                },
            )

        logger.info("Issued %s for %s", prescription.prescription_number, patient.patient_code)

        result = IssuanceResult(prescription=prescription)
        practitioner = prescription.practitioner
        status = _notify_issued(patient, prescription, practitioner.get_full_name() or practitioner.get_username())
        if status != DeliveryStatus.DELIVERED:
            result.warnings.append(NOTIFY_FAILED_WARNING)
        return result

    @staticmethod
    @transaction.atomic
    def delete(*, prescription_id: UUID, practitioner_id: int) -> Prescription:
        """
        Withdraw an active prescription: stock comes back and its visit disappears.
        """
        prescription = get_owned_prescription(prescription_id=prescription_id, practitioner_id=practitioner_id)

        withdrawn = Prescription.objects.filter(
            id=prescription.id,
            is_active=True,
            status=PrescriptionStatus.ACTIVE,
        ).update(is_active=False, updated_at=timezone.now())
        if not withdrawn:
            raise InvalidTransition(
                "Only active, non-completed prescriptions can be deleted.",
                details={"status": prescription.status, "is_active": prescription.is_active},
            )

        for line in prescription.lines.all():
            InventoryLedger.credit(item_id=line.inventory_item_id, quantity=line.quantity_given)

        visit_ids = list(Visit.objects.filter(prescription_id=prescription.id).values_list("id", flat=True))
        if visit_ids:
            PatientService.remove_visits(patient_id=prescription.patient_id, visit_ids=visit_ids)

        AuditService.log(
            event_code="prescription.deleted",
            entity_type="Prescription",
            entity_id=prescription.id,
            actor_user_id=practitioner_id,
            metadata={
                "prescription_number": prescription.prescription_number,
                "credited": [
                    {"item_id": str(line.inventory_item_id), "quantity": line.quantity_given}
                    for line in prescription.lines.all()
                ],
            },
        )
        logger.info("Deleted %s, stock credited back", prescription.prescription_number)

        prescription.refresh_from_db()
        return prescription

    @staticmethod
    def _close(*, prescription_id: UUID, practitioner_id: int, to_status: str, event_code: str) -> Prescription:
        prescription = get_owned_prescription(prescription_id=prescription_id, practitioner_id=practitioner_id)

        now = timezone.now()
        fields = {"status": to_status, "updated_at": now}
        if to_status == PrescriptionStatus.COMPLETED:
            fields["completed_at"] = now

        moved = Prescription.objects.filter(
            id=prescription.id,
            is_active=True,
            status=PrescriptionStatus.ACTIVE,
        ).update(**fields)
        if not moved:
            raise InvalidTransition(
                f"Cannot change prescription from {prescription.status} to {to_status}.",
                details={"from": prescription.status, "to": to_status},
            )

        AuditService.log(
            event_code=event_code,
            entity_type="Prescription",
            entity_id=prescription.id,
            actor_user_id=practitioner_id,
            metadata={"prescription_number": prescription.prescription_number},
        )
        prescription.refresh_from_db()
        return prescription

    @staticmethod
    @transaction.atomic
    def complete(*, prescription_id: UUID, practitioner_id: int) -> Prescription:
        return PrescriptionService._close(
            prescription_id=prescription_id,
            practitioner_id=practitioner_id,
            to_status=PrescriptionStatus.COMPLETED,
            event_code="prescription.completed",
        )

    @staticmethod
    @transaction.atomic
    def discontinue(*, prescription_id: UUID, practitioner_id: int) -> Prescription:
        return PrescriptionService._close(
            prescription_id=prescription_id,
            practitioner_id=practitioner_id,
            to_status=PrescriptionStatus.DISCONTINUED,
            event_code="prescription.discontinued",
        )

    @staticmethod
    @transaction.atomic
    def update(*, prescription_id: UUID, practitioner_id: int, data: dict) -> Prescription:
        prescription = get_owned_prescription(prescription_id=prescription_id, practitioner_id=practitioner_id)
        if not prescription.is_active or prescription.status == PrescriptionStatus.COMPLETED:
            raise InvalidTransition(
                "Completed or deleted prescriptions cannot be edited.",
                details={"status": prescription.status, "is_active": prescription.is_active},
            )

        updates = {k: v for k, v in (data or {}).items() if k in EDITABLE_FIELDS}
        for k, v in updates.items():
            setattr(prescription, k, v)
        if updates:
            prescription.save(update_fields=[*updates.keys(), "updated_at"])

        if updates.get("follow_up_date"):
            Patient.objects.filter(id=prescription.patient_id).update(next_appointment=updates["follow_up_date"])

        AuditService.log(
            event_code="prescription.updated",
            entity_type="Prescription",
            entity_id=prescription.id,
            actor_user_id=practitioner_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return prescription
