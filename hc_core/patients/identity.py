# hc_core/patients/identity.py
"""
Duplicate patient resolution.

The same person often ends up with several records (self-registration,
walk-in creation, camp enrollment). Two records with the same name
(case-insensitive) and the same mobile number are treated as one person.

Per group, one survivor is kept:
  - a record with an email beats one without
  - otherwise the more recently created record wins
The survivor only gains values for fields it has empty; nothing populated
on the survivor is ever overwritten. Non-survivors are deleted after their
visits, prescriptions and appointments are re-pointed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from functools import reduce
from typing import Any, Iterable, Sequence
from uuid import UUID

from django.db import transaction
from django.db.models import Max

from hc_core.appointments.models import Appointment
from hc_core.audit.services import AuditService
from hc_core.common.errors import MergeAlreadyRunning
from hc_core.common.locks import JobAlreadyRunning, job_lock
from hc_core.patients.models import Patient, Visit
from hc_core.prescriptions.models import Prescription

logger = logging.getLogger(__name__)

MERGE_JOB_NAME = "merge-duplicate-patients"
MERGE_LOCK_STALE_AFTER = timedelta(hours=1)

FILLABLE_FIELDS = ("email", "age", "gender", "address", "medical_history", "last_visit", "next_appointment")
FILLABLE_LINKS = ("account_id", "assigned_practitioner_id")

SNAPSHOT_FIELDS = (
    "patient_code",
    "name",
    "mobile",
    *FILLABLE_FIELDS,
    *FILLABLE_LINKS,
    "source",
    "is_active",
    "created_at",
)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def duplicate_key(patient: Patient) -> tuple[str, str]:
    return (patient.name or "").strip().casefold(), (patient.mobile or "").strip()


def snapshot(patient: Patient) -> dict[str, Any]:
    data = {name: getattr(patient, name) for name in SNAPSHOT_FIELDS}
    data["id"] = patient.pk
    return data


def find_duplicate_groups(patients: Iterable[Patient]) -> list[list[Patient]]:
    """
    Groups of two or more records sharing a duplicate key, in first-seen order.
    Records with an empty name or mobile are never grouped.
    """
    buckets: dict[tuple[str, str], list[Patient]] = {}
    for patient in patients:
        name, mobile = duplicate_key(patient)
        if not name or not mobile:
            continue
        buckets.setdefault((name, mobile), []).append(patient)
    return [group for group in buckets.values() if len(group) >= 2]


def _prefer(current: Patient, candidate: Patient) -> Patient:
    current_has_email = not _is_empty(current.email)
    candidate_has_email = not _is_empty(candidate.email)
    if current_has_email != candidate_has_email:
        return current if current_has_email else candidate
    if candidate.created_at > current.created_at:
        return candidate
    return current


def choose_survivor(group: Sequence[Patient]) -> Patient:
    if not group:
        raise ValueError("Cannot choose a survivor from an empty group.")
    return reduce(_prefer, group)


@transaction.atomic
def merge_group(group: Sequence[Patient], *, actor_user_id: int | None = None) -> UUID:
    """
    Merge a duplicate group into its survivor and return the survivor id.
    Destructive: non-survivor rows are deleted.
    """
    if len(group) < 2:
        raise ValueError("A duplicate group needs at least two records.")

    survivor = choose_survivor(group)
    others = [p for p in group if p.pk != survivor.pk]
    other_ids = [p.pk for p in others]

    before = {"survivor": snapshot(survivor), "merged": [snapshot(p) for p in others]}

    filled: list[str] = []
    for other in others:
        for name in (*FILLABLE_FIELDS, *FILLABLE_LINKS):
            if _is_empty(getattr(survivor, name)) and not _is_empty(getattr(other, name)):
                setattr(survivor, name, getattr(other, name))
                filled.append(name)

    # account is one-to-one: free it on the losers before the survivor takes it
    Patient.objects.filter(id__in=other_ids).update(account=None)

    Visit.objects.filter(patient_id__in=other_ids).update(patient=survivor)
    Prescription.objects.filter(patient_id__in=other_ids).update(patient=survivor)
    Appointment.objects.filter(patient_id__in=other_ids).update(patient=survivor)

    Patient.objects.filter(id__in=other_ids).delete()
    changed = list(dict.fromkeys(filled))

    # last_visit follows the newest visit across the whole group
    latest = Visit.objects.filter(patient=survivor).aggregate(latest=Max("visited_at"))["latest"]
    seen = [v for v in (latest, survivor.last_visit, *(p.last_visit for p in others)) if v is not None]
    if seen and max(seen) != survivor.last_visit:
        survivor.last_visit = max(seen)
        if "last_visit" not in changed:
            changed.append("last_visit")

    if changed:
        survivor.save(update_fields=[*changed, "updated_at"])

    AuditService.log(
        event_code="patient.merged",
        entity_type="Patient",
        entity_id=survivor.pk,
        actor_user_id=actor_user_id,
        metadata={
            "before": before,
            "after": snapshot(survivor),
            "merged_ids": [str(pk) for pk in other_ids],
            "filled_fields": sorted(set(filled)),
        },
    )
    logger.info(
        "Merged %s duplicate(s) into %s",
        len(others),
        survivor.patient_code,
    )
    return survivor.pk


@dataclass
class MergeReport:
    dry_run: bool
    groups: list[list[Patient]] = field(default_factory=list)
    survivors: list[UUID] = field(default_factory=list)

    @property
    def merged_count(self) -> int:
        return sum(len(group) - 1 for group in self.groups) if not self.dry_run else 0


def resolve_duplicates(*, dry_run: bool = False, actor_user_id: int | None = None) -> MergeReport:
    """
    Batch run over all patients. Only one run may be in flight at a time.
    Each group merges in its own transaction.
    """
    try:
        with job_lock(MERGE_JOB_NAME, holder=str(actor_user_id or "system"), stale_after=MERGE_LOCK_STALE_AFTER):
            groups = find_duplicate_groups(Patient.objects.order_by("created_at", "patient_code"))
            report = MergeReport(dry_run=dry_run, groups=groups)

            logger.info("Duplicate resolution found %s group(s) (dry_run=%s)", len(groups), dry_run)
            if dry_run:
                report.survivors = [choose_survivor(group).pk for group in groups]
                return report

            for group in groups:
                report.survivors.append(merge_group(group, actor_user_id=actor_user_id))
            return report
    except JobAlreadyRunning:
        raise MergeAlreadyRunning()
