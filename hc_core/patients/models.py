# hc_core/patients/models.py
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from hc_core.common.models import UUIDModel


class Patient(UUIDModel):
    """
    Patient record.

    `patient_code` (PAT####) is allocated once by the sequence allocator and
    never changes. Patients are soft-deleted only, so visit history stays intact.
    Unassigned patients are visible to every practitioner until one claims them.
    """

    class Source(models.TextChoices):
        SELF_REGISTRATION = "self_registration", "Self registration"
        WALK_IN = "walk_in", "Walk-in"
        CAMP = "camp", "Health camp"

    class Gender(models.TextChoices):
        MALE = "male", "Male"
        FEMALE = "female", "Female"
        OTHER = "other", "Other"

    patient_code = models.CharField(max_length=16, unique=True, editable=False)

    account = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="patient_profile",
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=255)
    mobile = models.CharField(max_length=32)
    email = models.EmailField(blank=True, default="")
    age = models.PositiveSmallIntegerField(null=True, blank=True)
    gender = models.CharField(max_length=16, choices=Gender.choices, blank=True, default="")
    address = models.TextField(blank=True, default="")
    medical_history = models.TextField(blank=True, default="")

    source = models.CharField(max_length=32, choices=Source.choices, default=Source.WALK_IN)

    assigned_practitioner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="assigned_patients",
        null=True,
        blank=True,
    )

    last_visit = models.DateTimeField(null=True, blank=True)
    next_appointment = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        db_table = "patients_patient"
        indexes = [
            models.Index(fields=["name", "mobile"]),
            models.Index(fields=["assigned_practitioner", "is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.patient_code})"


class Visit(UUIDModel):
    """
    Append-only clinical visit.

    `medicines_given` is a snapshot taken at issuance time:
    [{"item_id", "name", "dosage", "frequency", "duration", "timing", "quantity", "instructions"}]
    A visit is only ever removed together with its prescription.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="visits")
    practitioner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="visits_recorded",
        null=True,
        blank=True,
    )
    prescription = models.ForeignKey(
        "prescriptions.Prescription",
        on_delete=models.SET_NULL,
        related_name="visits",
        null=True,
        blank=True,
    )

    visited_at = models.DateTimeField(default=timezone.now, db_index=True)
    symptoms = models.TextField(blank=True, default="")
    diagnosis = models.TextField(blank=True, default="")
    medicines_given = models.JSONField(default=list, encoder=DjangoJSONEncoder)
    follow_up_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "patients_visit"
        ordering = ["-visited_at"]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Visits are append-only.")
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"Visit {self.visited_at:%Y-%m-%d} ({self.patient_id})"
