# hc_core/appointments/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q

from hc_core.common.models import UUIDModel


class AppointmentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


# Statuses that hold a slot.
ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.APPROVED)
TERMINAL_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)


class Appointment(UUIDModel):
    """
    One booking of a fixed slot label on a practitioner's day.

    At most one pending/approved appointment may exist per
    (practitioner, date, slot_label); the partial unique constraint below is
    the final arbiter when two bookings race past the availability check.
    """

    class VisitType(models.TextChoices):
        CONSULTATION = "consultation", "Consultation"
        FOLLOW_UP = "follow_up", "Follow-up"
        CHECKUP = "checkup", "Check-up"

    patient = models.ForeignKey("patients.Patient", on_delete=models.PROTECT, related_name="appointments")
    practitioner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="appointments",
    )

    date = models.DateField(db_index=True)
    slot_label = models.CharField(max_length=16)
    visit_type = models.CharField(max_length=16, choices=VisitType.choices, default=VisitType.CONSULTATION)
    reason = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=16,
        choices=AppointmentStatus.choices,
        default=AppointmentStatus.PENDING,
        db_index=True,
    )
    practitioner_notes = models.TextField(blank=True, default="")
    rejection_reason = models.TextField(blank=True, default="")
    cancellation_reason = models.TextField(blank=True, default="")
    status_changed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "appointments_appointment"
        constraints = [
            models.UniqueConstraint(
                fields=["practitioner", "date", "slot_label"],
                condition=Q(status__in=["pending", "approved"]),
                name="uq_appointment_active_slot",
            ),
        ]
        indexes = [
            models.Index(fields=["practitioner", "date", "status"]),
            models.Index(fields=["patient", "date"]),
        ]

    def __str__(self) -> str:
        return f"{self.date} {self.slot_label} ({self.status})"
