# hc_core/prescriptions/models.py
from django.conf import settings
from django.db import models

from hc_core.common.models import UUIDModel


class PrescriptionStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    DISCONTINUED = "discontinued", "Discontinued"


class Prescription(UUIDModel):
    """
    `prescription_number` is RX<YYYYMMDD><###>, allocated per issuing day.
    The row is inserted only once stock has been deducted, so a failed issuance
    never consumes a number.
    """
    prescription_number = models.CharField(max_length=20, unique=True, editable=False)

    patient = models.ForeignKey("patients.Patient", on_delete=models.PROTECT, related_name="prescriptions")
    practitioner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="prescriptions_issued",
    )

    symptoms = models.TextField(blank=True, default="")
    diagnosis = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")
    follow_up_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=16,
        choices=PrescriptionStatus.choices,
        default=PrescriptionStatus.ACTIVE,
        db_index=True,
    )
    is_active = models.BooleanField(default=True, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "prescriptions_prescription"
        indexes = [
            models.Index(fields=["practitioner", "is_active", "created_at"]),
            models.Index(fields=["patient", "created_at"]),
        ]

    def __str__(self) -> str:
        return self.prescription_number


class PrescriptionLine(UUIDModel):
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name="lines")
    inventory_item = models.ForeignKey(
        "inventory.InventoryItem",
        on_delete=models.PROTECT,
        related_name="prescription_lines",
    )

    # copied from the item at issuance time
    item_name = models.CharField(max_length=255)

    dosage = models.CharField(max_length=64, blank=True, default="")  # e.g. "1 tablet"
    frequency = models.CharField(max_length=64, blank=True, default="")  # e.g. "twice daily"
    duration = models.CharField(max_length=64, blank=True, default="")  # e.g. "5 days"
    timing = models.CharField(max_length=64, blank=True, default="")  # e.g. "after food"
    quantity_given = models.PositiveIntegerField()
    instructions = models.TextField(blank=True, default="")

    class Meta:
        db_table = "prescriptions_line"
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.item_name} x{self.quantity_given}"
