# hc_core/inventory/models.py
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from hc_core.common.models import UUIDModel


class InventoryItem(UUIDModel):
    """
    A medicine batch held by one practitioner.

    `quantity` is a plain counter. It is only ever changed through the ledger
    (conditional update with a floor), and the database refuses negatives.
    """

    class Kind(models.TextChoices):
        TABLET = "tablet", "Tablet"
        CAPSULE = "capsule", "Capsule"
        SYRUP = "syrup", "Syrup"
        INJECTION = "injection", "Injection"
        OINTMENT = "ointment", "Ointment"
        DROPS = "drops", "Drops"
        OTHER = "other", "Other"

    class Priority(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="inventory_items",
    )

    name = models.CharField(max_length=255)
    batch = models.CharField(max_length=64, blank=True, default="")
    kind = models.CharField(max_length=16, choices=Kind.choices, default=Kind.TABLET)
    size = models.CharField(max_length=64, blank=True, default="")  # e.g. "500mg", "100ml"
    unit = models.CharField(max_length=32, blank=True, default="")  # e.g. "strip", "bottle"

    quantity = models.IntegerField(default=0)
    expiry_date = models.DateField(null=True, blank=True)
    cost = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    manufacturer = models.CharField(max_length=255, blank=True, default="")
    priority = models.CharField(max_length=16, choices=Priority.choices, default=Priority.MEDIUM)

    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        db_table = "inventory_item"
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gte=0),
                name="ck_inventory_item_quantity_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["owner", "is_active"]),
            models.Index(fields=["owner", "expiry_date"]),
        ]

    def __str__(self) -> str:
        label = f"{self.name} {self.size}".strip()
        return f"{label} [{self.batch}]" if self.batch else label
