# hc_core/notifications/models.py
from django.db import models

from hc_core.common.models import UUIDModel


class NotificationDelivery(UUIDModel):
    """
    One row per notification attempt. Used for support lookups
    ("did the patient get the approval email?") and for alert dedup audits.
    """

    class Status(models.TextChoices):
        DELIVERED = "delivered", "Delivered"
        FAILED = "failed", "Failed"

    address = models.CharField(max_length=255, blank=True, default="")
    template_kind = models.CharField(max_length=64, db_index=True)
    subject = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, db_index=True)
    error = models.TextField(blank=True, default="")

    class Meta:
        db_table = "notifications_delivery"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.template_kind} -> {self.address or '-'} ({self.status})"
