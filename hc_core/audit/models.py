# hc_core/audit/models.py
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from hc_core.common.models import UUIDModel


class AuditEvent(UUIDModel):
    """
    Immutable audit record.
    Destructive batch operations (patient merge) store before/after snapshots in metadata.
    """
    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "prescription.issued"
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "Prescription"
    entity_id = models.UUIDField(db_index=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="audit_events",
        null=True,
        blank=True,
    )

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict, encoder=DjangoJSONEncoder)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["entity_type", "entity_id"]),
            models.Index(fields=["event_code", "occurred_at"]),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit events are immutable.")
        super().save(*args, **kwargs)
