# hc_core/common/models.py
from __future__ import annotations

import uuid
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class TimeStampedModel(models.Model):
    """
    Standard timestamps for all entities.
    """
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class UUIDModel(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


# -------------------------------------------------------------------
# Persisted "running" flags for maintenance jobs
# -------------------------------------------------------------------

class JobLock(TimeStampedModel):
    """
    A row exists while the named job is running.

    Uniqueness on `name` turns acquisition into insert-if-absent, so only one
    process (or worker, or pod) can hold the lock at a time.
    """
    name = models.CharField(max_length=128, unique=True)
    holder = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "common_job_lock"

    def __str__(self) -> str:
        return f"{self.name} ({self.holder or 'anonymous'})"


class IdempotencyRecord(TimeStampedModel):
    """
    Stores idempotent responses durably.

    Keyed by:
      (user_id, method, path, idempotency_key)

    A retried POST with the same key gets the first response back instead of
    running the write again.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # request identity
    user_id = models.BigIntegerField(db_index=True)
    method = models.CharField(max_length=16)
    path = models.CharField(max_length=255)
    idempotency_key = models.CharField(max_length=255)

    # stored response
    status_code = models.PositiveIntegerField(default=200)
    response_data = models.JSONField(default=dict, encoder=DjangoJSONEncoder)

    class Meta:
        db_table = "common_idempotency_record"
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "method", "path", "idempotency_key"],
                name="uq_idempo_user_method_path_key",
            )
        ]

    def __str__(self) -> str:
        return f"{self.method} {self.path} {self.idempotency_key}"
