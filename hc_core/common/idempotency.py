# hc_core/common/idempotency.py
from __future__ import annotations

import logging

from django.db import IntegrityError, transaction

from hc_core.common.models import IdempotencyRecord

logger = logging.getLogger(__name__)


def get_key(request):
    # In DRF test client: "HTTP_IDEMPOTENCY_KEY" becomes request.META["HTTP_IDEMPOTENCY_KEY"]
    return request.META.get("HTTP_IDEMPOTENCY_KEY")


def load_response(user_id, method, path, key) -> dict | None:
    """
    The stored response body for this request identity, or None.
    """
    if not key:
        return None

    rec = IdempotencyRecord.objects.filter(
        user_id=int(user_id),
        method=method.upper(),
        path=path,
        idempotency_key=str(key),
    ).first()
    if rec is None:
        return None

    logger.info("Replaying %s %s for idempotency key %s", rec.method, rec.path, rec.idempotency_key)
    return rec.response_data


def save_response(user_id, method, path, key, response_data, status_code: int = 200) -> None:
    if not key:
        return

    try:
        with transaction.atomic():
            IdempotencyRecord.objects.create(
                user_id=int(user_id),
                method=method.upper(),
                path=path,
                idempotency_key=str(key),
                status_code=int(status_code),
                response_data=response_data,
            )
    except IntegrityError:
        # already saved by a concurrent request
        return
