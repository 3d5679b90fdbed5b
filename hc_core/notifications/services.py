# hc_core/notifications/services.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping

from django.conf import settings
from django.core.mail import send_mail

from hc_core.notifications.models import NotificationDelivery
from hc_core.notifications.templates import render

logger = logging.getLogger(__name__)


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"


def _record(address: str, template_kind: str, subject: str, status: DeliveryStatus, error: str = "") -> None:
    try:
        NotificationDelivery.objects.create(
            address=address,
            template_kind=template_kind,
            subject=subject[:255],
            status=status.value,
            error=error,
        )
    except Exception:
        logger.exception("Could not record %s delivery", template_kind)


def notify(address: str | None, template_kind: str, payload: Mapping[str, Any] | None = None) -> DeliveryStatus:
    """
    Fire-and-forget message delivery.

    Never raises: the clinical write that triggered the notification has
    already happened and must not be rolled back because mail is down.
    """
    address = (address or "").strip()
    if not address:
        logger.info("Skipping %s notification: no address", template_kind)
        _record("", template_kind, "", DeliveryStatus.FAILED, "no address")
        return DeliveryStatus.FAILED

    subject = ""
    try:
        subject, body = render(template_kind, payload or {})
        send_mail(
            subject,
            body,
            getattr(settings, "NOTIFICATIONS_FROM_EMAIL", None) or settings.DEFAULT_FROM_EMAIL,
            [address],
            fail_silently=False,
        )
    except Exception as exc:
        logger.warning("Notification %s failed: %s", template_kind, exc)
        _record(address, template_kind, subject, DeliveryStatus.FAILED, str(exc))
        return DeliveryStatus.FAILED

    _record(address, template_kind, subject, DeliveryStatus.DELIVERED)
    return DeliveryStatus.DELIVERED
