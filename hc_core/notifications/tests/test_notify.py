import pytest

from hc_core.notifications import templates
from hc_core.notifications.models import NotificationDelivery
from hc_core.notifications.services import DeliveryStatus, notify

pytestmark = pytest.mark.django_db


def test_delivered_message_is_recorded(mailoutbox):
    status = notify(
        "sita@example.com",
        templates.APPOINTMENT_APPROVED,
        {"patient_name": "Sita", "practitioner_name": "Dr Rao", "date": "2030-01-10", "slot_label": "10:00 AM"},
    )

    assert status == DeliveryStatus.DELIVERED
    assert len(mailoutbox) == 1
    assert "10:00 AM" in mailoutbox[0].body
    assert NotificationDelivery.objects.get().status == "delivered"


def test_missing_address_fails_without_sending(mailoutbox):
    assert notify("  ", templates.PRESCRIPTION_ISSUED, {}) == DeliveryStatus.FAILED
    assert mailoutbox == []
    assert NotificationDelivery.objects.get().error == "no address"


def test_transport_error_is_swallowed(monkeypatch):
    def broken(*args, **kwargs):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr("hc_core.notifications.services.send_mail", broken)

    status = notify("sita@example.com", templates.APPOINTMENT_REJECTED, {"patient_name": "Sita"})

    assert status == DeliveryStatus.FAILED
    assert "smtp down" in NotificationDelivery.objects.get().error


def test_render_blanks_missing_keys():
    subject, body = templates.render(templates.STOCK_ALERT, {"low_stock_count": 2, "expiring_count": 0})
    assert subject == "Inventory alert: 2 low stock, 0 expiring"


def test_unknown_template_kind_fails_softly(mailoutbox):
    assert notify("sita@example.com", "no_such_kind", {}) == DeliveryStatus.FAILED
    assert mailoutbox == []
