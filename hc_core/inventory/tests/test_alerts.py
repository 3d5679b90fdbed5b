from datetime import date, datetime, timedelta, timezone as dt_timezone
from io import StringIO

import pytest
from django.core.management import call_command

from hc_core.inventory.alerts import (
    AlertDedupSet,
    AlertRunContext,
    scan_owner,
    send_stock_alerts,
)
from hc_core.notifications.models import NotificationDelivery

pytestmark = pytest.mark.django_db

TODAY = date(2030, 3, 1)


class FakeClock:
    def __init__(self):
        self.now = datetime(2030, 3, 1, 9, 0, tzinfo=dt_timezone.utc)

    def __call__(self):
        return self.now


def test_scan_uses_standard_and_critical_thresholds(make_item, practitioner, settings):
    settings.INVENTORY_LOW_STOCK_THRESHOLD = 10
    settings.INVENTORY_CRITICAL_STOCK_THRESHOLD = 5
    make_item(name="Low", quantity=8, expiry_date=TODAY + timedelta(days=200))
    make_item(name="Critical", quantity=2, expiry_date=TODAY + timedelta(days=200))
    make_item(name="Expiring", quantity=50, expiry_date=TODAY + timedelta(days=20))
    make_item(name="Expired", quantity=50, expiry_date=TODAY - timedelta(days=1))

    standard = scan_owner(owner_id=practitioner.id, today=TODAY)
    critical = scan_owner(owner_id=practitioner.id, critical=True, today=TODAY)

    assert [i.name for i in standard.low_stock] == ["Critical", "Low"]
    assert [i.name for i in standard.expiring] == ["Expiring"]
    assert [i.name for i in critical.low_stock] == ["Critical"]
    assert critical.expiring == []


def test_dedup_set_forgets_after_window():
    clock = FakeClock()
    dedup = AlertDedupSet(window=timedelta(hours=24), clock=clock)

    dedup.add(("rao@clinic.test", "standard"))
    assert ("rao@clinic.test", "standard") in dedup
    assert ("rao@clinic.test", "critical") not in dedup

    clock.now += timedelta(hours=24)
    assert ("rao@clinic.test", "standard") not in dedup
    assert len(dedup) == 0


def test_alert_sent_once_per_window(make_item, practitioner, mailoutbox):
    make_item(quantity=2)
    ctx = AlertRunContext(dedup=AlertDedupSet(), today=TODAY)

    first = send_stock_alerts(ctx)
    second = send_stock_alerts(ctx)

    assert [o.status for o in first] == ["delivered"]
    assert [o.status for o in second] == ["skipped_duplicate"]
    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == ["rao@clinic.test"]
    assert "1 low stock" in mailoutbox[0].subject


def test_critical_variant_is_tracked_separately(make_item, mailoutbox):
    make_item(quantity=2)
    dedup = AlertDedupSet()

    send_stock_alerts(AlertRunContext(dedup=dedup, today=TODAY))
    critical = send_stock_alerts(AlertRunContext(dedup=dedup, critical=True, today=TODAY))

    assert [o.status for o in critical] == ["delivered"]
    assert mailoutbox[1].subject.startswith("[CRITICAL] ")


def test_nothing_to_report_sends_nothing(make_item, mailoutbox):
    make_item(quantity=500)

    outcomes = send_stock_alerts(AlertRunContext(dedup=AlertDedupSet(), today=TODAY))

    assert [o.status for o in outcomes] == ["skipped_empty"]
    assert mailoutbox == []


def test_owner_without_email_uses_fallback(make_item, practitioner, mailoutbox):
    practitioner.email = ""
    practitioner.save(update_fields=["email"])
    make_item(quantity=1)

    skipped = send_stock_alerts(AlertRunContext(dedup=AlertDedupSet(), today=TODAY))
    sent = send_stock_alerts(
        AlertRunContext(dedup=AlertDedupSet(), today=TODAY, fallback_email="pharmacy@clinic.test")
    )

    assert [o.status for o in skipped] == ["skipped_no_address"]
    assert [o.address for o in sent] == ["pharmacy@clinic.test"]


def test_dedup_seeded_from_past_deliveries(make_item, mailoutbox):
    make_item(quantity=2)
    send_stock_alerts(AlertRunContext(dedup=AlertDedupSet(), today=TODAY))

    outcomes = send_stock_alerts(AlertRunContext(dedup=AlertDedupSet.from_deliveries(), today=TODAY))

    assert [o.status for o in outcomes] == ["skipped_duplicate"]
    assert len(mailoutbox) == 1


def test_command_does_not_repeat_within_a_day(make_item, mailoutbox):
    make_item(quantity=2, expiry_date=None)

    out = StringIO()
    call_command("send_stock_alerts", stdout=out)
    call_command("send_stock_alerts", stdout=out)

    assert len(mailoutbox) == 1
    assert NotificationDelivery.objects.filter(status="delivered").count() == 1
    assert "Stock alerts sent: 1" in out.getvalue()
