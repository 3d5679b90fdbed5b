# hc_core/inventory/alerts.py
"""
Low-stock and expiry alerts for practitioners.

Each owner receives at most one alert per variant (standard / critical)
within the dedup window. The dedup state is an explicit object carried by the
run context; callers decide its lifetime (a single command run, a long-lived
scheduler loop) and may seed it from past deliveries.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Hashable

from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone

from hc_core.inventory.models import InventoryItem
from hc_core.inventory.selectors import expiring_items, low_stock_items
from hc_core.notifications.models import NotificationDelivery
from hc_core.notifications.services import DeliveryStatus, notify
from hc_core.notifications.templates import STOCK_ALERT

logger = logging.getLogger(__name__)

CRITICAL_PREFIX = "[CRITICAL] "
VARIANT_STANDARD = "standard"
VARIANT_CRITICAL = "critical"


@dataclass(frozen=True)
class StockScan:
    owner_id: int
    critical: bool
    low_stock: list[InventoryItem]
    expiring: list[InventoryItem]

    @property
    def is_empty(self) -> bool:
        return not self.low_stock and not self.expiring


def scan_owner(*, owner_id: int, critical: bool = False, today: date | None = None) -> StockScan:
    if critical:
        threshold = int(getattr(settings, "INVENTORY_CRITICAL_STOCK_THRESHOLD", 5))
        days = int(getattr(settings, "INVENTORY_CRITICAL_EXPIRY_DAYS", 7))
    else:
        threshold = int(getattr(settings, "INVENTORY_LOW_STOCK_THRESHOLD", 10))
        days = int(getattr(settings, "INVENTORY_EXPIRY_ALERT_DAYS", 30))

    return StockScan(
        owner_id=owner_id,
        critical=critical,
        low_stock=list(low_stock_items(owner_id=owner_id, threshold=threshold)),
        expiring=list(expiring_items(owner_id=owner_id, within_days=days, today=today)),
    )


class AlertDedupSet:
    """
    Keys remembered for a fixed window. Expired keys are dropped on access.
    """

    def __init__(self, window: timedelta = timedelta(days=1), clock: Callable[[], datetime] = timezone.now):
        self.window = window
        self._clock = clock
        self._seen: dict[Hashable, datetime] = {}

    def _purge(self) -> None:
        cutoff = self._clock() - self.window
        for key in [k for k, at in self._seen.items() if at <= cutoff]:
            del self._seen[key]

    def __contains__(self, key: Hashable) -> bool:
        self._purge()
        return key in self._seen

    def __len__(self) -> int:
        self._purge()
        return len(self._seen)

    def add(self, key: Hashable, at: datetime | None = None) -> None:
        self._seen[key] = at or self._clock()

    @classmethod
    def from_deliveries(cls, window: timedelta = timedelta(days=1), clock: Callable[[], datetime] = timezone.now):
        """
        Seed with stock alerts already delivered inside the window, so separate
        runs of the alert command don't repeat themselves.
        """
        dedup = cls(window=window, clock=clock)
        recent = NotificationDelivery.objects.filter(
            template_kind=STOCK_ALERT,
            status=DeliveryStatus.DELIVERED.value,
            created_at__gt=clock() - window,
        ).values_list("address", "subject", "created_at")
        for address, subject, created_at in recent:
            variant = VARIANT_CRITICAL if subject.startswith(CRITICAL_PREFIX) else VARIANT_STANDARD
            dedup.add((address, variant), at=created_at)
        return dedup


@dataclass
class AlertRunContext:
    dedup: AlertDedupSet
    critical: bool = False
    today: date = field(default_factory=timezone.localdate)
    fallback_email: str = ""

    @property
    def variant(self) -> str:
        return VARIANT_CRITICAL if self.critical else VARIANT_STANDARD


@dataclass(frozen=True)
class AlertOutcome:
    owner_id: int
    address: str
    status: str  # delivered | failed | skipped_empty | skipped_duplicate | skipped_no_address


def _lines(items: list[InventoryItem], fmt: Callable[[InventoryItem], str]) -> str:
    return "\n".join(fmt(item) for item in items) or "None"


def _payload(owner, scan: StockScan) -> dict:
    return {
        "owner_name": owner.get_full_name() or owner.get_username(),
        "critical": CRITICAL_PREFIX if scan.critical else "",
        "low_stock_count": len(scan.low_stock),
        "expiring_count": len(scan.expiring),
        "low_stock": _lines(scan.low_stock, lambda i: f"- {i} : {i.quantity} left"),
        "expiring": _lines(scan.expiring, lambda i: f"- {i} : expires {i.expiry_date:%Y-%m-%d}"),
    }


def send_stock_alerts(ctx: AlertRunContext) -> list[AlertOutcome]:
    User = get_user_model()
    owner_ids = (
        InventoryItem.objects.filter(is_active=True)
        .values_list("owner_id", flat=True)
        .distinct()
        .order_by("owner_id")
    )

    outcomes: list[AlertOutcome] = []
    for owner in User.objects.filter(id__in=list(owner_ids), is_active=True).order_by("id"):
        address = (owner.email or ctx.fallback_email or "").strip()
        if not address:
            outcomes.append(AlertOutcome(owner.id, "", "skipped_no_address"))
            continue

        key = (address, ctx.variant)
        if key in ctx.dedup:
            outcomes.append(AlertOutcome(owner.id, address, "skipped_duplicate"))
            continue

        scan = scan_owner(owner_id=owner.id, critical=ctx.critical, today=ctx.today)
        if scan.is_empty:
            outcomes.append(AlertOutcome(owner.id, address, "skipped_empty"))
            continue

        status = notify(address, STOCK_ALERT, _payload(owner, scan))
        if status == DeliveryStatus.DELIVERED:
            ctx.dedup.add(key)
        outcomes.append(AlertOutcome(owner.id, address, status.value))

    sent = sum(1 for o in outcomes if o.status == DeliveryStatus.DELIVERED.value)
    logger.info("Stock alerts (%s): %s sent, %s owners scanned", ctx.variant, sent, len(outcomes))
    return outcomes
