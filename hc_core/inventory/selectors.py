# hc_core/inventory/selectors.py
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from django.conf import settings
from django.db.models import DecimalField, ExpressionWrapper, F, Q, QuerySet, Sum
from django.utils import timezone

from hc_core.common.errors import ItemNotFound, UnauthorizedOwner
from hc_core.inventory.models import InventoryItem


def low_stock_threshold() -> int:
    return int(getattr(settings, "INVENTORY_LOW_STOCK_THRESHOLD", 10))


def expiry_alert_days() -> int:
    return int(getattr(settings, "INVENTORY_EXPIRY_ALERT_DAYS", 30))


def get_item(*, item_id: UUID) -> InventoryItem:
    try:
        return InventoryItem.objects.get(id=item_id)
    except InventoryItem.DoesNotExist:
        raise ItemNotFound(details={"item_id": str(item_id)})


def get_owned_item(*, owner_id: int, item_id: UUID, include_inactive: bool = False) -> InventoryItem:
    item = get_item(item_id=item_id)
    if not include_inactive and not item.is_active:
        raise ItemNotFound(details={"item_id": str(item_id)})
    if item.owner_id != owner_id:
        raise UnauthorizedOwner("Inventory item belongs to another practitioner.")
    return item


def list_items(
    *,
    owner_id: int,
    q: str | None = None,
    include_inactive: bool = False,
) -> QuerySet[InventoryItem]:
    qs = InventoryItem.objects.filter(owner_id=owner_id)
    if not include_inactive:
        qs = qs.filter(is_active=True)

    qv = (q or "").strip()
    if qv:
        qs = qs.filter(Q(name__icontains=qv) | Q(batch__icontains=qv) | Q(manufacturer__icontains=qv))

    return qs.order_by("name", "expiry_date")


def low_stock_items(*, owner_id: int, threshold: int | None = None) -> QuerySet[InventoryItem]:
    limit = low_stock_threshold() if threshold is None else threshold
    return (
        InventoryItem.objects.filter(owner_id=owner_id, is_active=True, quantity__lte=limit)
        .order_by("quantity", "name")
    )


def expiring_items(
    *,
    owner_id: int,
    within_days: int | None = None,
    today: date | None = None,
) -> QuerySet[InventoryItem]:
    """
    Items expiring within the window that have not expired yet.
    """
    day = today or timezone.localdate()
    days = expiry_alert_days() if within_days is None else within_days
    return (
        InventoryItem.objects.filter(
            owner_id=owner_id,
            is_active=True,
            expiry_date__isnull=False,
            expiry_date__gte=day,
            expiry_date__lte=day + timedelta(days=days),
        )
        .order_by("expiry_date", "name")
    )


def inventory_stats(*, owner_id: int, today: date | None = None) -> dict:
    active = InventoryItem.objects.filter(owner_id=owner_id, is_active=True)
    value = active.aggregate(
        total=Sum(
            ExpressionWrapper(F("quantity") * F("cost"), output_field=DecimalField(max_digits=14, decimal_places=2))
        )
    )["total"]

    return {
        "total_items": active.count(),
        "low_stock": low_stock_items(owner_id=owner_id).count(),
        "expiring": expiring_items(owner_id=owner_id, today=today).count(),
        "total_value": value or Decimal("0.00"),
    }
