# hc_core/inventory/services.py
from __future__ import annotations

import logging
from uuid import UUID

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from hc_core.audit.services import AuditService
from hc_core.common.errors import InsufficientStock, ItemNotFound
from hc_core.inventory.models import InventoryItem
from hc_core.inventory.selectors import get_owned_item

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "name",
    "batch",
    "kind",
    "size",
    "unit",
    "expiry_date",
    "cost",
    "manufacturer",
    "priority",
}

OP_SUBTRACT = "subtract"
OP_ADD = "add"


def _positive(quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValueError("Quantity must be a positive integer.")
    return quantity


class InventoryLedger:
    """
    Stock counter primitives. Both are single UPDATE statements, so concurrent
    callers on the same item never act on a stale read.
    """

    @staticmethod
    def reserve_and_deduct(*, item_id: UUID, quantity: int) -> None:
        quantity = _positive(quantity)

        updated = InventoryItem.objects.filter(id=item_id, is_active=True, quantity__gte=quantity).update(
            quantity=F("quantity") - quantity,
            updated_at=timezone.now(),
        )
        if updated:
            return

        item = InventoryItem.objects.filter(id=item_id, is_active=True).only("name", "quantity").first()
        if item is None:
            raise ItemNotFound(details={"item_id": str(item_id)})
        raise InsufficientStock(item.name, item.quantity, quantity)

    @staticmethod
    def credit(*, item_id: UUID, quantity: int) -> None:
        quantity = _positive(quantity)

        updated = InventoryItem.objects.filter(id=item_id).update(
            quantity=F("quantity") + quantity,
            updated_at=timezone.now(),
        )
        if not updated:
            raise ItemNotFound(details={"item_id": str(item_id)})


class InventoryService:
    @staticmethod
    @transaction.atomic
    def create_item(*, owner_id: int, quantity: int = 0, **fields) -> InventoryItem:
        if quantity < 0:
            raise ValueError("Quantity cannot be negative.")

        data = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        item = InventoryItem.objects.create(owner_id=owner_id, quantity=quantity, **data)

        AuditService.log(
            event_code="inventory.item_created",
            entity_type="InventoryItem",
            entity_id=item.id,
            actor_user_id=owner_id,
            metadata={"quantity": quantity},
        )
        return item

    @staticmethod
    @transaction.atomic
    def update_item(*, owner_id: int, item_id: UUID, data: dict) -> InventoryItem:
        item = get_owned_item(owner_id=owner_id, item_id=item_id)

        updates = {k: v for k, v in (data or {}).items() if k in EDITABLE_FIELDS}
        for k, v in updates.items():
            setattr(item, k, v)
        if updates:
            item.save(update_fields=[*updates.keys(), "updated_at"])

        AuditService.log(
            event_code="inventory.item_updated",
            entity_type="InventoryItem",
            entity_id=item.id,
            actor_user_id=owner_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return item

    @staticmethod
    @transaction.atomic
    def deactivate_item(*, owner_id: int, item_id: UUID) -> InventoryItem:
        item = get_owned_item(owner_id=owner_id, item_id=item_id)
        item.is_active = False
        item.save(update_fields=["is_active", "updated_at"])

        AuditService.log(
            event_code="inventory.item_deactivated",
            entity_type="InventoryItem",
            entity_id=item.id,
            actor_user_id=owner_id,
            metadata={},
        )
        return item

    @staticmethod
    @transaction.atomic
    def adjust(*, owner_id: int, item_id: UUID, quantity: int, operation: str = OP_SUBTRACT) -> InventoryItem:
        """
        Manual stock correction by the owning practitioner.
        """
        if operation not in (OP_SUBTRACT, OP_ADD):
            raise ValueError("Operation must be 'subtract' or 'add'.")

        item = get_owned_item(owner_id=owner_id, item_id=item_id)
        if operation == OP_SUBTRACT:
            InventoryLedger.reserve_and_deduct(item_id=item.id, quantity=quantity)
        else:
            InventoryLedger.credit(item_id=item.id, quantity=quantity)

        item.refresh_from_db(fields=["quantity", "updated_at"])

        AuditService.log(
            event_code="inventory.adjusted",
            entity_type="InventoryItem",
            entity_id=item.id,
            actor_user_id=owner_id,
            metadata={"operation": operation, "quantity": quantity, "balance": item.quantity},
        )
        logger.info("Item %s %s %s -> %s", item.id, operation, quantity, item.quantity)
        return item
