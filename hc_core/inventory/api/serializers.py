# hc_core/inventory/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hc_core.inventory.models import InventoryItem
from hc_core.inventory.services import OP_ADD, OP_SUBTRACT


class InventoryItemCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    batch = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    kind = serializers.ChoiceField(choices=InventoryItem.Kind.choices, required=False, default=InventoryItem.Kind.TABLET)
    size = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    unit = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    quantity = serializers.IntegerField(min_value=0, default=0)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    cost = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    manufacturer = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    priority = serializers.ChoiceField(
        choices=InventoryItem.Priority.choices, required=False, default=InventoryItem.Priority.MEDIUM
    )


class InventoryItemUpdateSerializer(serializers.Serializer):
    """
    Partial update contract (PATCH). Quantity changes go through /adjust/.
    """
    name = serializers.CharField(max_length=255, required=False)
    batch = serializers.CharField(max_length=64, required=False, allow_blank=True)
    kind = serializers.ChoiceField(choices=InventoryItem.Kind.choices, required=False)
    size = serializers.CharField(max_length=64, required=False, allow_blank=True)
    unit = serializers.CharField(max_length=32, required=False, allow_blank=True)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    cost = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    manufacturer = serializers.CharField(max_length=255, required=False, allow_blank=True)
    priority = serializers.ChoiceField(choices=InventoryItem.Priority.choices, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class StockAdjustSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    operation = serializers.ChoiceField(choices=[OP_SUBTRACT, OP_ADD], default=OP_SUBTRACT)


class InventoryItemSerializer(serializers.ModelSerializer):
    owner_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = InventoryItem
        fields = [
            "id",
            "owner_id",
            "name",
            "batch",
            "kind",
            "size",
            "unit",
            "quantity",
            "expiry_date",
            "cost",
            "manufacturer",
            "priority",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class InventoryStatsSerializer(serializers.Serializer):
    total_items = serializers.IntegerField()
    low_stock = serializers.IntegerField()
    expiring = serializers.IntegerField()
    total_value = serializers.DecimalField(max_digits=14, decimal_places=2)
