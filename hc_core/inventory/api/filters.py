# hc_core/inventory/api/filters.py
import django_filters

from hc_core.inventory.models import InventoryItem


class InventoryItemFilter(django_filters.FilterSet):
    kind = django_filters.ChoiceFilter(choices=InventoryItem.Kind.choices)
    priority = django_filters.ChoiceFilter(choices=InventoryItem.Priority.choices)
    expires_before = django_filters.DateFilter(field_name="expiry_date", lookup_expr="lte")
    max_quantity = django_filters.NumberFilter(field_name="quantity", lookup_expr="lte")

    class Meta:
        model = InventoryItem
        fields = ["kind", "priority", "expires_before", "max_quantity"]
