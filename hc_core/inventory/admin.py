# hc_core/inventory/admin.py
from django.contrib import admin

from hc_core.inventory.models import InventoryItem


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ("name", "batch", "owner", "quantity", "expiry_date", "priority", "is_active")
    list_filter = ("kind", "priority", "is_active")
    search_fields = ("name", "batch", "manufacturer")
    readonly_fields = ("quantity", "created_at", "updated_at")
    ordering = ("name",)
