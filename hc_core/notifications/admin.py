# hc_core/notifications/admin.py
from django.contrib import admin

from hc_core.notifications.models import NotificationDelivery


@admin.register(NotificationDelivery)
class NotificationDeliveryAdmin(admin.ModelAdmin):
    list_display = ("template_kind", "address", "status", "created_at")
    list_filter = ("status", "template_kind")
    search_fields = ("address", "subject")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("-created_at",)
