# hc_core/appointments/admin.py
from django.contrib import admin

from hc_core.appointments.models import Appointment


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ("date", "slot_label", "patient", "practitioner", "status", "created_at")
    list_filter = ("status", "visit_type", "date")
    search_fields = ("patient__patient_code", "patient__name", "slot_label")
    readonly_fields = ("created_at", "updated_at", "status_changed_at")
    ordering = ("-date", "slot_label")
