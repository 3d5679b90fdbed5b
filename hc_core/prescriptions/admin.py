# hc_core/prescriptions/admin.py
from django.contrib import admin

from hc_core.prescriptions.models import Prescription, PrescriptionLine


class PrescriptionLineInline(admin.TabularInline):
    model = PrescriptionLine
    extra = 0
    can_delete = False
    readonly_fields = ("inventory_item", "item_name", "dosage", "frequency", "duration", "timing", "quantity_given")


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ("prescription_number", "patient", "practitioner", "status", "is_active", "created_at")
    list_filter = ("status", "is_active")
    search_fields = ("prescription_number", "patient__patient_code", "diagnosis")
    readonly_fields = ("prescription_number", "created_at", "updated_at", "completed_at")
    ordering = ("-created_at",)
    inlines = [PrescriptionLineInline]
