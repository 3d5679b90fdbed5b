# hc_core/patients/admin.py
from django.contrib import admin

from hc_core.patients.models import Patient, Visit


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = (
        "patient_code",
        "name",
        "mobile",
        "email",
        "source",
        "assigned_practitioner",
        "is_active",
        "created_at",
    )
    list_filter = ("source", "is_active", "gender")
    search_fields = ("patient_code", "name", "mobile", "email")
    readonly_fields = ("patient_code", "created_at", "updated_at")
    ordering = ("-created_at",)


@admin.register(Visit)
class VisitAdmin(admin.ModelAdmin):
    list_display = ("patient", "practitioner", "prescription", "visited_at", "follow_up_date")
    search_fields = ("patient__patient_code", "diagnosis")
    readonly_fields = [f.name for f in Visit._meta.fields]
    ordering = ("-visited_at",)

    def has_change_permission(self, request, obj=None):
        return False
