# hc_core/prescriptions/api/filters.py
import django_filters

from hc_core.prescriptions.models import Prescription, PrescriptionStatus


class PrescriptionFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=PrescriptionStatus.choices)
    patient_id = django_filters.UUIDFilter(field_name="patient_id")
    issued_after = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    issued_before = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")

    class Meta:
        model = Prescription
        fields = ["status", "patient_id", "issued_after", "issued_before"]
