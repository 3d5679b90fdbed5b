# hc_core/appointments/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hc_core.appointments.models import Appointment, AppointmentStatus


class AppointmentBookSerializer(serializers.Serializer):
    practitioner_id = serializers.IntegerField()
    date = serializers.DateField()
    slot_label = serializers.CharField(max_length=16)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    visit_type = serializers.ChoiceField(
        choices=Appointment.VisitType.choices,
        required=False,
        default=Appointment.VisitType.CONSULTATION,
    )
    # Required when a practitioner books on a patient's behalf.
    patient_id = serializers.UUIDField(required=False)


class AppointmentDecisionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class AppointmentCancelSerializer(serializers.Serializer):
    reason = serializers.CharField()


class AppointmentSerializer(serializers.ModelSerializer):
    patient_id = serializers.UUIDField(read_only=True)
    patient_code = serializers.CharField(source="patient.patient_code", read_only=True)
    patient_name = serializers.CharField(source="patient.name", read_only=True)
    practitioner_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Appointment
        fields = [
            "id",
            "patient_id",
            "patient_code",
            "patient_name",
            "practitioner_id",
            "date",
            "slot_label",
            "visit_type",
            "reason",
            "status",
            "practitioner_notes",
            "rejection_reason",
            "cancellation_reason",
            "status_changed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AvailableSlotsSerializer(serializers.Serializer):
    practitioner_id = serializers.IntegerField()
    date = serializers.DateField()
    slots = serializers.ListField(child=serializers.CharField())


class AppointmentStatsSerializer(serializers.Serializer):
    pending = serializers.IntegerField()
    approved = serializers.IntegerField()
    rejected = serializers.IntegerField()
    completed = serializers.IntegerField()
    cancelled = serializers.IntegerField()
    total = serializers.IntegerField()
    today_active = serializers.IntegerField()


STATUS_CHOICES = [s.value for s in AppointmentStatus]
