# hc_core/prescriptions/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hc_core.prescriptions.models import Prescription, PrescriptionLine, PrescriptionStatus


class LineItemInputSerializer(serializers.Serializer):
    item_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    dosage = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    frequency = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    duration = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    timing = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    instructions = serializers.CharField(required=False, allow_blank=True, default="")


class PrescriptionIssueSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    medicines = LineItemInputSerializer(many=True, allow_empty=False)
    symptoms = serializers.CharField(required=False, allow_blank=True, default="")
    diagnosis = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    follow_up_date = serializers.DateField(required=False, allow_null=True, default=None)


class PrescriptionUpdateSerializer(serializers.Serializer):
    """
    Partial update contract (PATCH). Medicines cannot be changed after issuance.
    """
    symptoms = serializers.CharField(required=False, allow_blank=True)
    diagnosis = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    follow_up_date = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class PrescriptionLineSerializer(serializers.ModelSerializer):
    item_id = serializers.UUIDField(source="inventory_item_id", read_only=True)

    class Meta:
        model = PrescriptionLine
        fields = [
            "item_id",
            "item_name",
            "dosage",
            "frequency",
            "duration",
            "timing",
            "quantity_given",
            "instructions",
        ]
        read_only_fields = fields


class PrescriptionSerializer(serializers.ModelSerializer):
    patient_id = serializers.UUIDField(read_only=True)
    patient_code = serializers.CharField(source="patient.patient_code", read_only=True)
    practitioner_id = serializers.IntegerField(read_only=True)
    medicines = PrescriptionLineSerializer(source="lines", many=True, read_only=True)

    class Meta:
        model = Prescription
        fields = [
            "id",
            "prescription_number",
            "patient_id",
            "patient_code",
            "practitioner_id",
            "symptoms",
            "diagnosis",
            "notes",
            "follow_up_date",
            "medicines",
            "status",
            "is_active",
            "completed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TopItemSerializer(serializers.Serializer):
    item_name = serializers.CharField()
    quantity = serializers.IntegerField()
    prescriptions = serializers.IntegerField()


class PrescriptionStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
    last_30_days = serializers.IntegerField()
    top_items = TopItemSerializer(many=True)


STATUS_CHOICES = [s.value for s in PrescriptionStatus]
