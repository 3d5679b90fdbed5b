# hc_core/patients/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hc_core.patients.models import Patient, Visit


class PatientCreateSerializer(serializers.Serializer):
    """
    Practitioner-created (walk-in / camp) patient. Self-registration uses only
    the contact and demographic fields; name and email come from the account.
    """
    name = serializers.CharField(max_length=255, required=False)
    mobile = serializers.CharField(max_length=32)
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    age = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=150)
    gender = serializers.ChoiceField(choices=Patient.Gender.choices, required=False, allow_blank=True, default="")
    address = serializers.CharField(required=False, allow_blank=True, default="")
    medical_history = serializers.CharField(required=False, allow_blank=True, default="")
    source = serializers.ChoiceField(
        choices=[Patient.Source.WALK_IN, Patient.Source.CAMP],
        required=False,
        default=Patient.Source.WALK_IN,
    )


class PatientUpdateSerializer(serializers.Serializer):
    """
    Partial update contract (PATCH).
    """
    name = serializers.CharField(max_length=255, required=False)
    mobile = serializers.CharField(max_length=32, required=False)
    email = serializers.EmailField(required=False, allow_blank=True)
    age = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=150)
    gender = serializers.ChoiceField(choices=Patient.Gender.choices, required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)
    medical_history = serializers.CharField(required=False, allow_blank=True)
    next_appointment = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class PatientAssignSerializer(serializers.Serializer):
    # Required only when an admin assigns on behalf of a practitioner.
    practitioner_id = serializers.IntegerField(required=False)


class PatientSerializer(serializers.ModelSerializer):
    account_id = serializers.IntegerField(read_only=True, allow_null=True)
    assigned_practitioner_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Patient
        fields = [
            "id",
            "patient_code",
            "account_id",
            "name",
            "mobile",
            "email",
            "age",
            "gender",
            "address",
            "medical_history",
            "source",
            "assigned_practitioner_id",
            "last_visit",
            "next_appointment",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class VisitSerializer(serializers.ModelSerializer):
    practitioner_id = serializers.IntegerField(read_only=True, allow_null=True)
    prescription_id = serializers.UUIDField(read_only=True, allow_null=True)
    prescription_number = serializers.CharField(
        source="prescription.prescription_number", read_only=True, allow_null=True, default=None
    )

    class Meta:
        model = Visit
        fields = [
            "id",
            "visited_at",
            "practitioner_id",
            "prescription_id",
            "prescription_number",
            "symptoms",
            "diagnosis",
            "medicines_given",
            "follow_up_date",
            "notes",
        ]
        read_only_fields = fields


class DuplicateGroupSerializer(serializers.Serializer):
    survivor_id = serializers.UUIDField()
    patients = PatientSerializer(many=True)
