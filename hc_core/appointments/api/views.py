# hc_core/appointments/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hc_core.appointments.api.serializers import (
    STATUS_CHOICES,
    AppointmentBookSerializer,
    AppointmentCancelSerializer,
    AppointmentDecisionSerializer,
    AppointmentSerializer,
    AppointmentStatsSerializer,
    AvailableSlotsSerializer,
)
from hc_core.appointments.models import Appointment
from hc_core.appointments.selectors import (
    appointment_stats,
    available_slots,
    get_appointment,
    list_appointments,
)
from hc_core.appointments.services import SlotLedger
from hc_core.common.api.pagination import paginate
from hc_core.common.errors import PatientNotFound, UnauthorizedOwner
from hc_core.common.permissions import ActionRolePermission
from hc_core.common.principal import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, principal_for
from hc_core.patients.models import Patient

DOCTOR_ONLY = {ROLE_DOCTOR}


def _parse_date(raw: str | None, field: str):
    if not raw:
        return None
    try:
        return serializers.DateField().to_internal_value(raw)
    except serializers.ValidationError:
        raise DRFValidationError({field: "Invalid date (YYYY-MM-DD expected)."})


class AppointmentViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated, ActionRolePermission]
    action_roles = {
        "create": {ROLE_PATIENT, ROLE_DOCTOR},
        "destroy": DOCTOR_ONLY,
        "approve": DOCTOR_ONLY,
        "reject": DOCTOR_ONLY,
        "complete": DOCTOR_ONLY,
        "reverse": DOCTOR_ONLY,
        "cancel": {ROLE_PATIENT},
        "stats": DOCTOR_ONLY,
    }
    lookup_value_regex = r"[0-9a-fA-F-]{36}"

    serializer_class = AppointmentSerializer
    queryset = Appointment.objects.none()

    @extend_schema(
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False, enum=STATUS_CHOICES),
            OpenApiParameter("date", OpenApiTypes.DATE, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: AppointmentSerializer(many=True)},
    )
    def list(self, request):
        status_filter = request.query_params.get("status") or None
        if status_filter and status_filter not in STATUS_CHOICES:
            raise DRFValidationError({"status": f"Must be one of {STATUS_CHOICES}."})

        qs = list_appointments(
            principal=principal_for(request.user),
            status=status_filter,
            day=_parse_date(request.query_params.get("date"), "date"),
        )
        return paginate(request, qs, AppointmentSerializer)

    @extend_schema(request=AppointmentBookSerializer, responses={201: AppointmentSerializer})
    def create(self, request):
        principal = principal_for(request.user)

        ser = AppointmentBookSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        if principal.is_patient:
            patient = Patient.objects.filter(account_id=principal.id, is_active=True).first()
            if patient is None:
                raise PatientNotFound("Complete your patient registration first.")
            patient_id = patient.id
        else:
            patient_id = data.get("patient_id")
            if patient_id is None:
                raise DRFValidationError({"patient_id": ["This field is required."]})
            if principal.role == ROLE_DOCTOR and data["practitioner_id"] != principal.id:
                raise UnauthorizedOwner("Practitioners can only book into their own schedule.")

        try:
            appointment = SlotLedger.book(
                practitioner_id=data["practitioner_id"],
                day=data["date"],
                slot_label=data["slot_label"],
                patient_id=patient_id,
                reason=data["reason"],
                visit_type=data["visit_type"],
                actor_user_id=principal.id,
            )
        except ValueError as e:
            raise DRFValidationError({"detail": str(e)})

        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        principal = principal_for(request.user)
        appointment = get_appointment(appointment_id=pk)

        if principal.role != ROLE_ADMIN:
            owner = appointment.patient.account_id if principal.is_patient else appointment.practitioner_id
            if owner != principal.id:
                raise UnauthorizedOwner()

        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_200_OK)

    def destroy(self, request, pk=None):
        SlotLedger.delete(appointment_id=pk, practitioner_id=request.user.id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=AppointmentDecisionSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        ser = AppointmentDecisionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appointment = SlotLedger.approve(
            appointment_id=pk,
            practitioner_id=request.user.id,
            notes=ser.validated_data["notes"],
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_200_OK)

    @extend_schema(request=AppointmentDecisionSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        ser = AppointmentDecisionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appointment = SlotLedger.reject(
            appointment_id=pk,
            practitioner_id=request.user.id,
            reason=ser.validated_data["reason"],
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_200_OK)

    @extend_schema(request=AppointmentDecisionSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        ser = AppointmentDecisionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appointment = SlotLedger.complete(
            appointment_id=pk,
            practitioner_id=request.user.id,
            notes=ser.validated_data["notes"],
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_200_OK)

    @extend_schema(request=AppointmentDecisionSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"])
    def reverse(self, request, pk=None):
        ser = AppointmentDecisionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        appointment = SlotLedger.reverse(
            appointment_id=pk,
            practitioner_id=request.user.id,
            reason=ser.validated_data["reason"],
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_200_OK)

    @extend_schema(request=AppointmentCancelSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        ser = AppointmentCancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            appointment = SlotLedger.cancel(
                appointment_id=pk,
                account_id=request.user.id,
                reason=ser.validated_data["reason"],
            )
        except ValueError as e:
            raise DRFValidationError({"detail": str(e)})

        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_200_OK)

    @extend_schema(
        parameters=[
            OpenApiParameter("practitioner_id", OpenApiTypes.INT, OpenApiParameter.QUERY, required=True),
            OpenApiParameter("date", OpenApiTypes.DATE, OpenApiParameter.QUERY, required=True),
        ],
        responses={200: AvailableSlotsSerializer},
    )
    @action(detail=False, methods=["get"])
    def slots(self, request):
        day = _parse_date(request.query_params.get("date"), "date")
        raw_practitioner = request.query_params.get("practitioner_id")
        if day is None or not raw_practitioner:
            raise DRFValidationError({"detail": "practitioner_id and date are required."})
        try:
            practitioner_id = int(raw_practitioner)
        except ValueError:
            raise DRFValidationError({"practitioner_id": "Integer expected."})

        payload = {
            "practitioner_id": practitioner_id,
            "date": day,
            "slots": available_slots(practitioner_id=practitioner_id, day=day),
        }
        return Response(AvailableSlotsSerializer(payload).data, status=status.HTTP_200_OK)

    @extend_schema(responses={200: AppointmentStatsSerializer})
    @action(detail=False, methods=["get"])
    def stats(self, request):
        data = appointment_stats(practitioner_id=request.user.id)
        return Response(AppointmentStatsSerializer(data).data, status=status.HTTP_200_OK)
