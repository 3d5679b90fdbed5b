# hc_core/prescriptions/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer
from rest_framework import serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hc_core.common.api.pagination import paginate
from hc_core.common.idempotency import get_key, load_response, save_response
from hc_core.common.permissions import ActionRolePermission
from hc_core.common.principal import ROLE_DOCTOR, principal_for
from hc_core.prescriptions.api.filters import PrescriptionFilter
from hc_core.prescriptions.api.serializers import (
    PrescriptionIssueSerializer,
    PrescriptionSerializer,
    PrescriptionStatsSerializer,
    PrescriptionUpdateSerializer,
)
from hc_core.prescriptions.models import Prescription
from hc_core.prescriptions.selectors import get_visible_prescription, list_prescriptions, prescription_stats
from hc_core.prescriptions.services import LineItem, PrescriptionService

DOCTOR_ONLY = {ROLE_DOCTOR}


class PrescriptionViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated, ActionRolePermission]
    action_roles = {
        "create": DOCTOR_ONLY,
        "partial_update": DOCTOR_ONLY,
        "destroy": DOCTOR_ONLY,
        "complete": DOCTOR_ONLY,
        "discontinue": DOCTOR_ONLY,
        "stats": DOCTOR_ONLY,
    }
    lookup_value_regex = r"[0-9a-fA-F-]{36}"

    serializer_class = PrescriptionSerializer
    queryset = Prescription.objects.none()

    def list(self, request):
        qs = list_prescriptions(principal=principal_for(request.user))
        filtered = PrescriptionFilter(request.query_params, queryset=qs)
        if not filtered.is_valid():
            raise DRFValidationError(filtered.errors)
        return paginate(request, filtered.qs, PrescriptionSerializer)

    @extend_schema(
        request=PrescriptionIssueSerializer,
        responses={
            201: inline_serializer(
                name="PrescriptionIssueResponse",
                fields={
                    "prescription": PrescriptionSerializer(),
                    "warnings": serializers.ListField(child=serializers.CharField()),
                },
            )
        },
        parameters=[
            OpenApiParameter(name="Idempotency-Key", location=OpenApiParameter.HEADER, required=False, type=str),
        ],
    )
    def create(self, request):
        idem = get_key(request)
        if idem:
            cached = load_response(request.user.id, request.method, request.path, idem)
            if cached is not None:
                return Response(cached, status=status.HTTP_201_CREATED)

        ser = PrescriptionIssueSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        try:
            result = PrescriptionService.issue(
                patient_id=data["patient_id"],
                practitioner_id=request.user.id,
                line_items=[LineItem(**line) for line in data["medicines"]],
                symptoms=data["symptoms"],
                diagnosis=data["diagnosis"],
                follow_up_date=data["follow_up_date"],
                notes=data["notes"],
            )
        except ValueError as e:
            raise DRFValidationError({"detail": str(e)})

        out = {
            "prescription": PrescriptionSerializer(result.prescription).data,
            "warnings": result.warnings,
        }

        if idem:
            save_response(request.user.id, request.method, request.path, idem, out, status.HTTP_201_CREATED)

        return Response(out, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        prescription = get_visible_prescription(principal=principal_for(request.user), prescription_id=pk)
        return Response(PrescriptionSerializer(prescription).data, status=status.HTTP_200_OK)

    @extend_schema(request=PrescriptionUpdateSerializer, responses={200: PrescriptionSerializer})
    def partial_update(self, request, pk=None):
        ser = PrescriptionUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        prescription = PrescriptionService.update(
            prescription_id=pk,
            practitioner_id=request.user.id,
            data=ser.validated_data,
        )
        return Response(PrescriptionSerializer(prescription).data, status=status.HTTP_200_OK)

    def destroy(self, request, pk=None):
        PrescriptionService.delete(prescription_id=pk, practitioner_id=request.user.id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=None, responses={200: PrescriptionSerializer})
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        prescription = PrescriptionService.complete(prescription_id=pk, practitioner_id=request.user.id)
        return Response(PrescriptionSerializer(prescription).data, status=status.HTTP_200_OK)

    @extend_schema(request=None, responses={200: PrescriptionSerializer})
    @action(detail=True, methods=["post"])
    def discontinue(self, request, pk=None):
        prescription = PrescriptionService.discontinue(prescription_id=pk, practitioner_id=request.user.id)
        return Response(PrescriptionSerializer(prescription).data, status=status.HTTP_200_OK)

    @extend_schema(responses={200: PrescriptionStatsSerializer})
    @action(detail=False, methods=["get"])
    def stats(self, request):
        data = prescription_stats(practitioner_id=request.user.id)
        return Response(PrescriptionStatsSerializer(data).data, status=status.HTTP_200_OK)
