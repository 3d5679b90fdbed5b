# hc_core/patients/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hc_core.common.api.pagination import paginate
from hc_core.common.permissions import ActionRolePermission
from hc_core.common.principal import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, principal_for
from hc_core.patients.api.serializers import (
    DuplicateGroupSerializer,
    PatientAssignSerializer,
    PatientCreateSerializer,
    PatientSerializer,
    PatientUpdateSerializer,
    VisitSerializer,
)
from hc_core.patients.identity import choose_survivor, find_duplicate_groups, resolve_duplicates
from hc_core.patients.models import Patient
from hc_core.patients.selectors import get_visible_patient, visible_patients, visit_history
from hc_core.patients.services import PatientService

UUID_LOOKUP = r"[0-9a-fA-F-]{36}"


class PatientViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated, ActionRolePermission]
    action_roles = {
        "create": {ROLE_DOCTOR, ROLE_PATIENT},
        "destroy": {ROLE_DOCTOR},
        "assign": {ROLE_DOCTOR},
        "duplicates": {ROLE_ADMIN},
    }
    lookup_value_regex = UUID_LOOKUP

    # spectacular + path param typing
    serializer_class = PatientSerializer
    queryset = Patient.objects.none()

    def list(self, request):
        principal = principal_for(request.user)
        qs = visible_patients(
            principal=principal,
            q=request.query_params.get("q", ""),
            include_inactive=request.query_params.get("include_inactive") == "1",
        )
        return paginate(request, qs, PatientSerializer)

    @extend_schema(request=PatientCreateSerializer, responses={201: PatientSerializer})
    def create(self, request):
        principal = principal_for(request.user)

        ser = PatientCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        try:
            if principal.is_patient:
                patient = PatientService.register_self(
                    account=request.user,
                    mobile=data["mobile"],
                    age=data.get("age"),
                    gender=data.get("gender", ""),
                    address=data.get("address", ""),
                    medical_history=data.get("medical_history", ""),
                )
            else:
                if not data.get("name"):
                    raise DRFValidationError({"name": ["This field is required."]})
                patient = PatientService.create_patient(
                    practitioner_id=principal.id if principal.role == ROLE_DOCTOR else None,
                    actor_user_id=principal.id,
                    **data,
                )
        except ValueError as e:
            raise DRFValidationError({"detail": str(e)})

        return Response(PatientSerializer(patient).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        patient = get_visible_patient(principal=principal_for(request.user), patient_id=pk)
        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    @extend_schema(request=PatientUpdateSerializer, responses={200: PatientSerializer})
    def partial_update(self, request, pk=None):
        ser = PatientUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        patient = PatientService.update_patient(
            principal=principal_for(request.user),
            patient_id=pk,
            data=ser.validated_data,
        )
        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    def destroy(self, request, pk=None):
        PatientService.soft_delete(principal=principal_for(request.user), patient_id=pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=PatientAssignSerializer, responses={200: PatientSerializer})
    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        principal = principal_for(request.user)

        ser = PatientAssignSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        practitioner_id = principal.id
        if principal.role == ROLE_ADMIN:
            practitioner_id = ser.validated_data.get("practitioner_id")
            if practitioner_id is None:
                raise DRFValidationError({"practitioner_id": ["This field is required."]})

        try:
            patient = PatientService.assign_to_practitioner(
                patient_id=pk,
                practitioner_id=practitioner_id,
                actor_user_id=principal.id,
            )
        except ValueError as e:
            raise DRFValidationError({"detail": str(e)})
        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    @extend_schema(responses={200: VisitSerializer(many=True)})
    @action(detail=True, methods=["get"])
    def visits(self, request, pk=None):
        qs = visit_history(principal=principal_for(request.user), patient_id=pk)
        return paginate(request, qs, VisitSerializer)

    @extend_schema(responses={200: DuplicateGroupSerializer(many=True)})
    @action(detail=False, methods=["get", "post"])
    def duplicates(self, request):
        """
        GET previews duplicate groups with their would-be survivors.
        POST runs the merge batch.
        """
        if request.method == "GET":
            groups = find_duplicate_groups(Patient.objects.order_by("created_at", "patient_code"))
            payload = [{"survivor_id": choose_survivor(g).pk, "patients": g} for g in groups]
            return Response(DuplicateGroupSerializer(payload, many=True).data, status=status.HTTP_200_OK)

        report = resolve_duplicates(actor_user_id=request.user.id)
        return Response(
            {
                "groups": len(report.groups),
                "merged": report.merged_count,
                "survivor_ids": [str(pk) for pk in report.survivors],
            },
            status=status.HTTP_200_OK,
        )
