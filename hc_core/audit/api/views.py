# hc_core/audit/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated

from hc_core.audit.api.serializers import AuditEventSerializer
from hc_core.audit.models import AuditEvent
from hc_core.audit.selectors import list_audit_events
from hc_core.common.api.pagination import paginate
from hc_core.common.permissions import ActionRolePermission
from hc_core.common.principal import ROLE_ADMIN


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    Audit timeline. Admin only.
    """
    permission_classes = [IsAuthenticated, ActionRolePermission]
    action_roles = {"list": {ROLE_ADMIN}}

    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="entity_type",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by entity type (e.g. Patient, Prescription).",
            ),
            OpenApiParameter(
                name="entity_id",
                type=OpenApiTypes.UUID,
                location=OpenApiParameter.QUERY,
                required=False,
            ),
            OpenApiParameter(
                name="event_code",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by event code (e.g. patient.merged).",
            ),
            OpenApiParameter(
                name="actor_user_id",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
            ),
        ],
    )
    def list(self, request):
        entity_id_raw = request.query_params.get("entity_id") or None
        actor_user_raw = request.query_params.get("actor_user_id") or None

        entity_id = None
        if entity_id_raw:
            try:
                entity_id = UUID(str(entity_id_raw))
            except ValueError:
                raise ValidationError({"entity_id": "Invalid entity_id (UUID expected)."})

        actor_user_id = None
        if actor_user_raw:
            try:
                actor_user_id = int(actor_user_raw)
            except ValueError:
                raise ValidationError({"actor_user_id": "Invalid actor_user_id (int expected)."})

        qs = list_audit_events(
            entity_type=request.query_params.get("entity_type") or None,
            entity_id=entity_id,
            event_code=request.query_params.get("event_code") or None,
            actor_user_id=actor_user_id,
        )
        return paginate(request, qs, AuditEventSerializer)
