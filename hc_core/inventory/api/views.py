# hc_core/inventory/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hc_core.common.api.pagination import paginate
from hc_core.common.permissions import ActionRolePermission
from hc_core.common.principal import ROLE_DOCTOR
from hc_core.inventory.api.filters import InventoryItemFilter
from hc_core.inventory.api.serializers import (
    InventoryItemCreateSerializer,
    InventoryItemSerializer,
    InventoryItemUpdateSerializer,
    InventoryStatsSerializer,
    StockAdjustSerializer,
)
from hc_core.inventory.models import InventoryItem
from hc_core.inventory.selectors import expiring_items, get_owned_item, inventory_stats, list_items
from hc_core.inventory.services import InventoryService

DOCTOR_ONLY = {ROLE_DOCTOR}


class InventoryItemViewSet(viewsets.ViewSet):
    """
    A practitioner's own medicine stock.
    """
    permission_classes = [IsAuthenticated, ActionRolePermission]
    action_roles = {
        name: DOCTOR_ONLY
        for name in ("list", "create", "retrieve", "partial_update", "destroy", "adjust", "stats", "expiring")
    }
    lookup_value_regex = r"[0-9a-fA-F-]{36}"

    serializer_class = InventoryItemSerializer
    queryset = InventoryItem.objects.none()

    def list(self, request):
        qs = list_items(
            owner_id=request.user.id,
            q=request.query_params.get("q", ""),
            include_inactive=request.query_params.get("include_inactive") == "1",
        )
        filtered = InventoryItemFilter(request.query_params, queryset=qs)
        if not filtered.is_valid():
            raise DRFValidationError(filtered.errors)
        return paginate(request, filtered.qs, InventoryItemSerializer)

    @extend_schema(request=InventoryItemCreateSerializer, responses={201: InventoryItemSerializer})
    def create(self, request):
        ser = InventoryItemCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        item = InventoryService.create_item(owner_id=request.user.id, **ser.validated_data)
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        item = get_owned_item(owner_id=request.user.id, item_id=pk, include_inactive=True)
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_200_OK)

    @extend_schema(request=InventoryItemUpdateSerializer, responses={200: InventoryItemSerializer})
    def partial_update(self, request, pk=None):
        ser = InventoryItemUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        item = InventoryService.update_item(owner_id=request.user.id, item_id=pk, data=ser.validated_data)
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_200_OK)

    def destroy(self, request, pk=None):
        InventoryService.deactivate_item(owner_id=request.user.id, item_id=pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=StockAdjustSerializer, responses={200: InventoryItemSerializer})
    @action(detail=True, methods=["post"])
    def adjust(self, request, pk=None):
        ser = StockAdjustSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        item = InventoryService.adjust(
            owner_id=request.user.id,
            item_id=pk,
            quantity=ser.validated_data["quantity"],
            operation=ser.validated_data["operation"],
        )
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_200_OK)

    @extend_schema(responses={200: InventoryStatsSerializer})
    @action(detail=False, methods=["get"])
    def stats(self, request):
        data = inventory_stats(owner_id=request.user.id)
        return Response(InventoryStatsSerializer(data).data, status=status.HTTP_200_OK)

    @extend_schema(responses={200: InventoryItemSerializer(many=True)})
    @action(detail=False, methods=["get"])
    def expiring(self, request):
        days_raw = request.query_params.get("days")
        days = None
        if days_raw:
            try:
                days = int(days_raw)
            except ValueError:
                raise DRFValidationError({"days": "Integer expected."})

        qs = expiring_items(owner_id=request.user.id, within_days=days)
        return paginate(request, qs, InventoryItemSerializer)
