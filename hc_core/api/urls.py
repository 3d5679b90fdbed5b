# hc_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from hc_core.appointments.api.views import AppointmentViewSet
from hc_core.audit.api.views import AuditEventViewSet
from hc_core.common.api.me import MeView
from hc_core.inventory.api.views import InventoryItemViewSet
from hc_core.patients.api.views import PatientViewSet
from hc_core.prescriptions.api.views import PrescriptionViewSet

router = DefaultRouter()

router.register(r"patients", PatientViewSet, basename="patients")
router.register(r"appointments", AppointmentViewSet, basename="appointments")
router.register(r"inventory/items", InventoryItemViewSet, basename="inventory-items")
router.register(r"prescriptions", PrescriptionViewSet, basename="prescriptions")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    # Auth (JWT) + /me
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("auth/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("me/", MeView.as_view(), name="me"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
