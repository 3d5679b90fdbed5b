# hc_core/common/errors.py
"""
Typed domain errors for the clinical operations core.

They subclass DRF's APIException so that a service error raised deep inside a
view still renders through the global error envelope with a stable `code`.
Structured context goes into `details`.
"""
from __future__ import annotations

from typing import Any

from rest_framework import status
from rest_framework.exceptions import APIException


class ClinicError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed."
    default_code = "clinic_error"

    def __init__(self, detail: str | None = None, *, details: dict[str, Any] | None = None):
        super().__init__(detail=detail or self.default_detail, code=self.default_code)
        self.details = details or {}


class AllocationExhausted(ClinicError):
    """Identifier retry budget exceeded. Surfaced as server-busy."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Server busy, could not allocate an identifier. Please retry."
    default_code = "allocation_exhausted"


class SlotTaken(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This time slot is already booked."
    default_code = "slot_taken"


class InsufficientStock(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "insufficient_stock"

    def __init__(self, item_name: str, available: int, requested: int):
        self.item_name = item_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient quantity for {item_name}. Available: {available}, Required: {requested}",
            details={"item_name": item_name, "available": available, "requested": requested},
        )


class PatientNotFound(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Patient not found."
    default_code = "patient_not_found"


class ItemNotFound(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Inventory item not found."
    default_code = "item_not_found"


class AppointmentNotFound(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Appointment not found."
    default_code = "appointment_not_found"


class PrescriptionNotFound(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Prescription not found."
    default_code = "prescription_not_found"


class UnauthorizedOwner(ClinicError):
    """The acting practitioner does not own the referenced record."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied."
    default_code = "unauthorized_owner"


class InvalidTransition(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Status transition not allowed."
    default_code = "invalid_transition"


class MergeAlreadyRunning(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Duplicate patient resolution is already running."
    default_code = "merge_already_running"
