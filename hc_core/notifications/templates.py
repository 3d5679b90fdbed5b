# hc_core/notifications/templates.py
"""
Subject/body format strings per notification kind.
Payload keys are documented next to each entry.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class MessageTemplate:
    subject: str
    body: str


APPOINTMENT_APPROVED = "appointment_approved"
APPOINTMENT_REJECTED = "appointment_rejected"
APPOINTMENT_COMPLETED = "appointment_completed"
APPOINTMENT_CANCELLED = "appointment_cancelled"
PRESCRIPTION_ISSUED = "prescription_issued"
STOCK_ALERT = "stock_alert"


TEMPLATES: dict[str, MessageTemplate] = {
    # patient_name, practitioner_name, date, slot_label
    APPOINTMENT_APPROVED: MessageTemplate(
        subject="Your appointment on {date} is confirmed",
        body=(
            "Dear {patient_name},\n\n"
            "Your appointment with {practitioner_name} on {date} at {slot_label} has been approved.\n"
        ),
    ),
    # patient_name, practitioner_name, date, slot_label, reason
    APPOINTMENT_REJECTED: MessageTemplate(
        subject="Your appointment request for {date} was declined",
        body=(
            "Dear {patient_name},\n\n"
            "{practitioner_name} could not accept your appointment on {date} at {slot_label}.\n"
            "Reason: {reason}\n"
        ),
    ),
    # patient_name, practitioner_name, date
    APPOINTMENT_COMPLETED: MessageTemplate(
        subject="Thank you for visiting on {date}",
        body="Dear {patient_name},\n\nYour appointment with {practitioner_name} on {date} is complete.\n",
    ),
    # patient_name, practitioner_name, date, slot_label, reason
    APPOINTMENT_CANCELLED: MessageTemplate(
        subject="Appointment on {date} cancelled",
        body=(
            "The appointment of {patient_name} on {date} at {slot_label} was cancelled.\n"
            "Reason: {reason}\n"
        ),
    ),
    # patient_name, prescription_number, practitioner_name, diagnosis, follow_up_date, medicines
    PRESCRIPTION_ISSUED: MessageTemplate(
        subject="Prescription {prescription_number}",
        body=(
            "Dear {patient_name},\n\n"
            "{practitioner_name} issued prescription {prescription_number}.\n"
            "Diagnosis: {diagnosis}\n"
            "Medicines:\n{medicines}\n"
            "Follow-up: {follow_up_date}\n"
        ),
    ),
    # owner_name, low_stock, expiring, critical
    STOCK_ALERT: MessageTemplate(
        subject="{critical}Inventory alert: {low_stock_count} low stock, {expiring_count} expiring",
        body=(
            "Hello {owner_name},\n\n"
            "Low stock:\n{low_stock}\n\n"
            "Expiring soon:\n{expiring}\n"
        ),
    ),
}


class _Blank(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render(template_kind: str, payload: Mapping[str, Any]) -> tuple[str, str]:
    """
    Returns (subject, body). Unknown kinds raise KeyError; missing payload keys render empty.
    """
    template = TEMPLATES[template_kind]
    values = _Blank({k: ("" if v is None else v) for k, v in payload.items()})
    return template.subject.format_map(values), template.body.format_map(values)
