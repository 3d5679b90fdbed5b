# hc_core/common/principal.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Set

from django.contrib.auth import get_user_model

# Group/role names (Django auth Group names)
ROLE_ADMIN = "ADMIN"
ROLE_DOCTOR = "DOCTOR"
ROLE_PATIENT = "PATIENT"

ALL_ROLES = [ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT]


@dataclass(frozen=True)
class Principal:
    """
    The authenticated caller as seen by the core: an id and one role.
    """
    id: int
    role: str

    @property
    def is_doctor(self) -> bool:
        return self.role in {ROLE_DOCTOR, ROLE_ADMIN}

    @property
    def is_patient(self) -> bool:
        return self.role == ROLE_PATIENT


def user_roles(user) -> Set[str]:
    """
    Resolve roles from:
    1) superuser flag (treated as ADMIN)
    2) Django groups: user.groups
    3) Optional user.role attribute
    """
    roles: Set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    if getattr(user, "is_superuser", False):
        roles.add(ROLE_ADMIN)
        return roles

    if hasattr(user, "groups"):
        roles.update(user.groups.values_list("name", flat=True))

    if getattr(user, "role", None):
        roles.add(str(user.role))

    return roles


def principal_for(user) -> Principal | None:
    """
    Collapse a user's roles into a single principal role.
    ADMIN wins over DOCTOR, DOCTOR over PATIENT.
    """
    roles = user_roles(user)
    for role in (ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT):
        if role in roles:
            return Principal(id=user.id, role=role)
    return None


def is_practitioner(user_id) -> bool:
    """
    True for an active account in the DOCTOR group. Bookings and patient
    assignments only ever point at such users.
    """
    if user_id is None:
        return False
    return get_user_model().objects.filter(id=user_id, is_active=True, groups__name=ROLE_DOCTOR).exists()
