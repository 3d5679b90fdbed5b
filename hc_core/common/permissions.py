# hc_core/common/permissions.py

from __future__ import annotations

from rest_framework.permissions import BasePermission

from hc_core.common.principal import ROLE_ADMIN, principal_for


class ActionRolePermission(BasePermission):
    """
    Action-based role policy for ViewSets.

    The view declares `action_roles = {"create": {"DOCTOR"}, ...}`.
    - ADMIN: everything
    - actions listed in action_roles: caller's principal role must be in the set
    - actions not listed: any caller with a clinic role
    Ownership of individual records is NOT decided here; services enforce it
    (UnauthorizedOwner) because it is domain data.
    """

    message = "You do not have permission to perform this action."

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False

        principal = principal_for(user)
        if principal is None:
            return False

        if principal.role == ROLE_ADMIN:
            return True

        action = getattr(view, "action", None)
        allowed = getattr(view, "action_roles", {}).get(action)
        if allowed is None:
            return True
        return principal.role in allowed
