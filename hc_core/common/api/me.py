# hc_core/common/api/me.py
from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from hc_core.common.principal import principal_for


class MeView(APIView):
    """
    The authenticated principal as the clinical core sees it.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        principal = principal_for(request.user)
        patient_profile = getattr(request.user, "patient_profile", None)

        return Response(
            {
                "user": {
                    "id": request.user.id,
                    "username": request.user.get_username(),
                    "email": getattr(request.user, "email", None),
                    "name": request.user.get_full_name(),
                },
                "role": principal.role if principal else None,
                "patient_id": str(patient_profile.id) if patient_profile else None,
            },
            status=status.HTTP_200_OK,
        )
