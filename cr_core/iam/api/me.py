# backend/cr_core/iam/api/me.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from cr_core.iam.api.permissions import get_actor
from cr_core.iam.api.serializers import MeResponseSerializer
from cr_core.iam.guard import is_approved_provider
from cr_core.iam.permissions import permissions_for
from cr_core.iam.scope import apply_scope_from_headers


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["IAM"], responses={200: MeResponseSerializer})
    def get(self, request):
        """
        Returns the caller, its role and effective permissions.
        The tenant header is OPTIONAL here; if sent it must be valid and the
        user must belong to that tenant (400/403 otherwise).
        """
        apply_scope_from_headers(request, user=request.user)

        actor = get_actor(request)
        user = request.user

        return Response(
            {
                "user": {
                    "id": user.id,
                    "username": getattr(user, "username", "") or "",
                    "email": getattr(user, "email", "") or "",
                    "is_superuser": bool(getattr(user, "is_superuser", False)),
                },
                "role": actor.role if actor else None,
                "tenant_id": str(actor.tenant_id) if actor and actor.tenant_id else None,
                "provider_approval_status": actor.provider_approval_status if actor else None,
                "is_approved_provider": is_approved_provider(actor),
                "permissions": permissions_for(actor.role if actor else None),
            },
            status=status.HTTP_200_OK,
        )
