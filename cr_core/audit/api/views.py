# backend/cr_core/audit/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from cr_core.audit.api.serializers import AuditEventSerializer
from cr_core.audit.models import AuditAction, AuditEvent
from cr_core.audit.selectors import clamp_limit, list_audit_events
from cr_core.common.api.exceptions import Forbidden
from cr_core.iam.api.permissions import get_actor
from cr_core.iam.scope import require_scope


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    Read-only ledger query (admin only, tenant scoped).
    No write, update or delete route.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter("entity_type", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("entity_id", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("action", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False, enum=AuditAction.values),
            OpenApiParameter("actor_id", OpenApiTypes.INT, OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                "limit",
                OpenApiTypes.INT,
                OpenApiParameter.QUERY,
                required=False,
                description="Max records to return (default 200, max 500).",
            ),
        ],
    )
    def list(self, request):
        tenant_id = require_scope(request)
        actor = get_actor(request)
        if actor is None or not actor.is_admin:
            raise Forbidden("Insufficient permissions")

        params = request.query_params

        action_q = params.get("action") or None
        if action_q and action_q not in AuditAction.values:
            raise ValidationError({"action": [f"Must be one of {AuditAction.values}"]})

        actor_raw = params.get("actor_id")
        actor_user_id = None
        if actor_raw not in (None, ""):
            try:
                actor_user_id = int(actor_raw)
            except ValueError:
                raise ValidationError({"actor_id": ["Invalid actor_id (int expected)"]})

        qs = list_audit_events(
            tenant_id=tenant_id,
            entity_type=params.get("entity_type") or None,
            entity_id=params.get("entity_id") or None,
            action=action_q,
            actor_user_id=actor_user_id,
            limit=clamp_limit(params.get("limit")),
        )
        return Response(AuditEventSerializer(qs, many=True).data, status=status.HTTP_200_OK)
