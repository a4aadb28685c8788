# backend/cr_core/iam/api/links.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from cr_core.common.api.pagination import paginate
from cr_core.iam.api.permissions import get_actor
from cr_core.iam.api.serializers import (
    LinkRequestSerializer,
    OrphanReportSerializer,
    ProviderPatientLinkSerializer,
)
from cr_core.iam.models import LinkStatus, ProviderPatientLink
from cr_core.iam.scope import require_scope
from cr_core.iam.selectors import list_links
from cr_core.iam.services.links import LinkService


def _parse_bool(v) -> bool:
    if v is None:
        return False
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


class ProviderPatientLinkViewSet(viewsets.GenericViewSet):
    """
    Links are managed by the two parties themselves, so this view only needs
    an authenticated caller; the service decides who may do what.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = ProviderPatientLinkSerializer
    queryset = ProviderPatientLink.objects.none()

    @extend_schema(
        tags=["IAM"],
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False, enum=LinkStatus.values),
        ],
        responses={200: ProviderPatientLinkSerializer(many=True)},
    )
    def list(self, request):
        tenant_id = require_scope(request)
        status_q = request.query_params.get("status") or None
        if status_q and status_q not in LinkStatus.values:
            raise ValidationError({"status": [f"Must be one of {LinkStatus.values}"]})

        qs = list_links(tenant_id=tenant_id, actor=get_actor(request), status=status_q)
        return paginate(request, qs, ProviderPatientLinkSerializer)

    @extend_schema(
        tags=["IAM"],
        request=LinkRequestSerializer,
        responses={201: ProviderPatientLinkSerializer, 200: ProviderPatientLinkSerializer},
    )
    def create(self, request):
        tenant_id = require_scope(request)
        actor = get_actor(request)

        ser = LinkRequestSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        provider_id = data.get("provider_id")
        patient_id = data.get("patient_id")
        if actor is not None and actor.is_provider and provider_id is None:
            provider_id = actor.user_id
        if actor is not None and actor.is_patient and patient_id is None:
            patient_id = actor.user_id
        if provider_id is None or patient_id is None:
            raise ValidationError({"detail": "provider_id and patient_id are required"})

        link, created = LinkService.request_link(
            actor=actor,
            tenant_id=tenant_id,
            provider_id=provider_id,
            patient_id=patient_id,
            treatment_type=data.get("treatment_type") or "consultation",
            message=data.get("message") or "",
            request=request,
        )
        return Response(
            ProviderPatientLinkSerializer(link).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @extend_schema(tags=["IAM"], request=None, responses={200: ProviderPatientLinkSerializer})
    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        tenant_id = require_scope(request)
        link, _ = LinkService.approve_link(
            actor=get_actor(request),
            tenant_id=tenant_id,
            link_id=pk,
            request=request,
        )
        return Response(ProviderPatientLinkSerializer(link).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["IAM"],
        parameters=[
            OpenApiParameter("days", OpenApiTypes.INT, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("auto_fix", OpenApiTypes.BOOL, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: OrphanReportSerializer},
    )
    @action(detail=False, methods=["get"], url_path="orphans")
    def orphans(self, request):
        tenant_id = require_scope(request)

        try:
            days = int(request.query_params.get("days") or 30)
        except ValueError:
            raise ValidationError({"days": ["Invalid days (int expected)"]})

        report = LinkService.reconcile_orphan_encounters(
            actor=get_actor(request),
            tenant_id=tenant_id,
            days=days,
            auto_fix=_parse_bool(request.query_params.get("auto_fix")),
            request=request,
        )
        return Response(report, status=status.HTTP_200_OK)
