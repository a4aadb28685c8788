# backend/cr_core/integrations/api/views.py
from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import APIException
from rest_framework.response import Response

from cr_core.common.api.pagination import paginate
from cr_core.iam.api.permissions import ClinicalPermission, get_actor
from cr_core.iam.guard import ensure_patient_access
from cr_core.iam.permissions import Permission
from cr_core.iam.scope import require_scope
from cr_core.integrations.api.serializers import (
    IntegrationErrorListQuerySerializer,
    IntegrationErrorSerializer,
    RetryRequestSerializer,
    RetrySummarySerializer,
)
from cr_core.integrations.models import IntegrationError
from cr_core.integrations.selectors import IntegrationErrorSelectors
from cr_core.integrations.services import load_processor, run_retry_sweep


class RetryProcessorUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Integration retry processor is not configured."
    default_code = "service_unavailable"


class IntegrationErrorViewSet(viewsets.GenericViewSet):
    permission_classes = [ClinicalPermission]
    required_permissions = {
        "list": Permission.INVESTIGATION_READ,
        "retry": Permission.INVESTIGATION_CREATE,
    }
    approved_provider_actions = {"retry"}
    serializer_class = IntegrationErrorSerializer
    queryset = IntegrationError.objects.none()

    @extend_schema(
        tags=["Integrations"],
        parameters=[IntegrationErrorListQuerySerializer],
        responses={200: IntegrationErrorSerializer(many=True)},
    )
    def list(self, request):
        tenant_id = require_scope(request)

        q = IntegrationErrorListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)

        qs = IntegrationErrorSelectors.list_errors(
            tenant_id=tenant_id,
            actor=get_actor(request),
            status=q.validated_data.get("status"),
            patient_id=q.validated_data.get("patient_id"),
        )
        return paginate(request, qs, IntegrationErrorSerializer)

    @extend_schema(tags=["Integrations"], request=RetryRequestSerializer, responses={200: RetrySummarySerializer})
    @action(detail=False, methods=["post"], url_path="retry")
    def retry(self, request):
        tenant_id = require_scope(request)
        actor = get_actor(request)

        ser = RetryRequestSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        patient_id = ser.validated_data["patient_id"]

        ensure_patient_access(actor, patient_id, tenant_id=tenant_id)

        try:
            processor = load_processor()
        except ImproperlyConfigured as exc:
            raise RetryProcessorUnavailable(str(exc)) from exc

        summary = run_retry_sweep(
            processor=processor,
            tenant_id=tenant_id,
            patient_id=patient_id,
            limit=ser.validated_data.get("limit"),
            actor=actor,
            request=request,
        )
        return Response(summary.as_dict(), status=status.HTTP_200_OK)
