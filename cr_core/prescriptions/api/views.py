# backend/cr_core/prescriptions/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from cr_core.common.api.exceptions import Forbidden
from cr_core.common.api.pagination import paginate
from cr_core.iam.api.permissions import ClinicalPermission, get_actor
from cr_core.iam.permissions import Permission
from cr_core.iam.scope import require_scope
from cr_core.prescriptions.api.serializers import (
    ExpireResponseSerializer,
    OwnPrescriptionQuerySerializer,
    PrescriptionCancelSerializer,
    PrescriptionCreateResponseSerializer,
    PrescriptionCreateSerializer,
    PrescriptionListQuerySerializer,
    PrescriptionSerializer,
    PrescriptionStatusSerializer,
    PrescriptionUpdateSerializer,
)
from cr_core.prescriptions.models import Prescription
from cr_core.prescriptions.services import PrescriptionService


class PrescriptionViewSet(viewsets.ViewSet):
    permission_classes = [ClinicalPermission]
    required_permissions = {
        "list": Permission.MEDICATION_READ,
        "retrieve": Permission.MEDICATION_READ,
        "create": Permission.MEDICATION_CREATE,
        "partial_update": Permission.MEDICATION_UPDATE,
        "set_status": Permission.MEDICATION_UPDATE,
        "cancel": Permission.MEDICATION_UPDATE,
        "expire": Permission.MEDICATION_UPDATE,
    }
    approved_provider_actions = {"create", "partial_update", "set_status", "cancel"}
    patient_self_actions = {"mine", "mine_detail"}
    serializer_class = PrescriptionSerializer
    queryset = Prescription.objects.none()

    @extend_schema(
        tags=["Prescriptions"],
        parameters=[PrescriptionListQuerySerializer],
        responses={200: PrescriptionSerializer(many=True)},
    )
    def list(self, request):
        tenant_id = require_scope(request)

        q = PrescriptionListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)

        qs = PrescriptionService.list_prescriptions(
            actor=get_actor(request),
            tenant_id=tenant_id,
            status=q.validated_data.get("status"),
            patient_id=q.validated_data.get("patient_id"),
            prescribed_from=q.validated_data.get("prescribed_from"),
            prescribed_to=q.validated_data.get("prescribed_to"),
            request=request,
        )
        return paginate(request, qs, PrescriptionSerializer)

    @extend_schema(tags=["Prescriptions"], responses={200: PrescriptionSerializer})
    def retrieve(self, request, pk=None):
        tenant_id = require_scope(request)
        rx = PrescriptionService.get_prescription(
            actor=get_actor(request),
            tenant_id=tenant_id,
            prescription_id=pk,
            request=request,
        )
        return Response(PrescriptionSerializer(rx).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Prescriptions"],
        request=PrescriptionCreateSerializer,
        responses={201: PrescriptionCreateResponseSerializer},
    )
    def create(self, request):
        tenant_id = require_scope(request)

        ser = PrescriptionCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        rx, warnings = PrescriptionService.create(
            actor=get_actor(request),
            tenant_id=tenant_id,
            patient_id=data.pop("patient_id"),
            provider_id=data.pop("provider_id", None),
            status=data.pop("status"),
            data=data,
            request=request,
        )

        body = PrescriptionSerializer(rx).data
        body["warnings"] = warnings
        return Response(body, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Prescriptions"],
        request=PrescriptionUpdateSerializer,
        responses={200: PrescriptionSerializer},
    )
    def partial_update(self, request, pk=None):
        tenant_id = require_scope(request)

        ser = PrescriptionUpdateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        rx = PrescriptionService.update(
            actor=get_actor(request),
            tenant_id=tenant_id,
            prescription_id=pk,
            changes=dict(ser.validated_data),
            request=request,
        )
        return Response(PrescriptionSerializer(rx).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Prescriptions"],
        request=PrescriptionStatusSerializer,
        responses={200: PrescriptionSerializer},
    )
    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        tenant_id = require_scope(request)

        ser = PrescriptionStatusSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        rx = PrescriptionService.update_status(
            actor=get_actor(request),
            tenant_id=tenant_id,
            prescription_id=pk,
            status=ser.validated_data["status"],
            request=request,
        )
        return Response(PrescriptionSerializer(rx).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Prescriptions"],
        request=PrescriptionCancelSerializer,
        responses={200: PrescriptionSerializer},
    )
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        tenant_id = require_scope(request)

        ser = PrescriptionCancelSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        rx, _ = PrescriptionService.cancel(
            actor=get_actor(request),
            tenant_id=tenant_id,
            prescription_id=pk,
            reason=ser.validated_data["reason"],
            request=request,
        )
        return Response(PrescriptionSerializer(rx).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Prescriptions"], request=None, responses={200: ExpireResponseSerializer})
    @action(detail=False, methods=["post"], url_path="expire")
    def expire(self, request):
        tenant_id = require_scope(request)
        actor = get_actor(request)
        if not (actor.is_admin or actor.is_clerk):
            raise Forbidden("Insufficient permissions")

        updated = PrescriptionService.expire_prescriptions(tenant_id=tenant_id, actor=actor, request=request)
        return Response({"updated_count": updated}, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Prescriptions"],
        parameters=[OwnPrescriptionQuerySerializer],
        responses={200: PrescriptionSerializer(many=True)},
    )
    @action(detail=False, methods=["get"], url_path="mine")
    def mine(self, request):
        """Patient self-view of their own prescriptions."""
        tenant_id = require_scope(request)

        q = OwnPrescriptionQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)

        qs = PrescriptionService.list_own(
            actor=get_actor(request),
            tenant_id=tenant_id,
            status=q.validated_data.get("status"),
            request=request,
        )
        return paginate(request, qs, PrescriptionSerializer)

    @extend_schema(tags=["Prescriptions"], responses={200: PrescriptionSerializer})
    @action(detail=False, methods=["get"], url_path=r"mine/(?P<rx_id>[^/.]+)")
    def mine_detail(self, request, rx_id=None):
        tenant_id = require_scope(request)
        rx = PrescriptionService.get_own(
            actor=get_actor(request),
            tenant_id=tenant_id,
            prescription_id=rx_id,
            request=request,
        )
        return Response(PrescriptionSerializer(rx).data, status=status.HTTP_200_OK)
