# backend/cr_core/encounters/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from cr_core.audit.models import AuditAction
from cr_core.audit.services import AuditService
from cr_core.common.api.pagination import paginate
from cr_core.encounters.api.serializers import EncounterCreateSerializer, EncounterSerializer
from cr_core.encounters.models import Encounter
from cr_core.encounters.selectors import EncounterSelectors
from cr_core.encounters.services import EncounterService
from cr_core.iam.api.permissions import ClinicalPermission, get_actor
from cr_core.iam.permissions import Permission
from cr_core.iam.scope import require_scope


def _parse_int(value, field_name: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError({field_name: ["Invalid id (int expected)"]})


class EncounterViewSet(viewsets.ViewSet):
    permission_classes = [ClinicalPermission]
    required_permissions = {
        "list": Permission.ENCOUNTER_READ,
        "retrieve": Permission.ENCOUNTER_READ,
        "create": Permission.ENCOUNTER_CREATE,
    }
    approved_provider_actions = {"create"}
    serializer_class = EncounterSerializer
    queryset = Encounter.objects.none()

    @extend_schema(
        tags=["Encounters"],
        parameters=[
            OpenApiParameter("patient_id", OpenApiTypes.INT, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("encounter_type", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: EncounterSerializer(many=True)},
    )
    def list(self, request):
        tenant_id = require_scope(request)
        qs = EncounterSelectors.list_encounters(
            tenant_id=tenant_id,
            actor=get_actor(request),
            patient_id=_parse_int(request.query_params.get("patient_id"), "patient_id"),
            encounter_type=request.query_params.get("encounter_type") or None,
        )
        return paginate(request, qs, EncounterSerializer)

    @extend_schema(tags=["Encounters"], responses={200: EncounterSerializer})
    def retrieve(self, request, pk=None):
        tenant_id = require_scope(request)
        actor = get_actor(request)
        enc = EncounterSelectors.get_encounter(tenant_id=tenant_id, actor=actor, encounter_id=pk)

        AuditService.record(
            action=AuditAction.VIEW,
            entity_type="encounter",
            entity_id=enc.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata={"patient_id": enc.patient_id, "provider_id": enc.provider_id},
        )
        return Response(EncounterSerializer(enc).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Encounters"], request=EncounterCreateSerializer, responses={201: EncounterSerializer})
    def create(self, request):
        tenant_id = require_scope(request)

        ser = EncounterCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        enc = EncounterService.create(
            actor=get_actor(request),
            tenant_id=tenant_id,
            patient_id=ser.validated_data["patient_id"],
            provider_id=ser.validated_data.get("provider_id"),
            encounter_type=ser.validated_data["encounter_type"],
            started_at=ser.validated_data.get("started_at"),
            request=request,
        )
        return Response(EncounterSerializer(enc).data, status=status.HTTP_201_CREATED)
