# backend/cr_core/progress_notes/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from cr_core.common.api.pagination import paginate
from cr_core.iam.api.permissions import ClinicalPermission, get_actor
from cr_core.iam.permissions import Permission
from cr_core.iam.scope import require_scope
from cr_core.progress_notes.api.serializers import (
    ProgressNoteAmendSerializer,
    ProgressNoteCreateSerializer,
    ProgressNoteFinalizeSerializer,
    ProgressNoteListQuerySerializer,
    ProgressNoteSerializer,
    ProgressNoteUpdateSerializer,
)
from cr_core.progress_notes.models import SOAP_FIELDS, ProgressNote
from cr_core.progress_notes.services import ProgressNoteService


def _fields(data: dict) -> dict:
    return {k: data[k] for k in SOAP_FIELDS if k in data}


class ProgressNoteViewSet(viewsets.ViewSet):
    permission_classes = [ClinicalPermission]
    required_permissions = {
        "list": Permission.PROGRESS_NOTE_READ,
        "retrieve": Permission.PROGRESS_NOTE_READ,
        "create": Permission.PROGRESS_NOTE_CREATE,
        "partial_update": Permission.PROGRESS_NOTE_UPDATE,
        "finalize": Permission.PROGRESS_NOTE_FINALIZE,
        "amend": Permission.PROGRESS_NOTE_AMEND,
    }
    approved_provider_actions = {"finalize", "amend"}
    serializer_class = ProgressNoteSerializer
    queryset = ProgressNote.objects.none()

    @extend_schema(
        tags=["Progress Notes"],
        parameters=[ProgressNoteListQuerySerializer],
        responses={200: ProgressNoteSerializer(many=True)},
    )
    def list(self, request):
        tenant_id = require_scope(request)

        q = ProgressNoteListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)

        qs = ProgressNoteService.list_notes(
            actor=get_actor(request),
            tenant_id=tenant_id,
            patient_id=q.validated_data.get("patient_id"),
            encounter_id=q.validated_data.get("encounter_id"),
            author_id=q.validated_data.get("author_id"),
            status=q.validated_data.get("status"),
            keywords=q.validated_data.get("keywords"),
            request=request,
        )
        return paginate(request, qs, ProgressNoteSerializer)

    @extend_schema(tags=["Progress Notes"], responses={200: ProgressNoteSerializer})
    def retrieve(self, request, pk=None):
        tenant_id = require_scope(request)
        note = ProgressNoteService.get_note(
            actor=get_actor(request),
            tenant_id=tenant_id,
            note_id=pk,
            request=request,
        )
        return Response(ProgressNoteSerializer(note).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Progress Notes"], request=ProgressNoteCreateSerializer, responses={201: ProgressNoteSerializer})
    def create(self, request):
        tenant_id = require_scope(request)

        ser = ProgressNoteCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        note = ProgressNoteService.create_draft(
            actor=get_actor(request),
            tenant_id=tenant_id,
            encounter_id=data["encounter_id"],
            patient_id=data["patient_id"],
            fields=_fields(data),
            attachments=data.get("attachments"),
            request=request,
        )
        return Response(ProgressNoteSerializer(note).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Progress Notes"],
        request=ProgressNoteUpdateSerializer,
        responses={200: ProgressNoteSerializer},
    )
    def partial_update(self, request, pk=None):
        tenant_id = require_scope(request)

        ser = ProgressNoteUpdateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        note = ProgressNoteService.update_draft(
            actor=get_actor(request),
            tenant_id=tenant_id,
            note_id=pk,
            fields=_fields(data),
            attachments=data.get("attachments"),
            expected_version=data.get("expected_version"),
            request=request,
        )
        return Response(ProgressNoteSerializer(note).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Progress Notes"],
        request=ProgressNoteFinalizeSerializer,
        responses={200: ProgressNoteSerializer},
    )
    @action(detail=True, methods=["post"], url_path="finalize")
    def finalize(self, request, pk=None):
        tenant_id = require_scope(request)

        ser = ProgressNoteFinalizeSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        note = ProgressNoteService.finalize(
            actor=get_actor(request),
            tenant_id=tenant_id,
            note_id=pk,
            signature_hash=data["signature_hash"],
            finalized_at=data.get("finalized_at"),
            expected_version=data.get("expected_version"),
            request=request,
        )
        return Response(ProgressNoteSerializer(note).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Progress Notes"],
        request=ProgressNoteAmendSerializer,
        responses={201: ProgressNoteSerializer},
    )
    @action(detail=True, methods=["post"], url_path="amend")
    def amend(self, request, pk=None):
        tenant_id = require_scope(request)

        ser = ProgressNoteAmendSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        amendment = ProgressNoteService.amend(
            actor=get_actor(request),
            tenant_id=tenant_id,
            original_id=pk,
            reason=data["reason"],
            fields=_fields(data),
            attachments=data.get("attachments"),
            request=request,
        )
        return Response(ProgressNoteSerializer(amendment).data, status=status.HTTP_201_CREATED)
