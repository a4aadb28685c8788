# backend/cr_core/progress_notes/api/serializers.py
from rest_framework import serializers

from cr_core.progress_notes.models import NoteStatus, ProgressNote


class AttachmentMetaSerializer(serializers.Serializer):
    """Attachment metadata only; the file itself lives in external storage."""
    url = serializers.CharField(min_length=1)
    filename = serializers.CharField(required=False)
    mime_type = serializers.CharField(required=False)
    size = serializers.IntegerField(required=False, min_value=0)
    checksum = serializers.CharField(required=False)
    source = serializers.CharField(required=False)
    retention_tag = serializers.CharField(required=False)


class ProgressNoteSerializer(serializers.ModelSerializer):
    encounter_id = serializers.UUIDField(read_only=True)
    patient_id = serializers.IntegerField(read_only=True)
    author_id = serializers.IntegerField(read_only=True)
    original_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = ProgressNote
        fields = [
            "id",
            "tenant_id",
            "encounter_id",
            "patient_id",
            "author_id",
            "status",
            "subjective",
            "objective",
            "assessment",
            "plan",
            "summary",
            "attachments",
            "autosaved_at",
            "finalized_at",
            "signature_hash",
            "original_id",
            "amendment_reason",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class SoapFieldsSerializer(serializers.Serializer):
    subjective = serializers.CharField(required=False, allow_blank=True)
    objective = serializers.CharField(required=False, allow_blank=True)
    assessment = serializers.CharField(required=False, allow_blank=True)
    plan = serializers.CharField(required=False, allow_blank=True)
    summary = serializers.CharField(required=False, allow_blank=True)
    attachments = AttachmentMetaSerializer(many=True, required=False)


class ProgressNoteCreateSerializer(SoapFieldsSerializer):
    encounter_id = serializers.UUIDField()
    patient_id = serializers.IntegerField()


class ProgressNoteUpdateSerializer(SoapFieldsSerializer):
    expected_version = serializers.IntegerField(required=False, min_value=1)


class ProgressNoteFinalizeSerializer(serializers.Serializer):
    signature_hash = serializers.CharField(min_length=16)
    finalized_at = serializers.DateTimeField(required=False)
    expected_version = serializers.IntegerField(required=False, min_value=1)


class ProgressNoteAmendSerializer(SoapFieldsSerializer):
    reason = serializers.CharField()


class ProgressNoteListQuerySerializer(serializers.Serializer):
    patient_id = serializers.IntegerField(required=False)
    encounter_id = serializers.UUIDField(required=False)
    author_id = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=NoteStatus.choices, required=False)
    keywords = serializers.CharField(required=False, allow_blank=True)
