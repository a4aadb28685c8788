# backend/cr_core/iam/api/serializers.py
from rest_framework import serializers

from cr_core.iam.models import ProviderPatientLink


class ProviderPatientLinkSerializer(serializers.ModelSerializer):
    provider_id = serializers.IntegerField(read_only=True)
    patient_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = ProviderPatientLink
        fields = [
            "id",
            "tenant_id",
            "provider_id",
            "patient_id",
            "treatment_type",
            "status",
            "request_message",
            "approved_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class LinkRequestSerializer(serializers.Serializer):
    # Omitted ids default to the caller's own side of the link.
    provider_id = serializers.IntegerField(required=False)
    patient_id = serializers.IntegerField(required=False)
    treatment_type = serializers.CharField(max_length=64, required=False, default="consultation")
    message = serializers.CharField(required=False, allow_blank=True, default="")


class OrphanItemSerializer(serializers.Serializer):
    patient_id = serializers.IntegerField()
    created = serializers.BooleanField(required=False)
    updated = serializers.BooleanField(required=False)


class OrphanReportSerializer(serializers.Serializer):
    days = serializers.IntegerField()
    auto_fix = serializers.BooleanField()
    orphan_count = serializers.IntegerField()
    created_count = serializers.IntegerField()
    updated_count = serializers.IntegerField()
    orphans = OrphanItemSerializer(many=True)


class MeUserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField()
    email = serializers.CharField(allow_blank=True)
    is_superuser = serializers.BooleanField()


class MeResponseSerializer(serializers.Serializer):
    user = MeUserSerializer()
    role = serializers.CharField(allow_null=True)
    tenant_id = serializers.UUIDField(allow_null=True)
    provider_approval_status = serializers.CharField(allow_null=True)
    is_approved_provider = serializers.BooleanField()
    permissions = serializers.ListField(child=serializers.CharField())
