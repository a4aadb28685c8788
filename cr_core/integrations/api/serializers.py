from rest_framework import serializers

from cr_core.integrations.models import IntegrationError, IntegrationErrorStatus
from cr_core.integrations.services import MAX_BATCH_LIMIT


class IntegrationErrorSerializer(serializers.ModelSerializer):
    class Meta:
        model = IntegrationError
        fields = [
            "id",
            "tenant_id",
            "patient",
            "order_id",
            "entity_type",
            "source",
            "payload",
            "error_message",
            "retry_count",
            "status",
            "next_retry_at",
            "last_tried_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class IntegrationErrorListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=IntegrationErrorStatus.choices, required=False)
    patient_id = serializers.IntegerField(required=False, min_value=1)


class RetryRequestSerializer(serializers.Serializer):
    patient_id = serializers.IntegerField(min_value=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=MAX_BATCH_LIMIT)


class RetryOutcomeSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    status = serializers.CharField()
    retry_count = serializers.IntegerField()
    next_retry_at = serializers.DateTimeField(allow_null=True, required=False)
    error = serializers.CharField(allow_null=True, required=False)


class RetrySummarySerializer(serializers.Serializer):
    processed = serializers.IntegerField()
    resolved = serializers.IntegerField()
    failed = serializers.IntegerField()
    details = RetryOutcomeSerializer(many=True)
