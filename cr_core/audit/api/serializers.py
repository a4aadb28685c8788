# backend/cr_core/audit/api/serializers.py
from rest_framework import serializers

from cr_core.audit.models import AuditEvent


class AuditEventSerializer(serializers.ModelSerializer):
    # API name "timestamp" maps to the model field "occurred_at"
    timestamp = serializers.DateTimeField(source="occurred_at", read_only=True)
    actor_id = serializers.IntegerField(source="actor_user_id", read_only=True)

    class Meta:
        model = AuditEvent
        fields = [
            "id",
            "tenant_id",
            "entity_type",
            "entity_id",
            "action",
            "actor_id",
            "actor_role",
            "source",
            "ip_address",
            "timestamp",
            "metadata",
        ]
        read_only_fields = fields
