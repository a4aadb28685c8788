from rest_framework import serializers

from cr_core.encounters.models import Encounter, EncounterType


class EncounterSerializer(serializers.ModelSerializer):
    provider_id = serializers.IntegerField(read_only=True)
    patient_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Encounter
        fields = [
            "id",
            "tenant_id",
            "provider_id",
            "patient_id",
            "encounter_type",
            "started_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class EncounterCreateSerializer(serializers.Serializer):
    patient_id = serializers.IntegerField()
    provider_id = serializers.IntegerField(required=False, allow_null=True)
    encounter_type = serializers.ChoiceField(choices=EncounterType.choices, default=EncounterType.CONSULTATION)
    started_at = serializers.DateTimeField(required=False, allow_null=True)
