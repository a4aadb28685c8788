# backend/cr_core/prescriptions/api/serializers.py
from rest_framework import serializers

from cr_core.prescriptions.models import Prescription, PrescriptionStatus


class PrescriptionSerializer(serializers.ModelSerializer):
    patient_id = serializers.IntegerField(read_only=True)
    provider_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Prescription
        fields = [
            "id",
            "tenant_id",
            "patient_id",
            "provider_id",
            "appointment_id",
            "medication_name",
            "dosage",
            "frequency",
            "duration",
            "quantity",
            "refills",
            "instructions",
            "status",
            "prescribed_date",
            "start_date",
            "end_date",
            "notes",
            "pharmacy",
            "pharmacy_phone",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PrescriptionCreateResponseSerializer(PrescriptionSerializer):
    warnings = serializers.ListField(child=serializers.CharField(), read_only=True)

    class Meta(PrescriptionSerializer.Meta):
        fields = PrescriptionSerializer.Meta.fields + ["warnings"]
        read_only_fields = fields


class PrescriptionCreateSerializer(serializers.Serializer):
    patient_id = serializers.IntegerField()
    provider_id = serializers.IntegerField(required=False)
    appointment_id = serializers.UUIDField(required=False)

    medication_name = serializers.CharField(max_length=255)
    # Format and safety caps are checked by the service.
    dosage = serializers.CharField(max_length=32)
    frequency = serializers.CharField(max_length=128)
    duration = serializers.CharField(max_length=128)
    quantity = serializers.IntegerField(min_value=1, max_value=10000, default=1)
    refills = serializers.IntegerField(min_value=0, max_value=12, default=0)
    instructions = serializers.CharField()

    status = serializers.ChoiceField(
        choices=[PrescriptionStatus.DRAFT, PrescriptionStatus.ACTIVE],
        default=PrescriptionStatus.DRAFT,
    )
    prescribed_date = serializers.DateTimeField(required=False)
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField(required=False)

    notes = serializers.CharField(required=False, allow_blank=True)
    pharmacy = serializers.CharField(required=False, allow_blank=True, max_length=255)
    pharmacy_phone = serializers.CharField(required=False, allow_blank=True, max_length=32)


class PrescriptionUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PrescriptionStatus.choices, required=False)
    dosage = serializers.CharField(max_length=32, required=False)
    frequency = serializers.CharField(max_length=128, required=False)
    duration = serializers.CharField(max_length=128, required=False)
    quantity = serializers.IntegerField(min_value=1, max_value=10000, required=False)
    refills = serializers.IntegerField(min_value=0, max_value=12, required=False)
    instructions = serializers.CharField(required=False)
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    pharmacy = serializers.CharField(required=False, allow_blank=True, max_length=255)
    pharmacy_phone = serializers.CharField(required=False, allow_blank=True, max_length=32)


class PrescriptionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PrescriptionStatus.choices)


class PrescriptionCancelSerializer(serializers.Serializer):
    reason = serializers.CharField()


class PrescriptionListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PrescriptionStatus.choices, required=False)
    patient_id = serializers.IntegerField(required=False)
    prescribed_from = serializers.DateField(required=False)
    prescribed_to = serializers.DateField(required=False)


class OwnPrescriptionQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PrescriptionStatus.choices, required=False)


class ExpireResponseSerializer(serializers.Serializer):
    updated_count = serializers.IntegerField()
