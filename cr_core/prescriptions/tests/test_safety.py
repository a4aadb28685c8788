import pytest

from cr_core.prescriptions.models import Prescription, PrescriptionStatus
from cr_core.prescriptions.safety import check_interactions, dosage_error, parse_dose_mg


@pytest.mark.parametrize(
    "dosage,expected",
    [("1 mg", 1.0), ("0.5mg", 0.5), ("500 mcg", 0.5), ("2 MG", 2.0), ("one mg", None), ("5 ml", None), ("", None)],
)
def test_parse_dose_mg(dosage, expected):
    assert parse_dose_mg(dosage) == expected


def test_varenicline_single_dose_cap():
    assert dosage_error("Varenicline", "1 mg") is None
    assert dosage_error("Varenicline", "2 mg") == "Unsafe dosage for Varenicline: max 1 mg per dose"
    assert dosage_error("Varenicline tartrate", "1500 mcg") == "Unsafe dosage for Varenicline: max 1 mg per dose"
    assert dosage_error("Nicotine patch", "21 mg") is None


def test_invalid_dosage_format():
    assert dosage_error("Bupropion", "150 milligrams") == "Invalid dosage"


@pytest.mark.django_db
def test_duplicate_and_polypharmacy_warnings(tenant, provider_user, patient_user):
    from django.utils import timezone

    for name in ["Bupropion", "Metformin", "Lisinopril", "Atorvastatin", "Aspirin"]:
        Prescription.objects.create(
            tenant_id=tenant.id,
            patient=patient_user,
            provider=provider_user,
            medication_name=name,
            dosage="10 mg",
            frequency="daily",
            duration="30 days",
            instructions="with food",
            status=PrescriptionStatus.ACTIVE,
            start_date=timezone.now(),
        )

    warnings = check_interactions(tenant_id=tenant.id, patient_id=patient_user.id, medication_name="bupropion")
    assert len(warnings) == 2
    assert warnings[0].startswith("Patient already has an active prescription for bupropion")
    assert warnings[1] == "Patient has 5 or more active prescriptions. Review for potential interactions."

    assert check_interactions(tenant_id=tenant.id, patient_id=provider_user.id, medication_name="x") == []
