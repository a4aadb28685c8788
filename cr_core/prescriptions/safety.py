"""
Dosage safety heuristics and interaction warnings.

Single-dose caps and duplicate/polypharmacy checks only; no interaction database.
"""
from __future__ import annotations

import re
from uuid import UUID

from cr_core.prescriptions.models import Prescription, PrescriptionStatus

DOSAGE_RE = re.compile(r"^(\d+(\.\d+)?)\s?(mg|mcg)$", re.IGNORECASE)

INVALID_DOSAGE_MSG = "Invalid dosage"

# (name fragment, max single dose in mg, message)
SINGLE_DOSE_CAPS: tuple[tuple[str, float, str], ...] = (
    ("varenicl", 1.0, "Unsafe dosage for Varenicline: max 1 mg per dose"),
)

POLYPHARMACY_THRESHOLD = 5


def parse_dose_mg(dosage: str) -> float | None:
    """'0.5 mg' -> 0.5, '500mcg' -> 0.5; None when the format is invalid."""
    m = DOSAGE_RE.match((dosage or "").strip())
    if not m:
        return None
    amount = float(m.group(1))
    if m.group(3).lower() == "mcg":
        amount = amount / 1000.0
    return amount


def dosage_error(medication_name: str, dosage: str) -> str | None:
    mg = parse_dose_mg(dosage)
    if mg is None:
        return INVALID_DOSAGE_MSG

    name = (medication_name or "").lower()
    for fragment, cap_mg, message in SINGLE_DOSE_CAPS:
        if fragment in name and mg > cap_mg:
            return message
    return None


def check_interactions(*, tenant_id: UUID, patient_id: int, medication_name: str) -> list[str]:
    """Non-fatal warnings against the patient's currently active prescriptions."""
    warnings: list[str] = []

    active = list(
        Prescription.objects.filter(
            tenant_id=tenant_id,
            patient_id=patient_id,
            status=PrescriptionStatus.ACTIVE,
        ).values_list("medication_name", flat=True)
    )

    wanted = (medication_name or "").strip().lower()
    if any((name or "").strip().lower() == wanted for name in active):
        warnings.append(
            f"Patient already has an active prescription for {medication_name}. "
            "Consider completing or cancelling the prior one."
        )

    if len(active) >= POLYPHARMACY_THRESHOLD:
        warnings.append("Patient has 5 or more active prescriptions. Review for potential interactions.")

    return warnings
