# backend/cr_core/iam/services/links.py
from __future__ import annotations

from datetime import timedelta
from uuid import UUID

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from cr_core.audit.models import AuditAction
from cr_core.audit.services import AuditService
from cr_core.common.api.exceptions import Forbidden, Unauthorized
from cr_core.common.logging import log_domain_event
from cr_core.iam.actor import Actor
from cr_core.iam.guard import PROVIDER_REQUIRED_MSG, require_permission
from cr_core.iam.models import LinkStatus, ProviderPatientLink, UserProfile
from cr_core.iam.permissions import PROVIDER_TRACK_ROLES, Permission, Role

ENTITY_TYPE = "provider_patient_link"
DEFAULT_TREATMENT_TYPE = "consultation"


def _profile_in_tenant(*, user_id: int, tenant_id: UUID) -> UserProfile | None:
    return (
        UserProfile.objects.filter(user_id=user_id, tenant_id=tenant_id, is_active=True)
        .only("id", "role", "user_id")
        .first()
    )


class LinkService:
    """
    Provider <-> patient connections.

    A link is requested (pending), then approved by the patient or an admin.
    Only approved links authorize clinical writes (see iam.guard).
    """

    @staticmethod
    @transaction.atomic
    def request_link(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        provider_id: int,
        patient_id: int,
        treatment_type: str = DEFAULT_TREATMENT_TYPE,
        message: str = "",
        request=None,
    ) -> tuple[ProviderPatientLink, bool]:
        if actor is None:
            raise Unauthorized()
        if not actor.is_admin and actor.user_id not in (provider_id, patient_id):
            raise Forbidden("You can only request links you are part of.")

        provider_profile = _profile_in_tenant(user_id=provider_id, tenant_id=tenant_id)
        if provider_profile is None or provider_profile.role not in PROVIDER_TRACK_ROLES:
            raise ValidationError({"provider_id": ["Unknown provider in this tenant."]})

        patient_profile = _profile_in_tenant(user_id=patient_id, tenant_id=tenant_id)
        if patient_profile is None or patient_profile.role != Role.PATIENT:
            raise ValidationError({"patient_id": ["Unknown patient in this tenant."]})

        treatment_type = (treatment_type or DEFAULT_TREATMENT_TYPE).strip()
        lookup = {
            "tenant_id": tenant_id,
            "provider_id": provider_id,
            "patient_id": patient_id,
            "treatment_type": treatment_type,
        }

        existing = ProviderPatientLink.objects.filter(**lookup).first()
        if existing is not None:
            return existing, False

        try:
            with transaction.atomic():
                link = ProviderPatientLink.objects.create(
                    **lookup,
                    status=LinkStatus.PENDING,
                    request_message=message or "",
                )
        except IntegrityError:
            # Concurrent request won the unique key.
            return ProviderPatientLink.objects.get(**lookup), False

        AuditService.record(
            action=AuditAction.CREATE,
            entity_type=ENTITY_TYPE,
            entity_id=link.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata={
                "provider_id": provider_id,
                "patient_id": patient_id,
                "treatment_type": treatment_type,
                "status": link.status,
            },
        )
        log_domain_event("link.requested", entity_type=ENTITY_TYPE, entity_id=link.id)
        return link, True

    @staticmethod
    @transaction.atomic
    def approve_link(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        link_id: UUID,
        request=None,
    ) -> tuple[ProviderPatientLink, bool]:
        """Returns (link, changed). Approving an approved link is a no-op."""
        if actor is None:
            raise Unauthorized()

        link = ProviderPatientLink.objects.select_for_update().filter(id=link_id, tenant_id=tenant_id).first()
        if link is None:
            raise NotFound("Link not found.")

        if not actor.is_admin and link.patient_id != actor.user_id:
            log_domain_event("link.approve", entity_type=ENTITY_TYPE, entity_id=link.id, result="blocked")
            raise Forbidden("Only the patient or an admin can approve this link.")

        if link.status == LinkStatus.APPROVED:
            return link, False

        link.status = LinkStatus.APPROVED
        link.approved_at = timezone.now()
        link.save(update_fields=["status", "approved_at", "updated_at"])

        AuditService.record(
            action=AuditAction.UPDATE,
            entity_type=ENTITY_TYPE,
            entity_id=link.id,
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata={
                "provider_id": link.provider_id,
                "patient_id": link.patient_id,
                "status": link.status,
            },
        )
        log_domain_event("link.approved", entity_type=ENTITY_TYPE, entity_id=link.id)
        return link, True

    @staticmethod
    @transaction.atomic
    def ensure_approved_link(
        *,
        tenant_id: UUID,
        provider_id: int,
        patient_id: int,
        treatment_type: str = DEFAULT_TREATMENT_TYPE,
    ) -> tuple[ProviderPatientLink, bool, bool]:
        """
        Upsert an approved link, read before write.

        Returns (link, created, updated):
          - (link, True, False)  no row existed
          - (link, False, True)  a pending row was promoted
          - (link, False, False) already approved
        """
        lookup = {
            "tenant_id": tenant_id,
            "provider_id": provider_id,
            "patient_id": patient_id,
            "treatment_type": treatment_type,
        }

        link = ProviderPatientLink.objects.select_for_update().filter(**lookup).first()
        if link is None:
            try:
                with transaction.atomic():
                    link = ProviderPatientLink.objects.create(
                        **lookup,
                        status=LinkStatus.APPROVED,
                        approved_at=timezone.now(),
                    )
                return link, True, False
            except IntegrityError:
                link = ProviderPatientLink.objects.select_for_update().get(**lookup)

        if link.status == LinkStatus.APPROVED:
            return link, False, False

        link.status = LinkStatus.APPROVED
        link.approved_at = timezone.now()
        link.save(update_fields=["status", "approved_at", "updated_at"])
        return link, False, True

    @staticmethod
    @transaction.atomic
    def reconcile_orphan_encounters(
        *,
        actor: Actor | None,
        tenant_id: UUID,
        days: int = 30,
        auto_fix: bool = False,
        request=None,
    ) -> dict:
        """
        Patients this provider saw in the last `days` days without an approved link.
        With auto_fix every orphan gets an approved link.
        """
        require_permission(actor, Permission.ENCOUNTER_READ, require_approved_provider=auto_fix)
        if actor.role != Role.PROVIDER:
            raise Forbidden(PROVIDER_REQUIRED_MSG)

        from cr_core.encounters.models import Encounter

        days = max(1, int(days))
        since = timezone.now() - timedelta(days=days)

        seen = set(
            Encounter.objects.filter(
                tenant_id=tenant_id,
                provider_id=actor.user_id,
                started_at__gte=since,
            ).values_list("patient_id", flat=True)
        )
        linked = set(
            ProviderPatientLink.objects.filter(
                tenant_id=tenant_id,
                provider_id=actor.user_id,
                patient_id__in=seen,
                status=LinkStatus.APPROVED,
            ).values_list("patient_id", flat=True)
        )
        orphans = sorted(seen - linked)

        items: list[dict] = []
        created_count = 0
        updated_count = 0
        for patient_id in orphans:
            item: dict = {"patient_id": patient_id}
            if auto_fix:
                _, created, updated = LinkService.ensure_approved_link(
                    tenant_id=tenant_id,
                    provider_id=actor.user_id,
                    patient_id=patient_id,
                )
                item["created"] = created
                item["updated"] = updated
                created_count += int(created)
                updated_count += int(updated)
            items.append(item)

        AuditService.record(
            action=AuditAction.UPDATE,
            entity_type=ENTITY_TYPE,
            entity_id="orphan_reconcile",
            actor=actor,
            tenant_id=tenant_id,
            request=request,
            metadata={
                "days": days,
                "auto_fix": auto_fix,
                "orphan_count": len(orphans),
                "created_count": created_count,
                "updated_count": updated_count,
            },
        )

        return {
            "days": days,
            "auto_fix": auto_fix,
            "orphan_count": len(orphans),
            "created_count": created_count,
            "updated_count": updated_count,
            "orphans": items,
        }
