from __future__ import annotations

import logging
from uuid import UUID

from django.db import transaction

from cr_core.notifications.models import Notification, NotificationCategory, NotificationPriority

logger = logging.getLogger(__name__)


class NotificationService:
    @staticmethod
    @transaction.atomic
    def notify(
        *,
        tenant_id: UUID,
        patient_id: int,
        category: str = NotificationCategory.INFO,
        title: str,
        body: str = "",
        priority: str = NotificationPriority.MEDIUM,
        link: str | None = None,
        meta: dict | None = None,
    ) -> Notification:
        notif = Notification.objects.create(
            tenant_id=tenant_id,
            recipient_id=patient_id,
            category=category,
            title=title,
            body=body,
            priority=priority,
            link=link or "",
            meta=meta or {},
        )
        logger.info(
            "Notification created",
            extra={"notification_id": str(notif.id), "recipient_id": patient_id, "category": category},
        )
        return notif

    @staticmethod
    @transaction.atomic
    def mark_read(*, tenant_id: UUID, user_id: int, notification_id: UUID) -> Notification:
        notif = Notification.objects.get(id=notification_id, tenant_id=tenant_id, recipient_id=user_id)
        if not notif.is_read:
            notif.mark_read()
            notif.save(update_fields=["is_read", "read_at", "updated_at"])
        return notif
