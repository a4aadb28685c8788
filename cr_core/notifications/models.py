from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from cr_core.common.models import ScopedModel


class NotificationCategory(models.TextChoices):
    ALERT = "alert", "Alert"
    INFO = "info", "Info"
    REMINDER = "reminder", "Reminder"


class NotificationPriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"


class Notification(ScopedModel):
    """
    In-app notification row per recipient. Delivery transports (push, email)
    live outside this service and read from here.
    """
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="cr_notifications",
    )

    category = models.CharField(
        max_length=16,
        choices=NotificationCategory.choices,
        default=NotificationCategory.INFO,
        db_index=True,
    )
    priority = models.CharField(
        max_length=16,
        choices=NotificationPriority.choices,
        default=NotificationPriority.MEDIUM,
    )

    title = models.CharField(max_length=255)
    body = models.TextField(blank=True, default="")
    link = models.CharField(max_length=255, blank=True, default="")

    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)

    meta = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "notifications_notification"
        indexes = [
            models.Index(fields=["tenant_id", "recipient", "is_read"]),
        ]

    def mark_read(self) -> None:
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
