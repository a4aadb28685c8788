from django.contrib import admin

from cr_core.notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("title", "recipient", "category", "priority", "is_read", "created_at")
    list_filter = ("category", "priority", "is_read")
    search_fields = ("title", "recipient__username")
    ordering = ("-created_at",)
