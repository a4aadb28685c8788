from django.contrib import admin

from cr_core.integrations.models import IntegrationError


@admin.register(IntegrationError)
class IntegrationErrorAdmin(admin.ModelAdmin):
    list_display = ("entity_type", "source", "patient", "status", "retry_count", "next_retry_at", "created_at")
    list_filter = ("status", "entity_type", "source")
    search_fields = ("error_message", "patient__username")
    readonly_fields = ("payload", "last_tried_at", "created_at", "updated_at")
    ordering = ("-created_at",)

    def has_delete_permission(self, request, obj=None):
        return False
