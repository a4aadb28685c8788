# backend/cr_core/audit/admin.py
from django.contrib import admin

from cr_core.audit.models import AuditEvent


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ("action", "entity_type", "entity_id", "tenant_id", "actor_user", "actor_role", "source", "occurred_at")
    list_filter = ("action", "entity_type", "source")
    search_fields = ("entity_type", "entity_id")
    ordering = ("-occurred_at",)

    # Ledger is append-only, also from the admin.
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
