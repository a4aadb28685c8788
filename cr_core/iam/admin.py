# backend/cr_core/iam/admin.py
from __future__ import annotations

from django.contrib import admin

from cr_core.iam.models import ProviderPatientLink, UserProfile


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    # Role and provider approval change only here, never through the API.
    list_display = ("id", "user", "tenant", "role", "provider_approval_status", "is_active", "updated_at")
    list_filter = ("tenant", "role", "provider_approval_status", "is_active")
    search_fields = ("user__username", "user__email")
    autocomplete_fields = ("user", "tenant")
    ordering = ("-created_at",)


@admin.register(ProviderPatientLink)
class ProviderPatientLinkAdmin(admin.ModelAdmin):
    list_display = ("provider", "patient", "treatment_type", "status", "tenant_id", "approved_at")
    list_filter = ("status", "treatment_type")
    search_fields = ("provider__username", "patient__username")
    autocomplete_fields = ("provider", "patient")
    ordering = ("-created_at",)

    def has_delete_permission(self, request, obj=None):
        return False
