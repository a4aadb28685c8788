from django.contrib import admin

from cr_core.tenants.models import Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "status", "member_count", "created_at")
    list_filter = ("status",)
    search_fields = ("name", "code")
    readonly_fields = ("id", "created_at", "updated_at")

    @admin.display(description="Members")
    def member_count(self, obj: Tenant) -> int:
        return obj.user_profiles.filter(is_active=True).count()
