from django.contrib import admin

from cr_core.progress_notes.models import ProgressNote


@admin.register(ProgressNote)
class ProgressNoteAdmin(admin.ModelAdmin):
    list_display = ("id", "patient", "author", "status", "version", "finalized_at", "updated_at")
    list_filter = ("status",)
    search_fields = ("patient__username", "author__username")
    ordering = ("-updated_at",)
    # Content changes go through the lifecycle service, not the admin.
    readonly_fields = [f.name for f in ProgressNote._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
