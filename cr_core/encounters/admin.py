from django.contrib import admin

from cr_core.encounters.models import Encounter


@admin.register(Encounter)
class EncounterAdmin(admin.ModelAdmin):
    list_display = ("id", "provider", "patient", "encounter_type", "started_at", "tenant_id")
    list_filter = ("encounter_type",)
    search_fields = ("provider__username", "patient__username")
    ordering = ("-started_at",)
