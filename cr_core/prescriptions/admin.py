from django.contrib import admin

from cr_core.prescriptions.models import Prescription


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ("medication_name", "dosage", "patient", "provider", "status", "start_date", "end_date")
    list_filter = ("status",)
    search_fields = ("medication_name", "patient__username", "provider__username")
    ordering = ("-prescribed_date",)
