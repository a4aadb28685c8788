from django.apps import AppConfig


class ProgressNotesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cr_core.progress_notes"
