# backend/cr_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from cr_core.audit.api.views import AuditEventViewSet
from cr_core.encounters.api.views import EncounterViewSet
from cr_core.iam.api.auth import LoginView, LogoutView, RefreshView
from cr_core.iam.api.links import ProviderPatientLinkViewSet
from cr_core.iam.api.me import MeView
from cr_core.integrations.api.views import IntegrationErrorViewSet
from cr_core.notifications.api.views import NotificationViewSet
from cr_core.prescriptions.api.views import PrescriptionViewSet
from cr_core.progress_notes.api.views import ProgressNoteViewSet

router = DefaultRouter()

router.register(r"links", ProviderPatientLinkViewSet, basename="links")
router.register(r"encounters", EncounterViewSet, basename="encounters")
router.register(r"progress-notes", ProgressNoteViewSet, basename="progress-notes")
router.register(r"prescriptions", PrescriptionViewSet, basename="prescriptions")
router.register(r"notifications", NotificationViewSet, basename="notifications")
router.register(r"integrations/errors", IntegrationErrorViewSet, basename="integration-errors")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
