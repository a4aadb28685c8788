# backend/config/urls.py
from django.contrib import admin
from django.urls import include, path

from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path("admin/", admin.site.urls),

    # OpenAPI
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),

    # Primary versioned API
    path("api/v1/", include("cr_core.api.urls")),

    # Unversioned alias for legacy clients; dropped from the schema by
    # preprocess_exclude_legacy_api. Keep AFTER schema/docs.
    path("api/", include("cr_core.api.urls")),
]
