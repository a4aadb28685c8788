# backend/cr_core/common/openapi.py
from __future__ import annotations

from drf_spectacular.openapi import AutoSchema
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter


class ClinicalAutoSchema(AutoSchema):
    """
    Adds the X-Tenant-Id header to every scoped endpoint.
    Auth, /me and the schema/docs views are unscoped.
    """

    TENANT_HEADER = OpenApiParameter(
        name="X-Tenant-Id",
        type=OpenApiTypes.UUID,
        location=OpenApiParameter.HEADER,
        required=True,
        description="Tenant scope UUID (required for scoped endpoints).",
    )

    UNSCOPED_VIEW_NAMES = {"SpectacularAPIView", "SpectacularSwaggerView", "LoginView", "RefreshView", "LogoutView", "MeView"}

    def _is_unscoped_endpoint(self) -> bool:
        view = getattr(self, "view", None)
        if view is None:
            return False
        return view.__class__.__name__ in self.UNSCOPED_VIEW_NAMES

    def get_override_parameters(self):
        params = list(super().get_override_parameters() or [])

        if not self._is_unscoped_endpoint():
            existing = {getattr(p, "name", "").lower() for p in params}
            if self.TENANT_HEADER.name.lower() not in existing:
                params.append(self.TENANT_HEADER)

        return params
