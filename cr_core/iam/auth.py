# backend/cr_core/iam/auth.py

from __future__ import annotations

from django.conf import settings
from rest_framework_simplejwt.authentication import JWTAuthentication

from cr_core.iam.scope import apply_scope_from_headers


class CookieOrHeaderJWTAuthentication(JWTAuthentication):
    """
    Access token from `Authorization: Bearer <access>` first, then from the
    HttpOnly access cookie. Once the user is known the tenant scope header is
    validated against the user's profile.
    """

    def _raw_token_from_cookie(self, request) -> bytes | None:
        cookie_name = settings.SIMPLE_JWT.get("AUTH_COOKIE", "cr_access")
        raw = request.COOKIES.get(cookie_name)
        return raw.encode() if raw else None

    def authenticate(self, request):
        header = self.get_header(request)
        if header is not None:
            raw_token = self.get_raw_token(header)
        else:
            raw_token = self._raw_token_from_cookie(request)

        if raw_token is None:
            return None

        validated_token = self.get_validated_token(raw_token)
        user = self.get_user(validated_token)

        apply_scope_from_headers(request, user=user)
        return user, validated_token
