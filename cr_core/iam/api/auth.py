# backend/cr_core/iam/api/auth.py

from __future__ import annotations

from datetime import timedelta
from typing import Any

from django.conf import settings
from drf_spectacular.utils import extend_schema, inline_serializer
from rest_framework import serializers, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer

_DetailResponse = inline_serializer(name="AuthDetailResponse", fields={"detail": serializers.CharField()})


def _jwt_cfg() -> dict[str, Any]:
    return getattr(settings, "SIMPLE_JWT", {}) or {}


def _seconds(value: Any) -> int:
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    return int(value or 0)


def _set_auth_cookies(response: Response, *, access: str, refresh: str) -> None:
    cfg = _jwt_cfg()
    common = {
        "httponly": True,
        "secure": bool(cfg.get("AUTH_COOKIE_SECURE", False)),
        "samesite": cfg.get("AUTH_COOKIE_SAMESITE", "Lax"),
        "path": "/",
    }
    response.set_cookie(
        cfg.get("AUTH_COOKIE", "cr_access"),
        access,
        max_age=_seconds(cfg.get("ACCESS_TOKEN_LIFETIME", timedelta(minutes=10))),
        **common,
    )
    response.set_cookie(
        cfg.get("AUTH_COOKIE_REFRESH", "cr_refresh"),
        refresh,
        max_age=_seconds(cfg.get("REFRESH_TOKEN_LIFETIME", timedelta(days=14))),
        **common,
    )


class LoginView(APIView):
    permission_classes = [AllowAny]
    authentication_classes: list = []

    @extend_schema(request=TokenObtainPairSerializer, responses={200: _DetailResponse}, tags=["IAM"])
    def post(self, request):
        serializer = TokenObtainPairSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        res = Response({"detail": "login ok"}, status=status.HTTP_200_OK)
        _set_auth_cookies(
            res,
            access=serializer.validated_data["access"],
            refresh=serializer.validated_data["refresh"],
        )
        return res


class RefreshView(APIView):
    permission_classes = [AllowAny]
    authentication_classes: list = []

    @extend_schema(request=None, responses={200: _DetailResponse}, tags=["IAM"])
    def post(self, request):
        refresh = request.COOKIES.get(_jwt_cfg().get("AUTH_COOKIE_REFRESH", "cr_refresh"))

        serializer = TokenRefreshSerializer(data={"refresh": refresh})
        serializer.is_valid(raise_exception=True)

        res = Response({"detail": "refreshed"}, status=status.HTTP_200_OK)
        _set_auth_cookies(
            res,
            access=serializer.validated_data["access"],
            refresh=serializer.validated_data.get("refresh", refresh),
        )
        return res


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=None, responses={200: _DetailResponse}, tags=["IAM"])
    def post(self, request):
        cfg = _jwt_cfg()
        res = Response({"detail": "logged out"}, status=status.HTTP_200_OK)
        res.delete_cookie(cfg.get("AUTH_COOKIE", "cr_access"), path="/")
        res.delete_cookie(cfg.get("AUTH_COOKIE_REFRESH", "cr_refresh"), path="/")
        return res
