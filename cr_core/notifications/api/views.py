from __future__ import annotations

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from cr_core.iam.scope import require_scope
from cr_core.notifications.api.serializers import NotificationSerializer
from cr_core.notifications.models import Notification
from cr_core.notifications.selectors import notifications_qs
from cr_core.notifications.services import NotificationService


class NotificationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """The caller's own notifications; nobody reads another user's inbox."""
    serializer_class = NotificationSerializer
    queryset = Notification.objects.none()

    def get_queryset(self):
        tenant_id = require_scope(self.request)
        qs = notifications_qs(tenant_id=tenant_id, user_id=self.request.user.id)
        is_read = self.request.query_params.get("is_read")
        if is_read in ("true", "false"):
            qs = qs.filter(is_read=(is_read == "true"))
        return qs.order_by("-created_at")

    @action(methods=["POST"], detail=True, url_path="read")
    def read(self, request, pk=None):
        notif = NotificationService.mark_read(
            tenant_id=require_scope(request),
            user_id=request.user.id,
            notification_id=pk,
        )
        return Response(NotificationSerializer(notif).data, status=status.HTTP_200_OK)
