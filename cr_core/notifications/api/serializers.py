from rest_framework import serializers

from cr_core.notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "category",
            "priority",
            "title",
            "body",
            "link",
            "is_read",
            "read_at",
            "created_at",
            "meta",
        ]
        read_only_fields = fields
