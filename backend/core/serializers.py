"""
Core app serializers.
"""

from __future__ import annotations

from rest_framework import serializers


class NotificationSerializer(serializers.Serializer):
    """
    Read-only serializer for ``Notification`` instances.

    Used by the Notification ViewSet to list and retrieve notifications
    for the authenticated user.
    """

    id = serializers.IntegerField(read_only=True, help_text="Notification PK.")
    type = serializers.CharField(read_only=True, help_text="Event type.")
    title = serializers.CharField(
        read_only=True,
        help_text="Short notification title.",
    )
    message = serializers.CharField(
        read_only=True,
        help_text="Full notification message body.",
    )
    is_read = serializers.BooleanField(
        read_only=True,
        help_text="Whether the recipient has marked this notification as read.",
    )
    complaint = serializers.UUIDField(
        source="complaint_id",
        read_only=True,
        allow_null=True,
        help_text="Complaint the notification refers to (if any).",
    )
    meta = serializers.JSONField(read_only=True)
    created_at = serializers.DateTimeField(
        read_only=True,
        help_text="When the notification was created.",
    )


class NotificationListSerializer(serializers.Serializer):
    """Envelope returned by the list endpoint."""

    items = NotificationSerializer(many=True)
    total = serializers.IntegerField()
    unread = serializers.IntegerField()


class MarkAllReadSerializer(serializers.Serializer):
    updated = serializers.IntegerField(help_text="Number of notifications marked read.")
