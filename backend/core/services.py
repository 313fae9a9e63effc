"""
Core app services — **Service Layer**.

Views delegate all business logic to the service classes defined here,
keeping views thin and ensuring testability.

Creation of notifications lives in ``core.domain.notifications``; this
module only serves the recipient's own inbox.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db.models import QuerySet

from core.domain.exceptions import NotFound

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification


class NotificationService:
    """
    Handles listing and marking notifications as read for a given user.
    """

    def __init__(self, user: User) -> None:
        self.user = user

    def list_notifications(self, *, unread_only: bool = False) -> QuerySet:
        """Return notifications for ``self.user``, most recent first."""
        from core.models import Notification

        qs = (
            Notification.objects
            .filter(recipient=self.user)
            .order_by("-created_at", "-id")
        )
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs

    def unread_count(self) -> int:
        return self.list_notifications(unread_only=True).count()

    def mark_as_read(self, notification_id) -> Notification:
        """Mark a single notification as read."""
        from core.models import Notification

        try:
            notification = Notification.objects.get(
                pk=notification_id,
                recipient=self.user,
            )
        except (Notification.DoesNotExist, ValueError):
            raise NotFound("Notification not found.")
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])
        return notification

    def mark_all_as_read(self) -> int:
        """Mark every unread notification as read; return how many changed."""
        return self.list_notifications(unread_only=True).update(is_read=True)
