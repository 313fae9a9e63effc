"""
Core app models.

Provides abstract base models and the ``Notification`` record shared by
every app.
"""

from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """
    Abstract base model that provides self-updating ``created_at`` and
    ``updated_at`` timestamp fields for every concrete child model.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Created At",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name="Updated At",
    )

    class Meta:
        abstract = True


class Notification(TimeStampedModel):
    """
    In-app notification addressed to one user.

    Created only through ``core.domain.notifications.NotificationService``
    after the triggering transaction commits.  Records are never deleted;
    the recipient may only flip ``is_read``.
    """

    class Type(models.TextChoices):
        SUBMISSION = "submission", "Submission"
        ASSIGNMENT = "assignment", "Assignment"
        ACCEPT = "accept", "Accept"
        REJECT = "reject", "Reject"
        STATUS = "status", "Status"
        FEEDBACK = "feedback", "Feedback"
        USER_SIGNUP = "user-signup", "User Signup"

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="Recipient",
    )
    role = models.CharField(
        max_length=16,
        blank=True,
        default="",
        verbose_name="Recipient Role",
        help_text="Recipient role at the time the notification was created.",
    )
    complaint = models.ForeignKey(
        "complaints.Complaint",
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="notifications",
        verbose_name="Complaint",
    )
    type = models.CharField(
        max_length=16,
        choices=Type.choices,
        verbose_name="Type",
    )
    title = models.CharField(max_length=255, verbose_name="Title")
    message = models.TextField(verbose_name="Message")
    is_read = models.BooleanField(default=False, verbose_name="Read")
    meta = models.JSONField(default=dict, blank=True, verbose_name="Meta")

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["recipient", "is_read"], name="notification_unread_idx"),
        ]

    def __str__(self):
        return f"[{self.recipient}] {self.title}"
