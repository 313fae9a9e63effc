"""
core.domain.notifications — Notification creation helper.

Centralises notification creation so every app uses one consistent
entry-point rather than directly constructing ``Notification`` objects.

Design decisions
----------------
* **Deferred and best-effort** — ``NotificationService.notify`` registers
  the write with ``core.domain.side_effects.enqueue_side_effect`` so it runs
  after the triggering transaction commits and can never fail it.
  ``NotificationService.create`` is the synchronous primitive it wraps.
* **Supports multiple recipients** — pass a single ``User``, ``None`` or an
  iterable of users.  Duplicates and ``None`` entries are dropped.
* **Complaint link** — ``complaint`` is optional; system-level events such
  as a new sign-up carry no complaint.

Usage::

    from core.domain.notifications import NotificationService

    NotificationService.notify(
        actor=request.user,
        recipients=[complaint.submitted_by, complaint.assigned_to],
        event_type="assignment",
        complaint=complaint,
        message=f"Complaint {complaint.complaint_code} was assigned.",
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from django.db import models

from core.domain.side_effects import enqueue_side_effect

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification

logger = logging.getLogger(__name__)

# ── Event-type → default (title, message) ────────────────────────────
_EVENT_TEMPLATES: dict[str, tuple[str, str]] = {
    "submission":  ("Complaint Submitted",  "A new complaint has been submitted."),
    "assignment":  ("Complaint Assigned",   "A complaint has been assigned."),
    "accept":      ("Complaint Accepted",   "A complaint has been accepted."),
    "reject":      ("Complaint Rejected",   "A complaint assignment has been rejected."),
    "status":      ("Status Updated",       "The status of a complaint has changed."),
    "feedback":    ("Feedback Received",    "Feedback has been submitted for a complaint."),
    "user-signup": ("New User Sign-up",     "A new user has registered and awaits approval."),
}


def _normalise_recipients(recipients: Any) -> list[User]:
    if recipients is None:
        return []
    if isinstance(recipients, models.Model):
        recipients = [recipients]
    seen: set[Any] = set()
    unique: list[User] = []
    for recipient in recipients:
        if recipient is None or recipient.pk in seen:
            continue
        seen.add(recipient.pk)
        unique.append(recipient)
    return unique


class NotificationService:
    """
    Stateless helper for creating ``Notification`` records.

    All methods are classmethods — no instance state is needed.
    """

    @classmethod
    def create(
        cls,
        *,
        actor: User | None,
        recipients: User | Iterable[User] | None,
        event_type: str,
        complaint: models.Model | None = None,
        title: str | None = None,
        message: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> list[Notification]:
        """
        Create one ``Notification`` per distinct recipient.

        Args:
            actor:       The user who performed the action (logged only).
            recipients:  A single ``User``, ``None`` or an iterable.
            event_type:  One of ``Notification.Type``; also the key into
                         ``_EVENT_TEMPLATES`` for default title/message.
            complaint:   Optional complaint the notification refers to.
            title:       Overrides the template title.
            message:     Overrides the template message.
            meta:        Arbitrary JSON-serialisable context.

        Returns:
            List of created ``Notification`` instances.
        """
        from core.models import Notification  # lazy; models load after apps are ready

        targets = _normalise_recipients(recipients)
        if not targets:
            logger.debug(
                "No recipients for event_type=%s by actor=%s", event_type, actor,
            )
            return []

        default_title, default_message = _EVENT_TEMPLATES.get(
            event_type,
            (event_type.replace("-", " ").title(), f"Event: {event_type}"),
        )

        notifications = Notification.objects.bulk_create([
            Notification(
                recipient=recipient,
                role=getattr(recipient, "role", "") or "",
                complaint=complaint,
                type=event_type,
                title=title or default_title,
                message=message or default_message,
                meta=meta or {},
            )
            for recipient in targets
        ])

        logger.info(
            "Created %d notification(s) [%s] by actor=%s",
            len(notifications),
            event_type,
            actor,
        )
        return notifications

    @classmethod
    def notify(cls, **kwargs: Any) -> None:
        """
        Enqueue ``create(**kwargs)`` as a best-effort post-commit side effect.

        Recipients are resolved immediately so a lazy queryset reflects the
        state seen by the triggering transaction.
        """
        kwargs["recipients"] = _normalise_recipients(kwargs.get("recipients"))
        enqueue_side_effect(
            cls.create,
            label=f"notify:{kwargs.get('event_type', 'unknown')}",
            **kwargs,
        )
