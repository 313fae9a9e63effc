"""
Student-facing status emails.

Always called through ``enqueue_side_effect``; a delivery failure is
logged there and never reaches the request that changed the complaint.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import send_mail

from core.constants import complaint_setting

logger = logging.getLogger(__name__)


def build_status_email(complaint, *, action: str, by_role: str, note: str = "") -> tuple[str, str]:
    """Return ``(subject, body)`` for a complaint update email."""
    code = f"#{complaint.complaint_code} " if complaint.complaint_code else ""
    subject = f"Complaint {code}{complaint.title} {action}".strip()
    student = complaint.submitted_by
    name = student.get_full_name() or student.username or "Student"
    lines = [
        f"Dear {name},",
        "",
        f"Your complaint {code}\"{complaint.title}\" has been {action} by {by_role or 'Team'}.",
    ]
    if note:
        lines += ["", f"Note: {note}"]
    lines += ["", "You can sign in to the portal to view more details and next steps."]
    return subject, "\n".join(lines)


def send_complaint_update_email(complaint, *, action: str, by_role: str, note: str = "") -> bool:
    """
    Email the submitter about ``action``.  Returns ``False`` when skipped.
    """
    if not complaint_setting("STATUS_EMAILS_ENABLED"):
        return False
    recipient = complaint.submitted_by.email
    if not recipient:
        logger.info("No email on file for submitter of %s; skipping.", complaint.complaint_code)
        return False

    subject, body = build_status_email(complaint, action=action, by_role=by_role, note=note)
    send_mail(
        subject,
        body,
        settings.DEFAULT_FROM_EMAIL,
        [recipient],
        fail_silently=False,
    )
    logger.info("Status email (%s) sent for %s", action, complaint.complaint_code)
    return True
