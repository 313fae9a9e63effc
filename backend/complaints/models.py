"""
Complaints app models.

``Complaint`` is the single unit of mutation for the routing and status
workflow.  ``ActivityLog`` is its append-only audit trail.

Invariants enforced in ``Complaint.save``
-----------------------------------------
* ``complaint_code`` and ``submitted_by`` never change after creation.
* ``assignment_path`` only grows (the stored list must stay a prefix of
  the new one).
* A complaint addressed to a dean, either by ``recipient_role`` or by a
  legacy ``submitted_to`` label mentioning "dean", carries
  ``recipient_role == "dean"`` and a concrete ``recipient``.
"""

from __future__ import annotations

import re
import secrets
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from core.constants import DESCRIPTION_MAX_LENGTH
from core.models import TimeStampedModel

_DEAN_LABEL = re.compile(r"dean", re.IGNORECASE)


class ComplaintStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    ASSIGNED = "Assigned", "Assigned"
    ACCEPTED = "Accepted", "Accepted"
    IN_PROGRESS = "In Progress", "In Progress"
    UNDER_REVIEW = "Under Review", "Under Review"
    RESOLVED = "Resolved", "Resolved"
    CLOSED = "Closed", "Closed"


class ComplaintPriority(models.TextChoices):
    LOW = "Low", "Low"
    MEDIUM = "Medium", "Medium"
    HIGH = "High", "High"
    CRITICAL = "Critical", "Critical"


class RecipientRole(models.TextChoices):
    STAFF = "staff", "Staff"
    HOD = "hod", "Head of Department"
    DEAN = "dean", "Dean"
    ADMIN = "admin", "Admin"


def generate_complaint_code() -> str:
    """Return a fresh human-readable code, e.g. ``CMP-20250110-9F3A1C``."""
    return f"CMP-{timezone.now():%Y%m%d}-{secrets.token_hex(3).upper()}"


class Complaint(TimeStampedModel):
    """
    A complaint raised by a student (or routed by staff/HoD/dean/admin).

    Routing target (``recipient_role`` + ``recipient``) is distinct from
    assignment (``assigned_to``): the first says who the complaint is
    addressed to, the second who is currently handling it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    complaint_code = models.CharField(
        max_length=32,
        unique=True,
        editable=False,
        verbose_name="Complaint Code",
    )

    # ── Content ──────────────────────────────────────────────────────
    title = models.CharField(max_length=255, verbose_name="Title")
    description = models.TextField(
        max_length=DESCRIPTION_MAX_LENGTH,
        blank=True,
        default="",
        verbose_name="Description",
    )
    category = models.CharField(max_length=120, verbose_name="Category")
    department = models.CharField(
        max_length=120,
        blank=True,
        default="",
        db_index=True,
        verbose_name="Department",
    )

    status = models.CharField(
        max_length=20,
        choices=ComplaintStatus.choices,
        default=ComplaintStatus.PENDING,
        db_index=True,
        verbose_name="Status",
    )
    priority = models.CharField(
        max_length=10,
        choices=ComplaintPriority.choices,
        default=ComplaintPriority.MEDIUM,
        verbose_name="Priority",
    )

    # ── Provenance ───────────────────────────────────────────────────
    source_role = models.CharField(
        max_length=16,
        default="student",
        verbose_name="Source Role",
    )
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="submitted_complaints",
        verbose_name="Submitted By",
    )
    submitted_to = models.CharField(
        max_length=120,
        blank=True,
        null=True,
        verbose_name="Submitted To",
        help_text="Legacy free-text office label.",
    )

    # ── Routing target ───────────────────────────────────────────────
    recipient_role = models.CharField(
        max_length=16,
        choices=RecipientRole.choices,
        blank=True,
        null=True,
        verbose_name="Recipient Role",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="addressed_complaints",
        verbose_name="Recipient",
    )

    # ── Assignment ───────────────────────────────────────────────────
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_complaints",
        verbose_name="Assigned To",
    )
    assigned_to_role = models.CharField(max_length=16, blank=True, null=True)
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="delegated_complaints",
        verbose_name="Assigned By",
    )
    assigned_by_role = models.CharField(max_length=16, blank=True, null=True)
    assigned_at = models.DateTimeField(null=True, blank=True)
    assignment_path = models.JSONField(
        default=list,
        blank=True,
        verbose_name="Assignment Path",
        help_text="Ordered, append-only list of roles the complaint passed through.",
    )

    # ── Scheduling / escalation ──────────────────────────────────────
    deadline = models.DateField(null=True, blank=True)
    is_escalated = models.BooleanField(default=False)
    escalated_on = models.DateTimeField(null=True, blank=True)

    # ── Resolution ───────────────────────────────────────────────────
    resolution_note = models.TextField(blank=True, default="")
    resolved_at = models.DateTimeField(null=True, blank=True)

    # ── Feedback (single slot) ───────────────────────────────────────
    feedback_rating = models.PositiveSmallIntegerField(null=True, blank=True)
    feedback_comment = models.TextField(blank=True, default="")
    feedback_submitted_at = models.DateTimeField(null=True, blank=True)
    feedback_reviewed = models.BooleanField(default=False)
    feedback_reviewed_at = models.DateTimeField(null=True, blank=True)
    feedback_reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_feedback",
    )

    # ── Soft lifecycle / edits ───────────────────────────────────────
    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="deleted_complaints",
    )
    last_edited_at = models.DateTimeField(null=True, blank=True)
    edits_count = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Complaint"
        verbose_name_plural = "Complaints"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["department", "status"], name="complaint_dept_status_idx"),
            models.Index(fields=["recipient_role", "recipient"], name="complaint_recipient_idx"),
            models.Index(fields=["assigned_to", "status"], name="complaint_assignee_idx"),
        ]

    def __str__(self):
        return f"{self.complaint_code} — {self.title}"

    # ── Invariants ───────────────────────────────────────────────────

    @property
    def has_feedback(self) -> bool:
        return self.feedback_rating is not None

    def is_dean_addressed(self) -> bool:
        return self.recipient_role == RecipientRole.DEAN or bool(
            self.submitted_to and _DEAN_LABEL.search(self.submitted_to)
        )

    def clean(self):
        super().clean()
        if self.is_dean_addressed():
            if self.recipient_role != RecipientRole.DEAN or self.recipient_id is None:
                raise ValidationError(
                    {"recipient": "Complaints addressed to a dean must name the dean."}
                )
        if self.recipient_role in (RecipientRole.STAFF, RecipientRole.HOD) and self.recipient_id is None:
            raise ValidationError(
                {"recipient": f"Recipient role '{self.recipient_role}' requires a recipient."}
            )

    def _check_immutable_fields(self) -> None:
        stored = (
            type(self).objects
            .filter(pk=self.pk)
            .values("complaint_code", "submitted_by_id", "assignment_path")
            .first()
        )
        if stored is None:
            return
        if stored["complaint_code"] != self.complaint_code:
            raise ValidationError({"complaint_code": "Complaint code is immutable."})
        if stored["submitted_by_id"] != self.submitted_by_id:
            raise ValidationError({"submitted_by": "Submitter is immutable."})
        old_path = list(stored["assignment_path"] or [])
        if list(self.assignment_path or [])[: len(old_path)] != old_path:
            raise ValidationError({"assignment_path": "Assignment path is append-only."})

    def save(self, *args, **kwargs):
        if self._state.adding:
            if not self.complaint_code:
                self.complaint_code = generate_complaint_code()
        else:
            self._check_immutable_fields()
        self.clean()
        super().save(*args, **kwargs)

    # ── Mutation helpers (no save) ───────────────────────────────────

    def append_path(self, *roles: str) -> None:
        """Append each role unless it is already the last path entry."""
        path = list(self.assignment_path or [])
        for role in roles:
            if role and (not path or path[-1] != role):
                path.append(role)
        self.assignment_path = path

    def append_note(self, note: str | None, *, at=None) -> None:
        """Append ``note`` to ``resolution_note`` prefixed with an ISO timestamp."""
        text = (note or "").strip()
        if not text:
            return
        stamp = (at or timezone.now()).isoformat()
        entry = f"[{stamp}] {text}"
        self.resolution_note = (
            f"{self.resolution_note}\n{entry}" if self.resolution_note else entry
        )


class ActivityLog(models.Model):
    """
    Append-only timeline entry for a complaint.

    Ordered by ``(timestamp, id)`` so several rows written within one
    action keep their insertion order even when timestamps tie.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="complaint_activity",
    )
    role = models.CharField(max_length=16, blank=True, default="")
    action = models.CharField(max_length=255)
    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="activity_logs",
    )
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)
    details = models.JSONField(default=dict, blank=True)

    class Meta:
        verbose_name = "Activity Log"
        verbose_name_plural = "Activity Logs"
        ordering = ["timestamp", "id"]
        indexes = [
            models.Index(fields=["complaint", "timestamp"], name="activity_complaint_ts_idx"),
        ]

    def __str__(self):
        return f"{self.timestamp:%Y-%m-%d %H:%M} {self.action}"
