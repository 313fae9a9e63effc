"""
Complaints app Service Layer.

This module is the **single source of truth** for all business logic
in the ``complaints`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``ActivityLogService``         — Timeline writes (savepoint-isolated) and
                                   the staff update collapse rule.
- ``ComplaintQueryService``      — Role-scoped listings and visible loads.
- ``ComplaintCreationService``   — Submission and initial routing.
- ``ComplaintRoutingService``    — Recipient changes, assignment, HoD
                                   accept/reject.
- ``ComplaintWorkflowService``   — Approval, free status updates, edits,
                                   soft delete.
- ``FeedbackService``            — Student feedback and its review.
- ``EscalationService``          — Background sweep for stale assignments.

Mutation discipline
-------------------
Every write runs inside ``transaction.atomic``:

1. Re-read the complaint with ``select_for_update`` through the actor's
   actionable scope (soft-deleted rows and, for deans, admin-bound rows
   are reported as missing).
2. Validate the actor against the *current* row.  Any failure raises a
   ``core.domain.exceptions`` error before a single field is touched.
3. Mutate and ``save()`` (model invariants checked there).
4. Write activity rows inside a savepoint; a failure is logged and the
   mutation stands.
5. Hand notifications and email to ``enqueue_side_effect``; they run only
   after commit and never raise into the request.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Iterable

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.db.models import QuerySet
from django.utils import timezone

from accounts.models import Role, normalize_role
from core.constants import complaint_setting
from core.domain.access import apply_role_scope, require_role
from core.domain.exceptions import (
    Conflict,
    DomainError,
    InvalidTransition,
    NotFound,
    PermissionDenied,
)
from core.domain.notifications import NotificationService
from core.domain.side_effects import enqueue_side_effect
from core.domain.transactions import lock_for_update

from . import scoping
from .emails import send_complaint_update_email
from .models import ActivityLog, Complaint, ComplaintStatus, RecipientRole
from .routing import RecipientTarget, label_for
from .workflow import (
    APPROVAL_SOURCES,
    APPROVER_ROLES,
    ASSIGNABLE_STATUSES,
    HOD_DECISION_SOURCES,
    HOD_HANDOFF_SOURCES,
    LEADER_ROLES,
    STATUS_UPDATE_RULES,
    TERMINAL_STATUSES,
    approval_target,
    is_locked_against,
    normalize_status,
    role_title,
    status_update_action,
)

User = get_user_model()
logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("title", "description", "category", "priority")


# ═══════════════════════════════════════════════════════════════════
#  Shared helpers
# ═══════════════════════════════════════════════════════════════════


def _load_for_update(actor: Any, complaint_id: Any) -> Complaint:
    scope = Complaint.objects.filter(scoping.actionable_q(actor))
    try:
        return lock_for_update(Complaint, complaint_id, queryset=scope)
    except NotFound:
        raise NotFound("Complaint not found.")


def _save(complaint: Complaint) -> None:
    """Persist, turning model invariant failures into a 400."""
    try:
        complaint.save()
    except DjangoValidationError as exc:
        messages = exc.messages if hasattr(exc, "messages") else [str(exc)]
        raise DomainError(" ".join(messages))


def _get_assignable(user_id: Any, role: str, *, label: str) -> Any:
    """Return an active, approved user holding ``role`` or raise a 400."""
    if user_id in (None, ""):
        raise DomainError(f"A {label} must be selected.")
    try:
        user = User.objects.get(pk=user_id)
    except (User.DoesNotExist, ValueError, TypeError, DjangoValidationError):
        raise DomainError(f"Invalid {label}.")
    if user.role != role:
        raise DomainError(f"Selected user is not a {label}.")
    if not user.is_assignable:
        raise DomainError(f"Selected {label} is not active or approved.")
    return user


def _active_admins() -> QuerySet:
    return User.objects.filter(role=Role.ADMIN, is_active=True)


def _department_hods(department: str | None) -> QuerySet:
    department = (department or "").strip()
    if not department:
        return User.objects.none()
    return User.objects.filter(
        role=Role.HOD,
        is_active=True,
        department__iexact=department,
    )


def _resolve_target(target: RecipientTarget, *, department: str) -> tuple[Any, list]:
    """
    Validate a recipient target.

    Returns ``(recipient_user_or_None, users_to_notify)``.
    """
    if target.is_empty:
        return None, []
    if target.role is None:
        raise DomainError("recipient_role is required when recipient_id is given.")

    if not target.requires_user:
        return None, list(_active_admins())

    label = role_title(target.role)
    if target.user_id in (None, ""):
        if target.role == RecipientRole.DEAN:
            raise DomainError("Complaints addressed to a dean must include recipient_id.")
        if target.role == RecipientRole.HOD:
            hods = list(
                _department_hods(department)
                .filter(is_approved=True, is_rejected=False)
                .order_by("id")
            )
            if hods:
                return hods[0], hods
        raise DomainError(f"A specific {label} must be chosen as recipient.")

    user = _get_assignable(target.user_id, target.role, label=label)
    return user, [user]


def _apply_target(complaint: Complaint, role: str | None, recipient: Any) -> None:
    complaint.recipient_role = role
    complaint.recipient = recipient
    complaint.submitted_to = label_for(role) or complaint.submitted_to


def _target_snapshot(complaint: Complaint) -> dict[str, Any]:
    return {
        "recipient_role": complaint.recipient_role,
        "recipient_id": complaint.recipient_id,
        "submitted_to": complaint.submitted_to,
    }


def _release_direct_assignment(complaint: Complaint, *, keep: Any = None) -> Any:
    """
    Drop an assignee that came from direct routing at submission time.

    Assignments made by someone (``assigned_by`` set) are left alone, as is
    an assignee who is also ``keep``.  Returns the released user id, or
    ``None`` when nothing changed.
    """
    if complaint.assigned_to_id is None or complaint.assigned_by_id is not None:
        return None
    if keep is not None and keep.pk == complaint.assigned_to_id:
        return None
    released = complaint.assigned_to_id
    complaint.assigned_to = None
    complaint.assigned_to_role = None
    complaint.assigned_at = None
    return released


def _clean_path(entries: Iterable[Any] | None) -> list[str]:
    roles = []
    for entry in entries or []:
        role = normalize_role(entry)
        if role is not None:
            roles.append(role)
    return roles


def _assign(complaint: Complaint, *, assignee: Any, actor: Any, deadline=None, status: str) -> None:
    complaint.assigned_to = assignee
    complaint.assigned_to_role = assignee.role
    complaint.assigned_by = actor
    complaint.assigned_by_role = actor.role
    complaint.assigned_at = timezone.now()
    if deadline is not None:
        complaint.deadline = deadline
    complaint.status = status


def _notify_status(actor: Any, complaint: Complaint, message: str, **extra: Any) -> None:
    if complaint.submitted_by_id == getattr(actor, "pk", None):
        return
    NotificationService.notify(
        actor=actor,
        recipients=complaint.submitted_by,
        event_type="status",
        complaint=complaint,
        message=message,
        meta={"status": complaint.status, **extra},
    )


# ═══════════════════════════════════════════════════════════════════
#  Activity Log Service
# ═══════════════════════════════════════════════════════════════════


class ActivityLogService:
    """
    Writes timeline rows for complaints.

    Writes happen in a savepoint: a database failure rolls back only the
    log row and is reported through ``logging``.
    """

    @staticmethod
    def record(
        *,
        complaint: Complaint,
        actor: Any,
        action: str,
        details: dict[str, Any] | None = None,
        role: str | None = None,
        at=None,
    ) -> ActivityLog | None:
        try:
            with transaction.atomic():
                return ActivityLog.objects.create(
                    user=actor,
                    role=role or getattr(actor, "role", "") or "",
                    action=action,
                    complaint=complaint,
                    timestamp=at or timezone.now(),
                    details=details or {},
                )
        except DatabaseError:
            logger.exception(
                "Failed to record activity %r for %s", action, complaint.complaint_code,
            )
            return None

    @staticmethod
    def record_collapsible(
        *,
        complaint: Complaint,
        actor: Any,
        action: str,
        note: str = "",
        details: dict[str, Any] | None = None,
    ) -> ActivityLog | None:
        """
        Record a repeatable update, collapsing it into the previous row.

        The latest row for the complaint is updated in place (``updates``
        incremented, ``notes`` appended, timestamp refreshed) when it has
        the same actor and action label and is younger than
        ``ACTIVITY_COLLAPSE_WINDOW_SECONDS``.  Otherwise a new row starts.
        """
        window = timedelta(seconds=complaint_setting("ACTIVITY_COLLAPSE_WINDOW_SECONDS"))
        now = timezone.now()
        try:
            with transaction.atomic():
                last = (
                    ActivityLog.objects
                    .filter(complaint=complaint)
                    .order_by("-timestamp", "-id")
                    .first()
                )
                if (
                    last is not None
                    and last.user_id == actor.pk
                    and last.action == action
                    and now - last.timestamp <= window
                ):
                    merged = dict(last.details or {})
                    merged["updates"] = int(merged.get("updates", 1)) + 1
                    notes = list(merged.get("notes", []))
                    if note:
                        notes.append(note)
                    merged["notes"] = notes
                    last.details = merged
                    last.timestamp = now
                    last.save(update_fields=["details", "timestamp"])
                    return last

                payload = dict(details or {})
                payload.update({"updates": 1, "notes": [note] if note else []})
                return ActivityLog.objects.create(
                    user=actor,
                    role=actor.role,
                    action=action,
                    complaint=complaint,
                    timestamp=now,
                    details=payload,
                )
        except DatabaseError:
            logger.exception(
                "Failed to record activity %r for %s", action, complaint.complaint_code,
            )
            return None

    @staticmethod
    def timeline(complaint: Complaint) -> QuerySet:
        return (
            ActivityLog.objects
            .filter(complaint=complaint)
            .select_related("user")
            .order_by("timestamp", "id")
        )


# ═══════════════════════════════════════════════════════════════════
#  Complaint Query Service
# ═══════════════════════════════════════════════════════════════════

#: Personal queue: what is waiting on this actor.
INBOX_SCOPE_RULES = [
    (Role.ADMIN, lambda qs, u: qs.filter(scoping.admin_inbox_q(u))),
    (Role.DEAN, lambda qs, u: qs.filter(scoping.dean_inbox_q(u))),
    (Role.HOD, lambda qs, u: qs.filter(scoping.hod_inbox_q(u))),
    (Role.STAFF, lambda qs, u: qs.filter(scoping.staff_q(u))),
    (Role.STUDENT, lambda qs, u: qs.filter(scoping.student_q(u))),
]

#: What this actor is responsible for, including delegated work.
MANAGED_SCOPE_RULES = [
    (Role.ADMIN, lambda qs, u: qs.filter(scoping.admin_all_q(u))),
    (Role.DEAN, lambda qs, u: qs.filter(scoping.dean_inbox_q(u))),
    (Role.HOD, lambda qs, u: qs.filter(scoping.hod_managed_q(u))),
    (Role.STAFF, lambda qs, u: qs.filter(scoping.staff_q(u))),
    (Role.STUDENT, lambda qs, u: qs.filter(scoping.student_q(u))),
]

#: The broad "All Complaints" view.
ALL_SCOPE_RULES = [
    (Role.ADMIN, lambda qs, u: qs.filter(scoping.admin_all_q(u))),
    (Role.DEAN, lambda qs, u: qs.filter(scoping.dean_all_q(u))),
    (Role.HOD, lambda qs, u: qs.filter(scoping.hod_all_q(u))),
    (Role.STAFF, lambda qs, u: qs.filter(scoping.staff_q(u))),
    (Role.STUDENT, lambda qs, u: qs.filter(scoping.student_q(u))),
]

#: The actor's own submissions.  Admin-bound rows stay hidden from deans,
#: their own included.
MINE_SCOPE_RULES = [
    (Role.ADMIN, lambda qs, u: qs.filter(scoping.student_q(u))),
    (Role.DEAN, lambda qs, u: qs.filter(scoping.dean_mine_q(u))),
    (Role.HOD, lambda qs, u: qs.filter(scoping.student_q(u))),
    (Role.STAFF, lambda qs, u: qs.filter(scoping.student_q(u))),
    (Role.STUDENT, lambda qs, u: qs.filter(scoping.student_q(u))),
]

_LISTINGS = {
    "mine": MINE_SCOPE_RULES,
    "inbox": INBOX_SCOPE_RULES,
    "managed": MANAGED_SCOPE_RULES,
    "all": ALL_SCOPE_RULES,
}


class ComplaintQueryService:
    """
    Constructs role-scoped querysets for listing and loading complaints.
    """

    LISTINGS = ("mine", "inbox", "managed", "all")

    @staticmethod
    def base_queryset() -> QuerySet:
        return Complaint.objects.select_related(
            "submitted_by", "recipient", "assigned_to", "assigned_by",
        )

    @staticmethod
    def scoped_queryset(
        user: Any,
        listing: str,
        *,
        department_scope: bool = False,
    ) -> QuerySet:
        """Apply the scope predicate for ``listing`` to all complaints."""
        qs = ComplaintQueryService.base_queryset()
        if listing == "all" and department_scope and user.role == Role.STAFF:
            return qs.filter(scoping.staff_q(user, department_scope=True))
        rules = _LISTINGS.get(listing)
        if rules is None:
            raise DomainError(f"Unknown listing '{listing}'.")
        return apply_role_scope(qs, user, scope_rules=rules)

    @staticmethod
    def list_complaints(
        user: Any,
        listing: str,
        filters: dict[str, Any] | None = None,
        *,
        department_scope: bool = False,
    ) -> QuerySet:
        """
        Return the scoped listing with optional filters applied on top.

        Supported filter keys: ``status``, ``priority``, ``category``,
        ``search`` (title/code substring), ``escalated``.
        """
        qs = ComplaintQueryService.scoped_queryset(
            user, listing, department_scope=department_scope,
        )
        filters = filters or {}
        if filters.get("status"):
            status = normalize_status(filters["status"])
            if status is None:
                raise DomainError(f"Invalid status '{filters['status']}'.")
            qs = qs.filter(status=status)
        if filters.get("priority"):
            qs = qs.filter(priority__iexact=filters["priority"])
        if filters.get("category"):
            qs = qs.filter(category__iexact=filters["category"])
        if filters.get("search"):
            term = filters["search"]
            qs = qs.filter(title__icontains=term) | qs.filter(complaint_code__icontains=term)
        if filters.get("escalated") is not None:
            qs = qs.filter(is_escalated=filters["escalated"])
        return qs.distinct().order_by("-created_at")

    @staticmethod
    def get_visible(user: Any, complaint_id: Any) -> Complaint:
        try:
            return (
                ComplaintQueryService.base_queryset()
                .filter(scoping.visible_q(user))
                .get(pk=complaint_id)
            )
        except (Complaint.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("Complaint not found.")

    @staticmethod
    def scope_report(target_user: Any) -> dict[str, int]:
        """Listing counts for ``target_user``; used by the admin debug endpoint."""
        report = {}
        for listing in ComplaintQueryService.LISTINGS:
            report[listing] = ComplaintQueryService.scoped_queryset(target_user, listing).count()
        return report


# ═══════════════════════════════════════════════════════════════════
#  Complaint Creation Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintCreationService:
    """
    Builds a new complaint and routes it to its first recipient.
    """

    @staticmethod
    @transaction.atomic
    def create_complaint(validated_data: dict[str, Any], requesting_user: Any) -> Complaint:
        """
        Create a complaint from a validated payload.

        Routing precedence:

        1. ``recipient_staff_id`` — assigned directly to that staff member.
        2. ``recipient_hod_id``   — assigned directly to that HoD.
        3. ``recipient_role`` / ``recipient_id`` (or a legacy
           ``submitted_to`` label) — addressed, not assigned.

        The status always starts at ``Pending``.

        Raises
        ------
        DomainError
            Unknown, unapproved or inactive target user; dean target
            without ``recipient_id``.
        """
        data = dict(validated_data)
        staff_id = data.pop("recipient_staff_id", None)
        hod_id = data.pop("recipient_hod_id", None)
        office_label = data.pop("submitted_to", None)
        target = RecipientTarget.from_payload(
            recipient_role=data.pop("recipient_role", None),
            recipient_id=data.pop("recipient_id", None),
            submitted_to=office_label,
        )
        path = _clean_path(data.pop("assignment_path", None))
        source_role = requesting_user.role or Role.STUDENT
        department = (data.pop("department", "") or requesting_user.department or "").strip()

        complaint = Complaint(
            submitted_by=requesting_user,
            source_role=source_role,
            department=department,
            status=ComplaintStatus.PENDING,
            assignment_path=path or [source_role],
            **data,
        )

        direct_id, direct_role = (staff_id, Role.STAFF) if staff_id else (hod_id, Role.HOD)
        if direct_id:
            assignee = _get_assignable(direct_id, direct_role, label=role_title(direct_role))
            complaint.assigned_to = assignee
            complaint.assigned_to_role = direct_role
            complaint.assigned_at = timezone.now()
            _apply_target(complaint, direct_role, assignee)
            interested = [assignee]
        else:
            recipient, interested = _resolve_target(target, department=department)
            if target.role is not None:
                _apply_target(complaint, target.role, recipient)
            else:
                complaint.submitted_to = office_label or None

        _save(complaint)

        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Complaint Submitted",
            details={
                "complaint_code": complaint.complaint_code,
                **_target_snapshot(complaint),
                "assigned_to": complaint.assigned_to_id,
            },
        )

        NotificationService.notify(
            actor=requesting_user,
            recipients=requesting_user,
            event_type="submission",
            complaint=complaint,
            title="Complaint Submitted",
            message=f"Your complaint {complaint.complaint_code} has been submitted.",
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=[u for u in interested if u.pk != requesting_user.pk],
            event_type="submission",
            complaint=complaint,
            title="New Complaint",
            message=f"New complaint {complaint.complaint_code}: {complaint.title}",
            meta={"category": complaint.category, "department": complaint.department},
        )

        logger.info(
            "Complaint %s submitted by %s (recipient_role=%s, assigned_to=%s)",
            complaint.complaint_code,
            requesting_user,
            complaint.recipient_role,
            complaint.assigned_to_id,
        )
        return complaint


# ═══════════════════════════════════════════════════════════════════
#  Complaint Routing Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintRoutingService:
    """
    Changes who a complaint is addressed to and who is handling it.
    """

    @staticmethod
    @transaction.atomic
    def update_recipient(
        complaint_id: Any,
        requesting_user: Any,
        *,
        recipient_role: str | None = None,
        recipient_id: Any = None,
    ) -> Complaint:
        """
        The submitting student redirects a still-``Pending`` complaint.
        """
        complaint = _load_for_update(requesting_user, complaint_id)

        if (
            requesting_user.role != Role.STUDENT
            or complaint.submitted_by_id != requesting_user.pk
        ):
            raise PermissionDenied("Only the submitting student can change the recipient.")
        if complaint.status != ComplaintStatus.PENDING:
            raise InvalidTransition(
                "The recipient can only be changed while the complaint is Pending.",
                current=complaint.status,
            )

        target = RecipientTarget.from_payload(
            recipient_role=recipient_role, recipient_id=recipient_id,
        )
        if target.role is None:
            raise DomainError("A valid recipient_role is required.")
        recipient, interested = _resolve_target(target, department=complaint.department)

        before = _target_snapshot(complaint)
        released = _release_direct_assignment(complaint, keep=recipient)
        _apply_target(complaint, target.role, recipient)
        complaint.edits_count += 1
        complaint.last_edited_at = timezone.now()
        _save(complaint)

        details = {"from": before, "to": _target_snapshot(complaint)}
        if released is not None:
            details["released_assignee"] = str(released)
        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Recipient Updated",
            details=details,
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=interested,
            event_type="submission",
            complaint=complaint,
            title="Complaint Redirected",
            message=f"Complaint {complaint.complaint_code} is now addressed to you.",
        )
        return complaint

    @staticmethod
    @transaction.atomic
    def reassign_recipient(
        complaint_id: Any,
        requesting_user: Any,
        *,
        recipient_role: str | None = None,
        recipient_id: Any = None,
        note: str = "",
    ) -> Complaint:
        """
        Admin, HoD or dean re-addresses a complaint in any status.

        HoDs may only re-address complaints of their own department.
        """
        require_role(
            requesting_user, *LEADER_ROLES,
            message="Only admin, HOD or dean can reassign the recipient.",
        )
        complaint = _load_for_update(requesting_user, complaint_id)

        if requesting_user.has_role(Role.HOD) and not requesting_user.same_department(complaint.department):
            raise PermissionDenied("HODs can only reassign complaints in their department.")

        target = RecipientTarget.from_payload(
            recipient_role=recipient_role, recipient_id=recipient_id,
        )
        if target.role is None:
            raise DomainError("A valid recipient_role is required.")
        recipient, interested = _resolve_target(target, department=complaint.department)

        before = _target_snapshot(complaint)
        released = None
        if complaint.status == ComplaintStatus.PENDING:
            released = _release_direct_assignment(complaint, keep=recipient)
        _apply_target(complaint, target.role, recipient)
        _save(complaint)

        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Recipient Reassigned",
            details={
                "from": before,
                "to": _target_snapshot(complaint),
                "note": note,
                "released_assignee": str(released) if released is not None else None,
            },
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=[u for u in interested if u.pk != requesting_user.pk],
            event_type="assignment",
            complaint=complaint,
            title="Complaint Reassigned",
            message=f"Complaint {complaint.complaint_code} has been reassigned to you.",
            meta={"note": note} if note else None,
        )
        return complaint

    @staticmethod
    @transaction.atomic
    def assign_complaint(
        complaint_id: Any,
        requesting_user: Any,
        *,
        staff_id: Any,
        deadline=None,
        assigned_by_role: str | None = None,
        assignment_path: list[str] | None = None,
    ) -> Complaint:
        """
        Admin or dean assigns a complaint to a staff member.

        Raises
        ------
        PermissionDenied
            Actor is not admin/dean; dean and staff departments differ.
        DomainError
            Target is not an active, approved staff user; the claimed
            ``assigned_by_role`` is not the actor's role.
        InvalidTransition
            Complaint is resolved or closed.
        """
        require_role(
            requesting_user, Role.ADMIN, Role.DEAN,
            message="Only admin or dean can assign complaints to staff.",
        )
        if assigned_by_role and normalize_role(assigned_by_role) != requesting_user.role:
            raise DomainError("assigned_by_role must match your role.")

        complaint = _load_for_update(requesting_user, complaint_id)
        if complaint.status not in ASSIGNABLE_STATUSES:
            raise InvalidTransition(
                current=complaint.status,
                target=ComplaintStatus.IN_PROGRESS,
                reason="Only open complaints can be assigned.",
            )

        staff = _get_assignable(staff_id, Role.STAFF, label="staff member")
        if requesting_user.role == Role.DEAN and not requesting_user.same_department(staff.department):
            raise PermissionDenied("Can only assign staff in your department")

        previous = complaint.assigned_to_id
        _assign(
            complaint,
            assignee=staff,
            actor=requesting_user,
            deadline=deadline,
            status=ComplaintStatus.IN_PROGRESS,
        )
        if requesting_user.role == Role.DEAN and Role.DEAN not in complaint.assignment_path:
            complaint.append_path(Role.DEAN)
        complaint.append_path(*_clean_path(assignment_path))
        _save(complaint)

        action = "Complaint Reassigned" if previous else "Complaint Assigned"
        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action=action,
            details={
                "assigned_to": staff.pk,
                "previous_assignee": previous,
                "deadline": deadline.isoformat() if deadline else None,
            },
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=staff,
            event_type="assignment",
            complaint=complaint,
            title="New Assignment",
            message=f"Complaint {complaint.complaint_code} has been assigned to you.",
            meta={"deadline": deadline.isoformat() if deadline else None},
        )
        _notify_status(
            requesting_user, complaint,
            f"Your complaint {complaint.complaint_code} is now In Progress.",
        )
        logger.info("%s %s → staff %s by %s", action, complaint.complaint_code, staff.pk, requesting_user)
        return complaint

    @staticmethod
    @transaction.atomic
    def dean_assign_to_hod(
        complaint_id: Any,
        requesting_user: Any,
        *,
        hod_id: Any,
        deadline=None,
    ) -> Complaint:
        """
        Dean hands a complaint to a HoD.  The status becomes ``Assigned``
        and stays there until the HoD accepts or rejects.
        """
        require_role(requesting_user, Role.DEAN, message="Only a dean can assign complaints to a HOD.")
        complaint = _load_for_update(requesting_user, complaint_id)
        if complaint.status not in HOD_HANDOFF_SOURCES:
            raise InvalidTransition(
                current=complaint.status,
                target=ComplaintStatus.ASSIGNED,
            )

        hod = _get_assignable(hod_id, Role.HOD, label="HOD")

        _assign(
            complaint,
            assignee=hod,
            actor=requesting_user,
            deadline=deadline,
            status=ComplaintStatus.ASSIGNED,
        )
        _apply_target(complaint, RecipientRole.HOD, hod)
        complaint.append_path(Role.DEAN, Role.HOD)
        _save(complaint)

        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Complaint Assigned to HOD",
            details={
                "hod_id": hod.pk,
                "deadline": deadline.isoformat() if deadline else None,
            },
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=hod,
            event_type="assignment",
            complaint=complaint,
            title="Complaint Awaiting Your Decision",
            message=f"Dean assigned complaint {complaint.complaint_code} to you. Please accept or reject.",
        )
        _notify_status(
            requesting_user, complaint,
            f"Your complaint {complaint.complaint_code} was forwarded to the head of department.",
        )
        return complaint

    @staticmethod
    @transaction.atomic
    def hod_assign_to_staff(
        complaint_id: Any,
        requesting_user: Any,
        *,
        staff_id: Any,
        deadline=None,
    ) -> Complaint:
        """
        HoD delegates a complaint to a staff member of the same department.
        """
        require_role(requesting_user, Role.HOD, message="Only a HOD can assign complaints to staff here.")
        complaint = _load_for_update(requesting_user, complaint_id)

        owns = requesting_user.pk in (complaint.assigned_to_id, complaint.recipient_id)
        if not (owns or requesting_user.same_department(complaint.department)):
            raise PermissionDenied("This complaint is outside your department.")
        if complaint.status not in ASSIGNABLE_STATUSES:
            raise InvalidTransition(
                current=complaint.status,
                target=ComplaintStatus.IN_PROGRESS,
                reason="Only open complaints can be assigned.",
            )

        staff = _get_assignable(staff_id, Role.STAFF, label="staff member")
        if not requesting_user.same_department(staff.department):
            raise PermissionDenied("Can only assign staff in your department")

        previous = complaint.assigned_to_id
        _assign(
            complaint,
            assignee=staff,
            actor=requesting_user,
            deadline=deadline,
            status=ComplaintStatus.IN_PROGRESS,
        )
        complaint.append_path(Role.HOD)
        _save(complaint)

        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Complaint Assigned to Staff",
            details={
                "assigned_to": staff.pk,
                "previous_assignee": previous,
                "deadline": deadline.isoformat() if deadline else None,
            },
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=staff,
            event_type="assignment",
            complaint=complaint,
            title="New Assignment",
            message=f"Complaint {complaint.complaint_code} has been assigned to you.",
        )
        _notify_status(
            requesting_user, complaint,
            f"Your complaint {complaint.complaint_code} is now In Progress.",
        )
        return complaint

    @staticmethod
    def _check_hod_decision(complaint: Complaint, requesting_user: Any) -> None:
        if complaint.assigned_to_id != requesting_user.pk:
            raise PermissionDenied("This complaint is not assigned to you.")
        if complaint.status not in HOD_DECISION_SOURCES:
            raise InvalidTransition(
                current=complaint.status,
                reason="Only Assigned or Pending complaints await a HOD decision.",
            )

    @staticmethod
    @transaction.atomic
    def hod_accept_assignment(complaint_id: Any, requesting_user: Any) -> Complaint:
        """HoD accepts: ``In Progress``, path gains ``hod``."""
        require_role(requesting_user, Role.HOD, message="Only a HOD can accept this assignment.")
        complaint = _load_for_update(requesting_user, complaint_id)
        ComplaintRoutingService._check_hod_decision(complaint, requesting_user)

        complaint.status = ComplaintStatus.IN_PROGRESS
        complaint.assigned_at = timezone.now()
        complaint.append_path(Role.HOD)
        _save(complaint)

        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Complaint accepted by HOD",
            details={"status": complaint.status},
        )
        if complaint.assigned_by_id and complaint.assigned_by_role == Role.DEAN:
            NotificationService.notify(
                actor=requesting_user,
                recipients=complaint.assigned_by,
                event_type="accept",
                complaint=complaint,
                title="HOD Accepted Assignment",
                message=f"Complaint {complaint.complaint_code} was accepted by the HOD.",
            )
        _notify_status(
            requesting_user, complaint,
            f"Your complaint {complaint.complaint_code} was accepted and is now In Progress.",
        )
        return complaint

    @staticmethod
    @transaction.atomic
    def hod_reject_assignment(
        complaint_id: Any,
        requesting_user: Any,
        *,
        reason: str = "",
    ) -> Complaint:
        """
        HoD rejects: assignment cleared, ``Pending`` again, addressed back
        to the dean who assigned it.

        Without an assigning dean the complaint returns to the admin office.
        """
        require_role(requesting_user, Role.HOD, message="Only a HOD can reject this assignment.")
        complaint = _load_for_update(requesting_user, complaint_id)
        ComplaintRoutingService._check_hod_decision(complaint, requesting_user)

        dean = complaint.assigned_by if complaint.assigned_by_role == Role.DEAN else None

        complaint.assigned_to = None
        complaint.assigned_to_role = None
        complaint.assigned_at = None
        complaint.status = ComplaintStatus.PENDING
        if dean is not None:
            complaint.append_path(Role.DEAN)
            _apply_target(complaint, RecipientRole.DEAN, dean)
        else:
            _apply_target(complaint, RecipientRole.ADMIN, None)
        _save(complaint)

        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Complaint rejected by HOD",
            details={"reason": reason, "returned_to": complaint.recipient_role},
        )
        returned_to = [dean] if dean is not None else list(_active_admins())
        NotificationService.notify(
            actor=requesting_user,
            recipients=returned_to,
            event_type="reject",
            complaint=complaint,
            title="HOD Rejected Assignment",
            message=f"Complaint {complaint.complaint_code} was returned by the HOD.",
            meta={"reason": reason} if reason else None,
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=complaint.submitted_by,
            event_type="reject",
            complaint=complaint,
            title="Complaint Returned",
            message=f"Your complaint {complaint.complaint_code} was returned for re-routing.",
        )
        return complaint


# ═══════════════════════════════════════════════════════════════════
#  Complaint Workflow Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintWorkflowService:
    """
    Status transitions driven by ``workflow`` tables, plus the
    submitter's own edit and delete operations.
    """

    @staticmethod
    @transaction.atomic
    def approve_complaint(
        complaint_id: Any,
        requesting_user: Any,
        *,
        note: str = "",
        assign_to_self: bool = False,
        assigned_to: Any = None,
    ) -> Complaint:
        """
        Admin, HoD or dean approves a ``Pending`` (or re-opens a
        ``Closed``) complaint.

        Writes three timeline rows in order: "Complaint Approved",
        "Complaint accepted by <Role>", "Status Updated to <status>".
        """
        role = requesting_user.role
        if role not in APPROVER_ROLES:
            raise PermissionDenied("Only admin, HOD or dean can approve complaints.")

        complaint = _load_for_update(requesting_user, complaint_id)
        if role == Role.HOD:
            owns = requesting_user.pk in (complaint.assigned_to_id, complaint.recipient_id)
            if not (owns or requesting_user.same_department(complaint.department)):
                raise PermissionDenied("This complaint is outside your department.")

        previous = complaint.status
        if previous not in APPROVAL_SOURCES:
            raise InvalidTransition(
                current=previous,
                target=approval_target(role),
                reason="Only Pending or Closed complaints can be approved.",
            )

        assignee = None
        if assign_to_self:
            assignee = requesting_user
        elif assigned_to not in (None, ""):
            assignee = ComplaintWorkflowService._approval_assignee(requesting_user, assigned_to)

        new_status = approval_target(role)
        complaint.status = new_status
        if role not in complaint.assignment_path:
            complaint.append_path(role)
        if assignee is not None:
            _assign(complaint, assignee=assignee, actor=requesting_user, status=new_status)
        now = timezone.now()
        complaint.append_note(note, at=now)
        _save(complaint)

        title = role_title(role)
        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Complaint Approved",
            details={"from": previous, "to": new_status, "note": note,
                     "assigned_to": assignee.pk if assignee else None},
            at=now,
        )
        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action=f"Complaint accepted by {title}",
            details={"status": new_status},
            at=now,
        )
        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action=f"Status Updated to {new_status}",
            details={"from": previous, "to": new_status},
            at=now,
        )

        NotificationService.notify(
            actor=requesting_user,
            recipients=complaint.submitted_by,
            event_type="accept",
            complaint=complaint,
            title="Complaint Accepted",
            message=f"Your complaint {complaint.complaint_code} was accepted by {title}.",
            meta={"status": new_status},
        )
        if assignee is not None and assignee.pk != requesting_user.pk:
            NotificationService.notify(
                actor=requesting_user,
                recipients=assignee,
                event_type="assignment",
                complaint=complaint,
                title="New Assignment",
                message=f"Complaint {complaint.complaint_code} has been assigned to you.",
            )
        logger.info("Complaint %s approved by %s (%s → %s)",
                    complaint.complaint_code, requesting_user, previous, new_status)
        return complaint

    @staticmethod
    def _approval_assignee(requesting_user: Any, assigned_to: Any) -> Any:
        try:
            user = User.objects.get(pk=assigned_to)
        except (User.DoesNotExist, ValueError, TypeError, DjangoValidationError):
            raise DomainError("Invalid assignee.")
        if user.role not in (Role.STAFF, Role.HOD):
            raise DomainError("Complaints can only be assigned to staff or a HOD.")
        if not user.is_assignable:
            raise DomainError("Selected assignee is not active or approved.")
        if requesting_user.has_role(Role.HOD, Role.DEAN) and not requesting_user.same_department(user.department):
            raise PermissionDenied("Can only assign staff in your department")
        return user

    @staticmethod
    def _authorize_status_update(complaint: Complaint, requesting_user: Any, rule, target: str) -> None:
        role = requesting_user.role
        if role not in rule.roles:
            if target == ComplaintStatus.RESOLVED:
                raise PermissionDenied("Only a dean or admin can resolve complaints.")
            raise PermissionDenied("Not authorized to update this complaint.")
        if role == Role.ADMIN:
            return
        if role == Role.STAFF:
            if complaint.assigned_to_id != requesting_user.pk:
                raise PermissionDenied("Not authorized to update this complaint.")
            return

        same_department = requesting_user.same_department(complaint.department)
        if role in rule.department_bound and not same_department:
            raise PermissionDenied(
                f"{role_title(role)} can only set {target} on complaints in their department."
            )
        owns = (
            role in (complaint.assignment_path or [])
            or complaint.assigned_by_role == role
            or requesting_user.pk in (complaint.assigned_to_id, complaint.recipient_id)
        )
        if not (same_department or owns or rule.leader_override):
            raise PermissionDenied("Not authorized to update this complaint.")

    @staticmethod
    @transaction.atomic
    def update_complaint_status(
        complaint_id: Any,
        requesting_user: Any,
        *,
        status: str,
        description: str = "",
    ) -> Complaint:
        """
        **The free status-update gateway.**

        Implementation Contract
        -----------------------
        1. Normalise ``status``; unknown values are a 400.
        2. Re-read the complaint under lock.
        3. ``Resolved`` locks everything but ``Closed`` (409).
        4. ``(current, target)`` must be in ``STATUS_UPDATE_RULES`` (409).
        5. Actor must satisfy the rule (403).
        6. Stamp ``resolved_at``; append the note; save.
        7. Timeline row (collapsed for staff); notify the submitter and,
           when staff acted, the department HoDs; status email on
           Resolved/Closed.
        """
        target = normalize_status(status)
        if target is None:
            raise DomainError(f"Invalid status '{status}'.")

        complaint = _load_for_update(requesting_user, complaint_id)
        current = complaint.status

        if is_locked_against(current, target):
            raise InvalidTransition(
                current=current,
                target=target,
                reason="Resolved complaints can only be closed.",
            )
        rule = STATUS_UPDATE_RULES.get((current, target))
        if rule is None:
            raise InvalidTransition(current=current, target=target)

        ComplaintWorkflowService._authorize_status_update(complaint, requesting_user, rule, target)

        now = timezone.now()
        complaint.status = target
        if rule.stamps_resolved:
            complaint.resolved_at = now
        complaint.append_note(description, at=now)
        _save(complaint)

        role = requesting_user.role
        action = status_update_action(role, current, target)
        if role == Role.STAFF:
            ActivityLogService.record_collapsible(
                complaint=complaint,
                actor=requesting_user,
                action=action,
                note=description,
                details={"from": current, "to": target},
            )
        else:
            ActivityLogService.record(
                complaint=complaint,
                actor=requesting_user,
                action=action,
                details={"from": current, "to": target, "description": description},
                at=now,
            )

        _notify_status(
            requesting_user, complaint,
            f"Your complaint {complaint.complaint_code} is now {target}.",
            previous=current,
        )
        if role == Role.STAFF:
            NotificationService.notify(
                actor=requesting_user,
                recipients=_department_hods(complaint.department or requesting_user.department),
                event_type="status",
                complaint=complaint,
                title="Staff Update",
                message=(
                    f"{requesting_user.get_full_name() or requesting_user.username} "
                    f"set complaint {complaint.complaint_code} to {target}."
                ),
                meta={"status": target, "previous": current},
            )
        if rule.sends_email and current != target:
            enqueue_side_effect(
                send_complaint_update_email,
                complaint,
                action=target.lower(),
                by_role=role_title(role),
                note=description,
                label="status-email",
            )
        logger.info("Complaint %s: %s → %s by %s", complaint.complaint_code, current, target, requesting_user)
        return complaint

    @staticmethod
    @transaction.atomic
    def edit_complaint(complaint_id: Any, requesting_user: Any, changes: dict[str, Any]) -> Complaint:
        """Submitter edits title/description/category/priority while Pending."""
        complaint = _load_for_update(requesting_user, complaint_id)
        if complaint.submitted_by_id != requesting_user.pk:
            raise PermissionDenied("Only the submitter can edit this complaint.")
        if complaint.status != ComplaintStatus.PENDING:
            raise InvalidTransition(
                "Complaints can only be edited while Pending.",
                current=complaint.status,
            )

        changed = []
        for field in _EDITABLE_FIELDS:
            if field in changes and getattr(complaint, field) != changes[field]:
                setattr(complaint, field, changes[field])
                changed.append(field)
        if not changed:
            return complaint

        complaint.edits_count += 1
        complaint.last_edited_at = timezone.now()
        _save(complaint)

        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Complaint Edited",
            details={"fields": changed},
        )
        return complaint

    @staticmethod
    @transaction.atomic
    def soft_delete(complaint_id: Any, requesting_user: Any) -> Complaint:
        """Submitter withdraws a Pending complaint.  The row is kept."""
        complaint = _load_for_update(requesting_user, complaint_id)
        if complaint.submitted_by_id != requesting_user.pk:
            raise PermissionDenied("Only the submitter can delete this complaint.")
        if complaint.status != ComplaintStatus.PENDING:
            raise InvalidTransition(
                "Complaints can only be deleted while Pending.",
                current=complaint.status,
            )

        complaint.is_deleted = True
        complaint.deleted_at = timezone.now()
        complaint.deleted_by = requesting_user
        _save(complaint)

        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Complaint Deleted",
        )
        return complaint


# ═══════════════════════════════════════════════════════════════════
#  Feedback Service
# ═══════════════════════════════════════════════════════════════════


#: Feedback listing: same reach as the "all" listing, without the staff
#: department widening.
FEEDBACK_SCOPE_RULES = [
    (Role.ADMIN, lambda qs, u: qs.filter(scoping.admin_all_q(u))),
    (Role.DEAN, lambda qs, u: qs.filter(scoping.dean_all_q(u))),
    (Role.HOD, lambda qs, u: qs.filter(scoping.hod_all_q(u))),
    (Role.STAFF, lambda qs, u: qs.filter(scoping.staff_q(u))),
    (Role.STUDENT, lambda qs, u: qs.filter(scoping.student_q(u))),
]


class FeedbackService:
    """
    Student ratings of resolved complaints: submission, review and the
    role-scoped feedback listing.
    """

    @staticmethod
    def list_feedback(user: Any, *, reviewed: bool | None = None) -> QuerySet:
        """Rated complaints visible to ``user``, newest feedback first."""
        qs = ComplaintQueryService.base_queryset().filter(scoping.feedback_q())
        qs = apply_role_scope(qs, user, scope_rules=FEEDBACK_SCOPE_RULES)
        if reviewed is not None:
            qs = qs.filter(feedback_reviewed=reviewed)
        return qs.order_by("-feedback_submitted_at", "-created_at")

    @staticmethod
    @transaction.atomic
    def submit_feedback(
        complaint_id: Any,
        requesting_user: Any,
        *,
        rating: int,
        comment: str = "",
    ) -> Complaint:
        """
        The submitter rates a ``Resolved`` complaint, once.
        """
        complaint = _load_for_update(requesting_user, complaint_id)
        if complaint.submitted_by_id != requesting_user.pk:
            raise PermissionDenied("Not authorized to give feedback")
        if complaint.status != ComplaintStatus.RESOLVED:
            raise DomainError("You can only give feedback on resolved complaints")
        if complaint.has_feedback:
            raise Conflict("Feedback has already been submitted for this complaint.")
        if not 1 <= int(rating) <= 5:
            raise DomainError("Rating must be between 1 and 5.")

        complaint.feedback_rating = int(rating)
        complaint.feedback_comment = comment or ""
        complaint.feedback_submitted_at = timezone.now()
        _save(complaint)

        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Feedback Given",
            details={"rating": complaint.feedback_rating, "comment": complaint.feedback_comment},
        )
        NotificationService.notify(
            actor=requesting_user,
            recipients=[complaint.assigned_to, complaint.assigned_by],
            event_type="feedback",
            complaint=complaint,
            title="Feedback Received",
            message=f"Feedback ({complaint.feedback_rating}/5) received for {complaint.complaint_code}.",
            meta={"rating": complaint.feedback_rating},
        )
        return complaint

    @staticmethod
    @transaction.atomic
    def review_feedback(complaint_id: Any, requesting_user: Any) -> Complaint:
        """
        Mark feedback as reviewed.  Idempotent.

        Allowed: admin, dean, HoD of the complaint's department, or the
        staff member it is assigned to.
        """
        complaint = _load_for_update(requesting_user, complaint_id)
        allowed = (
            requesting_user.has_role(Role.ADMIN, Role.DEAN)
            or (requesting_user.has_role(Role.HOD) and requesting_user.same_department(complaint.department))
            or (requesting_user.has_role(Role.STAFF) and complaint.assigned_to_id == requesting_user.pk)
        )
        if not allowed:
            raise PermissionDenied("Not authorized to review this feedback.")
        if not complaint.has_feedback:
            raise DomainError("This complaint has no feedback to review.")
        if complaint.feedback_reviewed:
            return complaint

        complaint.feedback_reviewed = True
        complaint.feedback_reviewed_at = timezone.now()
        complaint.feedback_reviewed_by = requesting_user
        _save(complaint)

        ActivityLogService.record(
            complaint=complaint,
            actor=requesting_user,
            action="Feedback Reviewed",
        )
        return complaint


# ═══════════════════════════════════════════════════════════════════
#  Escalation Service
# ═══════════════════════════════════════════════════════════════════


class EscalationService:
    """
    Flags complaints whose assignment has gone stale.

    Idempotent: already-escalated complaints are outside the filter, and
    each flip is a conditional ``UPDATE`` so concurrent sweeps cannot
    double-escalate.
    """

    @staticmethod
    def overdue_queryset(now=None) -> QuerySet:
        now = now or timezone.now()
        cutoff = now - timedelta(days=complaint_setting("ESCALATION_THRESHOLD_DAYS"))
        return (
            Complaint.objects
            .filter(
                assigned_at__isnull=False,
                assigned_at__lte=cutoff,
                is_escalated=False,
                is_deleted=False,
            )
            .exclude(status__in=TERMINAL_STATUSES)
        )

    @staticmethod
    def run(now=None) -> list[Complaint]:
        """Escalate every overdue complaint; return those flipped by this run."""
        now = now or timezone.now()
        escalated: list[Complaint] = []
        for complaint in EscalationService.overdue_queryset(now).select_related("assigned_to"):
            with transaction.atomic():
                flipped = Complaint.objects.filter(
                    pk=complaint.pk, is_escalated=False,
                ).update(is_escalated=True, escalated_on=now, updated_at=now)
                if not flipped:
                    continue
                complaint.is_escalated = True
                complaint.escalated_on = now
                ActivityLogService.record(
                    complaint=complaint,
                    actor=None,
                    role="system",
                    action="Complaint Escalated",
                    details={"assigned_at": complaint.assigned_at.isoformat()},
                    at=now,
                )
                NotificationService.notify(
                    actor=None,
                    recipients=_active_admins(),
                    event_type="status",
                    complaint=complaint,
                    title="Complaint Escalated",
                    message=(
                        f"Complaint {complaint.complaint_code} has been assigned for more than "
                        f"{complaint_setting('ESCALATION_THRESHOLD_DAYS')} days without resolution."
                    ),
                    meta={"escalated": True},
                )
            escalated.append(complaint)

        if escalated:
            logger.info("Escalated %d complaint(s)", len(escalated))
        return escalated
