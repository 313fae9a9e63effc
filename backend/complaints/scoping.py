"""
Visibility predicates.

Each function returns a ``Q`` built only from stored complaint fields and
the actor's own id/role/department, so scoping is applied in the query
itself and counts, pagination and single-object loads all agree with the
listings.

Hard boundary: every dean-facing predicate is combined with
``~admin_bound_q()``.  A complaint whose ``submitted_to``,
``assigned_by_role``, ``recipient_role`` or any ``assignment_path`` entry
mentions "admin" is invisible to deans, whatever else matches.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db.models import Q

from accounts.models import Role

from .models import RecipientRole

if TYPE_CHECKING:
    from accounts.models import User


def not_deleted_q() -> Q:
    return Q(is_deleted=False)


def department_q(department: str | None, field: str = "department") -> Q:
    """Case-insensitive department match; an empty department matches nothing."""
    department = (department or "").strip()
    if not department:
        return Q(pk__in=[])
    return Q(**{f"{field}__iexact": department})


def admin_bound_q() -> Q:
    return (
        Q(submitted_to__icontains="admin")
        | Q(assigned_by_role__iexact="admin")
        | Q(recipient_role__iexact="admin")
        | Q(assignment_path__icontains="admin")
    )


def leadership_bound_q() -> Q:
    """Complaints addressed to the admin or dean offices."""
    return (
        Q(submitted_to__iregex=r"admin|dean")
        | Q(recipient_role__in=[RecipientRole.ADMIN, RecipientRole.DEAN])
    )


# ── Student ─────────────────────────────────────────────────────────

def student_q(user: User) -> Q:
    return Q(submitted_by=user) & not_deleted_q()


def feedback_q() -> Q:
    return Q(feedback_rating__isnull=False)


# ── Staff ───────────────────────────────────────────────────────────

def staff_q(user: User, *, department_scope: bool = False) -> Q:
    q = Q(assigned_to=user)
    if department_scope:
        q |= department_q(user.department)
    return q & not_deleted_q()


# ── Head of department ──────────────────────────────────────────────

def hod_inbox_q(user: User) -> Q:
    """Explicitly assigned to, or routed to, this HoD within their department."""
    mine = Q(assigned_to=user) | Q(recipient_role=RecipientRole.HOD, recipient=user)
    return mine & department_q(user.department) & not_deleted_q()


def _hod_department_filter(user: User) -> Q:
    """Hide leadership-bound complaints unless assigned inside the department."""
    assigned_inside = department_q(user.department, "assigned_to__department")
    return ~leadership_bound_q() | assigned_inside


def hod_managed_q(user: User) -> Q:
    """
    Inbox plus work handed to staff/HoDs of the department, plus anything
    routed to a HoD of the department.

    Complaints a peer HoD merely submitted or holds privately are not
    included: only assignment or HoD routing brings them in.
    """
    dept = user.department
    assigned_in_dept = (
        Q(assigned_to__role__in=[Role.STAFF, Role.HOD])
        & department_q(dept, "assigned_to__department")
    )
    routed_to_dept_hod = (
        Q(recipient_role=RecipientRole.HOD)
        & department_q(dept, "recipient__department")
    )
    team = (assigned_in_dept | routed_to_dept_hod) & department_q(dept) & not_deleted_q()
    return hod_inbox_q(user) | (team & _hod_department_filter(user))


def hod_all_q(user: User) -> Q:
    """Generic "All Complaints" view: department-wide."""
    return department_q(user.department) & not_deleted_q() & _hod_department_filter(user)


# ── Dean ────────────────────────────────────────────────────────────

def dean_inbox_q(user: User) -> Q:
    mine = Q(recipient_role=RecipientRole.DEAN, recipient=user) | Q(assigned_by=user)
    return mine & ~admin_bound_q() & not_deleted_q()


def dean_all_q(user: User) -> Q:
    return ~admin_bound_q() & not_deleted_q()


def dean_mine_q(user: User) -> Q:
    """A dean's own submissions, minus any the admin office is handling."""
    return student_q(user) & ~admin_bound_q()


# ── Admin ───────────────────────────────────────────────────────────

def admin_inbox_q(user: User) -> Q:
    return (Q(recipient_role=RecipientRole.ADMIN) | Q(assigned_to=user)) & not_deleted_q()


def admin_all_q(user: User) -> Q:
    return not_deleted_q()


# ── Single-object visibility ────────────────────────────────────────

def visible_q(user: User) -> Q:
    """Which complaints ``user`` may load by id."""
    role = user.role
    if role == Role.ADMIN:
        return admin_all_q(user)
    if role == Role.DEAN:
        return dean_all_q(user)
    own = Q(submitted_by=user) | Q(assigned_to=user) | Q(recipient=user)
    if role == Role.HOD:
        return (own & not_deleted_q()) | hod_all_q(user)
    if role == Role.STAFF:
        return (own | department_q(user.department)) & not_deleted_q()
    return student_q(user)


def actionable_q(user: User) -> Q:
    """
    Which complaints ``user`` may even attempt to mutate.

    Authorisation proper happens in the services; this only enforces the
    hard boundaries (soft-deleted rows, dean/admin isolation).
    """
    q = not_deleted_q()
    if user.role == Role.DEAN:
        q &= ~admin_bound_q()
    return q
