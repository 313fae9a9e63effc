"""
Complaint status workflow — pure data.

Everything in this module is a lookup table or a side-effect-free
function, so the legal-transition graph can be enumerated and tested
without a database.

Tables
------
``STATUS_GRAPH``
    Every legal ``current → target`` edge, whichever operation drives it.

``STATUS_UPDATE_RULES``
    ``(current, target) → TransitionRule`` for the free status-update
    entry point.  Same-status rows record progress notes.  Pairs absent
    here are rejected with ``InvalidTransition``.

``APPROVAL_SOURCES``
    Statuses from which ``approve`` may run.  ``Closed`` is included so a
    closed complaint can be re-opened by approval.

Graph
-----
::

    Pending      → Assigned, Accepted, In Progress, Closed
    Assigned     → In Progress (HoD accepts), Pending (HoD rejects), Closed
    Accepted     → In Progress, Closed
    In Progress  → Under Review, Resolved, Closed
    Under Review → Resolved, Closed
    Resolved     → Closed                (lock: nothing else)
    Closed       → Accepted, In Progress (re-approval only)
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from accounts.models import Role

from .models import ComplaintStatus as S

STATUS_GRAPH: dict[str, frozenset[str]] = {
    S.PENDING: frozenset({S.ASSIGNED, S.ACCEPTED, S.IN_PROGRESS, S.CLOSED}),
    S.ASSIGNED: frozenset({S.IN_PROGRESS, S.PENDING, S.CLOSED}),
    S.ACCEPTED: frozenset({S.IN_PROGRESS, S.CLOSED}),
    S.IN_PROGRESS: frozenset({S.UNDER_REVIEW, S.RESOLVED, S.CLOSED}),
    S.UNDER_REVIEW: frozenset({S.RESOLVED, S.CLOSED}),
    S.RESOLVED: frozenset({S.CLOSED}),
    S.CLOSED: frozenset({S.ACCEPTED, S.IN_PROGRESS}),
}

#: Once a complaint reaches a locked status only these targets remain.
LOCKED_STATUSES: dict[str, frozenset[str]] = {
    S.RESOLVED: frozenset({S.CLOSED}),
}

TERMINAL_STATUSES: frozenset[str] = frozenset({S.RESOLVED, S.CLOSED})

APPROVAL_SOURCES: frozenset[str] = frozenset({S.PENDING, S.CLOSED})
APPROVER_ROLES: frozenset[str] = frozenset({Role.ADMIN, Role.HOD, Role.DEAN})

#: Statuses from which a complaint may be (re)assigned to staff.
ASSIGNABLE_STATUSES: frozenset[str] = frozenset(
    {S.PENDING, S.ASSIGNED, S.ACCEPTED, S.IN_PROGRESS}
)
#: Statuses from which a dean may hand a complaint to a HoD.
HOD_HANDOFF_SOURCES: frozenset[str] = frozenset({S.PENDING, S.ASSIGNED})
#: Statuses in which a HoD may accept or reject an assignment.
HOD_DECISION_SOURCES: frozenset[str] = frozenset({S.ASSIGNED, S.PENDING})

#: Roles that open work on a complaint without being its assignee.
LEADER_ROLES: frozenset[str] = frozenset({Role.HOD, Role.DEAN, Role.ADMIN})


@dataclass(frozen=True)
class TransitionRule:
    """
    What a free status update from one status to another requires and does.

    Attributes:
        roles:             Actor roles that may request the transition.
        department_bound:  Roles that must share the complaint's department
                           even when they otherwise own it.
        leader_override:   HoD/dean may act without department match or
                           ownership (close and resolve decisions).
        stamps_resolved:   Set ``resolved_at`` on success.
        sends_email:       Enqueue the student status email on success.
    """

    roles: frozenset[str]
    department_bound: frozenset[str] = frozenset()
    leader_override: bool = False
    stamps_resolved: bool = False
    sends_email: bool = False


_HANDLERS = frozenset({Role.STAFF, Role.HOD, Role.DEAN, Role.ADMIN})

_PROGRESS = TransitionRule(roles=_HANDLERS)
_CLOSE = TransitionRule(roles=_HANDLERS, leader_override=True, sends_email=True)
_RESOLVE = TransitionRule(
    roles=frozenset({Role.DEAN, Role.ADMIN}),
    department_bound=frozenset({Role.DEAN}),
    leader_override=True,
    stamps_resolved=True,
    sends_email=True,
)

STATUS_UPDATE_RULES: dict[tuple[str, str], TransitionRule] = {
    # ── Opening work ────────────────────────────────────────────────
    (S.PENDING, S.ACCEPTED): TransitionRule(roles=LEADER_ROLES),
    (S.PENDING, S.IN_PROGRESS): _PROGRESS,
    (S.ASSIGNED, S.IN_PROGRESS): TransitionRule(roles=LEADER_ROLES),
    (S.ACCEPTED, S.IN_PROGRESS): _PROGRESS,
    (S.IN_PROGRESS, S.UNDER_REVIEW): _PROGRESS,
    # ── Progress notes (status unchanged) ───────────────────────────
    (S.ACCEPTED, S.ACCEPTED): _PROGRESS,
    (S.IN_PROGRESS, S.IN_PROGRESS): _PROGRESS,
    (S.UNDER_REVIEW, S.UNDER_REVIEW): _PROGRESS,
    # ── Final authority ─────────────────────────────────────────────
    (S.IN_PROGRESS, S.RESOLVED): _RESOLVE,
    (S.UNDER_REVIEW, S.RESOLVED): _RESOLVE,
    # ── Closing ─────────────────────────────────────────────────────
    (S.PENDING, S.CLOSED): _CLOSE,
    (S.ASSIGNED, S.CLOSED): _CLOSE,
    (S.ACCEPTED, S.CLOSED): _CLOSE,
    (S.IN_PROGRESS, S.CLOSED): _CLOSE,
    (S.UNDER_REVIEW, S.CLOSED): _CLOSE,
    (S.RESOLVED, S.CLOSED): _CLOSE,
}


def approval_target(role: str) -> str:
    """Deans take the complaint straight into work; other approvers accept it."""
    return S.IN_PROGRESS if role == Role.DEAN else S.ACCEPTED


def is_locked_against(current: str, target: str) -> bool:
    """True when ``current`` is a locked status that forbids ``target``."""
    allowed = LOCKED_STATUSES.get(current)
    return allowed is not None and target not in allowed


def is_legal_edge(current: str, target: str) -> bool:
    return target in STATUS_GRAPH.get(current, frozenset())


# ── Boundary normalisation ──────────────────────────────────────────

_STATUS_KEYS: dict[str, str] = {
    re.sub(r"[^a-z]", "", value.lower()): value for value in S.values
}


def normalize_status(value: str | None) -> str | None:
    """
    Map loose client spellings onto ``ComplaintStatus`` values.

    >>> normalize_status("in-progress")
    'In Progress'
    >>> normalize_status("UNDER_REVIEW")
    'Under Review'
    """
    if value is None:
        return None
    return _STATUS_KEYS.get(re.sub(r"[^a-z]", "", str(value).lower()))


# ── Timeline wording ────────────────────────────────────────────────

_ROLE_TITLES: dict[str, str] = {
    Role.STUDENT: "Student",
    Role.STAFF: "Staff",
    Role.HOD: "HOD",
    Role.DEAN: "Dean",
    Role.ADMIN: "Admin",
}


def role_title(role: str | None) -> str:
    return _ROLE_TITLES.get(role or "", (role or "User").title())


def status_update_action(role: str, current: str, target: str) -> str:
    """
    Human-readable activity label for a free status update.

    Staff wording is kept stable per status so repeated updates collapse
    into one timeline row.
    """
    if role == Role.STAFF:
        return f"Status Updated to {target}"
    if current == target:
        return f"Progress note added by {role_title(role)} ({target})"
    return f"{role_title(role)} updated status from {current} to {target}"
