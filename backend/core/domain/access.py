"""
core.domain.access — Role-scoped queryset selectors (shared patterns).

╔══════════════════════════════════════════════════════════════════╗
║  IMPORTANT — Per-app scoping logic does NOT live here.          ║
║  Each app owns its own scope-rules table.  This module only     ║
║  provides the ordered role dispatch and a role guard.           ║
╚══════════════════════════════════════════════════════════════════╝

Usage in an app's service layer::

    from core.domain.access import apply_role_scope

    COMPLAINT_SCOPE_RULES = [
        ("admin",   lambda qs, u: qs),
        ("student", lambda qs, u: qs.filter(submitted_by=u)),
    ]

    qs = apply_role_scope(Complaint.objects.all(), user,
                          scope_rules=COMPLAINT_SCOPE_RULES)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from django.db.models import QuerySet

from core.domain.exceptions import PermissionDenied

if TYPE_CHECKING:
    from accounts.models import User

# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]

# A single scope rule: (canonical role, filter_fn).
ScopeRule = tuple[str, ScopeFilter]


def apply_role_scope(
    queryset: QuerySet,
    user: User,
    *,
    scope_rules: list[ScopeRule],
    default: str = "none",
) -> QuerySet:
    """
    Apply the scope rule registered for the user's role.

    Args:
        queryset:     Base (unfiltered) queryset.
        user:         The authenticated user.
        scope_rules:  Ordered ``(role, filter_fn)`` tuples; first match wins.
        default:      ``"none"`` (default) → empty queryset when no rule
                      matches, ``"all"`` → unfiltered.

    Returns:
        The (possibly filtered) queryset.
    """
    role = getattr(user, "role", None)
    for rule_role, filter_fn in scope_rules:
        if role == rule_role:
            return filter_fn(queryset, user)

    if default == "none":
        return queryset.none()
    return queryset


def require_role(user: User, *allowed_roles: str, message: str = "") -> None:
    """
    Guard that raises ``PermissionDenied`` if the user's role is not
    among ``allowed_roles``.
    """
    role = getattr(user, "role", None)
    if role not in allowed_roles:
        raise PermissionDenied(
            message or (
                f"Role '{role}' is not permitted for this operation. "
                f"Required: {', '.join(allowed_roles)}."
            )
        )
