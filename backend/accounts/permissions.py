"""
DRF permission classes shared by every protected endpoint.
"""

from __future__ import annotations

from rest_framework.permissions import BasePermission

from core.domain.exceptions import PermissionDenied


class IsActiveAccount(BasePermission):
    """
    Reject deactivated accounts on every request.

    JWTs stay valid until they expire, so deactivation must be checked per
    request rather than at login.  The failure carries the
    ``inactive-account`` code so clients can force a logout.
    """

    def has_permission(self, request, view) -> bool:
        user = request.user
        if user is None or not user.is_authenticated:
            return False
        if not user.is_active:
            raise PermissionDenied(
                "Account Deactivated by the admin",
                code="inactive-account",
            )
        return True
