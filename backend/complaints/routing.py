"""
Recipient targeting.

A complaint is addressed to a ``RecipientTarget``: a canonical recipient
role plus, for every role except admin, the specific user it names.
Admin-bound complaints go to the admin office as a whole.

Old clients send a free-text ``submittedTo`` office label ("Dean of
Engineering", "HOD Office", "Admin") instead.  ``role_from_label`` turns
such labels into a role once, at the boundary or in the
``normalize_recipients`` command, so no query matches label text at
request time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from accounts.models import normalize_role

from .models import RecipientRole

# Checked in order; "admin" wins over "dean" for labels like "Admin (Dean's office)".
_LABEL_PATTERNS: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"admin", re.IGNORECASE), RecipientRole.ADMIN),
    (re.compile(r"dean", re.IGNORECASE), RecipientRole.DEAN),
    (re.compile(r"\bhod\b|head\s*of\s*dep", re.IGNORECASE), RecipientRole.HOD),
    (re.compile(r"staff", re.IGNORECASE), RecipientRole.STAFF),
)

_LABELS: dict[str, str] = {
    RecipientRole.STAFF: "Staff",
    RecipientRole.HOD: "HOD",
    RecipientRole.DEAN: "Dean",
    RecipientRole.ADMIN: "Admin",
}


def role_from_label(label: str | None) -> str | None:
    """Return the recipient role a legacy office label refers to, if any."""
    if not label:
        return None
    for pattern, role in _LABEL_PATTERNS:
        if pattern.search(label):
            return str(role)
    return None


def label_for(role: str | None) -> str | None:
    """Canonical office label stored in ``submitted_to`` for ``role``."""
    return _LABELS.get(role) if role else None


@dataclass(frozen=True)
class RecipientTarget:
    """Who a complaint is addressed to."""

    role: str | None
    user_id: Any = None

    @property
    def requires_user(self) -> bool:
        return self.role in (RecipientRole.STAFF, RecipientRole.HOD, RecipientRole.DEAN)

    @property
    def is_empty(self) -> bool:
        return self.role is None and self.user_id in (None, "")

    @classmethod
    def from_payload(
        cls,
        *,
        recipient_role: str | None = None,
        recipient_id: Any = None,
        submitted_to: str | None = None,
    ) -> RecipientTarget:
        """
        Build a target from request fields.

        An explicit ``recipient_role`` (any alias accepted by
        ``normalize_role``) wins over the legacy label.
        """
        role = normalize_role(recipient_role) if recipient_role else None
        if role is None:
            role = role_from_label(submitted_to)
        if role is not None and role not in RecipientRole.values:
            role = None
        return cls(role=role, user_id=recipient_id)
