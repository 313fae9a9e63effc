"""
Core constants — **Single Source of Truth** for project-wide magic numbers.

Deployments override these through ``settings.COMPLAINTS``; code reads the
effective value with ``complaint_setting`` instead of hardcoding.
"""

from typing import Any

from django.conf import settings

# ── Escalation ──────────────────────────────────────────────────────
# Complaints assigned longer ago than this, and still unresolved, are
# flagged by the ``check_escalations`` sweep.
ESCALATION_THRESHOLD_DAYS: int = 2

# ── Activity log collapse ───────────────────────────────────────────
# Repeated staff status updates on the same status by the same user
# within this many seconds update a single timeline entry.
ACTIVITY_COLLAPSE_WINDOW_SECONDS: int = 600

# ── Complaint content ───────────────────────────────────────────────
DESCRIPTION_MAX_LENGTH: int = 10_000

_DEFAULTS: dict[str, Any] = {
    "ESCALATION_THRESHOLD_DAYS": ESCALATION_THRESHOLD_DAYS,
    "ACTIVITY_COLLAPSE_WINDOW_SECONDS": ACTIVITY_COLLAPSE_WINDOW_SECONDS,
    "STATUS_EMAILS_ENABLED": True,
}


def complaint_setting(name: str) -> Any:
    """Return ``settings.COMPLAINTS[name]`` falling back to the defaults above."""
    overrides = getattr(settings, "COMPLAINTS", {}) or {}
    return overrides.get(name, _DEFAULTS[name])
