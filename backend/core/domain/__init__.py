"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF handler rendering domain exceptions as ``{error, detail}``.
notifications      Notification creation helper (synchronous + deferred).
side_effects       Post-commit, failure-tolerant execution of side effects.
transactions       ``select_for_update`` helper for read-modify-write.
access             Role-scoped queryset dispatch and role guard.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.notifications import NotificationService
    from core.domain.side_effects import enqueue_side_effect
    from core.domain.transactions import lock_for_update
    from core.domain.access import apply_role_scope
"""
