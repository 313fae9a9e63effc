"""
Smoke tests — verify that Django boots, URL routing resolves, and
the core domain modules are importable.

These tests require a DB only where they touch models; the rest just
prove the plumbing works.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from django.urls import resolve, reverse


# ════════════════════════════════════════════════════════════════════
#  URL Routing Smoke Tests
# ════════════════════════════════════════════════════════════════════

class TestURLRouting:
    """Ensure all top-level app URL namespaces resolve without 404."""

    EXPECTED_URLS = [
        # (url_name, expected_path)
        ("complaints:complaint-list",    "/api/complaints/"),
        ("complaints:complaint-mine",    "/api/complaints/mine/"),
        ("complaints:complaint-inbox",   "/api/complaints/inbox/"),
        ("complaints:complaint-managed", "/api/complaints/managed/"),
        ("complaints:complaint-all",     "/api/complaints/all/"),
        ("complaints:complaint-feedback-received", "/api/complaints/feedback/"),
        ("core:notification-list",       "/api/core/notifications/"),
        ("accounts:login",               "/api/accounts/auth/login/"),
        ("accounts:me",                  "/api/accounts/me/"),
        ("schema",                       "/api/schema/"),
    ]

    @pytest.mark.parametrize("url_name,expected_path", EXPECTED_URLS)
    def test_url_resolves(self, url_name: str, expected_path: str):
        """Named URL reverses to the expected path."""
        url = reverse(url_name)
        assert url == expected_path, (
            f"{url_name} resolved to {url}, expected {expected_path}"
        )

    @pytest.mark.parametrize("url_name,expected_path", EXPECTED_URLS)
    def test_url_resolve_matches_view(self, url_name: str, expected_path: str):
        """Path resolves to a view function (not a 404)."""
        match = resolve(expected_path)
        assert match.func is not None

    def test_detail_actions_take_uuid(self):
        pk = "0b7f7b0e-3c2a-4a57-9d4b-3f0e8d2c1a55"
        url = reverse("complaints:complaint-update-status", args=[pk])
        assert url == f"/api/complaints/{pk}/status/"


# ════════════════════════════════════════════════════════════════════
#  Core Domain Module Import Tests
# ════════════════════════════════════════════════════════════════════

class TestCoreDomainImports:
    """Verify that shared domain utility modules are importable."""

    def test_import_exceptions(self):
        from core.domain.exceptions import (
            Conflict,
            DomainError,
            InvalidTransition,
            NotFound,
            PermissionDenied,
        )
        # Ensure they form an inheritance chain
        assert issubclass(InvalidTransition, Conflict)
        assert issubclass(Conflict, DomainError)
        assert issubclass(PermissionDenied, DomainError)
        assert issubclass(NotFound, DomainError)

    def test_import_notifications(self):
        from core.domain.notifications import NotificationService
        assert hasattr(NotificationService, "create")
        assert hasattr(NotificationService, "notify")

    def test_import_transactions(self):
        from core.domain.transactions import lock_for_update
        assert callable(lock_for_update)

    def test_import_side_effects(self):
        from core.domain.side_effects import enqueue_side_effect
        assert callable(enqueue_side_effect)

    def test_import_access(self):
        from core.domain.access import apply_role_scope, require_role
        assert callable(apply_role_scope)
        assert callable(require_role)


# ════════════════════════════════════════════════════════════════════
#  Exception Behaviour Tests
# ════════════════════════════════════════════════════════════════════

class TestDomainExceptions:
    """Unit tests for domain exception classes."""

    def test_domain_error_message(self):
        from core.domain.exceptions import DomainError
        err = DomainError("test message")
        assert str(err) == "test message"
        assert err.code == "validation-error"

    def test_code_override(self):
        from core.domain.exceptions import PermissionDenied
        err = PermissionDenied("Account Deactivated by the admin", code="inactive-account")
        assert err.code == "inactive-account"

    def test_invalid_transition_structured(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition(
            current="Resolved",
            target="In Progress",
            reason="Resolved complaints can only be closed.",
        )
        assert "Resolved" in str(err)
        assert "In Progress" in str(err)
        assert "only be closed" in str(err)
        assert err.current == "Resolved"
        assert err.target == "In Progress"
        assert err.code == "invalid-transition"

    def test_invalid_transition_plain_message(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition("Already accepted.")
        assert str(err) == "Already accepted."


# ════════════════════════════════════════════════════════════════════
#  Access Helper Unit Tests
# ════════════════════════════════════════════════════════════════════

class TestAccessHelpers:
    """Unit tests for core.domain.access helpers."""

    def test_apply_role_scope_dispatches_on_role(self):
        from core.domain.access import apply_role_scope

        user = MagicMock()
        user.role = "dean"
        qs = MagicMock()
        rules = [
            ("admin", lambda q, u: "admin-scope"),
            ("dean", lambda q, u: "dean-scope"),
        ]

        assert apply_role_scope(qs, user, scope_rules=rules) == "dean-scope"

    def test_apply_role_scope_unknown_role_default_all(self):
        """Unknown role with default='all' returns unfiltered qs."""
        from core.domain.access import apply_role_scope

        user = MagicMock()
        user.role = "visitor"
        qs = MagicMock()

        result = apply_role_scope(qs, user, scope_rules=[], default="all")
        assert result is qs

    def test_apply_role_scope_unknown_role_default_none(self):
        """Unknown role with default='none' returns empty qs."""
        from core.domain.access import apply_role_scope

        user = MagicMock()
        user.role = "visitor"
        qs = MagicMock()

        apply_role_scope(qs, user, scope_rules=[], default="none")
        qs.none.assert_called_once()

    def test_require_role_raises(self):
        """require_role raises PermissionDenied for wrong role."""
        from core.domain.access import require_role
        from core.domain.exceptions import PermissionDenied

        user = MagicMock()
        user.role = "student"

        with pytest.raises(PermissionDenied):
            require_role(user, "dean", "admin")

    def test_require_role_passes(self):
        from core.domain.access import require_role

        user = MagicMock()
        user.role = "admin"

        require_role(user, "dean", "admin")


# ════════════════════════════════════════════════════════════════════
#  Side-effect Runner
# ════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestSideEffects:

    def test_failing_side_effect_is_swallowed(self, django_capture_on_commit_callbacks):
        from core.domain.side_effects import enqueue_side_effect

        boom = MagicMock(side_effect=RuntimeError("mail server down"))
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            enqueue_side_effect(boom, 1, label="boom", flag=True)

        assert len(callbacks) == 1
        boom.assert_called_once_with(1, flag=True)

    def test_side_effect_skipped_on_rollback(self, django_capture_on_commit_callbacks):
        from django.db import transaction

        from core.domain.side_effects import enqueue_side_effect

        fn = MagicMock()
        with django_capture_on_commit_callbacks(execute=True):
            try:
                with transaction.atomic():
                    enqueue_side_effect(fn)
                    raise RuntimeError("rollback")
            except RuntimeError:
                pass

        fn.assert_not_called()
