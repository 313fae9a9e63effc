"""
Tests for the escalation sweep and the maintenance commands.
"""

from __future__ import annotations

from datetime import timedelta
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from complaints.models import ActivityLog, Complaint, ComplaintStatus
from complaints.services import (
    ComplaintCreationService,
    ComplaintRoutingService,
    EscalationService,
)
from core.models import Notification

User = get_user_model()


def make_user(username: str, role: str, department: str = "CS", **extra) -> User:
    extra.setdefault("is_approved", True)
    return User.objects.create_user(
        username=username,
        password="Campus!Pass42",
        email=f"{username}@uni.test",
        role=role,
        department=department,
        **extra,
    )


class TestEscalationSweep(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.student = make_user("esc_student", "student")
        cls.admin = make_user("esc_admin", "admin")
        cls.staff = make_user("esc_staff", "staff")

    def assigned_complaint(self, *, days_ago: int, status=ComplaintStatus.IN_PROGRESS):
        complaint = ComplaintCreationService.create_complaint(
            {"title": f"Stale {days_ago}", "category": "IT", "recipient_role": "admin"},
            self.student,
        )
        ComplaintRoutingService.assign_complaint(complaint.pk, self.admin, staff_id=self.staff.pk)
        Complaint.objects.filter(pk=complaint.pk).update(
            assigned_at=timezone.now() - timedelta(days=days_ago),
            status=status,
        )
        return complaint

    def test_overdue_complaint_is_escalated_once(self):
        stale = self.assigned_complaint(days_ago=3)
        fresh = self.assigned_complaint(days_ago=1)

        with self.captureOnCommitCallbacks(execute=True):
            first = EscalationService.run()
        second = EscalationService.run()

        self.assertEqual([c.pk for c in first], [stale.pk])
        self.assertEqual(second, [])
        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertTrue(stale.is_escalated)
        self.assertIsNotNone(stale.escalated_on)
        self.assertFalse(fresh.is_escalated)
        self.assertEqual(
            ActivityLog.objects.filter(complaint=stale, action="Complaint Escalated").count(), 1,
        )
        self.assertTrue(
            Notification.objects.filter(recipient=self.admin, complaint=stale, title="Complaint Escalated").exists()
        )

    def test_terminal_complaints_are_skipped(self):
        self.assigned_complaint(days_ago=5, status=ComplaintStatus.RESOLVED)
        self.assigned_complaint(days_ago=5, status=ComplaintStatus.CLOSED)

        self.assertEqual(EscalationService.run(), [])

    @override_settings(COMPLAINTS={"ESCALATION_THRESHOLD_DAYS": 7})
    def test_threshold_is_configurable(self):
        self.assigned_complaint(days_ago=3)

        self.assertEqual(EscalationService.run(), [])

    def test_command_reports_count(self):
        self.assigned_complaint(days_ago=3)
        out = StringIO()

        call_command("check_escalations", stdout=out)

        self.assertIn("Escalated 1 complaint(s).", out.getvalue())


class TestNormalizeRecipientsCommand(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.student = make_user("norm_student", "student")
        cls.dean = make_user("norm_dean", "dean")

    def legacy_complaint(self, label: str, recipient=None) -> Complaint:
        complaint = ComplaintCreationService.create_complaint(
            {"title": label, "category": "General"}, self.student,
        )
        Complaint.objects.filter(pk=complaint.pk).update(
            submitted_to=label, recipient=recipient, recipient_role=None,
        )
        return complaint

    def test_labels_become_roles(self):
        admin_office = self.legacy_complaint("Admin Office")
        dean_office = self.legacy_complaint("Dean of Students", recipient=self.dean)
        orphan = self.legacy_complaint("HOD Office")
        out = StringIO()

        call_command("normalize_recipients", stdout=out)

        admin_office.refresh_from_db()
        dean_office.refresh_from_db()
        orphan.refresh_from_db()
        self.assertEqual(admin_office.recipient_role, "admin")
        self.assertEqual(admin_office.submitted_to, "Admin")
        self.assertEqual(dean_office.recipient_role, "dean")
        self.assertIsNone(orphan.recipient_role)
        self.assertIn("1 complaint(s) need a recipient", out.getvalue())

    def test_legacy_user_roles_are_rewritten(self):
        legacy = make_user("norm_legacy", "student")
        User.objects.filter(pk=legacy.pk).update(role="HOD")

        call_command("normalize_recipients", stdout=StringIO())

        legacy.refresh_from_db()
        self.assertEqual(legacy.role, "hod")

    def test_dry_run_writes_nothing(self):
        complaint = self.legacy_complaint("Admin Office")

        call_command("normalize_recipients", "--dry-run", stdout=StringIO())

        complaint.refresh_from_db()
        self.assertIsNone(complaint.recipient_role)
