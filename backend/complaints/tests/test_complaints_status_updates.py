"""
Integration tests for approval and the free status-update endpoint.

Reference behaviour
-------------------
- Only deans (own department) and admins may resolve.
- Resolved complaints can only be closed.
- Repeated staff updates inside the collapse window share one timeline row.
- Resolve/close sends the student a status email after commit.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from complaints.models import ActivityLog, ComplaintStatus
from complaints.services import ComplaintCreationService, ComplaintRoutingService
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


class _StatusTestBase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.student = make_user("st_student", "student")
        cls.staff = make_user("st_staff", "staff")
        cls.other_staff = make_user("st_other_staff", "staff")
        cls.hod = make_user("st_hod", "hod")
        cls.dean = make_user("st_dean", "dean")
        cls.foreign_dean = make_user("st_foreign_dean", "dean", department="EE")
        cls.admin = make_user("st_admin", "admin")

    def setUp(self):
        self.client = APIClient()

    def create(self, **routing):
        return ComplaintCreationService.create_complaint(
            {"title": "Heating broken", "category": "Facilities", **routing}, self.student,
        )

    def set_status(self, user, complaint, new_status, description=""):
        self.client.force_authenticate(user)
        with self.captureOnCommitCallbacks(execute=True):
            return self.client.put(
                reverse("complaints:complaint-update-status", args=[complaint.pk]),
                {"status": new_status, "description": description},
                format="json",
            )


class TestStaffStatusUpdates(_StatusTestBase):

    def setUp(self):
        super().setUp()
        self.complaint = self.create(recipient_role="dean", recipient_id=self.dean.pk)
        ComplaintRoutingService.assign_complaint(self.complaint.pk, self.dean, staff_id=self.staff.pk)

    def test_staff_moves_to_under_review(self):
        resp = self.set_status(self.staff, self.complaint, "under_review", "Parts ordered")

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        self.assertEqual(resp.data["status"], ComplaintStatus.UNDER_REVIEW)
        self.assertIn("Parts ordered", resp.data["resolution_note"])
        self.assertTrue(
            ActivityLog.objects.filter(
                complaint=self.complaint, action="Status Updated to Under Review",
            ).exists()
        )
        self.assertTrue(Notification.objects.filter(recipient=self.student, type="status").exists())
        self.assertTrue(Notification.objects.filter(recipient=self.hod, title="Staff Update").exists())

    def test_staff_cannot_resolve(self):
        resp = self.set_status(self.staff, self.complaint, "Resolved")

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn("dean or admin", resp.data["detail"])

    def test_unassigned_staff_cannot_update(self):
        resp = self.set_status(self.other_staff, self.complaint, "Under Review")

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_repeated_updates_collapse(self):
        self.set_status(self.staff, self.complaint, "In Progress", "Checked boiler")
        self.set_status(self.staff, self.complaint, "In Progress", "Called vendor")

        logs = ActivityLog.objects.filter(
            complaint=self.complaint, action="Status Updated to In Progress",
        )
        self.assertEqual(logs.count(), 1)
        entry = logs.get()
        self.assertEqual(entry.details["updates"], 2)
        self.assertEqual(entry.details["notes"], ["Checked boiler", "Called vendor"])

    def test_unknown_status_is_a_validation_error(self):
        resp = self.set_status(self.staff, self.complaint, "Teleported")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_illegal_edge_is_a_conflict(self):
        resp = self.set_status(self.staff, self.complaint, "Pending")

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["error"], "invalid-transition")


class TestResolution(_StatusTestBase):

    def setUp(self):
        super().setUp()
        self.complaint = self.create(recipient_role="dean", recipient_id=self.dean.pk)
        ComplaintRoutingService.assign_complaint(self.complaint.pk, self.dean, staff_id=self.staff.pk)

    def test_dean_of_other_department_cannot_resolve(self):
        resp = self.set_status(self.foreign_dean, self.complaint, "Resolved")

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.complaint.refresh_from_db()
        self.assertEqual(self.complaint.status, ComplaintStatus.IN_PROGRESS)

    def test_dean_resolves_and_student_is_emailed(self):
        resp = self.set_status(self.dean, self.complaint, "Resolved", "Boiler replaced")

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        self.assertEqual(resp.data["status"], ComplaintStatus.RESOLVED)
        self.assertIsNotNone(resp.data["resolved_at"])
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.student.email])
        self.assertIn("resolved", mail.outbox[0].subject)

    def test_resolved_complaint_is_locked(self):
        self.set_status(self.dean, self.complaint, "Resolved")

        resp = self.set_status(self.admin, self.complaint, "In Progress")

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertIn("only be closed", resp.data["detail"])

    def test_resolved_complaint_can_be_closed(self):
        self.set_status(self.dean, self.complaint, "Resolved")
        mail.outbox.clear()

        resp = self.set_status(self.dean, self.complaint, "Closed")

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        self.assertEqual(resp.data["status"], ComplaintStatus.CLOSED)
        self.assertEqual(len(mail.outbox), 1)

    def test_leader_timeline_wording(self):
        self.set_status(self.dean, self.complaint, "Resolved")

        self.assertTrue(
            ActivityLog.objects.filter(
                complaint=self.complaint,
                action="Dean updated status from In Progress to Resolved",
            ).exists()
        )


class TestApproval(_StatusTestBase):

    def approve(self, user, complaint, **data):
        self.client.force_authenticate(user)
        with self.captureOnCommitCallbacks(execute=True):
            return self.client.put(
                reverse("complaints:complaint-approve", args=[complaint.pk]),
                data,
                format="json",
            )

    def test_admin_approval_writes_three_logs_in_order(self):
        complaint = self.create(recipient_role="admin")

        resp = self.approve(self.admin, complaint, note="Looking into it")

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        self.assertEqual(resp.data["status"], ComplaintStatus.ACCEPTED)
        self.assertIn("admin", resp.data["assignment_path"])
        actions = list(
            ActivityLog.objects
            .filter(complaint=complaint)
            .exclude(action="Complaint Submitted")
            .values_list("action", flat=True)
        )
        self.assertEqual(actions, [
            "Complaint Approved",
            "Complaint accepted by Admin",
            "Status Updated to Accepted",
        ])
        self.assertTrue(Notification.objects.filter(recipient=self.student, type="accept").exists())

    def test_dean_approval_goes_straight_to_in_progress(self):
        complaint = self.create(recipient_role="dean", recipient_id=self.dean.pk)

        resp = self.approve(self.dean, complaint)

        self.assertEqual(resp.data["status"], ComplaintStatus.IN_PROGRESS)

    def test_approval_with_self_assignment(self):
        complaint = self.create(recipient_role="hod", recipient_id=self.hod.pk)

        resp = self.approve(self.hod, complaint, assign_to_self=True)

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        self.assertEqual(resp.data["assigned_to"]["id"], self.hod.pk)

    def test_cannot_approve_in_progress_complaint(self):
        complaint = self.create(recipient_role="admin")
        ComplaintRoutingService.assign_complaint(complaint.pk, self.admin, staff_id=self.staff.pk)

        resp = self.approve(self.admin, complaint)

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)

    def test_student_cannot_approve(self):
        complaint = self.create(recipient_role="admin")

        resp = self.approve(self.student, complaint)

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_closed_complaint_can_be_reapproved(self):
        complaint = self.create(recipient_role="admin")
        self.set_status(self.admin, complaint, "Closed")

        resp = self.approve(self.admin, complaint)

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        self.assertEqual(resp.data["status"], ComplaintStatus.ACCEPTED)
