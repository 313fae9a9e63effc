"""
Integration tests for submitter-owned operations and feedback.

- Edit / soft delete / recipient change are allowed only while Pending.
- Feedback is accepted once, and only on Resolved complaints.
- Feedback review is idempotent.
- The activity timeline is returned in write order.
- The feedback listing follows each role's reach.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from complaints.models import ActivityLog, Complaint
from complaints.services import (
    ComplaintCreationService,
    ComplaintRoutingService,
    ComplaintWorkflowService,
    FeedbackService,
)

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


class _SubmitterBase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.student = make_user("fb_student", "student")
        cls.intruder = make_user("fb_intruder", "student")
        cls.staff = make_user("fb_staff", "staff")
        cls.hod = make_user("fb_hod", "hod")
        cls.dean = make_user("fb_dean", "dean")
        cls.admin = make_user("fb_admin", "admin")

    def setUp(self):
        self.client = APIClient()
        self.complaint = ComplaintCreationService.create_complaint(
            {"title": "Noisy dorm", "category": "Housing",
             "recipient_role": "dean", "recipient_id": self.dean.pk},
            self.student,
        )

    def detail_url(self) -> str:
        return reverse("complaints:complaint-detail", args=[self.complaint.pk])

    def action_url(self, name: str) -> str:
        return reverse(f"complaints:complaint-{name}", args=[self.complaint.pk])


class TestEditAndDelete(_SubmitterBase):

    def test_submitter_edits_pending_complaint(self):
        self.client.force_authenticate(self.student)

        resp = self.client.patch(self.detail_url(), {"title": "Very noisy dorm", "priority": "high"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        self.assertEqual(resp.data["title"], "Very noisy dorm")
        self.assertEqual(resp.data["priority"], "High")
        self.assertEqual(resp.data["edits_count"], 1)
        self.assertIsNotNone(resp.data["last_edited_at"])

    def test_other_student_cannot_edit(self):
        self.client.force_authenticate(self.intruder)

        resp = self.client.patch(self.detail_url(), {"title": "Hijacked"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_edit_after_approval_rejected(self):
        ComplaintWorkflowService.approve_complaint(self.complaint.pk, self.dean)
        self.client.force_authenticate(self.student)

        resp = self.client.patch(self.detail_url(), {"title": "Too late"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)

    def test_soft_delete_hides_complaint(self):
        self.client.force_authenticate(self.student)

        resp = self.client.delete(self.detail_url())

        self.assertEqual(resp.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(Complaint.objects.get(pk=self.complaint.pk).is_deleted)
        self.assertEqual(self.client.get(self.detail_url()).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(reverse("complaints:complaint-mine")).data, [])

    def test_delete_after_approval_rejected(self):
        ComplaintWorkflowService.approve_complaint(self.complaint.pk, self.dean)
        self.client.force_authenticate(self.student)

        resp = self.client.delete(self.detail_url())

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)


class TestRecipientChanges(_SubmitterBase):

    def test_student_redirects_pending_complaint(self):
        self.client.force_authenticate(self.student)

        resp = self.client.put(
            self.action_url("recipient"),
            {"recipient_role": "hod", "recipient_id": self.hod.pk},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        self.assertEqual(resp.data["recipient_role"], "hod")
        self.assertEqual(resp.data["recipient"]["id"], self.hod.pk)
        self.assertEqual(resp.data["submitted_to"], "HOD")
        self.assertEqual(resp.data["edits_count"], 1)

    def test_student_cannot_redirect_after_approval(self):
        ComplaintWorkflowService.approve_complaint(self.complaint.pk, self.dean)
        self.client.force_authenticate(self.student)

        resp = self.client.put(self.action_url("recipient"), {"recipient_role": "admin"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)

    def test_staff_cannot_use_student_redirect(self):
        self.client.force_authenticate(self.staff)

        resp = self.client.put(self.action_url("recipient"), {"recipient_role": "admin"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_dean_reassigns_with_note(self):
        self.client.force_authenticate(self.dean)

        resp = self.client.put(
            self.action_url("reassign"),
            {"recipient_role": "hod", "recipient_id": self.hod.pk, "note": "Department matter"},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        log = ActivityLog.objects.get(complaint=self.complaint, action="Recipient Reassigned")
        self.assertEqual(log.details["note"], "Department matter")
        self.assertEqual(log.details["from"]["recipient_role"], "dean")

    def test_redirect_releases_direct_hod_assignment(self):
        direct = ComplaintCreationService.create_complaint(
            {"title": "Timetable clash", "category": "Academic", "recipient_hod_id": self.hod.pk},
            self.student,
        )
        self.assertEqual(direct.assigned_to_id, self.hod.pk)
        self.client.force_authenticate(self.student)

        resp = self.client.put(
            reverse("complaints:complaint-recipient", args=[direct.pk]),
            {"recipient_role": "dean", "recipient_id": self.dean.pk},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        direct.refresh_from_db()
        self.assertIsNone(direct.assigned_to_id)
        self.assertIsNone(direct.assigned_to_role)
        self.assertIsNone(direct.assigned_at)
        self.assertEqual(direct.recipient_id, self.dean.pk)
        log = ActivityLog.objects.get(complaint=direct, action="Recipient Updated")
        self.assertEqual(log.details["released_assignee"], str(self.hod.pk))

        self.client.force_authenticate(self.hod)
        inbox = self.client.get(reverse("complaints:complaint-inbox"))
        self.assertNotIn(str(direct.pk), {row["id"] for row in inbox.data})
        accept = self.client.put(
            reverse("complaints:complaint-accept", args=[direct.pk]), {}, format="json",
        )
        self.assertEqual(accept.status_code, status.HTTP_403_FORBIDDEN)

    def test_redirect_to_same_hod_keeps_assignment(self):
        direct = ComplaintCreationService.create_complaint(
            {"title": "Timetable clash", "category": "Academic", "recipient_hod_id": self.hod.pk},
            self.student,
        )
        self.client.force_authenticate(self.student)

        resp = self.client.put(
            reverse("complaints:complaint-recipient", args=[direct.pk]),
            {"recipient_role": "hod", "recipient_id": self.hod.pk},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        direct.refresh_from_db()
        self.assertEqual(direct.assigned_to_id, self.hod.pk)
        log = ActivityLog.objects.get(complaint=direct, action="Recipient Updated")
        self.assertNotIn("released_assignee", log.details)

    def test_admin_reassign_releases_direct_staff_assignment(self):
        direct = ComplaintCreationService.create_complaint(
            {"title": "Broken chair", "category": "Facilities", "recipient_staff_id": self.staff.pk},
            self.student,
        )
        self.client.force_authenticate(self.admin)

        resp = self.client.put(
            reverse("complaints:complaint-reassign", args=[direct.pk]),
            {"recipient_role": "dean", "recipient_id": self.dean.pk},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        self.assertIsNone(resp.data["assigned_to"])
        log = ActivityLog.objects.get(complaint=direct, action="Recipient Reassigned")
        self.assertEqual(log.details["released_assignee"], str(self.staff.pk))

    def test_foreign_hod_cannot_reassign(self):
        foreign = make_user("fb_foreign_hod", "hod", department="EE")
        self.client.force_authenticate(foreign)

        resp = self.client.put(self.action_url("reassign"), {"recipient_role": "admin"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)


class TestFeedback(_SubmitterBase):

    def resolve(self):
        ComplaintRoutingService.assign_complaint(self.complaint.pk, self.dean, staff_id=self.staff.pk)
        ComplaintWorkflowService.update_complaint_status(self.complaint.pk, self.dean, status="Resolved")

    def give_feedback(self, user, rating=4, comment="Thanks"):
        self.client.force_authenticate(user)
        return self.client.post(
            self.action_url("feedback"), {"rating": rating, "comment": comment}, format="json",
        )

    def test_feedback_on_resolved_complaint(self):
        self.resolve()

        resp = self.give_feedback(self.student)

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.data)
        self.assertEqual(resp.data["feedback"]["rating"], 4)
        self.assertFalse(resp.data["feedback"]["reviewed"])

    def test_feedback_before_resolution_rejected(self):
        resp = self.give_feedback(self.student)

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_feedback_only_once(self):
        self.resolve()
        self.give_feedback(self.student)

        resp = self.give_feedback(self.student, rating=1)

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.complaint.refresh_from_db()
        self.assertEqual(self.complaint.feedback_rating, 4)

    def test_feedback_rating_range(self):
        self.resolve()

        resp = self.give_feedback(self.student, rating=6)

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_submitter_gives_feedback(self):
        self.resolve()

        resp = self.give_feedback(self.staff)

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_review_is_idempotent(self):
        self.resolve()
        self.give_feedback(self.student)
        self.client.force_authenticate(self.staff)

        first = self.client.put(self.action_url("review-feedback"), {}, format="json")
        second = self.client.put(self.action_url("review-feedback"), {}, format="json")

        self.assertEqual(first.status_code, status.HTTP_200_OK, first.data)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertTrue(second.data["feedback"]["reviewed"])
        self.assertEqual(
            ActivityLog.objects.filter(complaint=self.complaint, action="Feedback Reviewed").count(), 1,
        )

    def test_activity_timeline_in_write_order(self):
        self.resolve()
        self.give_feedback(self.student)
        self.client.force_authenticate(self.student)

        resp = self.client.get(self.action_url("activity"))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        actions = [row["action"] for row in resp.data]
        self.assertEqual(actions[0], "Complaint Submitted")
        self.assertEqual(actions[-1], "Feedback Given")
        self.assertIn("Dean updated status from In Progress to Resolved", actions)


class TestFeedbackListing(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.student = make_user("fl_student", "student")
        cls.ee_student = make_user("fl_ee_student", "student", department="EE")
        cls.staff = make_user("fl_staff", "staff")
        cls.other_staff = make_user("fl_other_staff", "staff")
        cls.ee_staff = make_user("fl_ee_staff", "staff", department="EE")
        cls.hod = make_user("fl_hod", "hod")
        cls.dean = make_user("fl_dean", "dean")
        cls.ee_dean = make_user("fl_ee_dean", "dean", department="EE")
        cls.admin = make_user("fl_admin", "admin")

        cls.via_dean = cls._rated(cls.student, cls.dean, cls.staff, rating=4)
        cls.via_admin = cls._rated(cls.student, cls.admin, cls.other_staff, rating=2)
        cls.ee_rated = cls._rated(cls.ee_student, cls.ee_dean, cls.ee_staff, rating=5)
        cls.unrated = ComplaintCreationService.create_complaint(
            {"title": "Still waiting", "category": "Housing",
             "recipient_role": "dean", "recipient_id": cls.dean.pk},
            cls.student,
        )
        FeedbackService.review_feedback(cls.via_dean.pk, cls.staff)

    @staticmethod
    def _rated(student, handler, staff, *, rating):
        routing = (
            {"recipient_role": "admin"}
            if handler.role == "admin"
            else {"recipient_role": "dean", "recipient_id": handler.pk}
        )
        complaint = ComplaintCreationService.create_complaint(
            {"title": f"Handled by {handler.username}", "category": "Academic", **routing},
            student,
        )
        ComplaintRoutingService.assign_complaint(complaint.pk, handler, staff_id=staff.pk)
        ComplaintWorkflowService.update_complaint_status(complaint.pk, handler, status="Resolved")
        return FeedbackService.submit_feedback(complaint.pk, student, rating=rating, comment="ok")

    def setUp(self):
        self.client = APIClient()
        self.url = reverse("complaints:complaint-feedback-received")

    def listed(self, user, **params) -> set[str]:
        self.client.force_authenticate(user)
        resp = self.client.get(self.url, params)
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        return {row["id"] for row in resp.data}

    def test_admin_sees_all_feedback(self):
        self.assertEqual(
            self.listed(self.admin),
            {str(self.via_dean.pk), str(self.via_admin.pk), str(self.ee_rated.pk)},
        )

    def test_dean_never_sees_admin_bound_feedback(self):
        self.assertEqual(self.listed(self.dean), {str(self.via_dean.pk), str(self.ee_rated.pk)})

    def test_hod_sees_own_department(self):
        self.assertEqual(self.listed(self.hod), {str(self.via_dean.pk), str(self.via_admin.pk)})

    def test_staff_sees_only_their_assignments(self):
        self.assertEqual(self.listed(self.staff), {str(self.via_dean.pk)})
        self.assertEqual(self.listed(self.other_staff), {str(self.via_admin.pk)})

    def test_student_sees_own_feedback(self):
        self.assertEqual(self.listed(self.student), {str(self.via_dean.pk), str(self.via_admin.pk)})
        self.assertEqual(self.listed(self.ee_student), {str(self.ee_rated.pk)})

    def test_reviewed_filter(self):
        self.assertEqual(self.listed(self.admin, reviewed="true"), {str(self.via_dean.pk)})
        self.assertEqual(
            self.listed(self.admin, reviewed="false"),
            {str(self.via_admin.pk), str(self.ee_rated.pk)},
        )

    def test_entry_carries_rating_and_review_state(self):
        self.client.force_authenticate(self.staff)

        row = self.client.get(self.url).data[0]

        self.assertEqual(row["rating"], 4)
        self.assertEqual(row["comment"], "ok")
        self.assertTrue(row["reviewed"])
        self.assertIsNotNone(row["reviewed_at"])
        self.assertEqual(row["complaint_code"], self.via_dean.complaint_code)
