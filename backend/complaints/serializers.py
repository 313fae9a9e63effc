"""
Complaints app serializers.

Contains all Request and Response serializers for the Complaints API.
Serializers handle field definitions, read/write constraints, and field-level
validation only.  **No routing decisions, transitions or scoping live
here**; those belong in ``services.py``.

Structure
---------
1. Filter / query-param serializers
2. Complaint read serializers (list, detail, activity)
3. Complaint write serializers (create, edit)
4. Routing and workflow action serializers
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from accounts.models import normalize_role
from accounts.serializers import UserSummarySerializer
from core.constants import DESCRIPTION_MAX_LENGTH

from .models import ActivityLog, Complaint, ComplaintPriority, ComplaintStatus
from .workflow import normalize_status


class _StatusField(serializers.CharField):
    """Accepts loose spellings ("in-progress", "UNDER_REVIEW")."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        status = normalize_status(value)
        if status is None:
            raise serializers.ValidationError(
                "Unknown status. Options: " + ", ".join(ComplaintStatus.values) + "."
            )
        return status


class _PriorityField(serializers.ChoiceField):

    def __init__(self, **kwargs):
        super().__init__(choices=ComplaintPriority.choices, **kwargs)

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = data.strip().title()
        return super().to_internal_value(data)


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class ComplaintFilterSerializer(serializers.Serializer):
    """
    Validates query-parameter filters for the scoped listings.

    Query Parameters
    ----------------
    ``status``     : str   — any spelling of a ``ComplaintStatus`` value
    ``priority``   : str   — Low / Medium / High / Critical
    ``category``   : str   — exact category, case-insensitive
    ``search``     : str   — substring of title or complaint code
    ``escalated``  : bool
    ``scope``      : str   — ``"department"`` widens the staff "all" view
    """

    status = _StatusField(required=False, help_text="Filter by status.")
    priority = _PriorityField(required=False, help_text="Filter by priority.")
    category = serializers.CharField(required=False, max_length=120)
    search = serializers.CharField(
        required=False,
        max_length=255,
        allow_blank=False,
        help_text="Free-text search against title and complaint code.",
    )
    escalated = serializers.BooleanField(required=False, allow_null=True, default=None)
    scope = serializers.ChoiceField(
        choices=[("department", "department")],
        required=False,
        help_text="Staff only: include every complaint of your department.",
    )


class FeedbackFilterSerializer(serializers.Serializer):
    reviewed = serializers.BooleanField(
        required=False,
        allow_null=True,
        default=None,
        help_text="Only reviewed (true) or unreviewed (false) feedback.",
    )


# ═══════════════════════════════════════════════════════════════════
#  2. Complaint Read Serializers
# ═══════════════════════════════════════════════════════════════════


class ComplaintListSerializer(serializers.ModelSerializer):
    """Compact representation for the listing endpoints."""

    submitted_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)

    class Meta:
        model = Complaint
        fields = [
            "id",
            "complaint_code",
            "title",
            "category",
            "department",
            "status",
            "priority",
            "submitted_by",
            "submitted_to",
            "recipient_role",
            "assigned_to",
            "deadline",
            "is_escalated",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ComplaintDetailSerializer(serializers.ModelSerializer):
    """Full representation returned by retrieve and by every mutation."""

    submitted_by = UserSummarySerializer(read_only=True)
    recipient = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    assigned_by = UserSummarySerializer(read_only=True)
    feedback = serializers.SerializerMethodField()

    class Meta:
        model = Complaint
        fields = [
            "id",
            "complaint_code",
            "title",
            "description",
            "category",
            "department",
            "status",
            "priority",
            "source_role",
            "submitted_by",
            "submitted_to",
            "recipient_role",
            "recipient",
            "assigned_to",
            "assigned_to_role",
            "assigned_by",
            "assigned_by_role",
            "assigned_at",
            "assignment_path",
            "deadline",
            "is_escalated",
            "escalated_on",
            "resolution_note",
            "resolved_at",
            "feedback",
            "last_edited_at",
            "edits_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_feedback(self, obj: Complaint) -> dict[str, Any] | None:
        if not obj.has_feedback:
            return None
        return {
            "rating": obj.feedback_rating,
            "comment": obj.feedback_comment,
            "submitted_at": obj.feedback_submitted_at,
            "reviewed": obj.feedback_reviewed,
            "reviewed_at": obj.feedback_reviewed_at,
            "reviewed_by": obj.feedback_reviewed_by_id,
        }


class FeedbackEntrySerializer(serializers.ModelSerializer):
    """One row of the feedback listing: the rating plus enough context to act on it."""

    submitted_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    rating = serializers.IntegerField(source="feedback_rating", read_only=True)
    comment = serializers.CharField(source="feedback_comment", read_only=True)
    submitted_at = serializers.DateTimeField(source="feedback_submitted_at", read_only=True)
    reviewed = serializers.BooleanField(source="feedback_reviewed", read_only=True)
    reviewed_at = serializers.DateTimeField(source="feedback_reviewed_at", read_only=True)

    class Meta:
        model = Complaint
        fields = [
            "id",
            "complaint_code",
            "title",
            "status",
            "department",
            "submitted_by",
            "assigned_to",
            "rating",
            "comment",
            "submitted_at",
            "reviewed",
            "reviewed_at",
        ]
        read_only_fields = fields


class ActivityLogSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = ActivityLog
        fields = ["id", "user", "role", "action", "timestamp", "details"]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  3. Complaint Write Serializers
# ═══════════════════════════════════════════════════════════════════


class ComplaintCreateSerializer(serializers.Serializer):
    """
    Payload for ``POST /api/complaints/``.

    Routing fields are all optional; at most one of ``recipient_staff_id``
    and ``recipient_hod_id`` is honoured (staff first).
    """

    title = serializers.CharField(max_length=255)
    description = serializers.CharField(
        max_length=DESCRIPTION_MAX_LENGTH,
        required=False,
        allow_blank=True,
        default="",
    )
    category = serializers.CharField(max_length=120)
    department = serializers.CharField(
        max_length=120,
        required=False,
        allow_blank=True,
        help_text="Defaults to the submitter's department.",
    )
    priority = _PriorityField(required=False, default=ComplaintPriority.MEDIUM)
    deadline = serializers.DateField(required=False, allow_null=True)

    recipient_role = serializers.CharField(
        max_length=32,
        required=False,
        allow_blank=True,
        allow_null=True,
        help_text="staff, hod, dean or admin (aliases such as 'Head of Department' accepted).",
    )
    recipient_id = serializers.IntegerField(
        required=False,
        allow_null=True,
        min_value=1,
        help_text="PK of the addressed user. Required for dean-addressed complaints.",
    )
    submitted_to = serializers.CharField(
        max_length=120,
        required=False,
        allow_blank=True,
        allow_null=True,
        help_text="Legacy office label, e.g. 'Dean Office'.",
    )
    recipient_staff_id = serializers.IntegerField(
        required=False, allow_null=True, min_value=1,
        help_text="Assign directly to this staff member.",
    )
    recipient_hod_id = serializers.IntegerField(
        required=False, allow_null=True, min_value=1,
        help_text="Assign directly to this head of department.",
    )
    assignment_path = serializers.ListField(
        child=serializers.CharField(max_length=32),
        required=False,
        help_text="Initial routing path. Defaults to the submitter's role.",
    )

    def validate_title(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title must not be blank.")
        return value


class ComplaintUpdateSerializer(serializers.Serializer):
    """``PATCH`` payload; only fields the submitter may edit."""

    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(
        max_length=DESCRIPTION_MAX_LENGTH, required=False, allow_blank=True,
    )
    category = serializers.CharField(max_length=120, required=False)
    priority = _PriorityField(required=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if not attrs:
            raise serializers.ValidationError("Provide at least one field to update.")
        return attrs


# ═══════════════════════════════════════════════════════════════════
#  4. Routing and Workflow Action Serializers
# ═══════════════════════════════════════════════════════════════════


class RecipientSerializer(serializers.Serializer):
    recipient_role = serializers.CharField(max_length=32, help_text="staff, hod, dean or admin.")
    recipient_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate_recipient_role(self, value: str) -> str:
        if normalize_role(value) is None:
            raise serializers.ValidationError(f"Unknown role '{value}'.")
        return value


class ReassignRecipientSerializer(RecipientSerializer):
    note = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)


class AssignStaffSerializer(serializers.Serializer):
    """Body for ``PUT /assign/`` and ``PUT /assign-staff/``."""

    staff_id = serializers.IntegerField(min_value=1, help_text="PK of an approved staff member.")
    deadline = serializers.DateField(required=False, allow_null=True)


class AdminAssignSerializer(AssignStaffSerializer):
    assigned_by_role = serializers.CharField(
        max_length=32,
        required=False,
        allow_blank=True,
        help_text="Must match the caller's role when given.",
    )
    assignment_path = serializers.ListField(
        child=serializers.CharField(max_length=32),
        required=False,
        help_text="Roles appended to the routing path.",
    )


class AssignHodSerializer(serializers.Serializer):
    hod_id = serializers.IntegerField(min_value=1, help_text="PK of an approved head of department.")
    deadline = serializers.DateField(required=False, allow_null=True)


class RejectAssignmentSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)


class ApproveSerializer(serializers.Serializer):
    note = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)
    assign_to_self = serializers.BooleanField(required=False, default=False)
    assigned_to = serializers.IntegerField(
        required=False, allow_null=True, min_value=1,
        help_text="PK of a staff member or HOD to hand the complaint to.",
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs.get("assign_to_self") and attrs.get("assigned_to"):
            raise serializers.ValidationError(
                "Use either assign_to_self or assigned_to, not both."
            )
        return attrs


class StatusUpdateSerializer(serializers.Serializer):
    status = _StatusField(help_text="Target status; loose spellings accepted.")
    description = serializers.CharField(
        required=False, allow_blank=True, default="", max_length=DESCRIPTION_MAX_LENGTH,
        help_text="Progress note appended to the resolution log.",
    )


class FeedbackSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)


class ScopeDebugSerializer(serializers.Serializer):
    user = serializers.IntegerField(min_value=1, required=False, help_text="Inspect this user's scopes.")
