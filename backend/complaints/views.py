"""
Complaints app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

No database queries, routing rules or status logic live here.

ViewSets
--------
- ``ComplaintViewSet`` — The single ViewSet for all complaint endpoints.
  Routing and workflow operations are ``@action`` methods so the URL
  structure stays flat and discoverable.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from accounts.models import Role
from accounts.permissions import IsActiveAccount
from core.domain.exceptions import NotFound, PermissionDenied

from .models import Complaint
from .serializers import (
    ActivityLogSerializer,
    AdminAssignSerializer,
    ApproveSerializer,
    AssignHodSerializer,
    AssignStaffSerializer,
    ComplaintCreateSerializer,
    ComplaintDetailSerializer,
    ComplaintFilterSerializer,
    ComplaintListSerializer,
    ComplaintUpdateSerializer,
    FeedbackEntrySerializer,
    FeedbackFilterSerializer,
    FeedbackSerializer,
    ReassignRecipientSerializer,
    RecipientSerializer,
    RejectAssignmentSerializer,
    ScopeDebugSerializer,
    StatusUpdateSerializer,
)
from .services import (
    ActivityLogService,
    ComplaintCreationService,
    ComplaintQueryService,
    ComplaintRoutingService,
    ComplaintWorkflowService,
    FeedbackService,
)

User = get_user_model()
logger = logging.getLogger(__name__)

_UUID_PATTERN = r"[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}"

_COMMON_ERRORS = {
    400: OpenApiResponse(description="Validation error."),
    403: OpenApiResponse(description="Permission denied."),
    404: OpenApiResponse(description="Complaint not found or outside your scope."),
    409: OpenApiResponse(description="Invalid state transition or conflict."),
}

_FILTER_PARAMETERS = [
    OpenApiParameter(name="status", type=str, required=False, description="Filter by status."),
    OpenApiParameter(name="priority", type=str, required=False, description="Filter by priority."),
    OpenApiParameter(name="category", type=str, required=False, description="Filter by category."),
    OpenApiParameter(name="search", type=str, required=False, description="Title or code substring."),
    OpenApiParameter(name="escalated", type=bool, required=False, description="Only (non-)escalated."),
]


class ComplaintViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the complaints app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined and scoping is never bypassed by a default
    ``get_queryset``.
    """

    permission_classes = [IsAuthenticated, IsActiveAccount]
    lookup_value_regex = _UUID_PATTERN

    # ── Helpers ───────────────────────────────────────────────────────

    def _detail(self, request: Request, complaint: Complaint, code=status.HTTP_200_OK) -> Response:
        fresh = ComplaintQueryService.base_queryset().get(pk=complaint.pk)
        serializer = ComplaintDetailSerializer(fresh, context={"request": request})
        return Response(serializer.data, status=code)

    def _listing(self, request: Request, listing: str) -> Response:
        filters = ComplaintFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        data = dict(filters.validated_data)
        department_scope = data.pop("scope", None) == "department"
        complaints = ComplaintQueryService.list_complaints(
            request.user, listing, data, department_scope=department_scope,
        )
        serializer = ComplaintListSerializer(complaints, many=True, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    # ── Core CRUD ─────────────────────────────────────────────────────

    @extend_schema(
        summary="Submit a complaint",
        description=(
            "Create a complaint. It starts as Pending and is either assigned "
            "directly (recipient_staff_id / recipient_hod_id) or addressed to "
            "a recipient role. Dean-addressed complaints must name the dean."
        ),
        request=ComplaintCreateSerializer,
        responses={
            201: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint created."),
            400: _COMMON_ERRORS[400],
        },
        tags=["Complaints"],
    )
    def create(self, request: Request) -> Response:
        """POST /api/complaints/"""
        serializer = ComplaintCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintCreationService.create_complaint(
            serializer.validated_data, request.user,
        )
        return self._detail(request, complaint, code=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve complaint",
        description="Return one complaint if it is inside the caller's visibility scope.",
        responses={
            200: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint detail."),
            404: _COMMON_ERRORS[404],
        },
        tags=["Complaints"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        complaint = ComplaintQueryService.get_visible(request.user, pk)
        serializer = ComplaintDetailSerializer(complaint, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Edit complaint",
        description="Submitter edits title, description, category or priority while Pending.",
        request=ComplaintUpdateSerializer,
        responses={
            200: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint updated."),
            **_COMMON_ERRORS,
        },
        tags=["Complaints"],
    )
    def partial_update(self, request: Request, pk: str = None) -> Response:
        serializer = ComplaintUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintWorkflowService.edit_complaint(
            pk, request.user, serializer.validated_data,
        )
        return self._detail(request, complaint)

    @extend_schema(
        summary="Delete complaint",
        description="Submitter withdraws a Pending complaint (soft delete).",
        responses={
            204: OpenApiResponse(description="Complaint deleted."),
            403: _COMMON_ERRORS[403],
            404: _COMMON_ERRORS[404],
            409: _COMMON_ERRORS[409],
        },
        tags=["Complaints"],
    )
    def destroy(self, request: Request, pk: str = None) -> Response:
        ComplaintWorkflowService.soft_delete(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ── Scoped listings ───────────────────────────────────────────────

    @extend_schema(
        summary="My complaints",
        description="Complaints submitted by the caller.",
        parameters=_FILTER_PARAMETERS,
        responses={200: ComplaintListSerializer(many=True)},
        tags=["Complaints – Listings"],
    )
    @action(detail=False, methods=["get"], url_path="mine")
    def mine(self, request: Request) -> Response:
        return self._listing(request, "mine")

    @extend_schema(
        summary="Inbox",
        description="Complaints waiting on the caller: addressed or assigned to them.",
        parameters=_FILTER_PARAMETERS,
        responses={200: ComplaintListSerializer(many=True)},
        tags=["Complaints – Listings"],
    )
    @action(detail=False, methods=["get"], url_path="inbox")
    def inbox(self, request: Request) -> Response:
        return self._listing(request, "inbox")

    @extend_schema(
        summary="Managed complaints",
        description="Complaints the caller is responsible for, including work delegated to their team.",
        parameters=_FILTER_PARAMETERS,
        responses={200: ComplaintListSerializer(many=True)},
        tags=["Complaints – Listings"],
    )
    @action(detail=False, methods=["get"], url_path="managed")
    def managed(self, request: Request) -> Response:
        return self._listing(request, "managed")

    @extend_schema(
        summary="All complaints",
        description=(
            "Broadest view for the caller's role. Deans never see admin-bound "
            "complaints; HODs see their department. Staff may pass "
            "scope=department."
        ),
        parameters=_FILTER_PARAMETERS + [
            OpenApiParameter(name="scope", type=str, required=False, description="'department' (staff only)."),
        ],
        responses={200: ComplaintListSerializer(many=True)},
        tags=["Complaints – Listings"],
    )
    @action(detail=False, methods=["get"], url_path="all", url_name="all")
    def all_complaints(self, request: Request) -> Response:
        return self._listing(request, "all")

    @extend_schema(
        summary="Scope diagnostics",
        description="Admin only, and only when DEBUG is on: listing counts for a user.",
        parameters=[OpenApiParameter(name="user", type=int, required=False, description="User PK.")],
        responses={200: OpenApiResponse(description="Counts per listing.")},
        tags=["Complaints – Listings"],
    )
    @action(detail=False, methods=["get"], url_path="scope-debug")
    def scope_debug(self, request: Request) -> Response:
        if not settings.DEBUG:
            raise NotFound("Not found.")
        if not request.user.has_role(Role.ADMIN):
            raise PermissionDenied("Only admins can inspect scopes.")
        params = ScopeDebugSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        target = request.user
        if params.validated_data.get("user"):
            target = User.objects.filter(pk=params.validated_data["user"]).first()
            if target is None:
                raise NotFound("User not found.")
        payload = {
            "user": target.pk,
            "role": target.role,
            "department": target.department,
            "counts": ComplaintQueryService.scope_report(target),
        }
        return Response(payload, status=status.HTTP_200_OK)

    # ── Routing @actions ──────────────────────────────────────────────

    @extend_schema(
        summary="Change recipient",
        description="The submitting student redirects a Pending complaint.",
        request=RecipientSerializer,
        responses={200: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Routing"],
    )
    @action(detail=True, methods=["put"], url_path="recipient")
    def recipient(self, request: Request, pk: str = None) -> Response:
        serializer = RecipientSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintRoutingService.update_recipient(
            pk, request.user, **serializer.validated_data,
        )
        return self._detail(request, complaint)

    @extend_schema(
        summary="Reassign recipient",
        description="Admin, HOD (own department) or dean re-addresses a complaint.",
        request=ReassignRecipientSerializer,
        responses={200: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Routing"],
    )
    @action(detail=True, methods=["put"], url_path="reassign")
    def reassign(self, request: Request, pk: str = None) -> Response:
        serializer = ReassignRecipientSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintRoutingService.reassign_recipient(
            pk, request.user, **serializer.validated_data,
        )
        return self._detail(request, complaint)

    @extend_schema(
        summary="Assign to staff",
        description="Admin or dean assigns the complaint to a staff member; status becomes In Progress.",
        request=AdminAssignSerializer,
        responses={200: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Routing"],
    )
    @action(detail=True, methods=["put"], url_path="assign")
    def assign(self, request: Request, pk: str = None) -> Response:
        serializer = AdminAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintRoutingService.assign_complaint(
            pk, request.user, **serializer.validated_data,
        )
        return self._detail(request, complaint)

    @extend_schema(
        summary="Dean assigns to HOD",
        description="Dean hands the complaint to a HOD; status becomes Assigned until the HOD decides.",
        request=AssignHodSerializer,
        responses={200: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Routing"],
    )
    @action(detail=True, methods=["put"], url_path="assign-hod")
    def assign_hod(self, request: Request, pk: str = None) -> Response:
        serializer = AssignHodSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintRoutingService.dean_assign_to_hod(
            pk, request.user, **serializer.validated_data,
        )
        return self._detail(request, complaint)

    @extend_schema(
        summary="HOD assigns to staff",
        description="HOD delegates to a staff member of the same department.",
        request=AssignStaffSerializer,
        responses={200: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Routing"],
    )
    @action(detail=True, methods=["put"], url_path="assign-staff")
    def assign_staff(self, request: Request, pk: str = None) -> Response:
        serializer = AssignStaffSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintRoutingService.hod_assign_to_staff(
            pk, request.user, **serializer.validated_data,
        )
        return self._detail(request, complaint)

    @extend_schema(
        summary="HOD accepts assignment",
        request=None,
        responses={200: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Routing"],
    )
    @action(detail=True, methods=["put"], url_path="accept")
    def accept(self, request: Request, pk: str = None) -> Response:
        complaint = ComplaintRoutingService.hod_accept_assignment(pk, request.user)
        return self._detail(request, complaint)

    @extend_schema(
        summary="HOD rejects assignment",
        description="Returns the complaint to the assigning dean as Pending.",
        request=RejectAssignmentSerializer,
        responses={200: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Routing"],
    )
    @action(detail=True, methods=["put"], url_path="reject")
    def reject(self, request: Request, pk: str = None) -> Response:
        serializer = RejectAssignmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintRoutingService.hod_reject_assignment(
            pk, request.user, **serializer.validated_data,
        )
        return self._detail(request, complaint)

    # ── Workflow @actions ─────────────────────────────────────────────

    @extend_schema(
        summary="Approve complaint",
        description=(
            "Admin or HOD moves a Pending/Closed complaint to Accepted; a dean "
            "moves it straight to In Progress. Optionally assigns it."
        ),
        request=ApproveSerializer,
        responses={200: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Workflow"],
    )
    @action(detail=True, methods=["put"], url_path="approve")
    def approve(self, request: Request, pk: str = None) -> Response:
        serializer = ApproveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintWorkflowService.approve_complaint(
            pk, request.user, **serializer.validated_data,
        )
        return self._detail(request, complaint)

    @extend_schema(
        summary="Update status",
        description=(
            "Move the complaint along the status graph or add a progress note. "
            "Resolved complaints can only be closed; only deans and admins resolve."
        ),
        request=StatusUpdateSerializer,
        responses={200: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Workflow"],
    )
    @action(detail=True, methods=["put"], url_path="status")
    def update_status(self, request: Request, pk: str = None) -> Response:
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintWorkflowService.update_complaint_status(
            pk, request.user, **serializer.validated_data,
        )
        return self._detail(request, complaint)

    @extend_schema(
        summary="Feedback received",
        description=(
            "Rated complaints within the caller's reach: admins see all, deans "
            "all but admin-bound, HODs their department, staff their "
            "assignments, students their own."
        ),
        parameters=[
            OpenApiParameter(name="reviewed", type=bool, required=False, description="Filter by review state."),
        ],
        responses={200: FeedbackEntrySerializer(many=True)},
        tags=["Complaints – Feedback"],
    )
    @action(detail=False, methods=["get"], url_path="feedback")
    def feedback_received(self, request: Request) -> Response:
        filters = FeedbackFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        complaints = FeedbackService.list_feedback(
            request.user, reviewed=filters.validated_data.get("reviewed"),
        )
        serializer = FeedbackEntrySerializer(complaints, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Give feedback",
        description="Submitter rates a Resolved complaint (1-5). Once only.",
        request=FeedbackSerializer,
        responses={201: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Feedback"],
    )
    @action(detail=True, methods=["post"], url_path="feedback")
    def feedback(self, request: Request, pk: str = None) -> Response:
        serializer = FeedbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = FeedbackService.submit_feedback(
            pk, request.user, **serializer.validated_data,
        )
        return self._detail(request, complaint, code=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Mark feedback reviewed",
        request=None,
        responses={200: ComplaintDetailSerializer, **_COMMON_ERRORS},
        tags=["Complaints – Feedback"],
    )
    @action(detail=True, methods=["put"], url_path="feedback/review")
    def review_feedback(self, request: Request, pk: str = None) -> Response:
        complaint = FeedbackService.review_feedback(pk, request.user)
        return self._detail(request, complaint)

    # ── Timeline ──────────────────────────────────────────────────────

    @extend_schema(
        summary="Activity timeline",
        description="Chronological activity log for a visible complaint.",
        responses={
            200: ActivityLogSerializer(many=True),
            404: _COMMON_ERRORS[404],
        },
        tags=["Complaints"],
    )
    @action(detail=True, methods=["get"], url_path="activity")
    def activity(self, request: Request, pk: str = None) -> Response:
        complaint = ComplaintQueryService.get_visible(request.user, pk)
        logs = ActivityLogService.timeline(complaint)
        serializer = ActivityLogSerializer(logs, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)
