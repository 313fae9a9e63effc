"""
Complaints app URL configuration.

All routes are registered under the ``/api/complaints/`` prefix.

Route Hierarchy
---------------
  POST   /api/complaints/                      → submit
  GET    /api/complaints/{id}/                 → retrieve
  PATCH  /api/complaints/{id}/                 → edit (submitter, Pending)
  DELETE /api/complaints/{id}/                 → soft delete (submitter, Pending)

  ── Listings ────────────────────────────────────────────────────
  GET /api/complaints/mine/
  GET /api/complaints/inbox/
  GET /api/complaints/managed/
  GET /api/complaints/all/
  GET /api/complaints/scope-debug/             → admin, DEBUG only

  ── Routing @actions ────────────────────────────────────────────
  PUT /api/complaints/{id}/recipient/
  PUT /api/complaints/{id}/reassign/
  PUT /api/complaints/{id}/assign/
  PUT /api/complaints/{id}/assign-hod/
  PUT /api/complaints/{id}/assign-staff/
  PUT /api/complaints/{id}/accept/
  PUT /api/complaints/{id}/reject/

  ── Workflow @actions ───────────────────────────────────────────
  PUT  /api/complaints/{id}/approve/
  PUT  /api/complaints/{id}/status/
  POST /api/complaints/{id}/feedback/
  PUT  /api/complaints/{id}/feedback/review/
  GET  /api/complaints/{id}/activity/
"""

from rest_framework.routers import DefaultRouter

from .views import ComplaintViewSet

app_name = "complaints"

router = DefaultRouter()
router.register(
    prefix=r"complaints",
    viewset=ComplaintViewSet,
    basename="complaint",
)

urlpatterns = router.urls
