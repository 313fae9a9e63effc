from django.contrib import admin

from .models import ActivityLog, Complaint


class ActivityLogInline(admin.TabularInline):
    model = ActivityLog
    extra = 0
    can_delete = False
    fields = ("timestamp", "user", "role", "action", "details")
    readonly_fields = fields


@admin.register(Complaint)
class ComplaintAdmin(admin.ModelAdmin):
    list_display = ("complaint_code", "title", "status", "priority", "department",
                    "recipient_role", "assigned_to", "is_escalated", "created_at")
    list_filter = ("status", "priority", "recipient_role", "is_escalated", "is_deleted")
    search_fields = ("complaint_code", "title", "department", "submitted_by__username")
    raw_id_fields = ("submitted_by", "recipient", "assigned_to", "assigned_by",
                     "feedback_reviewed_by", "deleted_by")
    readonly_fields = ("complaint_code", "assignment_path", "created_at", "updated_at")
    inlines = [ActivityLogInline]


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "action", "user", "role", "complaint")
    list_filter = ("role",)
    search_fields = ("action",)
    raw_id_fields = ("user", "complaint")
