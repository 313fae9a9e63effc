import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Complaint",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("complaint_code", models.CharField(editable=False, max_length=32, unique=True, verbose_name="Complaint Code")),
                ("title", models.CharField(max_length=255, verbose_name="Title")),
                ("description", models.TextField(blank=True, default="", max_length=10000, verbose_name="Description")),
                ("category", models.CharField(max_length=120, verbose_name="Category")),
                ("department", models.CharField(blank=True, db_index=True, default="", max_length=120, verbose_name="Department")),
                ("status", models.CharField(choices=[("Pending", "Pending"), ("Assigned", "Assigned"), ("Accepted", "Accepted"), ("In Progress", "In Progress"), ("Under Review", "Under Review"), ("Resolved", "Resolved"), ("Closed", "Closed")], db_index=True, default="Pending", max_length=20, verbose_name="Status")),
                ("priority", models.CharField(choices=[("Low", "Low"), ("Medium", "Medium"), ("High", "High"), ("Critical", "Critical")], default="Medium", max_length=10, verbose_name="Priority")),
                ("source_role", models.CharField(default="student", max_length=16, verbose_name="Source Role")),
                ("submitted_to", models.CharField(blank=True, help_text="Legacy free-text office label.", max_length=120, null=True, verbose_name="Submitted To")),
                ("recipient_role", models.CharField(blank=True, choices=[("staff", "Staff"), ("hod", "Head of Department"), ("dean", "Dean"), ("admin", "Admin")], max_length=16, null=True, verbose_name="Recipient Role")),
                ("assigned_to_role", models.CharField(blank=True, max_length=16, null=True)),
                ("assigned_by_role", models.CharField(blank=True, max_length=16, null=True)),
                ("assigned_at", models.DateTimeField(blank=True, null=True)),
                ("assignment_path", models.JSONField(blank=True, default=list, help_text="Ordered, append-only list of roles the complaint passed through.", verbose_name="Assignment Path")),
                ("deadline", models.DateField(blank=True, null=True)),
                ("is_escalated", models.BooleanField(default=False)),
                ("escalated_on", models.DateTimeField(blank=True, null=True)),
                ("resolution_note", models.TextField(blank=True, default="")),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("feedback_rating", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("feedback_comment", models.TextField(blank=True, default="")),
                ("feedback_submitted_at", models.DateTimeField(blank=True, null=True)),
                ("feedback_reviewed", models.BooleanField(default=False)),
                ("feedback_reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("is_deleted", models.BooleanField(db_index=True, default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("last_edited_at", models.DateTimeField(blank=True, null=True)),
                ("edits_count", models.PositiveIntegerField(default=0)),
                ("assigned_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="delegated_complaints", to=settings.AUTH_USER_MODEL, verbose_name="Assigned By")),
                ("assigned_to", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="assigned_complaints", to=settings.AUTH_USER_MODEL, verbose_name="Assigned To")),
                ("deleted_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="deleted_complaints", to=settings.AUTH_USER_MODEL)),
                ("feedback_reviewed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="reviewed_feedback", to=settings.AUTH_USER_MODEL)),
                ("recipient", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="addressed_complaints", to=settings.AUTH_USER_MODEL, verbose_name="Recipient")),
                ("submitted_by", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="submitted_complaints", to=settings.AUTH_USER_MODEL, verbose_name="Submitted By")),
            ],
            options={
                "verbose_name": "Complaint",
                "verbose_name_plural": "Complaints",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["department", "status"], name="complaint_dept_status_idx"),
                    models.Index(fields=["recipient_role", "recipient"], name="complaint_recipient_idx"),
                    models.Index(fields=["assigned_to", "status"], name="complaint_assignee_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ActivityLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(blank=True, default="", max_length=16)),
                ("action", models.CharField(max_length=255)),
                ("timestamp", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("complaint", models.ForeignKey(db_constraint=False, on_delete=django.db.models.deletion.DO_NOTHING, related_name="activity_logs", to="complaints.complaint")),
                ("user", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="complaint_activity", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Activity Log",
                "verbose_name_plural": "Activity Logs",
                "ordering": ["timestamp", "id"],
                "indexes": [
                    models.Index(fields=["complaint", "timestamp"], name="activity_complaint_ts_idx"),
                ],
            },
        ),
    ]
