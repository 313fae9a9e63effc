"""
Management command: normalize_recipients
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

One-off data migration for rows written by older clients:

* user ``role`` values in legacy spellings ("HOD", "Head of Department",
  "user") are rewritten to the canonical role;
* complaints that only carry a free-text ``submitted_to`` office label get
  the matching ``recipient_role``.

Complaints whose label names a dean, HOD or staff office but that have
no concrete ``recipient`` cannot be fixed automatically; they are listed
so an admin can re-address them.

Writes use ``QuerySet.update`` and therefore skip ``save()`` hooks.

Usage::

    python manage.py normalize_recipients --dry-run
    python manage.py normalize_recipients
"""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from accounts.models import Role, normalize_role
from complaints.models import Complaint, RecipientRole
from complaints.routing import label_for, role_from_label

User = get_user_model()


class Command(BaseCommand):
    help = "Rewrite legacy role spellings and office labels to canonical recipient roles."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report what would change without writing.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        with transaction.atomic():
            users = self._normalize_users(dry_run)
            fixed, manual = self._normalize_complaints(dry_run)

        prefix = "[dry-run] " if dry_run else ""
        self.stdout.write(self.style.SUCCESS(
            f"{prefix}{users} user role(s) and {fixed} complaint(s) normalized; "
            f"{manual} complaint(s) need a recipient."
        ))

    def _normalize_users(self, dry_run: bool) -> int:
        changed = 0
        for user in User.objects.exclude(role__in=Role.values).only("pk", "role", "username"):
            role = normalize_role(user.role)
            if role is None:
                self.stdout.write(self.style.WARNING(
                    f"  ? user {user.username}: unknown role '{user.role}'"
                ))
                continue
            self.stdout.write(f"  user {user.username}: '{user.role}' → '{role}'")
            if not dry_run:
                User.objects.filter(pk=user.pk).update(role=role)
            changed += 1
        return changed

    def _normalize_complaints(self, dry_run: bool) -> tuple[int, int]:
        fixed = manual = 0
        legacy = (
            Complaint.objects
            .filter(recipient_role__isnull=True)
            .exclude(submitted_to__isnull=True)
            .exclude(submitted_to="")
        )
        for complaint in legacy.only("pk", "complaint_code", "submitted_to", "recipient_id"):
            role = role_from_label(complaint.submitted_to)
            if role is None:
                continue
            if role != RecipientRole.ADMIN and complaint.recipient_id is None:
                self.stdout.write(self.style.WARNING(
                    f"  ! {complaint.complaint_code}: '{complaint.submitted_to}' has no recipient"
                ))
                manual += 1
                continue
            self.stdout.write(
                f"  {complaint.complaint_code}: '{complaint.submitted_to}' → {role}"
            )
            if not dry_run:
                Complaint.objects.filter(pk=complaint.pk).update(
                    recipient_role=role, submitted_to=label_for(role),
                )
            fixed += 1
        return fixed, manual
