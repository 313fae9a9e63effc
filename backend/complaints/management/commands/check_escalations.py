"""
Management command: check_escalations
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Flags complaints that have been assigned for longer than
``COMPLAINTS["ESCALATION_THRESHOLD_DAYS"]`` without reaching Resolved or
Closed, and notifies every active admin.

The sweep is **idempotent**: an escalated complaint is never picked up
again, so the command can run from cron as often as needed.

Usage::

    python manage.py check_escalations
    python manage.py check_escalations --loop --interval 3600
"""

import time

from django.core.management.base import BaseCommand

from complaints.services import EscalationService


class Command(BaseCommand):
    help = "Escalate complaints whose assignment has gone stale."

    def add_arguments(self, parser):
        parser.add_argument(
            "--loop",
            action="store_true",
            help="Keep running, sweeping every --interval seconds.",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=3600,
            help="Seconds between sweeps in --loop mode (default: 3600).",
        )

    def handle(self, *args, **options):
        if not options["loop"]:
            self._sweep()
            return

        interval = max(1, options["interval"])
        self.stdout.write(f"Escalation sweep every {interval}s. Ctrl+C to stop.")
        try:
            while True:
                self._sweep()
                time.sleep(interval)
        except KeyboardInterrupt:
            self.stdout.write("Stopped.")

    def _sweep(self):
        escalated = EscalationService.run()
        for complaint in escalated:
            self.stdout.write(f"  ↑ {complaint.complaint_code}  {complaint.title}")
        self.stdout.write(self.style.SUCCESS(f"Escalated {len(escalated)} complaint(s)."))
