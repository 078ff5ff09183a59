from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from reliability.scheduler import cancel_recovery_sweep, enqueue_recovery_sweep, register_recovery_sweep
from reliability.services import build_engine


class Command(BaseCommand):
    help = "Attempt automatic recovery of open incidents and escalate the ones that stay unresolved."

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=None, help="Maximum number of open incidents to process.")
        parser.add_argument(
            "--enqueue",
            action="store_true",
            help="Queue the sweep on the RQ worker instead of running it in this process.",
        )
        parser.add_argument(
            "--schedule",
            nargs="?",
            const="",
            default=None,
            metavar="CRON",
            help="Register the periodic sweep (defaults to RELIABILITY_RECOVERY_CRON).",
        )
        parser.add_argument("--unschedule", action="store_true", help="Remove the periodic sweep.")

    def handle(self, *args, **options):
        limit = options["limit"]
        if limit is not None and limit <= 0:
            raise CommandError("--limit must be a positive integer.")

        if options["unschedule"]:
            cancel_recovery_sweep()
            self.stdout.write(self.style.WARNING("Recovery sweep unscheduled"))
            return

        if options["schedule"] is not None:
            cron_expr = register_recovery_sweep(options["schedule"] or None, limit)
            self.stdout.write(self.style.SUCCESS(f"Recovery sweep scheduled ({cron_expr})"))
            return

        if options["enqueue"]:
            enqueue_recovery_sweep(limit)
            self.stdout.write(self.style.SUCCESS("Recovery sweep queued"))
            return

        summary = build_engine().recover_open_incidents(limit)
        self.stdout.write(
            self.style.SUCCESS(
                f"Scanned {summary['scanned']} incident(s): "
                f"{summary['resolved']} resolved, {summary['ticketed']} ticketed",
            ),
        )
