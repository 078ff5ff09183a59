from __future__ import annotations

from django.core.management.base import BaseCommand

from rq_scheduler import Scheduler

from reliability.queues import QUEUE_NAME, redis_conn
from reliability.scheduler import register_recovery_sweep


class Command(BaseCommand):
    help = "Register the incident recovery sweep and run the RQ scheduler loop that enqueues it."

    def add_arguments(self, parser):
        parser.add_argument(
            "--queue",
            default=QUEUE_NAME,
            help="Queue name that scheduled jobs should be enqueued into.",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=60,
            help="Polling interval in seconds (default: 60).",
        )
        parser.add_argument(
            "--sweep-cron",
            default=None,
            help="Cron expression for the recovery sweep (defaults to RELIABILITY_RECOVERY_CRON).",
        )
        parser.add_argument(
            "--sweep-limit",
            type=int,
            default=None,
            help="Maximum open incidents processed per sweep.",
        )
        parser.add_argument(
            "--no-sweep",
            action="store_true",
            help="Leave the recovery sweep schedule untouched.",
        )

    def handle(self, *args, **options):
        if not options["no_sweep"]:
            cron_expr = register_recovery_sweep(options["sweep_cron"], options["sweep_limit"])
            self.stdout.write(self.style.SUCCESS(f"Recovery sweep registered ({cron_expr})"))

        scheduler = Scheduler(queue_name=options["queue"], connection=redis_conn, interval=options["interval"])
        self.stdout.write(
            self.style.NOTICE(
                f"Polling scheduled reliability jobs on '{options['queue']}' every {options['interval']}s",
            ),
        )
        try:
            scheduler.run()
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING("Scheduler stopped by user"))
