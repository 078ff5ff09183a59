from __future__ import annotations

import json

from django.core.management.base import BaseCommand

from reliability.metrics import get_metrics_data, reliability_summary


class Command(BaseCommand):
    help = "Print reliability metrics (integrity, MTTR, recovery success, ticket escalation)."

    def add_arguments(self, parser):
        parser.add_argument("--format", choices=["json", "prometheus"], default="json")
        parser.add_argument("--window-days", type=int, default=7)

    def handle(self, *args, **options):
        if options["format"] == "prometheus":
            self.stdout.write(get_metrics_data(), ending="")
            return
        summary = reliability_summary(window_days=options["window_days"])
        self.stdout.write(json.dumps(summary, indent=2, default=str))
