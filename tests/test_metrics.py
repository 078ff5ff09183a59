"""Reliability summary and Prometheus rendering."""

from datetime import timedelta

import pytest
from django.utils import timezone

from reliability.metrics import (
    get_metrics_data,
    record_dispatch_metric,
    record_incident_metric,
    reliability_summary,
)
from reliability.models import Incident, Ticket


@pytest.mark.django_db
class TestReliabilitySummary:
    def test_empty_database(self):
        summary = reliability_summary()

        assert summary["integrity"]["rate_percent"] == 100.0
        assert summary["mttr"]["mttr_minutes_avg"] is None
        assert summary["recovery_success"]["recovery_rate_percent"] is None
        assert summary["ticket_escalation"]["unresolved_count"] == 0
        assert summary["window_days"] == 7

    def test_summary_figures(self, make_asset, make_incident):
        now = timezone.now()
        broken = make_asset()
        make_asset()
        open_incident = make_incident(broken)
        Ticket.objects.create(incident=open_incident, status="open", priority="P1")

        Incident.objects.create(source_type="asset", source_id="x", title="a", detected_at=now - timedelta(minutes=40),
                                resolved_at=now - timedelta(minutes=10), auto_resolved=True)
        Incident.objects.create(source_type="asset", source_id="y", title="b", detected_at=now - timedelta(minutes=60),
                                resolved_at=now - timedelta(minutes=10))

        summary = reliability_summary(window_days=1)

        assert summary["integrity"]["rate_percent"] == 50.0
        assert summary["mttr"]["mttr_minutes_avg"] == 40.0
        assert summary["recovery_success"]["recovery_rate_percent"] == 50.0
        assert summary["ticket_escalation"]["unresolved_count"] == 1
        assert summary["ticket_escalation"]["ticketed_count"] == 1


class TestPrometheusText:
    def test_counters_are_rendered(self):
        record_incident_metric("reported")
        record_incident_metric("reported")
        record_dispatch_metric("generate_thumbnails")

        text = get_metrics_data()

        assert 'dam_reliability_incident_events_total{event="reported"} 2' in text
        assert 'dam_reliability_repair_jobs_total{job="generate_thumbnails"} 1' in text
        assert text.endswith("\n")
