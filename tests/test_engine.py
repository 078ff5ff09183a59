"""
ReliabilityEngine tests.

Tests ensure:
1. Reporting classifies and deduplicates incidents
2. Recovery runs the first matching strategy and resolves on success
3. Resolution and escalation are idempotent on closed incidents
"""

import uuid
from unittest.mock import patch

import pytest

from reliability.dispatch import GENERATE_THUMBNAILS, PROCESS_ASSET
from reliability.engine import ReportRequest
from reliability.metrics import incident_metric_value
from reliability.models import Incident, Ticket
from reliability.severity import CONTEXT_INCIDENT_STUCK, CONTEXT_VISUAL_METADATA_MISSING, Severity


# -----------------------------------------------------------------------------
# report()
# -----------------------------------------------------------------------------
@pytest.mark.django_db
class TestReport:
    def test_defaults_to_warning(self, engine):
        incident = engine.report({"source_type": "asset", "source_id": "A1", "title": "Thumbnail generation failed"})

        assert incident.severity == "warning"
        assert incident.resolved_at is None
        assert incident.timeline[0]["event"] == "Incident detected"
        assert incident_metric_value("reported") == 1

    def test_explicit_severity_wins(self, engine):
        incident = engine.report(ReportRequest(source_type="job", title="Queue stalled", severity="ERROR"))
        assert incident.severity == "error"

    def test_missing_title_is_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.report({"source_type": "asset", "source_id": "A1"})

    def test_context_drives_classification(self, engine, make_asset):
        asset = make_asset(metadata={"thumbnail_timeout": True})
        incident = engine.report({
            "source_type": "asset",
            "source_id": str(asset.id),
            "title": "Expected visual metadata missing",
            "context": CONTEXT_VISUAL_METADATA_MISSING,
            "metadata": {"detector": "scan"},
        })

        assert incident.severity == "critical"
        assert incident.metadata == {"detector": "scan"}

    def test_signature_dedupes_open_incidents(self, engine):
        payload = {"source_type": "asset", "source_id": "A1", "title": "Thumbnail generation failed",
                   "unique_signature": "thumb:A1"}

        first = engine.report(payload)
        second = engine.report(payload)

        assert first.pk == second.pk
        assert Incident.objects.count() == 1

    def test_signature_reusable_after_resolution(self, engine):
        payload = {"source_type": "asset", "source_id": "A1", "title": "Thumbnail generation failed",
                   "unique_signature": "thumb:A1"}
        first = engine.report(payload)
        engine.resolve(first)

        second = engine.report(payload)

        assert second.pk != first.pk
        assert Incident.objects.filter(resolved_at__isnull=True).count() == 1


@pytest.mark.django_db
class TestClassifySeverity:
    def test_stuck_context(self, engine):
        request = {"source_type": "job", "title": "Stuck", "context": CONTEXT_INCIDENT_STUCK, "minutes_stuck": 20}
        assert engine.classify_severity(request) is Severity.CRITICAL

    def test_looks_up_asset_by_id(self, engine, make_asset):
        asset = make_asset(thumbnail_retry_count=2)
        request = {"source_type": "asset", "title": "x", "context": CONTEXT_VISUAL_METADATA_MISSING,
                   "asset_id": str(asset.id)}
        assert engine.classify_severity(request) is Severity.ERROR

    def test_unknown_asset_falls_back(self, engine):
        request = {"source_type": "asset", "title": "x", "context": CONTEXT_VISUAL_METADATA_MISSING,
                   "asset_id": "not-a-uuid"}
        assert engine.classify_severity(request) is Severity.WARNING


# -----------------------------------------------------------------------------
# attempt_recovery()
# -----------------------------------------------------------------------------
@pytest.mark.django_db
class TestAttemptRecovery:
    def test_retry_then_resolve(self, engine, make_asset, dispatcher):
        asset = make_asset()
        incident = engine.report({"source_type": "asset", "source_id": str(asset.id),
                                  "title": "Thumbnail generation failed", "retryable": True})

        first = engine.attempt_recovery(incident)

        assert first.resolved is False
        assert first.changes == ()
        dispatcher.dispatch.assert_called_once_with(GENERATE_THUMBNAILS, asset.id)
        incident.refresh_from_db()
        assert incident.metadata["retried"] is True
        assert incident.metadata["retry_count"] == 1
        assert incident.metadata["repair_attempts"] == 1

        asset.analysis_status = "complete"
        asset.save()
        second = engine.attempt_recovery(incident)

        assert second.resolved is True
        incident.refresh_from_db()
        assert incident.resolved_at is not None
        assert incident.auto_resolved is True
        assert incident.metadata["auto_recovered"] is True
        assert incident_metric_value("auto_resolved") == 1

    def test_closed_incident_is_noop(self, engine, make_asset, make_incident, dispatcher):
        incident = make_incident(make_asset())
        engine.resolve(incident)

        result = engine.attempt_recovery(incident)

        assert result.resolved is False
        dispatcher.dispatch.assert_not_called()

    def test_age_escalation_runs_first(self, engine, make_asset, make_incident):
        incident = make_incident(make_asset(), severity="error", minutes_ago=30)
        engine.attempt_recovery(incident)
        incident.refresh_from_db()
        assert incident.severity == "critical"

    def test_only_first_matching_strategy_runs(self, engine, make_asset, make_incident, dispatcher):
        # thumbnail incidents also match the generic job retry; it must not fire as well
        incident = make_incident(make_asset())
        engine.attempt_recovery(incident)
        assert dispatcher.dispatch.call_count == 1
        assert incident.metadata["last_repair_strategy"] == "ThumbnailRetryStrategy"

    def test_unmatched_incident_counts_no_attempt(self, engine, make_incident):
        incident = make_incident(source_type="upload", source_id="u-1")
        assert engine.attempt_recovery(incident).resolved is False
        incident.refresh_from_db()
        assert incident.repair_attempts() == 0


# -----------------------------------------------------------------------------
# resolve(), escalate(), resolve_by_source()
# -----------------------------------------------------------------------------
@pytest.mark.django_db
class TestResolveAndEscalate:
    def test_resolve_is_idempotent(self, engine, make_incident):
        incident = make_incident()
        engine.resolve(incident)
        resolved_at = incident.resolved_at

        engine.resolve(incident)

        incident.refresh_from_db()
        assert incident.resolved_at == resolved_at
        assert incident.auto_resolved is False
        assert "auto_recovered" not in incident.metadata
        assert incident_metric_value("resolved") == 1

    def test_warning_without_attempts_is_not_ticketed(self, engine, make_incident):
        assert engine.escalate(make_incident(severity="warning")) is None
        assert Ticket.objects.count() == 0

    def test_critical_gets_p0_ticket_once(self, engine, make_asset, make_incident):
        incident = make_incident(make_asset(), severity="critical")

        ticket = engine.escalate(incident)
        again = engine.escalate(incident)

        assert ticket.priority == "P0"
        assert again.pk == ticket.pk
        assert Ticket.objects.count() == 1

    def test_escalate_after_resolve_is_noop(self, engine, make_incident):
        incident = make_incident(severity="critical")
        engine.escalate(incident)
        engine.resolve(incident)

        assert engine.escalate(incident) is None
        assert Ticket.objects.count() == 1

    def test_resolve_by_source(self, engine, make_incident):
        make_incident(source_id="A1")
        make_incident(source_id="A1", title="Promotion failed")
        other = make_incident(source_id="A2")

        assert engine.resolve_by_source("asset", "A1") == 2
        assert Incident.objects.filter(source_id="A1", resolved_at__isnull=True).count() == 0
        assert Incident.objects.filter(source_id="A1", auto_resolved=True).count() == 0
        other.refresh_from_db()
        assert other.resolved_at is None

    def test_resolve_by_source_without_matches(self, engine):
        assert engine.resolve_by_source("asset", str(uuid.uuid4())) == 0


# -----------------------------------------------------------------------------
# Overlapping passes on one incident
# -----------------------------------------------------------------------------
@pytest.mark.django_db
class TestOverlappingPasses:
    def _stalled(self, make_asset, make_incident):
        asset = make_asset(analysis_status="uploading")
        return asset, make_incident(asset, title="Asset processing stalled")

    def test_losing_pass_keeps_winner_retry_stamp(self, engine, make_asset, make_incident, dispatcher):
        asset, incident = self._stalled(make_asset, make_incident)
        first = Incident.objects.get(pk=incident.pk)
        second = Incident.objects.get(pk=incident.pk)

        # both passes read the row before either claimed the retry
        with patch.object(engine.incidents, "refresh", side_effect=lambda i: i):
            engine.attempt_recovery(first)
            engine.attempt_recovery(second)

        later = Incident.objects.get(pk=incident.pk)
        assert later.metadata["retried"] is True
        assert later.metadata["repair_attempts"] == 2

        engine.attempt_recovery(later)

        dispatcher.dispatch.assert_called_once_with(PROCESS_ASSET, asset.id)
        later.refresh_from_db()
        assert later.metadata["repair_attempts"] == 3

    def test_resolve_merges_with_stored_metadata(self, engine, incident_store, make_asset, make_incident):
        _, incident = self._stalled(make_asset, make_incident)
        stale = Incident.objects.get(pk=incident.pk)
        assert incident_store.claim_retry(incident) is True

        engine.resolve(stale, auto_resolved=True)

        stale.refresh_from_db()
        assert stale.metadata["retried"] is True
        assert stale.metadata["auto_recovered"] is True
        assert stale.auto_resolved is True

    def test_second_resolver_is_noop(self, engine, make_incident):
        incident = make_incident()
        stale = Incident.objects.get(pk=incident.pk)
        engine.resolve(incident)

        engine.resolve(stale, auto_resolved=True)

        assert incident_metric_value("resolved") == 1
        assert incident_metric_value("auto_resolved") == 0
        stale.refresh_from_db()
        assert stale.auto_resolved is False
        assert [e["event"] for e in stale.timeline].count("Incident resolved") == 1


@pytest.mark.django_db
class TestRecoverOpenIncidents:
    def test_sweep_resolves_and_tickets(self, engine, make_asset, make_incident):
        make_incident(make_asset(analysis_status="complete"), minutes_ago=5)
        make_incident(source_type="system", source_id="queue", title="Queue stalled", severity="critical",
                      minutes_ago=1)

        summary = engine.recover_open_incidents()

        assert summary == {"scanned": 2, "resolved": 1, "ticketed": 1}
        assert Ticket.objects.get().incident.title == "Queue stalled"

    def test_limit(self, engine, make_incident):
        for _ in range(3):
            make_incident(source_type="system", source_id="queue", title="Queue stalled")
        assert engine.recover_open_incidents(limit=2)["scanned"] == 2
