"""Age-based escalation and ticket gating."""

from datetime import timedelta

import pytest

from reliability.metrics import incident_metric_value
from reliability.models import Incident
from reliability.policy import EscalationPolicy
from reliability.severity import Severity, severity_rank

from .conftest import FIXED_NOW


@pytest.fixture
def policy(fixed_clock):
    return EscalationPolicy(clock=fixed_clock, escalation_minutes=15)


def _incident(severity="warning", age=timedelta(0), **fields):
    return Incident(
        source_type="asset",
        source_id="A1",
        title="Thumbnail generation failed",
        severity=severity,
        detected_at=FIXED_NOW - age if age is not None else None,
        **fields,
    )


# -----------------------------------------------------------------------------
# effective_severity
# -----------------------------------------------------------------------------
class TestEffectiveSeverity:
    def test_just_under_threshold_keeps_base(self, policy):
        incident = _incident("warning", timedelta(minutes=14, seconds=59))
        assert policy.effective_severity(incident) is Severity.WARNING

    def test_at_threshold_steps_up(self, policy):
        incident = _incident("warning", timedelta(minutes=15))
        assert policy.effective_severity(incident) is Severity.ERROR

    def test_only_one_step_regardless_of_age(self, policy):
        incident = _incident("info", timedelta(days=3))
        assert policy.effective_severity(incident) is Severity.WARNING

    def test_missing_severity_is_info(self, policy):
        incident = _incident("", timedelta(minutes=20))
        assert policy.effective_severity(incident) is Severity.WARNING

    def test_missing_detected_at_returns_base(self, policy):
        incident = _incident("ERROR", age=None)
        assert policy.effective_severity(incident) is Severity.ERROR

    @pytest.mark.parametrize("stored", ["info", "warning", "error", "critical"])
    def test_never_lower_than_stored(self, policy, stored):
        for minutes in (0, 14, 15, 600):
            effective = policy.effective_severity(_incident(stored, timedelta(minutes=minutes)))
            assert severity_rank(effective) >= severity_rank(Severity(stored))

    def test_threshold_comes_from_settings(self, settings, fixed_clock):
        settings.RELIABILITY_ESCALATION_MINUTES = 5
        policy = EscalationPolicy(clock=fixed_clock)
        assert policy.effective_severity(_incident("warning", timedelta(minutes=5))) is Severity.ERROR


# -----------------------------------------------------------------------------
# apply_age_escalation
# -----------------------------------------------------------------------------
@pytest.mark.django_db
class TestApplyAgeEscalation:
    def _saved(self, severity, minutes):
        incident = _incident(severity, timedelta(minutes=minutes))
        incident.save()
        return incident

    def test_error_is_persisted_as_critical(self, policy):
        incident = self._saved("error", 20)

        assert policy.apply_age_escalation(incident) is True

        incident.refresh_from_db()
        assert incident.severity == "critical"
        assert incident.timeline[-1]["event"] == "Severity escalated by age"
        assert incident_metric_value("age_escalated") == 1

    def test_intermediate_step_is_not_persisted(self, policy):
        incident = self._saved("warning", 20)

        assert policy.apply_age_escalation(incident) is False

        incident.refresh_from_db()
        assert incident.severity == "warning"
        assert policy.effective_severity(incident) is Severity.ERROR

    def test_young_incident_untouched(self, policy):
        incident = self._saved("error", 10)
        assert policy.apply_age_escalation(incident) is False
        incident.refresh_from_db()
        assert incident.severity == "error"

    def test_already_critical_is_noop(self, policy):
        incident = self._saved("critical", 60)
        assert policy.apply_age_escalation(incident) is False
        assert incident_metric_value("age_escalated") == 0


# -----------------------------------------------------------------------------
# should_create_ticket
# -----------------------------------------------------------------------------
class TestShouldCreateTicket:
    @pytest.mark.parametrize("severity,attempts,expected", [
        ("critical", 0, True),
        ("error", 0, False),
        ("error", 1, True),
        ("warning", 2, False),
        ("warning", 3, True),
        ("info", 99, False),
    ])
    def test_attempt_thresholds(self, policy, severity, attempts, expected):
        incident = _incident(severity, metadata={"repair_attempts": attempts})
        assert policy.should_create_ticket(incident) is expected

    def test_legacy_attempt_key(self, policy):
        incident = _incident("warning", metadata={"recovery_attempt_count": 3})
        assert policy.should_create_ticket(incident) is True

    def test_first_non_null_attempt_key_wins(self, policy):
        incident = _incident("warning", metadata={"repair_attempts": 0, "recovery_attempt_count": 5})
        assert policy.should_create_ticket(incident) is False

    def test_gate_uses_effective_severity(self, policy):
        # error after 15 minutes reads as critical, so no attempts are needed
        incident = _incident("error", timedelta(minutes=16), metadata={})
        assert policy.should_create_ticket(incident) is True
