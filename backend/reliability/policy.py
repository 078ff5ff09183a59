from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from django.conf import settings
from django.utils import timezone

from .metrics import record_incident_metric
from .models import Incident
from .severity import Severity, escalate_one_step

logger = logging.getLogger(__name__)

DEFAULT_ESCALATION_MINUTES = 15

# minimum repair attempts before an incident of that effective severity gets a ticket
TICKET_ATTEMPT_THRESHOLDS = {
    Severity.CRITICAL: 0,
    Severity.ERROR: 1,
    Severity.WARNING: 3,
}


class EscalationPolicy:
    """
    Age-based severity escalation and ticket gating.

    Only the step that reaches ``critical`` is ever written back; the
    intermediate steps (info -> warning, warning -> error) are visible
    through ``effective_severity`` at read time and nowhere else.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, escalation_minutes: Optional[int] = None):
        self.clock = clock or timezone.now
        if escalation_minutes is None:
            escalation_minutes = getattr(settings, "RELIABILITY_ESCALATION_MINUTES", DEFAULT_ESCALATION_MINUTES)
        self.escalation_after = timedelta(minutes=escalation_minutes)

    def effective_severity(self, incident: Incident) -> Severity:
        base = Severity.coerce(incident.severity, default=Severity.INFO)
        if not incident.detected_at:
            return base
        if self.clock() - incident.detected_at < self.escalation_after:
            return base
        return escalate_one_step(base)

    def apply_age_escalation(self, incident: Incident) -> bool:
        effective = self.effective_severity(incident)
        previous = (incident.severity or "").lower()
        if effective != Severity.CRITICAL or previous == effective.value:
            return False

        incident.severity = effective.value
        incident.append_event("Severity escalated by age", notes=f"{previous or 'unset'} -> {effective.value}")
        incident.save(update_fields=["severity", "timeline", "updated_at"])

        record_incident_metric("age_escalated")
        logger.info(
            "Incident %s escalated to %s after %s",
            incident.id,
            effective.value,
            self.escalation_after,
            extra={
                "incident_id": str(incident.id),
                "title": incident.title,
                "previous_severity": previous,
                "new_severity": effective.value,
            },
        )
        return True

    def should_create_ticket(self, incident: Incident) -> bool:
        attempts = incident.repair_attempts()
        threshold = TICKET_ATTEMPT_THRESHOLDS.get(self.effective_severity(incident))
        if threshold is None:
            return False
        return attempts >= threshold
