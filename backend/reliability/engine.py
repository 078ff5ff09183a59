"""
Reliability engine: incident reporting, self-healing repair and escalation.

Callers (RQ jobs, the recovery sweep, admin actions) go through
``ReliabilityEngine``; persistence, asset access, ticket creation and job
dispatch are injected collaborators so the same engine runs against the
Django stores in production and against fakes in tests.

Every entry point is safe to call repeatedly: once ``resolved_at`` is set on
an incident, recovery, resolution and escalation all become no-ops.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from django.utils import timezone

from .metrics import record_incident_metric
from .models import Incident, Ticket
from .policy import EscalationPolicy
from .results import RepairResult
from .severity import (
    CONTEXT_INCIDENT_STUCK,
    CONTEXT_VISUAL_METADATA_MISSING,
    Severity,
    classify,
)
from .strategies import RepairStrategy

logger = logging.getLogger(__name__)


@dataclass
class ReportRequest:
    """
    An incident report.

    ``context``, ``asset``, ``asset_id`` and ``minutes_stuck`` only feed
    severity classification and are never persisted.
    """

    source_type: str
    title: str
    source_id: Optional[str] = None
    tenant_id: Optional[str] = None
    severity: Optional[str] = None
    message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    retryable: bool = False
    requires_support: bool = False
    unique_signature: Optional[str] = None
    context: Optional[str] = None
    asset: Any = None
    asset_id: Optional[str] = None
    minutes_stuck: Optional[float] = None

    def __post_init__(self):
        if not self.source_type:
            raise ValueError("Incident reports require a source_type.")
        if not self.title:
            raise ValueError("Incident reports require a title.")
        if self.source_id is not None:
            self.source_id = str(self.source_id)
        if self.tenant_id is not None:
            self.tenant_id = str(self.tenant_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportRequest":
        known = {name for name in cls.__dataclass_fields__}
        kwargs = {key: value for key, value in data.items() if key in known}
        kwargs.setdefault("source_type", "")
        kwargs.setdefault("title", "")
        if kwargs.get("metadata") is None:
            kwargs["metadata"] = {}
        return cls(**kwargs)

    def to_payload(self, severity: Severity, detected_at: datetime) -> Dict[str, Any]:
        return {
            "source_type": self.source_type,
            "source_id": self.source_id,
            "tenant_id": self.tenant_id,
            "severity": severity.value,
            "title": self.title,
            "message": self.message,
            "metadata": dict(self.metadata or {}),
            "retryable": bool(self.retryable),
            "requires_support": bool(self.requires_support),
            "unique_signature": self.unique_signature or None,
            "detected_at": detected_at,
        }


ReportInput = Union[ReportRequest, Dict[str, Any]]


class ReliabilityEngine:
    def __init__(
        self,
        incidents,
        assets,
        tickets,
        strategies: Iterable[RepairStrategy],
        policy: Optional[EscalationPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.incidents = incidents
        self.assets = assets
        self.tickets = tickets
        self.strategies: List[RepairStrategy] = list(strategies)
        self.clock = clock or timezone.now
        self.policy = policy or EscalationPolicy(clock=self.clock)

    # -- reporting ---------------------------------------------------------

    def report(self, request: ReportInput) -> Optional[Incident]:
        if isinstance(request, dict):
            request = ReportRequest.from_dict(request)

        if request.severity:
            severity = Severity.coerce(request.severity)
        elif request.context:
            severity = self.classify_severity(request)
        else:
            severity = Severity.WARNING

        payload = request.to_payload(severity, detected_at=self.clock())
        if request.unique_signature:
            incident = self.incidents.record_if_not_exists(payload)
        else:
            incident = self.incidents.record(payload)

        if incident is not None:
            record_incident_metric("reported")
            logger.info(
                "Incident reported: %s (%s)",
                incident.title,
                incident.severity,
                extra={
                    "incident_id": str(incident.id),
                    "source_type": incident.source_type,
                    "source_id": incident.source_id,
                },
            )
        return incident

    def classify_severity(self, request: ReportInput) -> Severity:
        if isinstance(request, dict):
            request = ReportRequest.from_dict(request)

        details: Dict[str, Any] = {"severity": request.severity}
        if request.context == CONTEXT_VISUAL_METADATA_MISSING:
            asset = request.asset
            if asset is None:
                lookup_id = request.asset_id or (request.source_id if request.source_type == "asset" else None)
                asset = self.assets.find_by_id(lookup_id) if lookup_id else None
            if asset is not None:
                meta = asset.metadata or {}
                details.update(
                    thumbnail_timeout=bool(meta.get("thumbnail_timeout")),
                    has_dimensions=asset.has_dimensions(),
                    retry_count=asset.thumbnail_retry_count,
                )
        elif request.context == CONTEXT_INCIDENT_STUCK:
            details["minutes_stuck"] = request.minutes_stuck

        return classify(request.context, details)

    # -- recovery ----------------------------------------------------------

    def attempt_recovery(self, incident: Incident) -> RepairResult:
        """
        Run one repair pass: age escalation, then the first strategy that
        supports the incident. Only a resolving strategy's changes are
        returned; an unresolved pass reports no changes.
        """
        if incident.resolved_at:
            return RepairResult.unresolved()

        self.policy.apply_age_escalation(incident)
        incident = self.incidents.refresh(incident)
        if incident.resolved_at:
            return RepairResult.unresolved()

        for strategy in self.strategies:
            if not strategy.supports(incident):
                continue
            result = strategy.attempt(incident)
            if result.resolved:
                self.resolve(incident, auto_resolved=True)
                return result
            self._record_failed_attempt(incident, strategy)
            break

        return RepairResult.unresolved()

    def resolve(self, incident: Incident, auto_resolved: bool = False) -> None:
        if incident.resolved_at:
            return

        closed = self.incidents.close(
            incident,
            resolved_at=self.clock(),
            auto_resolved=auto_resolved,
            actor="engine" if auto_resolved else "operator",
            notes="Automatic repair succeeded" if auto_resolved else None,
        )
        if not closed:
            return

        self._emit_resolution_metrics(incident)
        logger.info(
            "Incident %s resolved (auto=%s)",
            incident.id,
            auto_resolved,
            extra={"incident_id": str(incident.id), "auto_resolved": auto_resolved},
        )

    def resolve_by_source(self, source_type: str, source_id) -> int:
        count = self.incidents.resolve_by_source(source_type, source_id)
        for _ in range(count):
            record_incident_metric("resolved")
        if count:
            logger.info("Resolved %s open incident(s) for %s %s", count, source_type, source_id)
        return count

    # -- escalation --------------------------------------------------------

    def escalate(self, incident: Incident) -> Optional[Ticket]:
        if incident.resolved_at:
            return None
        if not self.policy.should_create_ticket(incident):
            return None

        ticket = self.tickets.create_ticket(incident)
        if ticket is not None:
            record_incident_metric("escalated")
            logger.info(
                "Incident %s escalated to ticket %s",
                incident.id,
                getattr(ticket, "ticket_id", ticket),
                extra={"incident_id": str(incident.id), "severity": incident.severity},
            )
        return ticket

    def recover_open_incidents(self, limit: Optional[int] = None) -> Dict[str, int]:
        """Sweep open incidents oldest first; escalate whatever stays unresolved."""
        summary = {"scanned": 0, "resolved": 0, "ticketed": 0}
        for incident in self.incidents.open_incidents(limit):
            summary["scanned"] += 1
            result = self.attempt_recovery(incident)
            if result.resolved:
                summary["resolved"] += 1
                continue
            if self.escalate(incident) is not None:
                summary["ticketed"] += 1
        logger.info("Recovery sweep finished: %s", summary)
        return summary

    # -- internals ---------------------------------------------------------

    def _record_failed_attempt(self, incident: Incident, strategy: RepairStrategy) -> None:
        self.incidents.record_attempt(incident, type(strategy).__name__)

    def _emit_resolution_metrics(self, incident: Incident) -> None:
        record_incident_metric("auto_resolved" if incident.auto_resolved else "resolved")
