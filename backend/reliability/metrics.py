# backend/reliability/metrics.py
from __future__ import annotations

from collections import Counter
from datetime import timedelta
from typing import Optional

from django.utils import timezone

_INCIDENT = Counter()  # keys: (event,)
_DISPATCH = Counter()  # keys: (job_name,)


def record_incident_metric(event: str) -> None:
    _INCIDENT[(event or "unknown",)] += 1


def record_dispatch_metric(job_name: str) -> None:
    _DISPATCH[(job_name or "unknown",)] += 1


def reset_metrics() -> None:
    _INCIDENT.clear()
    _DISPATCH.clear()


def incident_metric_value(event: str) -> int:
    return _INCIDENT[(event,)]


def _percent(part: int, whole: int, empty: Optional[float] = None) -> Optional[float]:
    if not whole:
        return empty
    return round(part * 100.0 / whole, 2)


def reliability_summary(window_days: int = 7) -> dict:
    """
    Snapshot of engine health over the last ``window_days``.

    Keys: integrity, mttr, recovery_success, ticket_escalation.
    """
    from .models import Asset, Incident, Ticket

    now = timezone.now()
    since = now - timedelta(days=window_days)

    assets_total = Asset.objects.count()
    open_asset_ids = set(
        Incident.objects.filter(source_type="asset", resolved_at__isnull=True)
        .exclude(source_id__isnull=True)
        .values_list("source_id", flat=True)
    )
    assets_affected = len(open_asset_ids)

    resolved = list(
        Incident.objects.filter(resolved_at__isnull=False, resolved_at__gte=since).values(
            "detected_at", "resolved_at", "auto_resolved"
        )
    )
    durations = [
        (row["resolved_at"] - row["detected_at"]).total_seconds() / 60.0
        for row in resolved
        if row["detected_at"] and row["resolved_at"] >= row["detected_at"]
    ]
    auto_count = sum(1 for row in resolved if row["auto_resolved"])

    incidents_in_window = Incident.objects.filter(detected_at__gte=since)
    ticketed = incidents_in_window.filter(tickets__isnull=False).distinct().count()

    return {
        "integrity": {
            "assets_total": assets_total,
            "assets_with_open_incidents": assets_affected,
            "rate_percent": _percent(assets_total - assets_affected, assets_total, empty=100.0),
        },
        "mttr": {
            "resolved_count": len(durations),
            "mttr_minutes_avg": round(sum(durations) / len(durations), 2) if durations else None,
        },
        "recovery_success": {
            "resolved_count": len(resolved),
            "auto_resolved_count": auto_count,
            "recovery_rate_percent": _percent(auto_count, len(resolved)),
        },
        "ticket_escalation": {
            "incidents_in_window": incidents_in_window.count(),
            "ticketed_count": ticketed,
            "escalation_rate_percent": _percent(ticketed, incidents_in_window.count()),
            "unresolved_count": Ticket.objects.filter(status__in=Ticket.OPEN_STATUSES).count(),
        },
        "window_days": window_days,
        "generated_at": now.isoformat(),
    }


def get_metrics_data() -> str:
    # Prometheus text format
    lines = []
    lines.append("# HELP dam_reliability_incident_events_total Incident lifecycle events by type")
    lines.append("# TYPE dam_reliability_incident_events_total counter")
    for (event,), value in sorted(_INCIDENT.items()):
        lines.append(f'dam_reliability_incident_events_total{{event="{event}"}} {value}')

    lines.append("# HELP dam_reliability_repair_jobs_total Repair jobs dispatched by job name")
    lines.append("# TYPE dam_reliability_repair_jobs_total counter")
    for (job_name,), value in sorted(_DISPATCH.items()):
        lines.append(f'dam_reliability_repair_jobs_total{{job="{job_name}"}} {value}')

    lines.append(f'# HELP dam_reliability_build_info Build info')
    lines.append(f'# TYPE dam_reliability_build_info gauge')
    lines.append(f'dam_reliability_build_info{{ts="{timezone.now().isoformat()}"}} 1')

    return "\n".join(lines) + "\n"
