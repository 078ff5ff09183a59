from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .models import Asset, Incident, Ticket

logger = logging.getLogger(__name__)

TICKET_SOURCE_TAG = "operations_incident"

PRIORITY_BY_SEVERITY = {
    "critical": "P0",
    "error": "P1",
}


class DjangoIncidentStore:
    def record(self, payload: dict) -> Incident:
        incident = Incident(**payload)
        incident.append_event("Incident detected", notes=(incident.message or incident.title or "")[:280])
        incident.save()
        return incident

    def record_if_not_exists(self, payload: dict) -> Optional[Incident]:
        signature = payload.get("unique_signature")
        if not signature:
            return self.record(payload)

        existing = self._open_by_signature(signature)
        if existing is not None:
            return existing
        try:
            with transaction.atomic():
                return self.record(payload)
        except IntegrityError:
            # another reporter won the race on the partial unique index
            return self._open_by_signature(signature)

    def refresh(self, incident: Incident) -> Incident:
        incident.refresh_from_db()
        return incident

    def claim_retry(self, incident: Incident, count: bool = False) -> bool:
        """
        Stamp retry bookkeeping with a compare-and-swap on ``version``.

        Returns False when another pass changed the incident first or it was
        closed meanwhile; the caller must not dispatch in that case.
        """
        now = timezone.now()
        metadata = dict(incident.metadata or {})
        metadata["retried"] = True
        metadata["retried_at"] = now.isoformat()
        if count:
            metadata["retry_count"] = int(metadata.get("retry_count") or 0) + 1

        updated = Incident.objects.filter(
            pk=incident.pk,
            version=incident.version,
            resolved_at__isnull=True,
        ).update(metadata=metadata, version=F("version") + 1, updated_at=now)
        if not updated:
            logger.info("Retry claim lost for incident %s (version %s)", incident.pk, incident.version)
            return False

        incident.metadata = metadata
        incident.version += 1
        return True

    def record_attempt(self, incident: Incident, strategy_name: str) -> int:
        """
        Count a non-resolving repair pass against the current row.

        Merges into the stored metadata under a row lock so retry stamps
        written by a concurrent ``claim_retry`` survive; the in-memory
        incident is brought up to date afterwards.
        """
        with transaction.atomic():
            current = Incident.objects.select_for_update().get(pk=incident.pk)
            attempts = current.repair_attempts() + 1
            metadata = dict(current.metadata or {})
            metadata["repair_attempts"] = attempts
            metadata["last_repair_strategy"] = strategy_name
            current.metadata = metadata
            current.version += 1
            current.save(update_fields=["metadata", "version", "updated_at"])

        incident.metadata = current.metadata
        incident.version = current.version
        return attempts

    def close(
        self,
        incident: Incident,
        resolved_at,
        auto_resolved: bool = False,
        actor: str = "engine",
        notes: Optional[str] = None,
    ) -> bool:
        """
        Mark the incident resolved, merging into the stored metadata and
        timeline. Returns False when the row was already closed.
        """
        with transaction.atomic():
            current = Incident.objects.select_for_update().get(pk=incident.pk)
            if current.resolved_at is None:
                metadata = dict(current.metadata or {})
                if auto_resolved:
                    metadata["auto_recovered"] = True
                current.resolved_at = resolved_at
                current.auto_resolved = auto_resolved
                current.metadata = metadata
                current.append_event("Incident resolved", actor=actor, notes=notes)
                current.version += 1
                current.save(
                    update_fields=["resolved_at", "auto_resolved", "metadata", "timeline", "version", "updated_at"],
                )
                closed = True
            else:
                closed = False

        for name in ("resolved_at", "auto_resolved", "metadata", "timeline", "version"):
            setattr(incident, name, getattr(current, name))
        return closed

    def resolve_by_source(self, source_type: str, source_id) -> int:
        now = timezone.now()
        return Incident.objects.filter(
            source_type=source_type,
            source_id=str(source_id),
            resolved_at__isnull=True,
        ).update(resolved_at=now, updated_at=now)

    def open_incidents(self, limit: Optional[int] = None) -> Iterable[Incident]:
        qs = Incident.objects.filter(resolved_at__isnull=True).order_by("detected_at")
        if limit:
            qs = qs[:limit]
        return list(qs)

    @staticmethod
    def _open_by_signature(signature: str) -> Optional[Incident]:
        return Incident.objects.filter(unique_signature=signature, resolved_at__isnull=True).first()


class DjangoAssetRepository:
    def find_by_id(self, asset_id) -> Optional[Asset]:
        if not asset_id:
            return None
        try:
            return Asset.objects.filter(pk=asset_id).first()
        except (ValidationError, ValueError):
            return None

    def refresh(self, asset: Asset) -> Asset:
        asset.refresh_from_db()
        return asset


class DjangoTicketFactory:
    def __init__(self, assets: Optional[DjangoAssetRepository] = None, created_by: str = "system"):
        self.assets = assets or DjangoAssetRepository()
        self.created_by = created_by

    def create_ticket(self, incident: Incident) -> Optional[Ticket]:
        """Create a system ticket for the incident, or return the open one it already has."""
        if incident.resolved_at:
            return None

        existing = self._open_ticket_for(incident)
        if existing is not None:
            return existing

        asset = self.assets.find_by_id(incident.source_id) if incident.source_type in ("asset", "job") else None
        severity = (incident.severity or "warning").lower()
        priority = PRIORITY_BY_SEVERITY.get(severity, "P2")
        title = f"Asset processing: {asset.title}" if asset is not None and asset.title else incident.title
        description = self._describe(incident, asset)

        with transaction.atomic():
            ticket = Ticket.objects.create(
                incident=incident,
                source="system",
                status="open",
                priority=priority,
                created_by=self.created_by,
                title=title[:255],
                description=description,
                metadata={
                    "source": TICKET_SOURCE_TAG,
                    "incident_id": str(incident.id),
                    "incident_title": incident.title,
                    "asset_id": str(asset.id) if asset is not None else incident.source_id,
                    "tenant_id": (asset.tenant_id if asset is not None else None) or incident.tenant_id,
                    "analysis_status": asset.analysis_status if asset is not None else "unknown",
                    "thumbnail_status": asset.thumbnail_status if asset is not None else None,
                    "severity": severity,
                },
                timeline=[
                    {"timestamp": timezone.now().isoformat(), "event": "System ticket created", "actor": "system"},
                ],
            )
            incident.append_event("Ticket created", notes=f"{priority} ticket {ticket.ticket_id}")
            incident.save(update_fields=["timeline", "updated_at"])

        logger.info("Created ticket %s for incident %s", ticket.ticket_id, incident.id)
        return ticket

    @staticmethod
    def _open_ticket_for(incident: Incident) -> Optional[Ticket]:
        by_incident = Ticket.objects.filter(incident=incident, status__in=Ticket.OPEN_STATUSES).first()
        if by_incident is not None or not incident.source_id:
            return by_incident
        return Ticket.objects.filter(
            incident__source_type=incident.source_type,
            incident__source_id=incident.source_id,
            status__in=Ticket.OPEN_STATUSES,
        ).first()

    @staticmethod
    def _describe(incident: Incident, asset: Optional[Asset]) -> str:
        lines = ["Created from Operations Center incident.", "", f"Incident: {incident.title}"]
        if incident.message:
            lines.append(f"Details: {incident.message}")
        lines.append("")
        lines.append(f"Source: {incident.source_type} {incident.source_id or '-'}")
        lines.append(f"Analysis status: {asset.analysis_status if asset is not None else 'unknown'}")
        lines.append(f"Thumbnail status: {asset.thumbnail_status if asset is not None else 'unknown'}")
        return "\n".join(lines)
