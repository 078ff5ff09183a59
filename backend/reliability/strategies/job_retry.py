from __future__ import annotations

import logging

from ..dispatch import PROCESS_ASSET, PROMOTE_ASSET
from ..metrics import record_incident_metric
from ..models import Incident
from ..results import RepairResult
from .base import VISUAL_METADATA_MISSING_TITLE, reconcile_subject, targets_asset

logger = logging.getLogger(__name__)


class JobRetryStrategy:
    """Generic fallback: reconcile, then retry promotion or processing once."""

    def __init__(self, assets, reconciler, dispatcher, incidents):
        self.assets = assets
        self.reconciler = reconciler
        self.dispatcher = dispatcher
        self.incidents = incidents

    def supports(self, incident: Incident) -> bool:
        # visual metadata incidents belong to VisualMetadataStrategy
        return targets_asset(incident) and incident.title != VISUAL_METADATA_MISSING_TITLE

    def attempt(self, incident: Incident) -> RepairResult:
        asset, reconciliation = reconcile_subject(self.assets, self.reconciler, incident)
        if asset is None:
            return RepairResult.unresolved()

        if asset.analysis_status == "complete":
            return RepairResult.success(reconciliation.changes)

        already_retried = bool((incident.metadata or {}).get("retried"))
        if incident.retryable and not already_retried and self.incidents.claim_retry(incident):
            job_name = PROMOTE_ASSET if asset.analysis_status == "promotion_failed" else PROCESS_ASSET
            self.dispatcher.dispatch(job_name, asset.id)
            record_incident_metric("retry_dispatched")
            logger.info(
                "Dispatched %s retry for incident %s",
                job_name,
                incident.id,
                extra={"incident_id": str(incident.id), "asset_id": str(asset.id), "job": job_name},
            )

        return RepairResult.unresolved(reconciliation.changes)
