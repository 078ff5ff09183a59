from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings

from ..dispatch import GENERATE_THUMBNAILS
from ..metrics import record_incident_metric
from ..models import Incident
from ..results import RepairResult
from .base import reconcile_subject, targets_asset

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class ThumbnailRetryStrategy:
    """
    Re-run thumbnail generation for assets whose thumbnails never landed.

    Dispatches the thumbnail job rather than the general processing job: an
    asset stuck mid-pipeline is skipped by the processing job's "already
    started" guard, so only the thumbnail job actually regenerates anything.
    Each incident gets at most ``max_retries`` dispatch rounds.
    """

    def __init__(self, assets, reconciler, dispatcher, incidents, max_retries: Optional[int] = None):
        self.assets = assets
        self.reconciler = reconciler
        self.dispatcher = dispatcher
        self.incidents = incidents
        if max_retries is None:
            max_retries = getattr(settings, "RELIABILITY_THUMBNAIL_MAX_RETRIES", DEFAULT_MAX_RETRIES)
        self.max_retries = max_retries

    def supports(self, incident: Incident) -> bool:
        return targets_asset(incident) and "thumbnail" in (incident.title or "").lower()

    def attempt(self, incident: Incident) -> RepairResult:
        asset, reconciliation = reconcile_subject(self.assets, self.reconciler, incident)
        if asset is None:
            return RepairResult.unresolved()

        if asset.analysis_status == "complete":
            return RepairResult.success(reconciliation.changes)

        retry_count = int((incident.metadata or {}).get("retry_count") or 0)
        if incident.retryable and retry_count < self.max_retries:
            if self.incidents.claim_retry(incident, count=True):
                self.dispatcher.dispatch(GENERATE_THUMBNAILS, asset.id)
                record_incident_metric("retry_dispatched")
                logger.info(
                    "Thumbnail retry %s/%s dispatched for incident %s",
                    retry_count + 1,
                    self.max_retries,
                    incident.id,
                    extra={"incident_id": str(incident.id), "asset_id": str(asset.id), "job": GENERATE_THUMBNAILS},
                )

        return RepairResult.unresolved(reconciliation.changes)
