from __future__ import annotations

import logging
from typing import List

from ..dispatch import GENERATE_THUMBNAILS, POPULATE_VISUAL_METADATA
from ..metrics import record_incident_metric
from ..models import Asset, Incident
from ..results import RepairResult
from .base import VISUAL_METADATA_MISSING_TITLE, reconcile_subject, targets_asset

logger = logging.getLogger(__name__)

# dimensions the thumbnail pass records from the source image
DERIVED_DIMENSION_KEYS = (
    ("source_image_width", "image_width"),
    ("source_image_height", "image_height"),
)


class VisualMetadataStrategy:
    """
    Repair assets flagged as missing their visual metadata (dimensions).

    First tries to re-derive the dimensions from what the thumbnail pass
    already stored on the asset; failing that, queues one regeneration:
    thumbnails when they timed out, metadata population otherwise.
    """

    def __init__(self, assets, reconciler, dispatcher, incidents):
        self.assets = assets
        self.reconciler = reconciler
        self.dispatcher = dispatcher
        self.incidents = incidents

    def supports(self, incident: Incident) -> bool:
        return targets_asset(incident) and incident.title == VISUAL_METADATA_MISSING_TITLE

    def attempt(self, incident: Incident) -> RepairResult:
        asset, reconciliation = reconcile_subject(self.assets, self.reconciler, incident)
        if asset is None:
            return RepairResult.unresolved()

        changes = list(reconciliation.changes)
        if not asset.has_dimensions():
            changes.extend(self._derive_dimensions(asset))

        if asset.has_dimensions():
            return RepairResult.success(changes)

        already_retried = bool((incident.metadata or {}).get("retried"))
        if incident.retryable and not already_retried and self.incidents.claim_retry(incident):
            meta = asset.metadata or {}
            thumbnails_missing = meta.get("thumbnail_timeout") or asset.thumbnail_status != "completed"
            job_name = GENERATE_THUMBNAILS if thumbnails_missing else POPULATE_VISUAL_METADATA
            self.dispatcher.dispatch(job_name, asset.id)
            record_incident_metric("retry_dispatched")
            logger.info("Dispatched %s for visual metadata incident %s", job_name, incident.id)

        return RepairResult.unresolved(changes)

    @staticmethod
    def _derive_dimensions(asset: Asset) -> List[str]:
        meta = dict(asset.metadata or {})
        changes = []
        for source_key, target_key in DERIVED_DIMENSION_KEYS:
            value = meta.get(source_key)
            if value and not meta.get(target_key):
                meta[target_key] = value
                changes.append(f"metadata.{target_key}: None -> {value}")
        if changes:
            asset.metadata = meta
            asset.save(update_fields=["metadata", "updated_at"])
        return changes
