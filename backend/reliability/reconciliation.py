from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from .models import Asset

logger = logging.getLogger(__name__)

TERMINAL_ANALYSIS_STATUSES = ("complete",)


@dataclass
class ReconciliationResult:
    updated: bool = False
    changes: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"updated": self.updated, "changes": list(self.changes)}


class AssetStateReconciler:
    """
    Re-derive an asset's status columns from the pipeline flags in its
    metadata. Writes only when something drifted, and never moves an asset
    out of ``complete``.
    """

    def reconcile(self, asset: Asset) -> ReconciliationResult:
        meta = asset.metadata or {}
        result = ReconciliationResult()
        updates = []

        thumbnails_done = bool(meta.get("thumbnails_generated")) or asset.thumbnail_status == "completed"
        if meta.get("thumbnails_generated") and asset.thumbnail_status != "completed":
            self._set(asset, "thumbnail_status", "completed", result, updates)

        status = asset.analysis_status or "uploading"
        if status in TERMINAL_ANALYSIS_STATUSES:
            target = status
        elif status == "promotion_failed":
            # cleared failure flag means the promotion went through on a later attempt
            target = "promotion_failed" if meta.get("promotion_failed") else self._pipeline_target(meta, thumbnails_done, status)
        else:
            target = self._pipeline_target(meta, thumbnails_done, status)

        if target != status:
            self._set(asset, "analysis_status", target, result, updates)

        if updates:
            asset.save(update_fields=updates + ["updated_at"])
            result.updated = True
            logger.info("Reconciled asset %s: %s", asset.id, "; ".join(result.changes))
        return result

    @staticmethod
    def _pipeline_target(meta: dict, thumbnails_done: bool, current: str) -> str:
        if thumbnails_done and meta.get("metadata_extracted") and meta.get("pipeline_completed_at"):
            return "complete"
        if thumbnails_done:
            return "extracting_metadata"
        if current == "uploading" and meta.get("processing_started"):
            return "generating_thumbnails"
        if current == "promotion_failed":
            return "uploading"
        return current

    @staticmethod
    def _set(asset: Asset, field_name: str, value: str, result: ReconciliationResult, updates: list) -> None:
        previous = getattr(asset, field_name)
        setattr(asset, field_name, value)
        updates.append(field_name)
        result.changes.append(f"{field_name}: {previous} -> {value}")
