from __future__ import annotations

from typing import Optional, Protocol, Tuple

from ..models import Asset, Incident
from ..reconciliation import ReconciliationResult
from ..results import RepairResult

VISUAL_METADATA_MISSING_TITLE = "Expected visual metadata missing"
REPAIRABLE_SOURCE_TYPES = ("asset", "job")


class RepairStrategy(Protocol):
    def supports(self, incident: Incident) -> bool:
        ...

    def attempt(self, incident: Incident) -> RepairResult:
        ...


def targets_asset(incident: Incident) -> bool:
    return bool(incident.source_id) and incident.source_type in REPAIRABLE_SOURCE_TYPES


def reconcile_subject(assets, reconciler, incident: Incident) -> Tuple[Optional[Asset], ReconciliationResult]:
    """
    Look up the incident's asset, reconcile it and re-read it.

    Returns ``(None, empty result)`` when the asset is gone; a missing subject
    is "no progress", not an error.
    """
    asset = assets.find_by_id(incident.source_id)
    if asset is None:
        return None, ReconciliationResult()
    reconciliation = reconciler.reconcile(asset)
    return assets.refresh(asset), reconciliation
