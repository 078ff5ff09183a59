import importlib
import logging
from typing import Callable, Optional

import django
from django.conf import settings

# Ensure Django app registry is loaded when this module is imported by an
# out-of-process RQ worker (started via `rq worker` and not manage.py).
django.setup()

from .dispatch import GENERATE_THUMBNAILS, POPULATE_VISUAL_METADATA, PROCESS_ASSET, PROMOTE_ASSET
from .models import Asset
from .reconciliation import AssetStateReconciler

logger = logging.getLogger(__name__)


def _load_pipeline(job_name: str) -> Optional[Callable]:
    callables = getattr(settings, "RELIABILITY_PIPELINE_CALLABLES", {}) or {}
    callable_path = callables.get(job_name)
    if not callable_path:
        return None
    if "." not in callable_path:
        raise ValueError(f"Pipeline for '{job_name}' must be a dotted callable path, got '{callable_path}'.")
    module_name, func_name = callable_path.rsplit(".", 1)
    module = importlib.import_module(module_name)
    return getattr(module, func_name)


def _run_repair_job(job_name: str, asset_id: str) -> str:
    """
    Run the configured pipeline step for an asset, then reconcile it.

    When the asset ends up complete every open incident about it is closed.
    Pipeline failures are logged and re-raised so RQ records the failed job.
    """
    from .services import build_engine

    asset = Asset.objects.filter(pk=asset_id).first()
    if asset is None:
        message = f"{job_name}: asset {asset_id} no longer exists"
        logger.warning(message)
        return message

    pipeline = _load_pipeline(job_name)
    try:
        if pipeline is None:
            logger.warning("No pipeline configured for %s; reconciling asset %s only", job_name, asset_id)
        else:
            pipeline(str(asset.id))
    except Exception:  # noqa: BLE001
        logger.exception("Repair job %s failed for asset %s", job_name, asset_id)
        raise

    asset.refresh_from_db()
    result = AssetStateReconciler().reconcile(asset)
    resolved = 0
    if asset.analysis_status == "complete":
        resolved = build_engine().resolve_by_source("asset", asset.id)

    message = f"{job_name} finished for asset {asset_id}: changes={len(result.changes)}, resolved={resolved}"
    logger.info(message)
    return message


def process_asset(asset_id: str) -> str:
    return _run_repair_job(PROCESS_ASSET, asset_id)


def generate_thumbnails(asset_id: str) -> str:
    return _run_repair_job(GENERATE_THUMBNAILS, asset_id)


def promote_asset(asset_id: str) -> str:
    return _run_repair_job(PROMOTE_ASSET, asset_id)


def populate_visual_metadata(asset_id: str) -> str:
    return _run_repair_job(POPULATE_VISUAL_METADATA, asset_id)


def run_recovery_sweep(limit: Optional[int] = None) -> dict:
    from .services import build_engine

    try:
        return build_engine().recover_open_incidents(limit)
    except Exception:  # noqa: BLE001
        logger.exception("Recovery sweep failed")
        raise
