from __future__ import annotations

import logging

from .metrics import record_dispatch_metric

logger = logging.getLogger(__name__)

PROCESS_ASSET = "process_asset"
GENERATE_THUMBNAILS = "generate_thumbnails"
PROMOTE_ASSET = "promote_asset"
POPULATE_VISUAL_METADATA = "populate_visual_metadata"

JOB_NAMES = (PROCESS_ASSET, GENERATE_THUMBNAILS, PROMOTE_ASSET, POPULATE_VISUAL_METADATA)


class RQJobDispatcher:
    """Fire-and-forget enqueue of repair jobs onto an RQ queue."""

    def __init__(self, queue=None):
        self._queue = queue

    @property
    def queue(self):
        if self._queue is None:
            from .queues import default_queue

            self._queue = default_queue
        return self._queue

    def dispatch(self, job_name: str, asset_id) -> None:
        if job_name not in JOB_NAMES:
            raise ValueError(f"Unknown repair job '{job_name}'.")

        from . import workers

        func = getattr(workers, job_name)
        self.queue.enqueue(func, str(asset_id))
        record_dispatch_metric(job_name)
        logger.info("Dispatched %s for asset %s", job_name, asset_id)
