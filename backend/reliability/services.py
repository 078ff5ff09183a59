from __future__ import annotations

from typing import Optional

from .dispatch import RQJobDispatcher
from .engine import ReliabilityEngine
from .reconciliation import AssetStateReconciler
from .stores import DjangoAssetRepository, DjangoIncidentStore, DjangoTicketFactory
from .strategies import JobRetryStrategy, ThumbnailRetryStrategy, VisualMetadataStrategy


def build_engine(dispatcher=None, queue=None, clock=None) -> ReliabilityEngine:
    """
    Assemble the engine with the Django-backed collaborators.

    Strategy order matters: the first strategy whose ``supports`` matches is
    the only one tried on a pass, so the narrow matchers come first and the
    generic job retry goes last.
    """
    incidents = DjangoIncidentStore()
    assets = DjangoAssetRepository()
    reconciler = AssetStateReconciler()
    dispatcher = dispatcher or RQJobDispatcher(queue=queue)

    strategies = [
        VisualMetadataStrategy(assets, reconciler, dispatcher, incidents),
        ThumbnailRetryStrategy(assets, reconciler, dispatcher, incidents),
        JobRetryStrategy(assets, reconciler, dispatcher, incidents),
    ]
    return ReliabilityEngine(
        incidents=incidents,
        assets=assets,
        tickets=DjangoTicketFactory(assets=assets),
        strategies=strategies,
        clock=clock,
    )
