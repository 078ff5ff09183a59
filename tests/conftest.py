"""
Pytest configuration for the reliability engine tests.

This module provides:
1. A mocked job dispatcher so no test touches Redis
2. Asset and incident factories
3. Metric counter isolation between tests
"""

import uuid
from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import MagicMock

import pytest

from reliability.metrics import reset_metrics
from reliability.models import Asset, Incident
from reliability.reconciliation import AssetStateReconciler
from reliability.services import build_engine
from reliability.stores import DjangoAssetRepository, DjangoIncidentStore

FIXED_NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=dt_timezone.utc)


# -----------------------------------------------------------------------------
# Session hygiene
# -----------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


# -----------------------------------------------------------------------------
# Collaborators
# -----------------------------------------------------------------------------
@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def dispatcher():
    """Stand-in for RQJobDispatcher; records dispatch calls."""
    return MagicMock()


@pytest.fixture
def incident_store():
    return DjangoIncidentStore()


@pytest.fixture
def asset_repo():
    return DjangoAssetRepository()


@pytest.fixture
def reconciler():
    return AssetStateReconciler()


@pytest.fixture
def engine(dispatcher):
    return build_engine(dispatcher=dispatcher)


# -----------------------------------------------------------------------------
# Factories
# -----------------------------------------------------------------------------
@pytest.fixture
def make_asset(db):
    def _make(**overrides):
        fields = {
            "tenant_id": "tenant-1",
            "title": "Campaign hero image",
            "original_filename": "hero.jpg",
            "mime_type": "image/jpeg",
            "analysis_status": "generating_thumbnails",
            "thumbnail_status": "pending",
            "metadata": {},
        }
        fields.update(overrides)
        return Asset.objects.create(**fields)

    return _make


@pytest.fixture
def make_incident(db):
    def _make(asset=None, minutes_ago=0, **overrides):
        fields = {
            "source_type": "asset",
            "source_id": str(asset.id) if asset is not None else str(uuid.uuid4()),
            "tenant_id": asset.tenant_id if asset is not None else None,
            "title": "Thumbnail generation failed",
            "severity": "warning",
            "retryable": True,
            "metadata": {},
            "detected_at": datetime.now(dt_timezone.utc) - timedelta(minutes=minutes_ago),
        }
        fields.update(overrides)
        return Incident.objects.create(**fields)

    return _make
