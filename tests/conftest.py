"""
Pytest fixtures and test configuration for greenkeep client tests.
"""

from unittest.mock import MagicMock

import pytest

from greenkeep.storage import OfflineCache
from greenkeep.sync import SyncClient, SyncOrchestrator

SERVER_ID = "a" * 32
OTHER_SERVER_ID = "b" * 32


@pytest.fixture(autouse=True)
def greenkeep_home(tmp_path, monkeypatch):
    """Point the client data directory at a temp dir and clear credentials."""
    home = tmp_path / "greenkeep-home"
    monkeypatch.setenv("GREENKEEP_DATA_DIR", str(home))
    for var in ("GREENKEEP_BACKEND_URL", "GREENKEEP_AUTH_TOKEN", "GREENKEEP_TENANT_ID"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def cache(tmp_path):
    return OfflineCache(tmp_path / "offline.db")


@pytest.fixture
def transport():
    """Mock SyncClient: empty pulls, and pushes that answer nothing."""
    mock = MagicMock(spec=SyncClient)
    mock.tenant_id = "tenant-lyon"
    mock.pull.return_value = {}
    mock.push.return_value = {"accepted": {}, "rejected": {}, "server_time": None}
    mock.health_check.return_value = {"healthy": True, "latency_ms": 1.0}
    return mock


@pytest.fixture
def orchestrator(cache, transport):
    return SyncOrchestrator(cache, transport)


@pytest.fixture
def zone_data():
    return {"name": "Green 7", "type": "green", "hole_number": 7}


@pytest.fixture
def synced_zone(cache, zone_data):
    """A zone the cache already received from the server at version 3."""
    cache.save_records("zones", [{"id": SERVER_ID, "version": 3, **zone_data}])
    return cache.get_record("zones", SERVER_ID)
