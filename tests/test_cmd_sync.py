"""Tests for greenkeep.cli.commands.sync: cmd_sync function."""

import argparse
import json
from unittest.mock import patch

import pytest

from greenkeep.cli.commands.sync import _format_elapsed, cmd_sync
from greenkeep.sync import SyncTransportError

SERVER_ID = "a" * 32

# ============================================================================
# Fixtures
# ============================================================================


def _args(**kwargs):
    """Build an argparse.Namespace with defaults for sync commands."""
    defaults = {
        "command": "sync",
        "sync_action": "status",
        "json": False,
        "full": False,
        "tenant": None,
        "conflict_id": None,
        "keep": None,
        "ids": None,
    }
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


@pytest.fixture
def backend(transport):
    """Patch the CLI to use the mocked transport."""
    with patch("greenkeep.cli.commands.sync._get_client", return_value=transport):
        yield transport


@pytest.fixture
def conflict(cache, synced_zone):
    mutation = cache.enqueue_mutation("zones", "update", {"id": SERVER_ID, "health": "poor"})
    conflict_id = cache.record_conflict(
        [mutation.id],
        "zones",
        SERVER_ID,
        {"id": SERVER_ID, "version": 4, "name": "Green 7", "type": "green", "health": "fair"},
        local_payload=mutation.payload,
    )
    return conflict_id


# ============================================================================
# Helpers
# ============================================================================


class TestFormatElapsed:
    def test_just_now(self):
        from datetime import datetime, timezone

        assert _format_elapsed(datetime.now(timezone.utc)) == "just now"

    def test_naive_hours(self):
        from datetime import datetime, timedelta, timezone

        when = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=3, minutes=5)
        assert _format_elapsed(when) == "3 hours ago"

    def test_days(self):
        from datetime import datetime, timedelta, timezone

        assert _format_elapsed(datetime.now(timezone.utc) - timedelta(days=2, hours=1)) == "2 days ago"


# ============================================================================
# sync run
# ============================================================================


class TestSyncRun:
    def test_requires_backend(self, cache, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cmd_sync(_args(sync_action="run"), cache)
        assert exc_info.value.code == 1
        assert "✗ Backend not configured" in capsys.readouterr().out

    def test_success(self, cache, backend, capsys):
        backend.pull.return_value = {
            "zones": [{"id": SERVER_ID, "version": 2, "name": "Green 1", "type": "green"}]
        }

        cmd_sync(_args(sync_action="run"), cache)

        out = capsys.readouterr().out
        assert "✓ Sync finished" in out
        assert "↓ Pulled: 1" in out
        assert cache.get_checkpoint("zones") == 2
        backend.close.assert_called_once()

    def test_json_output(self, cache, backend, capsys):
        cmd_sync(_args(sync_action="run", json=True), cache)
        report = json.loads(capsys.readouterr().out)
        assert report["success"] is True
        assert report["checkpoints"]["zones"] == 0

    def test_full_resets_checkpoints(self, cache, backend):
        cache.set_checkpoint("zones", 9)
        cmd_sync(_args(sync_action="run", full=True), cache)
        assert backend.pull.call_args[0][0]["zones"] == 0

    def test_failure_exits_nonzero(self, cache, backend, capsys, zone_data):
        cache.enqueue_mutation("zones", "create", zone_data)
        backend.push.side_effect = SyncTransportError("Connection failed: refused")

        with pytest.raises(SystemExit) as exc_info:
            cmd_sync(_args(sync_action="run"), cache)

        assert exc_info.value.code == 1
        out = capsys.readouterr().out
        assert "⚠ Sync finished" in out
        assert "✗ Connection failed: refused" in out
        assert cache.pending_count() == 1

    def test_conflicts_reported(self, cache, backend, capsys, synced_zone):
        cache.enqueue_mutation("zones", "update", {"id": SERVER_ID, "health": "poor"})
        backend.push.return_value = {
            "accepted": {},
            "rejected": {
                "zones": [
                    {
                        "id": SERVER_ID,
                        "reason": "conflict",
                        "server_version": 4,
                        "server_record": {"id": SERVER_ID, "version": 4, "name": "G", "type": "green"},
                    }
                ]
            },
        }

        cmd_sync(_args(sync_action="run"), cache)

        assert "1 conflict(s)" in capsys.readouterr().out


# ============================================================================
# sync status
# ============================================================================


class TestSyncStatus:
    def test_without_backend(self, cache, capsys, zone_data):
        cache.enqueue_mutation("zones", "create", zone_data)
        cmd_sync(_args(sync_action="status"), cache)
        out = capsys.readouterr().out
        assert "🔴 Backend: No backend configured" in out
        assert "Pending mutations: 1" in out
        assert "zones: 1" in out
        assert "Last sync: Never" in out

    def test_with_backend(self, cache, backend, capsys):
        cache.set_last_sync_time()
        cmd_sync(_args(sync_action="status"), cache)
        out = capsys.readouterr().out
        assert "🟢 Backend: Connected" in out
        assert "Last sync: just now" in out

    def test_open_conflicts_shown(self, cache, capsys, conflict):
        cmd_sync(_args(sync_action="status"), cache)
        assert "Open conflicts: 1" in capsys.readouterr().out

    def test_json(self, cache, backend, capsys):
        cmd_sync(_args(sync_action="status", json=True), cache)
        status = json.loads(capsys.readouterr().out)
        assert status["backend_connected"] is True
        assert status["connection_status"] == "Connected"
        assert status["pending"] == 0


# ============================================================================
# sync pending / conflicts / resolve / requeue
# ============================================================================


class TestSyncPending:
    def test_empty(self, cache, capsys):
        cmd_sync(_args(sync_action="pending"), cache)
        assert "✓ No pending changes" in capsys.readouterr().out

    def test_lists_mutations(self, cache, capsys, zone_data):
        mutation = cache.enqueue_mutation("zones", "create", zone_data)
        cache.record_failure([mutation.id], "timeout")
        cmd_sync(_args(sync_action="pending"), cache)
        out = capsys.readouterr().out
        assert f"#{mutation.id} create zones/{mutation.temp_id} (retry 1)" in out

    def test_json(self, cache, capsys, zone_data):
        cache.enqueue_mutation("zones", "create", zone_data)
        cmd_sync(_args(sync_action="pending", json=True), cache)
        [entry] = json.loads(capsys.readouterr().out)
        assert entry["operation"] == "create"
        assert entry["retry_count"] == 0


class TestSyncConflicts:
    def test_empty(self, cache, capsys):
        cmd_sync(_args(sync_action="conflicts"), cache)
        assert "✓ No open conflicts" in capsys.readouterr().out

    def test_lists_conflicts(self, cache, capsys, conflict):
        cmd_sync(_args(sync_action="conflicts"), cache)
        out = capsys.readouterr().out
        assert f"{conflict[:8]}  zones/{SERVER_ID}  server v4" in out

    def test_json(self, cache, capsys, conflict):
        cmd_sync(_args(sync_action="conflicts", json=True), cache)
        [entry] = json.loads(capsys.readouterr().out)
        assert entry["id"] == conflict
        assert entry["server_record"]["health"] == "fair"
        assert entry["local_payload"]["health"] == "poor"


class TestSyncResolve:
    def test_keep_server_by_prefix(self, cache, capsys, conflict):
        cmd_sync(_args(sync_action="resolve", conflict_id=conflict[:6], keep="server"), cache)
        assert f"✓ Kept server version of zones/{SERVER_ID}" in capsys.readouterr().out
        assert cache.get_record("zones", SERVER_ID)["health"] == "fair"

    def test_keep_local(self, cache, capsys, conflict):
        cmd_sync(_args(sync_action="resolve", conflict_id=conflict, keep="local"), cache)
        out = capsys.readouterr().out
        assert "✓ Kept local changes" in out
        assert "pushed on the next sync" in out
        assert cache.pending_count() == 1

    def test_unknown_conflict(self, cache, conflict):
        with pytest.raises(ValueError, match="Unknown conflict"):
            cmd_sync(_args(sync_action="resolve", conflict_id="zzz", keep="server"), cache)


class TestSyncRequeue:
    def test_requeue(self, tmp_path, capsys, zone_data):
        from greenkeep.storage import OfflineCache

        cache = OfflineCache(tmp_path / "requeue.db", max_retries=1)
        mutation = cache.enqueue_mutation("zones", "create", zone_data)
        cache.record_failure([mutation.id], "boom")

        cmd_sync(_args(sync_action="requeue", ids=[mutation.id]), cache)

        assert "✓ Requeued 1 dead-lettered mutation(s)" in capsys.readouterr().out
        assert cache.pending_count() == 1
