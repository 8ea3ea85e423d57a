"""Tests for the pull and push handlers."""

from unittest.mock import patch

import pytest

from app.sync.service import GENERIC_ERROR_MESSAGE, pull_changes, push_changes

GREEN = {"name": "Green 1", "type": "green"}


def _create(store, collection="zones", data=None):
    return store.create(collection, dict(data or GREEN))


# ============================================================================
# Pull
# ============================================================================


class TestPullChanges:
    def test_empty_store_returns_nothing(self, store):
        assert pull_changes(store, {}) == {}

    def test_missing_checkpoints_default_to_zero(self, store):
        zone = _create(store)
        item = _create(store, "inventory_items", {"name": "Sand", "category": "sand", "unit": "kg"})
        changes = pull_changes(store, {})
        assert [r["id"] for r in changes["zones"]] == [zone["id"]]
        assert [r["id"] for r in changes["inventory_items"]] == [item["id"]]

    def test_negative_checkpoint_treated_as_zero(self, store):
        zone = _create(store)
        assert [r["id"] for r in pull_changes(store, {"zones": -5})["zones"]] == [zone["id"]]

    def test_only_newer_records_returned(self, store):
        a = _create(store)
        b = _create(store, data={"name": "Green 2", "type": "green"})
        store.update_if_version("zones", b["id"], 1, {"name": "Green 2b", "type": "green"})

        changes = pull_changes(store, {"zones": 1})
        assert [r["id"] for r in changes["zones"]] == [b["id"]]
        assert a["id"] not in [r["id"] for r in changes["zones"]]

    def test_empty_collections_omitted(self, store):
        _create(store)
        assert set(pull_changes(store, {}).keys()) == {"zones"}

    def test_unknown_collections_ignored(self, store):
        _create(store)
        changes = pull_changes(store, {"users": 0, "zones": 0})
        assert "users" not in changes
        assert len(changes["zones"]) == 1

    def test_soft_deleted_records_included(self, store):
        zone = _create(store)
        store.update_if_version("zones", zone["id"], 1, {**GREEN, "deleted": True})
        [pulled] = pull_changes(store, {"zones": 0})["zones"]
        assert pulled["deleted"] is True

    def test_pull_is_idempotent(self, store):
        _create(store)
        _create(store, "equipment", {"name": "Mower", "category": "mower"})
        assert pull_changes(store, {"zones": 0}) == pull_changes(store, {"zones": 0})

    def test_ordered_by_version_then_id(self, store):
        records = [_create(store, data={"name": f"Z{i}", "type": "rough"}) for i in range(4)]
        store.update_if_version("zones", records[0]["id"], 1, {"name": "Z0b", "type": "rough"})
        pulled = pull_changes(store, {})["zones"]
        keys = [(r["version"], r["id"]) for r in pulled]
        assert keys == sorted(keys)


# ============================================================================
# Push
# ============================================================================


class TestPushCreate:
    def test_create_accepted_at_version_one(self, store):
        result = push_changes(store, {"zones": [{"temp_id": "tmp_1", **GREEN}]})
        [accepted] = result.accepted["zones"]
        assert accepted["version"] == 1
        assert accepted["temp_id"] == "tmp_1"
        assert result.rejected["zones"] == []
        assert store.get("zones", accepted["id"])["name"] == "Green 1"

    def test_create_does_not_store_temp_id(self, store):
        result = push_changes(store, {"zones": [{"temp_id": "tmp_1", **GREEN}]})
        stored = store.get("zones", result.accepted["zones"][0]["id"])
        assert "temp_id" not in stored

    def test_invalid_create_rejected_with_error(self, store):
        result = push_changes(store, {"zones": [{"temp_id": "tmp_1", "name": "No type"}]})
        [rejected] = result.rejected["zones"]
        assert rejected["reason"] == "error"
        assert rejected["temp_id"] == "tmp_1"
        assert "type" in rejected["message"]
        assert store.count("zones") == 0


class TestPushUpdate:
    def test_update_at_current_version_accepted(self, store):
        zone = _create(store)
        result = push_changes(store, {"zones": [{"id": zone["id"], "version": 1, "health": "poor"}]})
        assert result.accepted["zones"] == [{"id": zone["id"], "version": 2}]
        stored = store.get("zones", zone["id"])
        assert stored["health"] == "poor"
        assert stored["name"] == "Green 1"

    def test_client_metadata_not_applied(self, store):
        zone = _create(store)
        push_changes(
            store,
            {"zones": [{"id": zone["id"], "version": 1, "created_at": "1999-01-01", "name": "Renamed"}]},
        )
        stored = store.get("zones", zone["id"])
        assert stored["created_at"] == zone["created_at"]
        assert stored["version"] == 2

    def test_unknown_id_rejected_not_found(self, store):
        result = push_changes(store, {"zones": [{"id": "f" * 32, "version": 1, "name": "x"}]})
        [rejected] = result.rejected["zones"]
        assert rejected == {"reason": "not_found", "id": "f" * 32, "message": "Record not found"}

    def test_stale_version_rejected_as_conflict_without_mutation(self, store):
        zone = _create(store)
        store.update_if_version("zones", zone["id"], 1, {**GREEN, "health": "fair"})
        before = store.get("zones", zone["id"])

        result = push_changes(store, {"zones": [{"id": zone["id"], "version": 1, "health": "poor"}]})

        [rejected] = result.rejected["zones"]
        assert rejected["reason"] == "conflict"
        assert rejected["server_version"] == 2
        assert rejected["server_record"] == before
        assert store.get("zones", zone["id"]) == before

    def test_missing_version_rejected_with_error(self, store):
        zone = _create(store)
        result = push_changes(store, {"zones": [{"id": zone["id"], "health": "poor"}]})
        [rejected] = result.rejected["zones"]
        assert rejected["reason"] == "error"
        assert "version" in rejected["message"]
        assert store.get("zones", zone["id"])["version"] == 1

    def test_merged_record_is_validated(self, store):
        zone = _create(store)
        result = push_changes(store, {"zones": [{"id": zone["id"], "version": 1, "health": "glorious"}]})
        assert result.rejected["zones"][0]["reason"] == "error"
        assert store.get("zones", zone["id"])["version"] == 1

    def test_lost_compare_and_swap_reported_as_conflict(self, store):
        zone = _create(store)
        original = store.update_if_version

        def racing_update(collection, record_id, expected_version, data):
            # Another writer commits between the read and the write
            original(collection, record_id, expected_version, {**GREEN, "health": "critical"})
            return original(collection, record_id, expected_version, data)

        with patch.object(store, "update_if_version", side_effect=racing_update):
            result = push_changes(store, {"zones": [{"id": zone["id"], "version": 1, "health": "poor"}]})

        [rejected] = result.rejected["zones"]
        assert rejected["reason"] == "conflict"
        assert rejected["server_version"] == 2
        assert rejected["server_record"]["health"] == "critical"

    def test_soft_delete_via_update(self, store):
        zone = _create(store)
        result = push_changes(store, {"zones": [{"id": zone["id"], "version": 1, "deleted": True}]})
        assert result.accepted["zones"][0]["version"] == 2
        assert store.get("zones", zone["id"])["deleted"] is True


class TestPushBatch:
    def test_one_bad_record_does_not_abort_batch(self, store):
        zone = _create(store)
        result = push_changes(
            store,
            {
                "zones": [
                    {"temp_id": "tmp_bad", "name": ""},
                    {"id": zone["id"], "version": 1, "health": "good"},
                    {"temp_id": "tmp_ok", "name": "Bunker 7", "type": "bunker"},
                ]
            },
        )
        assert len(result.accepted["zones"]) == 2
        assert [r["temp_id"] for r in result.rejected["zones"]] == ["tmp_bad"]

    def test_non_string_identifiers_rejected(self, store):
        result = push_changes(
            store,
            {
                "zones": [
                    {"id": 5, "version": 1, **GREEN},
                    {"temp_id": ["tmp"], **GREEN},
                    {"temp_id": "tmp_ok", **GREEN},
                ]
            },
        )
        assert [r["temp_id"] for r in result.accepted["zones"]] == ["tmp_ok"]
        assert result.rejected["zones"] == [
            {"reason": "error", "message": "id must be a string"},
            {"reason": "error", "message": "temp_id must be a string"},
        ]
        assert len(store.changes_since("zones", 0)) == 1

    @pytest.mark.parametrize("item", ["garbage", 7, None, [GREEN]])
    def test_non_object_record_rejected(self, store, item):
        result = push_changes(store, {"zones": [item, {"temp_id": "tmp_ok", **GREEN}]})
        assert len(result.accepted["zones"]) == 1
        assert result.rejected["zones"] == [{"reason": "error", "message": "Record must be an object"}]

    def test_non_object_in_unknown_collection(self, store):
        result = push_changes(store, {"users": ["garbage"]})
        assert result.rejected["users"] == [
            {"reason": "error", "message": "Unknown collection: users"}
        ]

    def test_every_collection_key_present(self, store):
        result = push_changes(
            store,
            {"zones": [{"temp_id": "tmp_1", **GREEN}], "equipment": [{"temp_id": "tmp_2", "name": ""}]},
        )
        assert set(result.accepted) == {"zones", "equipment"}
        assert set(result.rejected) == {"zones", "equipment"}
        assert result.rejected["zones"] == []
        assert result.accepted["equipment"] == []

    def test_unknown_collection_rejected(self, store):
        result = push_changes(store, {"users": [{"temp_id": "tmp_1", "name": "x"}]})
        assert result.accepted["users"] == []
        assert result.rejected["users"] == [
            {"reason": "error", "temp_id": "tmp_1", "message": "Unknown collection: users"}
        ]

    def test_unexpected_error_gets_generic_message(self, store):
        with patch.object(store, "create", side_effect=RuntimeError("disk I/O error at /var/db")):
            result = push_changes(store, {"zones": [{"temp_id": "tmp_1", **GREEN}]})
        [rejected] = result.rejected["zones"]
        assert rejected["message"] == GENERIC_ERROR_MESSAGE
        assert "/var/db" not in str(result.rejected)

    def test_counts(self, store):
        result = push_changes(
            store,
            {"zones": [{"temp_id": "a", **GREEN}, {"temp_id": "b", "name": ""}]},
        )
        assert result.accepted_count == 1
        assert result.rejected_count == 1

    @pytest.mark.parametrize("changes", [{}, None])
    def test_empty_push(self, store, changes):
        result = push_changes(store, changes)
        assert result.accepted == {}
        assert result.rejected == {}
