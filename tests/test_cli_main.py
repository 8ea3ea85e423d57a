"""Tests for greenkeep/cli/__main__.py: argument parsing and dispatch."""

import json
import logging

import pytest

from greenkeep.cli.__main__ import build_parser, main


@pytest.fixture(autouse=True)
def clean_greenkeep_logger():
    yield
    logger = logging.getLogger("greenkeep")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "cli.db")


class TestParser:
    def test_resolve_requires_keep(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["sync", "resolve", "abc"])

    def test_resolve(self):
        args = build_parser().parse_args(["sync", "resolve", "abc", "--keep", "local"])
        assert (args.command, args.sync_action, args.conflict_id, args.keep) == (
            "sync",
            "resolve",
            "abc",
            "local",
        )

    def test_requeue_ids(self):
        args = build_parser().parse_args(["sync", "requeue", "--id", "3", "--id", "5"])
        assert args.ids == [3, 5]

    def test_unknown_collection_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["record", "list", "users"])

    def test_tenant_flag(self):
        args = build_parser().parse_args(["--tenant", "tenant-nice", "sync", "status"])
        assert args.tenant == "tenant-nice"


class TestMain:
    def test_create_then_list(self, db, capsys):
        main(["--db", db, "record", "create", "zones", "--data", '{"name": "Green 4", "type": "green"}'])
        capsys.readouterr()

        main(["--db", db, "record", "list", "zones", "--json"])
        [record] = json.loads(capsys.readouterr().out)
        assert record["name"] == "Green 4"
        assert record["temp_id"].startswith("tmp_")

    def test_pending_after_create(self, db, capsys):
        main(["--db", db, "record", "create", "equipment", "--data", '{"name": "Roller", "category": "roller"}'])
        main(["--db", db, "sync", "pending", "--json"])
        out = capsys.readouterr().out
        [entry] = json.loads(out[out.index("[") :])
        assert entry["collection"] == "equipment"

    def test_bad_json_exits(self, db):
        with pytest.raises(SystemExit) as exc_info:
            main(["--db", db, "record", "create", "zones", "--data", "{oops"])
        assert exc_info.value.code == 1

    def test_sync_without_backend_exits(self, db, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--db", db, "sync", "run"])
        assert exc_info.value.code == 1
        assert "Backend not configured" in capsys.readouterr().out

    def test_writes_local_log(self, db, greenkeep_home):
        main(["--db", db, "--log-level", "debug", "sync", "pending"])
        assert list((greenkeep_home / "logs").glob("local-*.log"))
