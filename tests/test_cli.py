"""
netric CLI tests.

The in-process tests drive ``main()`` against the fake server from conftest.
The smoke suite at the bottom runs the real CLI against a live server and
is skipped unless NETRIC_SERVER, NETRIC_APP_ID and NETRIC_APP_KEY are set.

Run with: python -m pytest tests/test_cli.py -v -s
"""

import io
import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from conftest import SERVER
from netric_cli.cli import create_parser, main, parse_where
from netric_cli.core.client import ValidationError


@pytest.fixture
def run(fake_server, monkeypatch, capsys):
    """Run the CLI in-process and return (exit_code, parsed stdout)."""
    monkeypatch.setenv("NETRIC_APP_ID", "app-id")
    monkeypatch.setenv("NETRIC_APP_KEY", "app-key")

    def _run(*args: str):
        code = 0
        try:
            main(["--server", SERVER, *args])
        except SystemExit as e:
            code = e.code
        out = capsys.readouterr().out
        return code, json.loads(out) if out.strip() else None

    return _run


class TestParsing:
    def test_parse_where_decodes_json_values(self):
        assert parse_where("done:is_equal:false") == ("done", "is_equal", False)
        assert parse_where("name:begins_with:Rep:ort") == ("name", "begins_with", "Rep:ort")

    def test_parse_where_rejects_missing_parts(self):
        with pytest.raises(ValidationError):
            parse_where("done")

    def test_parser_has_all_commands(self):
        parser = create_parser()
        args = parser.parse_args(["query", "task", "--where", "a:b:c", "--all"])
        assert args.command == "query"
        assert args.where == ["a:b:c"]
        assert args.all


class TestEntityCommands:
    def test_ent_get(self, run, fake_server):
        fake_server.routes["entity/get"] = {"obj_type": "task", "id": "7", "name": "Report"}

        code, out = run("ent", "get", "task", "7")

        assert code == 0
        assert out == {"obj_type": "task", "id": "7", "name": "Report"}

    def test_ent_get_not_found(self, run, fake_server):
        fake_server.routes["entity/get"] = {}

        code, out = run("ent", "get", "task", "7")

        assert code == 1
        assert "not found" in out["error"]

    def test_ent_get_missing_field(self, run, fake_server):
        fake_server.routes["entity/get"] = {"obj_type": "task", "id": "7"}

        code, out = run("ent", "get", "task", "7", "--field", "nope")

        assert code == 1
        assert out["details"]["available_fields"] == ["id"]

    def test_ent_save_from_stdin(self, run, fake_server, monkeypatch):
        fake_server.routes["entity/save"] = {"obj_type": "task", "id": "55", "name": "Report"}
        monkeypatch.setattr(sys, "stdin", io.StringIO('{"name": "Report"}'))

        code, out = run("ent", "save", "task", "--fields", "-")

        assert code == 0
        assert out["id"] == "55"
        assert fake_server.last_body() == {"obj_type": "task", "name": "Report"}

    def test_ent_save_invalid_json(self, run, fake_server):
        code, out = run("ent", "save", "task", "--fields", "{invalid json}")

        assert code == 1
        assert "Invalid JSON" in out["error"]
        assert fake_server.requests == []

    def test_ent_delete(self, run, fake_server):
        fake_server.routes["entity/remove"] = ["7"]

        code, out = run("ent", "delete", "task", "7")

        assert code == 0
        assert out["success"] is True

    def test_auth_failure_is_reported(self, run, fake_server):
        fake_server.routes["authentication/authenticate"] = {"result": "FAIL", "reason": "bad key"}

        code, out = run("ent", "get", "task", "7")

        assert code == 1
        assert out["error"] == "Auth failed: bad key"


class TestGroupingsAndQuery:
    def test_groupings(self, run, fake_server):
        fake_server.routes["entity/get-groupings"] = {
            "groups": [{"id": 1, "name": "Open", "heiarch": True, "children": [{"id": 2, "name": "New"}]}]
        }

        code, out = run("groupings", "task", "status_id")

        assert code == 0
        assert out["data"] == [
            {
                "id": 1,
                "name": "Open",
                "isHeiarch": True,
                "children": [{"id": 2, "name": "New", "children": []}],
            }
        ]

    def test_query(self, run, fake_server):
        fake_server.routes["entity-query/execute"] = {
            "total_num": 1,
            "num": 1,
            "entities": [{"obj_type": "task", "id": "1"}],
        }

        code, out = run("query", "task", "--where", "done:is_equal:false", "--order-by", "name:desc", "--limit", "5")

        assert code == 0
        assert out == {"data": [{"obj_type": "task", "id": "1"}], "total_num": 1}
        body = fake_server.last_body()
        assert body["limit"] == 5
        assert body["conditions"][0]["value"] is False
        assert body["order_by"] == [{"field_name": "name", "direction": "desc"}]


# =============================================================================
# Live smoke suite
# =============================================================================


LIVE_ENV = ("NETRIC_SERVER", "NETRIC_APP_ID", "NETRIC_APP_KEY")
CLI_TIMEOUT = 60  # Timeout in seconds for CLI commands


def run_cli(*args: str, timeout: int = CLI_TIMEOUT) -> subprocess.CompletedProcess:
    """Run the CLI as a subprocess with the current environment."""
    cmd = [sys.executable, "-m", "netric_cli.cli", *args]
    return subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        env=os.environ.copy(),
        timeout=timeout,
        cwd=Path(__file__).resolve().parent.parent,
    )


@pytest.fixture(scope="session")
def require_credentials():
    """Skip test if credentials not available."""
    if not all(os.environ.get(name) for name in LIVE_ENV):
        pytest.skip("NETRIC_SERVER, NETRIC_APP_ID and NETRIC_APP_KEY required")
    return True


class TestLiveSmoke:
    """Exercise the CLI against a real server."""

    def test_main_help(self):
        result = run_cli("--help")
        assert result.returncode == 0, f"Main help failed: {result.stderr}"
        assert "netric CLI" in result.stdout

    def test_query_users(self, require_credentials):
        result = run_cli("query", "user", "--limit", "1")
        assert result.returncode == 0, f"query failed: {result.stdout or result.stderr}"
        data = json.loads(result.stdout)
        assert "total_num" in data

    def test_save_get_delete_roundtrip(self, require_credentials):
        result = run_cli("ent", "save", "note", "--fields", json.dumps({"name": "netric cli smoke test"}))
        assert result.returncode == 0, f"save failed: {result.stdout or result.stderr}"
        entity_id = json.loads(result.stdout)["id"]

        try:
            result = run_cli("ent", "get", "note", entity_id, "--field", "name")
            assert result.returncode == 0, f"get failed: {result.stdout or result.stderr}"
            assert result.stdout.strip() == "netric cli smoke test"
        finally:
            result = run_cli("ent", "delete", "note", entity_id)
            assert result.returncode == 0, f"delete failed: {result.stdout or result.stderr}"

    def test_get_invalid_id(self, require_credentials):
        result = run_cli("ent", "get", "note", "invalid-id-12345")
        assert result.returncode != 0, "Getting invalid entity ID should fail"
