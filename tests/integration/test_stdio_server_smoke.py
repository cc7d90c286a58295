from __future__ import annotations

import io
import json
import sys
from pathlib import Path

import pytest

from archive_search.security.environment import PRODUCTION_FLAGS, PROFILE_VARIABLES
from archive_search.server import create_server, main


def test_stdio_server_routes_multiple_requests(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("alpha\nbeta\n", encoding="utf-8")
    server = create_server(base_dir=str(tmp_path), environ={})
    in_stream = io.StringIO(
        "\n".join(
            [
                json.dumps({"id": "req-1", "method": "archive.status", "params": {}}),
                "",
                json.dumps(
                    {
                        "id": "req-2",
                        "method": "tools/call",
                        "params": {
                            "name": "archive.find_files",
                            "arguments": {"path": str(tmp_path), "pattern": "*.txt"},
                        },
                    }
                ),
            ]
        )
        + "\n"
    )
    out_stream = io.StringIO()

    server.serve(in_stream=in_stream, out_stream=out_stream)
    lines = [line for line in out_stream.getvalue().splitlines() if line]

    assert len(lines) == 2
    first = json.loads(lines[0])
    second = json.loads(lines[1])

    assert first["request_id"] == "req-1"
    assert first["ok"] is True
    assert first["result"]["supported_archive_types"] == ["zip", "jar", "tar.gz", "tar"]
    assert first["result"]["audit_enabled"] is True

    assert second["request_id"] == "req-2"
    assert second["ok"] is True
    assert second["result"]["total_count"] == 1
    assert second["result"]["entries"][0]["name"] == "notes.txt"


def test_main_serves_stdin_until_eof(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (*PROFILE_VARIABLES, *PRODUCTION_FLAGS, "NODE_ENV"):
        monkeypatch.delenv(name, raising=False)
    stdin = io.StringIO(json.dumps({"id": 1, "method": "archive.status", "params": {}}) + "\n")
    stdout = io.StringIO()
    monkeypatch.setattr(sys, "stdin", stdin)
    monkeypatch.setattr(sys, "stdout", stdout)

    exit_code = main(
        ["--base-dir", str(tmp_path), "--max-search-results", "5", "--audit-enabled", "false"]
    )

    response = json.loads(stdout.getvalue())
    assert exit_code == 0
    assert response["request_id"] == "1"
    assert response["result"]["limits"]["max_search_results"] == 5
    assert response["result"]["audit_enabled"] is False


def test_main_rejects_invalid_limits(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as error:
        main(["--base-dir", str(tmp_path), "--max-search-results", "0"])

    assert error.value.code == 2


def test_status_reports_effective_config(tmp_path: Path) -> None:
    server = create_server(base_dir=str(tmp_path), environ={})

    response = server.handle_payload({"id": "cfg", "method": "archive.status", "params": {}})

    snapshot = response["result"]["effective_config"]
    assert snapshot == server.config.to_public_dict()
    assert snapshot["base_dir"] == str(server.config.base_dir)
    assert snapshot["archives"]["supported_types"] == list(server.config.supported_types)
