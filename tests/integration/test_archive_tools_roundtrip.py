from __future__ import annotations

import base64
import io
import tarfile
import zipfile
from pathlib import Path

from archive_search.server import StdioServer, create_server


def _call(
    server: StdioServer, request_id: str, tool: str, arguments: dict[str, object]
) -> dict[str, object]:
    return server.handle_payload(
        {
            "id": request_id,
            "method": "tools/call",
            "params": {"name": tool, "arguments": arguments},
        }
    )


def _fixture_tree(root: Path) -> None:
    data = root / "data"
    data.mkdir()
    (data / "service.log").write_text("INFO up\nERROR db down\nERROR retry\n", encoding="utf-8")
    with zipfile.ZipFile(data / "app.zip", "w") as archive:
        archive.writestr("config/app.properties", "db.url=jdbc:h2:mem\nlog.level=ERROR\n")
    with tarfile.open(data / "old-logs.tgz", "w:gz") as archive:
        payload = b"ERROR archived failure\n"
        info = tarfile.TarInfo("2025/service.log")
        info.size = len(payload)
        archive.addfile(info, io.BytesIO(payload))


def test_find_search_and_download_across_archives(tmp_path: Path) -> None:
    _fixture_tree(tmp_path)
    server = create_server(base_dir=str(tmp_path), environ={})

    found = _call(
        server, "f1", "archive.find_files", {"path": str(tmp_path / "data"), "pattern": "*.log"}
    )
    assert found["ok"] is True
    locators = [entry["locator"] for entry in found["result"]["entries"]]
    assert locators == [
        str(tmp_path / "data" / "service.log"),
        f"{tmp_path / 'data' / 'old-logs.tgz'}::2025/service.log",
    ]

    searched = _call(
        server,
        "c1",
        "archive.find_content",
        {"path": locators[1], "term": "error", "case_sensitive": False},
    )
    assert searched["ok"] is True
    assert searched["result"]["total_matches"] == 1
    assert searched["result"]["matches"][0]["line_text"] == "ERROR archived failure"

    downloaded = _call(
        server,
        "d1",
        "archive.download",
        {"path": f"{tmp_path / 'data' / 'app.zip'}::config/app.properties"},
    )
    assert downloaded["ok"] is True
    assert downloaded["result"]["name"] == "app.properties"
    assert base64.b64decode(downloaded["result"]["content_base64"]) == (
        b"db.url=jdbc:h2:mem\nlog.level=ERROR\n"
    )


def test_truncated_content_search_surfaces_warning(tmp_path: Path) -> None:
    target = tmp_path / "noisy.log"
    target.write_text("hit\n" * 5, encoding="utf-8")
    (tmp_path / "archive_search.toml").write_text(
        "[limits]\nmax_search_results = 2\n", encoding="utf-8"
    )
    capped = create_server(base_dir=str(tmp_path), environ={})

    response = _call(capped, "c2", "archive.find_content", {"path": str(target), "term": "hit"})

    assert response["ok"] is True
    assert response["result"]["truncated"] is True
    assert response["result"]["total_matches"] == 5
    assert len(response["result"]["matches"]) == 2
    assert response["warnings"] == [
        "Results truncated to 2 matches. Download the complete file to see all 5 matches."
    ]


def test_audit_log_records_requests_and_search_events(tmp_path: Path) -> None:
    _fixture_tree(tmp_path)
    server = create_server(base_dir=str(tmp_path), environ={})
    _call(
        server,
        "a1",
        "archive.find_content",
        {"path": str(tmp_path / "data" / "service.log"), "term": "secret-term"},
    )

    response = _call(server, "a2", "archive.audit_log", {"limit": 10})

    entries = response["result"]["entries"]
    assert [(entry["request_id"], entry["event"]) for entry in entries] == [
        ("a1", "started"),
        ("a1", "succeeded"),
        ("a1", "request"),
    ]
    assert all("secret-term" not in str(entry) for entry in entries)
    assert entries[-1]["operation"] == "archive.find_content"
    assert entries[-1]["metadata"]["term_length"] == len("secret-term")


def test_audit_disabled_keeps_no_log(tmp_path: Path) -> None:
    (tmp_path / "archive_search.toml").write_text("[audit]\nenabled = false\n", encoding="utf-8")
    server = create_server(base_dir=str(tmp_path), environ={})

    _call(server, "s1", "archive.status", {})
    response = _call(server, "s2", "archive.audit_log", {})

    assert response["result"] == {"entries": []}
    assert not (tmp_path / ".archive_search").exists()
