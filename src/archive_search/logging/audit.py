"""Search lifecycle events and the append-only JSONL audit log."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

EVENT_STARTED = "started"
EVENT_SUCCEEDED = "succeeded"
EVENT_FAILED = "failed"
EVENT_TIMEOUT = "timeout"
EVENT_REQUEST = "request"


@dataclass(slots=True, frozen=True)
class AuditEvent:
    """Sanitized record of one search lifecycle step or transport request."""

    timestamp: str
    request_id: str
    operation: str
    event: str
    ok: bool
    error_code: str | None
    metadata: dict[str, object]


EventSink = Callable[[AuditEvent], None]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_arguments(arguments: dict[str, object]) -> dict[str, object]:
    """Keep locators and switches, reduce search terms and free text to presence/length."""
    sanitized: dict[str, object] = {}
    for key in sorted(arguments.keys()):
        value = arguments[key]
        if key in {"path", "pattern", "since"} and isinstance(value, str):
            sanitized[key] = value
            continue
        if key == "limit" and isinstance(value, int):
            sanitized[key] = value
            continue
        if key in {"case_sensitive", "whole_word"} and isinstance(value, bool):
            sanitized[key] = value
            continue
        if isinstance(value, (int, float, bool)) or value is None:
            sanitized[key] = value
            continue
        if isinstance(value, str):
            sanitized[f"{key}_present"] = True
            sanitized[f"{key}_length"] = len(value)
            continue
        if isinstance(value, list):
            sanitized[f"{key}_type"] = "list"
            sanitized[f"{key}_length"] = len(value)
            continue
        if isinstance(value, dict):
            sanitized[f"{key}_type"] = "dict"
            sanitized[f"{key}_keys"] = sorted(str(k) for k in value.keys())
            continue
        sanitized[f"{key}_type"] = type(value).__name__
    return sanitized


class JsonlAuditLogger:
    """Append-only JSONL audit logger and bounded reader.

    Worker threads and the request thread may append concurrently, so writes
    are serialized on an instance lock.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def __call__(self, event: AuditEvent) -> None:
        self.append(event)

    def append(self, event: AuditEvent) -> None:
        """Append one event as a single JSON object line."""
        line = json.dumps(asdict(event), sort_keys=True)
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.write("\n")

    def read(self, since: str | None = None, limit: int = 50) -> list[dict[str, object]]:
        """Read the most recent events, optionally bounded below by timestamp."""
        if limit < 1:
            return []
        entries: list[dict[str, object]] = []
        if not self._path.exists():
            return entries
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    record = json.loads(stripped)
                except json.JSONDecodeError:
                    continue
                if since is not None:
                    ts = record.get("timestamp")
                    if not isinstance(ts, str) or ts < since:
                        continue
                entries.append(record)
        if len(entries) <= limit:
            return entries
        return entries[-limit:]


class NullAuditLogger:
    """Drops every event; used when auditing is disabled."""

    path: Path | None = None

    def __call__(self, event: AuditEvent) -> None:
        return None

    def append(self, event: AuditEvent) -> None:
        return None

    def read(self, since: str | None = None, limit: int = 50) -> list[dict[str, object]]:
        return []
