"""Built-in archive search tools."""

from __future__ import annotations

import base64
from collections.abc import Callable

from archive_search.models import ContentSearchOptions
from archive_search.service import SearchOrchestrator
from archive_search.tools.registry import ToolDispatchError, ToolHandler, ToolRegistry

DEFAULT_AUDIT_LIMIT = 50


def register_builtin_tools(
    registry: ToolRegistry,
    orchestrator: SearchOrchestrator,
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
    audit_enabled: bool,
    config_snapshot: dict[str, object] | None = None,
) -> None:
    """Register the archive tool set."""
    registry.register(
        "archive.status", _status_handler(orchestrator, audit_enabled, config_snapshot)
    )
    registry.register("archive.find_files", _find_files_handler(orchestrator))
    registry.register("archive.find_content", _find_content_handler(orchestrator))
    registry.register("archive.download", _download_handler(orchestrator))
    registry.register(
        "archive.audit_log",
        _audit_log_handler(orchestrator.limits.max_search_results, read_audit_entries),
    )


def _status_handler(
    orchestrator: SearchOrchestrator,
    audit_enabled: bool,
    config_snapshot: dict[str, object] | None,
) -> ToolHandler:
    def handler(_: dict[str, object], __: str) -> dict[str, object]:
        status = orchestrator.status()
        status["audit_enabled"] = audit_enabled
        if config_snapshot is not None:
            status["effective_config"] = config_snapshot
        return status

    return handler


def _find_files_handler(orchestrator: SearchOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object], request_id: str) -> dict[str, object]:
        path = _required_string(arguments, "path", "archive.find_files")
        pattern = _required_string(arguments, "pattern", "archive.find_files")
        return orchestrator.find_files(path, pattern, request_id=request_id).to_dict()

    return handler


def _find_content_handler(orchestrator: SearchOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object], request_id: str) -> dict[str, object]:
        path = _required_string(arguments, "path", "archive.find_content")
        term = _required_string(arguments, "term", "archive.find_content")
        options = ContentSearchOptions(
            case_sensitive=_optional_bool(arguments, "case_sensitive", "archive.find_content"),
            whole_word=_optional_bool(arguments, "whole_word", "archive.find_content"),
        )
        result = orchestrator.find_content(path, term, options, request_id=request_id)
        payload = result.to_dict()
        if result.download_suggestion is not None:
            payload["__warnings__"] = [result.download_suggestion]
        return payload

    return handler


def _download_handler(orchestrator: SearchOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object], request_id: str) -> dict[str, object]:
        path = _required_string(arguments, "path", "archive.download")
        download = orchestrator.open_download(path, request_id=request_id)
        content = download.read_all()
        return {
            "name": download.name,
            "locator": download.locator,
            "size_bytes": len(content),
            "content_base64": base64.b64encode(content).decode("ascii"),
        }

    return handler


def _audit_log_handler(
    max_limit: int,
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> ToolHandler:
    def handler(arguments: dict[str, object], _: str) -> dict[str, object]:
        since_value = arguments.get("since")
        limit_value = arguments.get("limit", DEFAULT_AUDIT_LIMIT)

        since: str | None = since_value if isinstance(since_value, str) else None
        limit = limit_value if isinstance(limit_value, int) else DEFAULT_AUDIT_LIMIT
        limit = max(1, min(limit, max_limit))
        return {"entries": read_audit_entries(since, limit)}

    return handler


def _required_string(arguments: dict[str, object], key: str, tool: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool} requires a non-empty string '{key}'.",
        )
    return value


def _optional_bool(arguments: dict[str, object], key: str, tool: str) -> bool:
    value = arguments.get(key, False)
    if not isinstance(value, bool):
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool} argument '{key}' must be a boolean.",
        )
    return value
