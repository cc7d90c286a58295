"""JSON-lines STDIO server entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from archive_search.archives import build_archive_registry
from archive_search.config import CliOverrides, ServerConfig, load_effective_config
from archive_search.errors import ErrorKind, SearchError
from archive_search.logging import (
    AuditEvent,
    JsonlAuditLogger,
    NullAuditLogger,
    sanitize_arguments,
    utc_timestamp,
)
from archive_search.logging.audit import EVENT_REQUEST
from archive_search.security import EnvironmentRestrictedError, PathPolicy, enforce_non_production
from archive_search.service import SearchOrchestrator
from archive_search.tools import ToolDispatchError, ToolRegistry, register_builtin_tools

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(slots=True, frozen=True)
class Request:
    """Normalized incoming request."""

    request_id: str
    method: str
    params: dict[str, object]


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for server startup configuration."""
    parser = argparse.ArgumentParser(prog="archive-search")
    parser.add_argument("--base-dir", required=False, default=".")
    parser.add_argument("--config", required=False, default=None)
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--allowed-path", action="append", default=None)
    parser.add_argument("--excluded-path", action="append", default=None)
    parser.add_argument("--max-directory-depth", type=int, required=False, default=None)
    parser.add_argument("--max-file-bytes", type=int, required=False, default=None)
    parser.add_argument("--max-search-results", type=int, required=False, default=None)
    parser.add_argument("--search-timeout-seconds", type=float, required=False, default=None)
    parser.add_argument("--max-total-bytes-per-response", type=int, required=False, default=None)
    parser.add_argument("--enabled", choices=("true", "false"), required=False, default=None)
    parser.add_argument("--audit-enabled", choices=("true", "false"), required=False, default=None)
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        required=False,
        default="WARNING",
    )
    return parser


class StdioServer:
    """Routes one JSON request per input line to the archive tools."""

    def __init__(self, config: ServerConfig, environ: Mapping[str, str] | None = None) -> None:
        enforce_non_production(config.enabled, environ)
        self._config = config
        self._limits = config.limits
        if config.audit_enabled:
            self._audit_logger: JsonlAuditLogger | NullAuditLogger = JsonlAuditLogger(
                path=config.audit_path
            )
        else:
            self._audit_logger = NullAuditLogger()
        policy = PathPolicy(
            allowed_paths=config.paths.allowed,
            excluded_paths=config.paths.excluded,
            max_file_bytes=config.limits.max_file_bytes,
        )
        self._orchestrator = SearchOrchestrator(
            policy,
            config.limits,
            build_archive_registry(config.supported_types),
            event_sink=self._audit_logger,
            enabled=config.enabled,
        )
        self._registry = ToolRegistry()
        register_builtin_tools(
            self._registry,
            orchestrator=self._orchestrator,
            read_audit_entries=self._audit_logger.read,
            audit_enabled=config.audit_enabled,
            config_snapshot=config.to_public_dict(),
        )
        self._fallback_request_counter = 0

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def tool_names(self) -> tuple[str, ...]:
        return self._registry.names()

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Process JSON-line requests and write JSON-line responses."""
        for raw_line in in_stream:
            line = raw_line.strip()
            if not line:
                continue
            response = self.handle_json_line(line)
            out_stream.write(f"{json.dumps(response, sort_keys=True)}\n")
            out_stream.flush()

    def handle_json_line(self, raw_line: str) -> dict[str, object]:
        """Handle a single JSON-line request."""
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            request_id = self.next_request_id()
            response = self.error_response(
                request_id=request_id,
                code="INVALID_JSON",
                message="Request must be valid JSON.",
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_json",
                arguments={"raw_line_length": len(raw_line)},
                response=response,
            )
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> dict[str, object]:
        """Validate and dispatch a parsed payload."""
        parsed = self.parse_request(payload)
        if isinstance(parsed, dict):
            request_id_value = parsed.get("request_id")
            request_id = (
                request_id_value if isinstance(request_id_value, str) else self.next_request_id()
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_request",
                arguments={},
                response=parsed,
            )
            return parsed

        request = parsed
        if request.method == "tools/call":
            tool_name_value = request.params.get("name")
            arguments_value = request.params.get("arguments", {})
            if not isinstance(tool_name_value, str) or not tool_name_value:
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.name must be a non-empty string.",
                )
            if not isinstance(arguments_value, dict):
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.arguments must be an object.",
                )
            tool_name = tool_name_value
            arguments = arguments_value
        else:
            tool_name = request.method
            arguments = request.params

        response = self._dispatch(request.request_id, tool_name, arguments)
        self.log_request(
            request_id=request.request_id,
            tool_name=tool_name,
            arguments=arguments,
            response=response,
        )
        return response

    def _dispatch(
        self, request_id: str, tool_name: str, arguments: dict[str, object]
    ) -> dict[str, object]:
        try:
            result = self._registry.dispatch(
                name=tool_name, arguments=arguments, request_id=request_id
            )
        except SearchError as error:
            if error.kind is ErrorKind.ACCESS_DENIED:
                reason = error.details.get("reason")
                return self.blocked_response(
                    request_id=request_id,
                    code=error.kind.value,
                    reason=reason if isinstance(reason, str) else error.message,
                    hint="Search inside one of the allowed directories.",
                    path=error.path,
                )
            return self.error_response(
                request_id=request_id,
                code=error.kind.value,
                message=error.message,
                details=error.to_dict(),
            )
        except ToolDispatchError as error:
            return self.error_response(
                request_id=request_id,
                code=error.code,
                message=error.message,
            )
        except Exception:
            logger.exception("Unhandled error while executing %s", tool_name)
            return self.error_response(
                request_id=request_id,
                code="INTERNAL_ERROR",
                message="Unhandled server error while executing tool.",
            )

        warnings = _extract_result_warnings(result)
        response = self.success_response(
            request_id=request_id,
            result=result,
            warnings=warnings,
        )
        return self.enforce_response_size_limit(request_id=request_id, response=response)

    def parse_request(self, payload: object) -> Request | dict[str, object]:
        """Validate request payload and return normalized Request."""
        if not isinstance(payload, dict):
            return self.error_response(
                request_id=self.next_request_id(),
                code="INVALID_REQUEST",
                message="Request must be an object.",
            )

        request_id = self.extract_request_id(payload.get("id"))
        method = payload.get("method")
        params = payload.get("params", {})

        if not isinstance(method, str) or not method:
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request method must be a non-empty string.",
            )
        if not isinstance(params, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_PARAMS",
                message="Request params must be an object.",
            )

        return Request(request_id=request_id, method=method, params=params)

    def extract_request_id(self, request_id: object) -> str:
        """Use the caller's request ID or synthesize a sequential fallback."""
        if isinstance(request_id, str) and request_id:
            return request_id
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            return str(request_id)
        return self.next_request_id()

    def next_request_id(self) -> str:
        self._fallback_request_counter += 1
        return f"req-{self._fallback_request_counter:06d}"

    @staticmethod
    def success_response(
        request_id: str,
        result: dict[str, object],
        warnings: list[str] | None = None,
    ) -> dict[str, object]:
        """Build success envelope."""
        return {
            "request_id": request_id,
            "ok": True,
            "result": result,
            "warnings": warnings or [],
            "blocked": False,
        }

    @staticmethod
    def error_response(
        request_id: str,
        code: str,
        message: str,
        details: dict[str, object] | None = None,
    ) -> dict[str, object]:
        """Build error envelope; ``details`` extends the error object."""
        error: dict[str, object] = dict(details or {})
        error["code"] = code
        error["message"] = message
        return {
            "request_id": request_id,
            "ok": False,
            "result": {},
            "warnings": [],
            "blocked": False,
            "error": error,
        }

    @staticmethod
    def blocked_response(
        request_id: str, code: str, reason: str, hint: str, path: str | None = None
    ) -> dict[str, object]:
        """Build blocked envelope for policy and size-limit rejections."""
        error: dict[str, object] = {"code": code, "message": reason}
        if path is not None:
            error["path"] = path
        return {
            "request_id": request_id,
            "ok": False,
            "result": {"reason": reason, "hint": hint},
            "warnings": [],
            "blocked": True,
            "error": error,
        }

    def enforce_response_size_limit(
        self,
        request_id: str,
        response: dict[str, object],
    ) -> dict[str, object]:
        """Block responses that exceed max_total_bytes_per_response."""
        response_bytes = len(json.dumps(response, sort_keys=True).encode("utf-8"))
        if response_bytes <= self._limits.max_total_bytes_per_response:
            return response
        logger.warning(
            "Response for %s blocked: %d bytes exceeds limit", request_id, response_bytes
        )
        return self.blocked_response(
            request_id=request_id,
            code="RESPONSE_TOO_LARGE",
            reason="Response exceeds max_total_bytes_per_response limit.",
            hint="Use a narrower path or a more specific pattern.",
        )

    def log_request(
        self,
        request_id: str,
        tool_name: str,
        arguments: dict[str, object],
        response: dict[str, object],
    ) -> None:
        """Record one sanitized request event."""
        error_payload = response.get("error")
        error_code: str | None = None
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str):
                error_code = code_value
        metadata = sanitize_arguments(arguments)
        metadata["blocked"] = bool(response.get("blocked", False))
        event = AuditEvent(
            timestamp=utc_timestamp(),
            request_id=request_id,
            operation=tool_name,
            event=EVENT_REQUEST,
            ok=bool(response.get("ok", False)),
            error_code=error_code,
            metadata=metadata,
        )
        self._audit_logger.append(event)


def create_server(
    base_dir: str,
    config_path: str | None = None,
    cli_overrides: CliOverrides | None = None,
    environ: Mapping[str, str] | None = None,
) -> StdioServer:
    """Create a configured STDIO server instance."""
    config = load_effective_config(
        base_dir=Path(base_dir).resolve(),
        overrides=cli_overrides,
        config_path=Path(config_path) if config_path is not None else None,
    )
    return StdioServer(config=config, environ=environ)


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the archive search server process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(stream=sys.stderr, level=args.log_level, format=LOG_FORMAT)
    overrides = CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        enabled=_flag(args.enabled),
        allowed_paths=tuple(args.allowed_path) if args.allowed_path else None,
        excluded_paths=tuple(args.excluded_path) if args.excluded_path else None,
        max_directory_depth=args.max_directory_depth,
        max_file_bytes=args.max_file_bytes,
        max_search_results=args.max_search_results,
        search_timeout_seconds=args.search_timeout_seconds,
        max_total_bytes_per_response=args.max_total_bytes_per_response,
        audit_enabled=_flag(args.audit_enabled),
    )
    try:
        server = create_server(
            base_dir=args.base_dir, config_path=args.config, cli_overrides=overrides
        )
    except (ValueError, EnvironmentRestrictedError) as error:
        parser.error(str(error))
    server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    return 0


def _flag(value: str | None) -> bool | None:
    if value is None:
        return None
    return value == "true"


def _extract_result_warnings(result: dict[str, object]) -> list[str]:
    raw = result.pop("__warnings__", None)
    if not isinstance(raw, list):
        return []
    warnings: list[str] = []
    for item in raw:
        if isinstance(item, str):
            warnings.append(item)
    return warnings


if __name__ == "__main__":
    raise SystemExit(main())
