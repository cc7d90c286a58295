"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from archive_search.archives import SUPPORTED_ARCHIVE_TYPES
from archive_search.security import SearchLimits

CONFIG_FILE_NAME = "archive_search.toml"
DATA_DIR_NAME = ".archive_search"
AUDIT_FILE_NAME = "audit.jsonl"

MAX_DIRECTORY_DEPTH_CAP = 64
MAX_FILE_BYTES_CAP = 1024 * 1024 * 1024
MAX_SEARCH_RESULTS_CAP = 10_000
SEARCH_TIMEOUT_SECONDS_CAP = 600
MAX_TOTAL_BYTES_PER_RESPONSE_CAP = 64 * 1024 * 1024


@dataclass(slots=True, frozen=True)
class PathsConfig:
    """Allow-list and deny-list roots, already absolute."""

    allowed: tuple[Path, ...]
    excluded: tuple[Path, ...]


@dataclass(slots=True, frozen=True)
class ServerConfig:
    """Fully merged service configuration."""

    base_dir: Path
    data_dir: Path
    enabled: bool
    paths: PathsConfig
    limits: SearchLimits
    supported_types: tuple[str, ...]
    audit_enabled: bool

    @property
    def audit_path(self) -> Path:
        return self.data_dir / AUDIT_FILE_NAME

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for tool responses."""
        return {
            "enabled": self.enabled,
            "base_dir": str(self.base_dir),
            "data_dir": str(self.data_dir),
            "paths": {
                "allowed": [str(path) for path in self.paths.allowed],
                "excluded": [str(path) for path in self.paths.excluded],
            },
            "limits": {
                "max_directory_depth": self.limits.max_directory_depth,
                "max_file_bytes": self.limits.max_file_bytes,
                "max_search_results": self.limits.max_search_results,
                "search_timeout_seconds": self.limits.search_timeout_seconds,
                "max_total_bytes_per_response": self.limits.max_total_bytes_per_response,
            },
            "archives": {"supported_types": list(self.supported_types)},
            "audit": {"enabled": self.audit_enabled},
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    enabled: bool | None = None
    allowed_paths: tuple[str, ...] | None = None
    excluded_paths: tuple[str, ...] | None = None
    max_directory_depth: int | None = None
    max_file_bytes: int | None = None
    max_search_results: int | None = None
    search_timeout_seconds: float | None = None
    max_total_bytes_per_response: int | None = None
    audit_enabled: bool | None = None


def default_config(base_dir: Path) -> ServerConfig:
    """Build default config for a given base directory."""
    resolved = base_dir.resolve()
    return ServerConfig(
        base_dir=resolved,
        data_dir=resolved / DATA_DIR_NAME,
        enabled=True,
        paths=PathsConfig(allowed=(resolved,), excluded=()),
        limits=SearchLimits(),
        supported_types=SUPPORTED_ARCHIVE_TYPES,
        audit_enabled=True,
    )


def load_config_file(path: Path) -> dict[str, object]:
    """Load a TOML config file; a missing file yields an empty payload."""
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{path.name} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{name}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ValueError(f"Config field '{name}' must contain only non-empty strings.")
        output.append(item)
    return tuple(output)


def _optional_bool(value: object, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Config field '{name}' must be a boolean.")
    return value


def _resolve_paths(base_dir: Path, raw: tuple[str, ...]) -> tuple[Path, ...]:
    resolved: list[Path] = []
    for item in raw:
        candidate = Path(item).expanduser()
        if not candidate.is_absolute():
            candidate = base_dir / candidate
        resolved.append(candidate.resolve())
    return tuple(resolved)


def _supported_types(value: object, name: str) -> tuple[str, ...]:
    types = tuple(item.lower() for item in _tuple_of_strings(value, name))
    unknown = sorted(set(types) - set(SUPPORTED_ARCHIVE_TYPES))
    if unknown:
        raise ValueError(
            f"Config field '{name}' contains unsupported types: {', '.join(unknown)}."
        )
    return tuple(dict.fromkeys(types))


def merge_config(
    base: ServerConfig, payload: dict[str, object], overrides: CliOverrides
) -> ServerConfig:
    """Merge defaults, config file, then CLI/startup overrides."""
    paths_payload = _get_table(payload, "paths")
    limits_payload = _get_table(payload, "limits")
    archives_payload = _get_table(payload, "archives")
    audit_payload = _get_table(payload, "audit")

    enabled = _optional_bool(payload.get("enabled"), "enabled", base.enabled)

    data_dir = base.data_dir
    if "data_dir" in payload:
        raw_data_dir = payload["data_dir"]
        if not isinstance(raw_data_dir, str) or not raw_data_dir.strip():
            raise ValueError("Config field 'data_dir' must be a non-empty string.")
        data_dir = _resolve_paths(base.base_dir, (raw_data_dir,))[0]

    allowed = base.paths.allowed
    if "allowed" in paths_payload:
        allowed = _resolve_paths(
            base.base_dir, _tuple_of_strings(paths_payload["allowed"], "paths.allowed")
        )
    excluded = base.paths.excluded
    if "excluded" in paths_payload:
        excluded = _resolve_paths(
            base.base_dir, _tuple_of_strings(paths_payload["excluded"], "paths.excluded")
        )

    supported_types = base.supported_types
    if "supported_types" in archives_payload:
        supported_types = _supported_types(
            archives_payload["supported_types"], "archives.supported_types"
        )

    merged = ServerConfig(
        base_dir=base.base_dir,
        data_dir=data_dir,
        enabled=enabled,
        paths=PathsConfig(allowed=allowed, excluded=excluded),
        limits=_merge_limits(base.limits, limits_payload, "limits"),
        supported_types=supported_types,
        audit_enabled=_optional_bool(
            audit_payload.get("enabled"), "audit.enabled", base.audit_enabled
        ),
    )
    return apply_cli_overrides(merged, overrides)


def _merge_limits(base: SearchLimits, values: dict[str, object], prefix: str) -> SearchLimits:
    return SearchLimits(
        max_directory_depth=_optional_positive_int_with_cap(
            values.get("max_directory_depth"),
            f"{prefix}.max_directory_depth",
            base.max_directory_depth,
            MAX_DIRECTORY_DEPTH_CAP,
        ),
        max_file_bytes=_optional_positive_int_with_cap(
            values.get("max_file_bytes"),
            f"{prefix}.max_file_bytes",
            base.max_file_bytes,
            MAX_FILE_BYTES_CAP,
        ),
        max_search_results=_optional_positive_int_with_cap(
            values.get("max_search_results"),
            f"{prefix}.max_search_results",
            base.max_search_results,
            MAX_SEARCH_RESULTS_CAP,
        ),
        search_timeout_seconds=_optional_seconds_with_cap(
            values.get("search_timeout_seconds"),
            f"{prefix}.search_timeout_seconds",
            base.search_timeout_seconds,
            SEARCH_TIMEOUT_SECONDS_CAP,
        ),
        max_total_bytes_per_response=_optional_positive_int_with_cap(
            values.get("max_total_bytes_per_response"),
            f"{prefix}.max_total_bytes_per_response",
            base.max_total_bytes_per_response,
            MAX_TOTAL_BYTES_PER_RESPONSE_CAP,
        ),
    )


def apply_cli_overrides(config: ServerConfig, overrides: CliOverrides) -> ServerConfig:
    """Apply startup overrides at highest precedence."""
    limits = _merge_limits(
        config.limits,
        {
            "max_directory_depth": overrides.max_directory_depth,
            "max_file_bytes": overrides.max_file_bytes,
            "max_search_results": overrides.max_search_results,
            "search_timeout_seconds": overrides.search_timeout_seconds,
            "max_total_bytes_per_response": overrides.max_total_bytes_per_response,
        },
        "overrides",
    )
    allowed = config.paths.allowed
    if overrides.allowed_paths is not None:
        allowed = _resolve_paths(config.base_dir, overrides.allowed_paths)
    excluded = config.paths.excluded
    if overrides.excluded_paths is not None:
        excluded = _resolve_paths(config.base_dir, overrides.excluded_paths)
    data_dir = overrides.data_dir or config.data_dir
    return ServerConfig(
        base_dir=config.base_dir,
        data_dir=data_dir.resolve(),
        enabled=overrides.enabled if overrides.enabled is not None else config.enabled,
        paths=PathsConfig(allowed=allowed, excluded=excluded),
        limits=limits,
        supported_types=config.supported_types,
        audit_enabled=(
            overrides.audit_enabled
            if overrides.audit_enabled is not None
            else config.audit_enabled
        ),
    )


def load_effective_config(
    base_dir: Path,
    overrides: CliOverrides | None = None,
    config_path: Path | None = None,
) -> ServerConfig:
    """Load effective config using merge order defaults -> config file -> overrides."""
    resolved = base_dir.resolve()
    base = default_config(resolved)
    if config_path is not None:
        if not config_path.exists():
            raise ValueError(f"Config file does not exist: {config_path}")
        payload = load_config_file(config_path)
    else:
        payload = load_config_file(resolved / CONFIG_FILE_NAME)
    return merge_config(base, payload, overrides or CliOverrides())


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value


def _optional_seconds_with_cap(value: object, name: str, default: float, cap: int) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 1:
        raise ValueError(f"Config field '{name}' must be a number of seconds >= 1.")
    if value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
