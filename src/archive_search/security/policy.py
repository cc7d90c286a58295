"""Allow-list path policy and runtime search limits."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from archive_search.errors import ErrorKind, SearchError
from archive_search.security.paths import (
    PathRejected,
    canonical_path,
    is_under_any,
    lexical_absolute,
    sanitize_path,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_BYTES = 100 * 1024 * 1024


@dataclass(slots=True, frozen=True)
class SearchLimits:
    """Runtime limits applied to every search request."""

    max_directory_depth: int = 10
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    max_search_results: int = 100
    search_timeout_seconds: float = 30
    max_total_bytes_per_response: int = 8 * 1024 * 1024


@dataclass(slots=True, frozen=True)
class PathDecision:
    """Outcome of a policy check."""

    allowed: bool
    canonical_path: Path | None
    reason: str | None = None


class PathPolicy:
    """Allow-list/deny-list check performed before any filesystem access."""

    def __init__(
        self,
        allowed_paths: Iterable[str | Path],
        excluded_paths: Iterable[str | Path] = (),
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    ) -> None:
        self._allowed_lexical = tuple(lexical_absolute(path) for path in allowed_paths)
        self._allowed = tuple(canonical_path(path) for path in self._allowed_lexical)
        self._excluded_lexical = tuple(lexical_absolute(path) for path in excluded_paths)
        self._excluded = tuple(canonical_path(path) for path in self._excluded_lexical)
        self._max_file_bytes = max_file_bytes

    @property
    def allowed_paths(self) -> tuple[Path, ...]:
        return self._allowed

    @property
    def excluded_paths(self) -> tuple[Path, ...]:
        return self._excluded

    def check(self, path: str) -> PathDecision:
        """Return allow/deny plus the canonical path.

        The allow-list is tested on the lexical form first so a denied path
        is never touched on disk; only accepted paths are resolved.
        """
        try:
            sanitized = sanitize_path(path)
        except PathRejected as error:
            return self._deny(path, error.reason)
        if not self._allowed:
            return self._deny(path, "No allowed paths are configured.")

        lexical = lexical_absolute(sanitized)
        if not is_under_any(lexical, self._allowed_lexical + self._allowed):
            return self._deny(path, "Path is outside the allowed directories.")
        if is_under_any(lexical, self._excluded_lexical + self._excluded):
            return self._deny(path, "Path is inside an excluded directory.")

        resolved = canonical_path(lexical)
        if not is_under_any(resolved, self._allowed):
            return self._deny(path, "Resolved path escapes the allowed directories.")
        if is_under_any(resolved, self._excluded):
            return self._deny(path, "Path is inside an excluded directory.")
        return PathDecision(allowed=True, canonical_path=resolved)

    def is_excluded(self, path: Path) -> bool:
        """Lexical deny-list test used to prune walks below an allowed root."""
        return is_under_any(lexical_absolute(path), self._excluded_lexical + self._excluded)

    def require(self, path: str) -> Path:
        """Return the canonical path or raise ACCESS_DENIED."""
        decision = self.check(path)
        if not decision.allowed or decision.canonical_path is None:
            raise SearchError(
                ErrorKind.ACCESS_DENIED,
                f"Access denied to path: {path}",
                path=path,
                details={"reason": decision.reason},
            )
        return decision.canonical_path

    def require_file(self, path: str) -> Path:
        """Policy check plus existence, readability and size checks for one file."""
        resolved = self.require(path)
        try:
            stat = resolved.stat()
        except FileNotFoundError as error:
            raise SearchError(ErrorKind.NOT_FOUND, f"File not found: {path}", path=path) from error
        except OSError as error:
            raise SearchError(
                ErrorKind.IO_FAILURE, f"Unable to read file metadata: {path}", path=path
            ) from error
        if not resolved.is_file():
            raise SearchError(ErrorKind.NOT_FOUND, f"Path is not a regular file: {path}", path=path)
        if not os.access(resolved, os.R_OK):
            raise SearchError(ErrorKind.ACCESS_DENIED, "File is not readable.", path=path)
        if stat.st_size > self._max_file_bytes:
            raise SearchError(
                ErrorKind.ACCESS_DENIED, "File exceeds max_file_bytes limit.", path=path
            )
        return resolved

    def is_file_accessible(self, path: Path) -> bool:
        """Return True when a discovered file may be opened."""
        try:
            self.require_file(str(path))
        except SearchError as error:
            logger.warning("File is not accessible (%s): %s", error.message, path)
            return False
        return True

    @staticmethod
    def _deny(path: str, reason: str) -> PathDecision:
        logger.warning("Path access denied (%s): %r", reason, path)
        return PathDecision(allowed=False, canonical_path=None, reason=reason)
