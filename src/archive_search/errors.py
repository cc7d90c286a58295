"""Typed error taxonomy shared by every search layer."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable error codes surfaced to callers."""

    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INVALID_PATTERN = "INVALID_PATTERN"
    ACCESS_DENIED = "ACCESS_DENIED"
    NOT_FOUND = "NOT_FOUND"
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    NOT_TEXT = "NOT_TEXT"
    UNSUPPORTED_ARCHIVE_FORMAT = "UNSUPPORTED_ARCHIVE_FORMAT"
    TIMEOUT = "TIMEOUT"
    IO_FAILURE = "IO_FAILURE"
    INTERRUPTED = "INTERRUPTED"


class SearchError(Exception):
    """Raised when a search, extraction or policy check fails."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        path: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.path = path
        self.details = dict(details or {})

    @property
    def retryable(self) -> bool:
        """Return True when retrying with a narrower scope may succeed."""
        return self.kind in {ErrorKind.TIMEOUT, ErrorKind.INTERRUPTED, ErrorKind.IO_FAILURE}

    def to_dict(self) -> dict[str, object]:
        """Return the structured error payload for responses and audit records."""
        payload: dict[str, object] = {"code": self.kind.value, "message": self.message}
        if self.path is not None:
            payload["path"] = self.path
        for key in sorted(self.details):
            payload[key] = self.details[key]
        return payload


def io_failure(message: str, path: str | None = None) -> SearchError:
    """Build an IO_FAILURE error; callers chain the underlying exception."""
    return SearchError(ErrorKind.IO_FAILURE, message, path=path)
