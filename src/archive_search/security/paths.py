"""Lexical path sanitizing and canonicalization helpers."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Final

TRAVERSAL_MARKERS: Final[tuple[str, ...]] = (
    "..",
    "%2e%2e",
    "%252e%252e",
    "0x2e0x2e",
    "\\x2e\\x2e",
)
_REPEATED_SLASHES: Final[re.Pattern[str]] = re.compile(r"/+")


class PathRejected(ValueError):
    """Raised when a candidate path fails lexical sanitizing."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def is_traversal_attempt(candidate: str) -> bool:
    """Return True for plain or encoded ``..`` segments."""
    lowered = candidate.lower()
    return any(marker in lowered for marker in TRAVERSAL_MARKERS)


def sanitize_path(candidate: str) -> str:
    """Reject traversal and NUL bytes, then normalize separators."""
    if not candidate or not candidate.strip():
        raise PathRejected("Path is empty.")
    if is_traversal_attempt(candidate):
        raise PathRejected("Path traversal is blocked.")
    if "\x00" in candidate:
        raise PathRejected("Path contains a null byte.")
    normalized = candidate.replace("\\", "/")
    normalized = _REPEATED_SLASHES.sub("/", normalized)
    return normalized.strip()


def lexical_absolute(candidate: str | Path) -> Path:
    """Absolute, normalized form of a path without touching the filesystem."""
    return Path(os.path.normpath(os.path.abspath(candidate)))


def canonical_path(candidate: str | Path) -> Path:
    """Resolve symlinks of the existing prefix; missing tails stay lexical."""
    return Path(candidate).resolve(strict=False)


def is_under_any(candidate: Path, roots: tuple[Path, ...]) -> bool:
    return any(candidate.is_relative_to(root) for root in roots)
