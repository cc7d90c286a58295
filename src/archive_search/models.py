"""Typed result models for file and content searches."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import BinaryIO

from archive_search.errors import ErrorKind, SearchError

LOCATOR_SEPARATOR = "::"


class FileKind(str, Enum):
    """Origin of a matched file."""

    REGULAR = "REGULAR"
    ARCHIVE_ENTRY = "ARCHIVE_ENTRY"


@dataclass(slots=True, frozen=True)
class FileEntry:
    """One matched filesystem file or archive entry."""

    name: str
    full_path: str
    relative_path: str
    size_bytes: int
    modified_at: datetime
    kind: FileKind = FileKind.REGULAR
    archive_path: str | None = None

    def __post_init__(self) -> None:
        if (self.kind is FileKind.ARCHIVE_ENTRY) != (self.archive_path is not None):
            raise ValueError("archive_path must be set exactly for ARCHIVE_ENTRY entries.")

    @property
    def locator(self) -> str:
        """Return the download locator addressing this entry."""
        if self.archive_path is None:
            return self.full_path
        return f"{self.archive_path}{LOCATOR_SEPARATOR}{self.full_path}"

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "full_path": self.full_path,
            "relative_path": self.relative_path,
            "size_bytes": self.size_bytes,
            "modified_at": self.modified_at.isoformat(),
            "kind": self.kind.value,
            "archive_path": self.archive_path,
            "locator": self.locator,
        }


@dataclass(slots=True, frozen=True)
class SearchMatch:
    """One occurrence of a search term on one line."""

    line_number: int
    line_text: str
    column_start: int
    column_end: int


@dataclass(slots=True, frozen=True)
class FileSearchResult:
    """Aggregate response of a file search."""

    entries: tuple[FileEntry, ...]
    total_count: int
    search_path: str
    pattern: str
    elapsed_ms: int

    def to_dict(self) -> dict[str, object]:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "total_count": self.total_count,
            "search_path": self.search_path,
            "pattern": self.pattern,
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass(slots=True, frozen=True)
class ContentSearchResult:
    """Aggregate response of a content search.

    ``total_matches`` is the uncapped count; ``matches`` holds at most the
    configured number of occurrences in scan order.
    """

    matches: tuple[SearchMatch, ...]
    total_matches: int
    truncated: bool
    download_suggestion: str | None
    elapsed_ms: int

    def to_dict(self) -> dict[str, object]:
        return {
            "matches": [
                {
                    "line_number": match.line_number,
                    "line_text": match.line_text,
                    "column_start": match.column_start,
                    "column_end": match.column_end,
                }
                for match in self.matches
            ],
            "total_matches": self.total_matches,
            "truncated": self.truncated,
            "download_suggestion": self.download_suggestion,
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass(slots=True, frozen=True)
class ContentSearchOptions:
    """Matching switches for a content search."""

    case_sensitive: bool = False
    whole_word: bool = False


@dataclass(slots=True, frozen=True)
class Locator:
    """Plain path or ``archive::entry`` address of a searchable file."""

    path: str
    entry_path: str | None = None

    @property
    def is_archive_entry(self) -> bool:
        return self.entry_path is not None

    @classmethod
    def parse(cls, text: str) -> Locator:
        """Split a locator string on the first separator."""
        if not text or not text.strip():
            raise SearchError(ErrorKind.INVALID_ARGUMENT, "File path cannot be empty.")
        if LOCATOR_SEPARATOR not in text:
            return cls(path=text)
        archive_path, entry_path = text.split(LOCATOR_SEPARATOR, 1)
        if not archive_path or not entry_path or LOCATOR_SEPARATOR in entry_path:
            raise SearchError(
                ErrorKind.INVALID_ARGUMENT,
                "Invalid archive entry path format. Expected: archivePath::entryPath",
                path=text,
            )
        return cls(path=archive_path, entry_path=entry_path)

    def render(self) -> str:
        if self.entry_path is None:
            return self.path
        return f"{self.path}{LOCATOR_SEPARATOR}{self.entry_path}"


@dataclass(slots=True)
class Download:
    """Open download stream plus the metadata a transport needs."""

    name: str
    locator: str
    size_bytes: int
    stream: BinaryIO = field(repr=False)

    def read_all(self) -> bytes:
        """Read the remaining content and close the stream."""
        with self.stream:
            return self.stream.read()
