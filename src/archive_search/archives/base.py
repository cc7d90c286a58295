"""Shared archive reader contract and linear-scan helpers."""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import closing
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import BinaryIO, ClassVar

from archive_search.cancellation import CancellationToken, check_cancelled
from archive_search.errors import ErrorKind, SearchError
from archive_search.matching import WildcardMatcher, base_name
from archive_search.models import LOCATOR_SEPARATOR, FileEntry, FileKind

logger = logging.getLogger(__name__)

EPOCH = datetime.fromtimestamp(0, tz=UTC)


@dataclass(slots=True, frozen=True)
class ArchiveMember:
    """One container entry as seen while streaming an archive.

    ``read`` is only valid while the scan is positioned on this member.
    """

    name: str
    size: int
    modified_at: datetime
    is_file: bool
    read: Callable[[], bytes]


class ArchiveReader(ABC):
    """Read-only enumerate and extract capability over one container format."""

    name: ClassVar[str]
    extensions: ClassVar[tuple[str, ...]]
    read_errors: ClassVar[tuple[type[BaseException], ...]] = (OSError, EOFError, ValueError)

    def __init__(self, extensions: tuple[str, ...] | None = None) -> None:
        self._extensions = tuple(ext.lower() for ext in (extensions or self.extensions))

    @property
    def handled_extensions(self) -> tuple[str, ...]:
        return self._extensions

    def handles(self, path: Path | str) -> bool:
        """Pure extension check, no I/O."""
        lowered = Path(path).name.lower()
        return any(lowered.endswith(ext) for ext in self._extensions)

    def list_entries(
        self,
        path: Path,
        matcher: WildcardMatcher,
        *,
        max_file_bytes: int,
        max_results: int,
        cancel: CancellationToken | None = None,
    ) -> list[FileEntry]:
        """Stream the archive and collect file entries whose base name matches."""
        results: list[FileEntry] = []
        if max_results < 1:
            return results
        try:
            archive_size = path.stat().st_size
            if archive_size > max_file_bytes:
                logger.warning("Archive exceeds size limit: %s (%d bytes)", path, archive_size)
                return results
            with closing(self._members(path)) as members:
                for member in members:
                    check_cancelled(cancel)
                    if not member.is_file or not self._is_listed(member.name):
                        continue
                    if LOCATOR_SEPARATOR in member.name:
                        logger.debug("Skipping unaddressable entry %r in %s", member.name, path)
                        continue
                    if member.size > max_file_bytes:
                        logger.debug("Skipping oversized entry %s in %s", member.name, path)
                        continue
                    if not matcher.matches(member.name):
                        continue
                    results.append(_archive_entry(path, member))
                    if len(results) >= max_results:
                        break
        except self.read_errors as error:
            raise SearchError(
                ErrorKind.IO_FAILURE,
                f"Error processing {self.name} archive: {error}",
                path=str(path),
            ) from error
        logger.debug("Found %d matching entries in archive %s", len(results), path)
        return results

    def extract(
        self,
        path: Path,
        entry_path: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> BinaryIO:
        """Re-scan from the start and return the buffered content of ``entry_path``."""
        try:
            with closing(self._members(path)) as members:
                for member in members:
                    check_cancelled(cancel)
                    if not member.is_file or member.name != entry_path:
                        continue
                    if not self._is_listed(member.name):
                        continue
                    return io.BytesIO(member.read())
        except self.read_errors as error:
            raise SearchError(
                ErrorKind.IO_FAILURE,
                f"Error extracting {entry_path} from {self.name} archive: {error}",
                path=str(path),
            ) from error
        raise SearchError(
            ErrorKind.ENTRY_NOT_FOUND,
            f"Entry not found in archive: {entry_path}",
            path=f"{path}{LOCATOR_SEPARATOR}{entry_path}",
        )

    def _is_listed(self, entry_name: str) -> bool:
        return True

    @abstractmethod
    def _members(self, path: Path) -> Iterator[ArchiveMember]:
        """Yield members in container order."""


def _archive_entry(path: Path, member: ArchiveMember) -> FileEntry:
    return FileEntry(
        name=base_name(member.name),
        full_path=member.name,
        relative_path=member.name,
        size_bytes=member.size,
        modified_at=member.modified_at,
        kind=FileKind.ARCHIVE_ENTRY,
        archive_path=str(path),
    )
