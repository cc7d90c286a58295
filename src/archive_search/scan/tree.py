"""Depth, size and result bounded directory walking."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from archive_search.cancellation import CancellationToken, check_cancelled
from archive_search.matching import WildcardMatcher
from archive_search.models import FileEntry, FileKind

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ScanLimits:
    """Bounds for one directory walk.

    ``max_depth`` counts relative path segments: files directly under the
    root sit at level 1, so no emitted entry has more than ``max_depth``
    segments.
    """

    max_depth: int
    max_file_bytes: int
    max_results: int


@dataclass(slots=True)
class _PendingDirectory:
    """Open directory listing on the traversal stack."""

    level: int
    entries: Iterator[os.DirEntry[str]]


def scan_tree(
    root: Path,
    matcher: WildcardMatcher,
    limits: ScanLimits,
    cancel: CancellationToken | None = None,
    skip: Callable[[Path], bool] | None = None,
) -> list[FileEntry]:
    """Walk ``root`` in name-ordered pre-order and collect matching files.

    A missing or non-directory root yields an empty list. Unreadable
    directories and files are logged and skipped, as is any path for which
    ``skip`` returns True. The walk stops as soon as ``max_results`` entries
    were collected.
    """
    results: list[FileEntry] = []
    if limits.max_results < 1:
        return results
    if not root.is_dir():
        logger.warning("Search root does not exist or is not a directory: %s", root)
        return results
    try:
        stack = [_PendingDirectory(level=1, entries=_ordered_entries(root))]
    except OSError as error:
        logger.warning("Unable to list search root %s: %s", root, error)
        return results

    while stack:
        check_cancelled(cancel)
        current = stack[-1]
        entry = next(current.entries, None)
        if entry is None:
            stack.pop()
            continue
        try:
            is_directory = entry.is_dir(follow_symlinks=False)
            is_file = not is_directory and entry.is_file(follow_symlinks=False)
        except OSError as error:
            logger.warning("Unable to inspect %s: %s", entry.path, error)
            continue
        if skip is not None and skip(Path(entry.path)):
            logger.debug("Skipping excluded path: %s", entry.path)
            continue
        if is_directory:
            child_level = current.level + 1
            if child_level > limits.max_depth:
                logger.debug("Skipping directory due to depth limit: %s", entry.path)
                continue
            try:
                stack.append(
                    _PendingDirectory(level=child_level, entries=_ordered_entries(Path(entry.path)))
                )
            except OSError as error:
                logger.warning("Error visiting directory %s: %s", entry.path, error)
            continue
        if not is_file or not matcher.matches(entry.name):
            continue
        try:
            stat = entry.stat(follow_symlinks=False)
        except OSError as error:
            logger.warning("Failed to visit file %s: %s", entry.path, error)
            continue
        if stat.st_size > limits.max_file_bytes:
            logger.debug("Skipping file due to size limit: %s (%d bytes)", entry.path, stat.st_size)
            continue
        full_path = Path(entry.path)
        results.append(
            FileEntry(
                name=entry.name,
                full_path=str(full_path),
                relative_path=full_path.relative_to(root).as_posix(),
                size_bytes=stat.st_size,
                modified_at=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                kind=FileKind.REGULAR,
            )
        )
        if len(results) >= limits.max_results:
            logger.debug("Reached maximum search results limit: %d", limits.max_results)
            break
    return results


def _ordered_entries(directory: Path) -> Iterator[os.DirEntry[str]]:
    with os.scandir(directory) as entries:
        ordered = sorted(entries, key=lambda item: item.name)
    return iter(ordered)
