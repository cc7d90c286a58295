"""Line-oriented literal content search over byte streams."""

from __future__ import annotations

import io
import logging
import re
import time
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

from archive_search.cancellation import CancellationToken, check_cancelled
from archive_search.errors import ErrorKind, SearchError
from archive_search.models import ContentSearchOptions, ContentSearchResult, SearchMatch

logger = logging.getLogger(__name__)

TEXT_SNIFF_BYTES = 1024


def compile_search_term(term: str, options: ContentSearchOptions) -> re.Pattern[str]:
    """Compile ``term`` as a literal, optionally word-bounded and case-insensitive."""
    if not term or not term.strip():
        raise SearchError(ErrorKind.INVALID_ARGUMENT, "Search term cannot be empty.")
    expression = re.escape(term)
    if options.whole_word:
        expression = rf"\b{expression}\b"
    flags = 0 if options.case_sensitive else re.IGNORECASE
    return re.compile(expression, flags)


def search_stream(
    stream: BinaryIO,
    term: str,
    options: ContentSearchOptions,
    *,
    max_results: int,
    deadline: float | None = None,
    cancel: CancellationToken | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> ContentSearchResult:
    """Scan a UTF-8 stream line by line and collect every non-overlapping match.

    Scanning continues after ``max_results`` matches were kept so that
    ``total_matches`` stays exact. When ``deadline`` (a ``clock`` reading)
    passes, the scan stops and returns what it has accumulated.
    """
    started = clock()
    pattern = compile_search_term(term, options)
    matches: list[SearchMatch] = []
    total_matches = 0

    reader = io.TextIOWrapper(stream, encoding="utf-8", errors="replace", newline=None)
    try:
        for line_number, raw_line in enumerate(reader, start=1):
            if deadline is not None and clock() > deadline:
                logger.warning("Content search stopped at line %d: deadline exceeded", line_number)
                break
            check_cancelled(cancel)
            line = raw_line[:-1] if raw_line.endswith("\n") else raw_line
            for found in pattern.finditer(line):
                total_matches += 1
                if len(matches) < max_results:
                    matches.append(
                        SearchMatch(
                            line_number=line_number,
                            line_text=line,
                            column_start=found.start(),
                            column_end=found.end(),
                        )
                    )
    except OSError as error:
        raise SearchError(ErrorKind.IO_FAILURE, f"Error reading content: {error}") from error
    finally:
        reader.detach()

    truncated = total_matches > len(matches)
    suggestion: str | None = None
    if truncated:
        suggestion = (
            f"Results truncated to {max_results} matches. "
            f"Download the complete file to see all {total_matches} matches."
        )
    elapsed_ms = int((clock() - started) * 1000)
    logger.debug(
        "Content search completed in %dms. Found %d matches (truncated: %s)",
        elapsed_ms,
        total_matches,
        truncated,
    )
    return ContentSearchResult(
        matches=tuple(matches),
        total_matches=total_matches,
        truncated=truncated,
        download_suggestion=suggestion,
        elapsed_ms=elapsed_ms,
    )


def is_text_file(path: Path) -> bool:
    """Best-effort sniff: a NUL byte in the first KiB marks a binary file."""
    with path.open("rb") as handle:
        sample = handle.read(TEXT_SNIFF_BYTES)
    return b"\x00" not in sample
