"""Request orchestration: policy gate, worker dispatch, timeout and events."""

from __future__ import annotations

import io
import logging
import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import replace
from pathlib import Path
from typing import BinaryIO, TypeVar

from archive_search import __version__
from archive_search.archives import ArchiveReader, ArchiveRegistry
from archive_search.cancellation import CancellationToken
from archive_search.errors import ErrorKind, SearchError, io_failure
from archive_search.logging import EventSink, sanitize_arguments, utc_timestamp
from archive_search.logging.audit import (
    EVENT_FAILED,
    EVENT_STARTED,
    EVENT_SUCCEEDED,
    EVENT_TIMEOUT,
    AuditEvent,
)
from archive_search.matching import CATCH_ALL_PATTERN, WildcardMatcher, compile_wildcard
from archive_search.models import (
    ContentSearchOptions,
    ContentSearchResult,
    Download,
    FileEntry,
    FileSearchResult,
    Locator,
)
from archive_search.scan import ScanLimits, is_text_file, scan_tree, search_stream
from archive_search.security import PathPolicy, SearchLimits

logger = logging.getLogger(__name__)

T = TypeVar("T")

WORKER_THREAD_NAME = "archive-search-worker"


class ResultBudget:
    """Request-scoped running total shared by per-archive listings."""

    def __init__(self, limit: int) -> None:
        self._remaining = max(limit, 0)
        self._lock = threading.Lock()

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._remaining

    def consume(self, requested: int) -> int:
        """Reserve up to ``requested`` slots and return how many were granted."""
        with self._lock:
            granted = min(requested, self._remaining)
            self._remaining -= granted
            return granted


class SearchOrchestrator:
    """Runs file searches, content searches and downloads under one policy.

    Every request is checked against the path policy before touching the
    filesystem, then executed on a dedicated daemon worker thread while the
    caller waits up to ``search_timeout_seconds``. On timeout the worker's
    cancellation token is set and the caller gets a TIMEOUT error without
    waiting for the worker to wind down.
    """

    def __init__(
        self,
        policy: PathPolicy,
        limits: SearchLimits,
        registry: ArchiveRegistry,
        *,
        event_sink: EventSink | None = None,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._policy = policy
        self._limits = limits
        self._registry = registry
        self._event_sink = event_sink
        self._enabled = enabled
        self._clock = clock

    @property
    def limits(self) -> SearchLimits:
        return self._limits

    def status(self) -> dict[str, object]:
        """Return feature flag, version, archive support and effective limits."""
        return {
            "enabled": self._enabled,
            "version": __version__,
            "supported_archive_types": list(self._registry.names()),
            "supported_extensions": list(self._registry.extensions()),
            "limits": {
                "max_directory_depth": self._limits.max_directory_depth,
                "max_file_bytes": self._limits.max_file_bytes,
                "max_search_results": self._limits.max_search_results,
                "search_timeout_seconds": self._limits.search_timeout_seconds,
                "max_total_bytes_per_response": self._limits.max_total_bytes_per_response,
            },
            "allowed_paths": [str(path) for path in self._policy.allowed_paths],
            "excluded_paths": [str(path) for path in self._policy.excluded_paths],
        }

    def find_files(
        self, root: str, pattern: str, *, request_id: str | None = None
    ) -> FileSearchResult:
        """Match ``pattern`` against files under ``root`` and inside archives found there."""
        operation = "find_files"
        request_id = request_id or uuid.uuid4().hex
        started = self._clock()
        self._emit(
            request_id,
            operation,
            EVENT_STARTED,
            ok=True,
            metadata=sanitize_arguments({"path": root, "pattern": pattern}),
        )
        try:
            self._ensure_enabled()
            if not root or not root.strip():
                raise SearchError(ErrorKind.INVALID_ARGUMENT, "Search path cannot be empty.")
            matcher = compile_wildcard(pattern)
            resolved = self._policy.require(root)
            entries = self._execute(
                lambda cancel: self._find_files_work(resolved, matcher, cancel)
            )
        except Exception as error:
            _attach_request_path(error, root)
            self._emit_failure(request_id, operation, error)
            raise

        elapsed_ms = self._elapsed_ms(started)
        result = FileSearchResult(
            entries=tuple(entries),
            total_count=len(entries),
            search_path=root,
            pattern=pattern,
            elapsed_ms=elapsed_ms,
        )
        logger.info(
            "File search completed in %dms. Found %d files matching %r in %s",
            elapsed_ms,
            result.total_count,
            pattern,
            root,
        )
        self._emit(
            request_id,
            operation,
            EVENT_SUCCEEDED,
            ok=True,
            metadata={"result_count": result.total_count, "elapsed_ms": elapsed_ms},
        )
        return result

    def find_content(
        self,
        locator: str,
        term: str,
        options: ContentSearchOptions | None = None,
        *,
        request_id: str | None = None,
    ) -> ContentSearchResult:
        """Search one plain file or archive entry for a literal term."""
        operation = "find_content"
        options = options or ContentSearchOptions()
        request_id = request_id or uuid.uuid4().hex
        started = self._clock()
        self._emit(
            request_id,
            operation,
            EVENT_STARTED,
            ok=True,
            metadata=sanitize_arguments(
                {
                    "path": locator,
                    "term": term,
                    "case_sensitive": options.case_sensitive,
                    "whole_word": options.whole_word,
                }
            ),
        )
        try:
            self._ensure_enabled()
            parsed = Locator.parse(locator)
            if not term or not term.strip():
                raise SearchError(ErrorKind.INVALID_ARGUMENT, "Search term cannot be empty.")
            reader = self._gate(parsed)
            deadline = started + self._limits.search_timeout_seconds
            result = self._execute(
                lambda cancel: self._find_content_work(
                    parsed, reader, term, options, deadline, cancel
                )
            )
        except Exception as error:
            _attach_request_path(error, locator)
            self._emit_failure(request_id, operation, error)
            raise

        result = replace(result, elapsed_ms=self._elapsed_ms(started))
        logger.info(
            "Content search completed in %dms. Found %d matches in %s (truncated: %s)",
            result.elapsed_ms,
            result.total_matches,
            locator,
            result.truncated,
        )
        self._emit(
            request_id,
            operation,
            EVENT_SUCCEEDED,
            ok=True,
            metadata={
                "result_count": result.total_matches,
                "elapsed_ms": result.elapsed_ms,
                "truncated": result.truncated,
            },
        )
        return result

    def open_download(self, locator: str, *, request_id: str | None = None) -> Download:
        """Open a plain file or buffered archive entry for streaming back."""
        operation = "download"
        request_id = request_id or uuid.uuid4().hex
        started = self._clock()
        self._emit(
            request_id,
            operation,
            EVENT_STARTED,
            ok=True,
            metadata=sanitize_arguments({"path": locator}),
        )
        try:
            self._ensure_enabled()
            parsed = Locator.parse(locator)
            reader = self._gate(parsed)
            download = self._execute(lambda cancel: self._download_work(parsed, reader, cancel))
        except Exception as error:
            _attach_request_path(error, locator)
            self._emit_failure(request_id, operation, error)
            raise

        self._emit(
            request_id,
            operation,
            EVENT_SUCCEEDED,
            ok=True,
            metadata={"size_bytes": download.size_bytes, "elapsed_ms": self._elapsed_ms(started)},
        )
        return download

    def _gate(self, locator: Locator) -> ArchiveReader | None:
        """Policy check plus reader selection; performs no filesystem I/O."""
        self._policy.require(locator.path)
        if not locator.is_archive_entry:
            return None
        reader = self._registry.select(locator.path)
        if reader is None:
            raise SearchError(
                ErrorKind.UNSUPPORTED_ARCHIVE_FORMAT,
                f"Unsupported archive format: {locator.path}",
                path=locator.render(),
            )
        return reader

    def _find_files_work(
        self, root: Path, matcher: WildcardMatcher, cancel: CancellationToken
    ) -> list[FileEntry]:
        limits = self._scan_limits()
        direct = scan_tree(root, matcher, limits, cancel, skip=self._policy.is_excluded)
        budget = ResultBudget(self._limits.max_search_results - len(direct))
        nested = self._find_archive_entries(root, matcher, limits, budget, cancel)
        return (direct + nested)[: self._limits.max_search_results]

    def _find_archive_entries(
        self,
        root: Path,
        matcher: WildcardMatcher,
        limits: ScanLimits,
        budget: ResultBudget,
        cancel: CancellationToken,
    ) -> list[FileEntry]:
        found: list[FileEntry] = []
        if budget.remaining < 1:
            return found
        candidates = scan_tree(
            root,
            compile_wildcard(CATCH_ALL_PATTERN),
            limits,
            cancel,
            skip=self._policy.is_excluded,
        )
        for candidate in candidates:
            if budget.remaining < 1:
                break
            archive_path = Path(candidate.full_path)
            reader = self._registry.select(archive_path)
            if reader is None or not self._policy.is_file_accessible(archive_path):
                continue
            try:
                entries = reader.list_entries(
                    archive_path,
                    matcher,
                    max_file_bytes=self._limits.max_file_bytes,
                    max_results=budget.remaining,
                    cancel=cancel,
                )
            except SearchError as error:
                if error.kind is not ErrorKind.IO_FAILURE:
                    raise
                logger.warning("Skipping unreadable archive %s: %s", archive_path, error.message)
                continue
            granted = budget.consume(len(entries))
            found.extend(entries[:granted])
        return found

    def _find_content_work(
        self,
        locator: Locator,
        reader: ArchiveReader | None,
        term: str,
        options: ContentSearchOptions,
        deadline: float,
        cancel: CancellationToken,
    ) -> ContentSearchResult:
        stream = self._open_stream(locator, reader, cancel, require_text=True)
        with stream:
            return search_stream(
                stream,
                term,
                options,
                max_results=self._limits.max_search_results,
                deadline=deadline,
                cancel=cancel,
                clock=self._clock,
            )

    def _download_work(
        self, locator: Locator, reader: ArchiveReader | None, cancel: CancellationToken
    ) -> Download:
        stream = self._open_stream(locator, reader, cancel, require_text=False)
        if cancel.cancelled:
            stream.close()
            cancel.raise_if_cancelled()
        size = stream.seek(0, io.SEEK_END)
        stream.seek(0)
        name = Path(locator.entry_path or locator.path).name
        return Download(name=name, locator=locator.render(), size_bytes=size, stream=stream)

    def _open_stream(
        self,
        locator: Locator,
        reader: ArchiveReader | None,
        cancel: CancellationToken,
        *,
        require_text: bool,
    ) -> BinaryIO:
        resolved = self._policy.require_file(locator.path)
        if reader is not None and locator.entry_path is not None:
            return reader.extract(resolved, locator.entry_path, cancel=cancel)
        if require_text and not is_text_file(resolved):
            raise SearchError(
                ErrorKind.NOT_TEXT,
                f"File is not a text file: {locator.path}",
                path=locator.path,
            )
        return resolved.open("rb")

    def _execute(self, work: Callable[[CancellationToken], T]) -> T:
        """Run ``work`` on a fresh daemon thread and wait up to the timeout."""
        cancel = CancellationToken()
        future: Future[T] = Future()

        def run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                value = work(cancel)
            except Exception as error:
                future.set_exception(error)
            else:
                future.set_result(value)

        worker = threading.Thread(target=run, name=WORKER_THREAD_NAME, daemon=True)
        worker.start()
        timeout = self._limits.search_timeout_seconds
        try:
            return future.result(timeout=timeout)
        except TimeoutError as error:
            if future.done():
                raise io_failure(f"I/O operation timed out: {error}") from error
            cancel.cancel()
            future.add_done_callback(_close_late_result)
            logger.warning("Search operation timed out after %s seconds", timeout)
            raise SearchError(
                ErrorKind.TIMEOUT,
                f"Search operation timed out after {timeout:g} seconds",
                details={"timeout_seconds": timeout},
            ) from None
        except OSError as error:
            raise io_failure(f"I/O failure: {error}", getattr(error, "filename", None)) from error

    def _scan_limits(self) -> ScanLimits:
        return ScanLimits(
            max_depth=self._limits.max_directory_depth,
            max_file_bytes=self._limits.max_file_bytes,
            max_results=self._limits.max_search_results,
        )

    def _ensure_enabled(self) -> None:
        if not self._enabled:
            raise SearchError(ErrorKind.ACCESS_DENIED, "Archive search is disabled.")

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    def _emit_failure(self, request_id: str, operation: str, error: Exception) -> None:
        if isinstance(error, SearchError) and error.kind is ErrorKind.TIMEOUT:
            self._emit(
                request_id,
                operation,
                EVENT_TIMEOUT,
                ok=False,
                error_code=error.kind.value,
                metadata={"timeout_seconds": self._limits.search_timeout_seconds},
            )
            return
        code = error.kind.value if isinstance(error, SearchError) else "INTERNAL_ERROR"
        self._emit(request_id, operation, EVENT_FAILED, ok=False, error_code=code)

    def _emit(
        self,
        request_id: str,
        operation: str,
        event: str,
        *,
        ok: bool,
        error_code: str | None = None,
        metadata: dict[str, object] | None = None,
    ) -> None:
        if self._event_sink is None:
            return
        record = AuditEvent(
            timestamp=utc_timestamp(),
            request_id=request_id,
            operation=operation,
            event=event,
            ok=ok,
            error_code=error_code,
            metadata=metadata or {},
        )
        try:
            self._event_sink(record)
        except Exception:
            logger.exception("Failed to emit %s event for %s", event, operation)


def _attach_request_path(error: Exception, path: str) -> None:
    """Report the caller's path on errors raised without one."""
    if isinstance(error, SearchError) and error.path is None:
        error.path = path


def _close_late_result(future: Future[T]) -> None:
    """Release a stream the worker produced after its caller gave up."""
    if future.cancelled() or future.exception() is not None:
        return
    result = future.result()
    if isinstance(result, Download):
        result.stream.close()
