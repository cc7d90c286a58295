from __future__ import annotations

from pathlib import Path

import pytest

from archive_search.cancellation import CancellationToken
from archive_search.errors import ErrorKind, SearchError
from archive_search.matching import compile_wildcard
from archive_search.models import FileKind
from archive_search.scan import ScanLimits, scan_tree


def _limits(max_depth: int = 10, max_file_bytes: int = 1024, max_results: int = 100) -> ScanLimits:
    return ScanLimits(max_depth=max_depth, max_file_bytes=max_file_bytes, max_results=max_results)


def _write(path: Path, content: str = "x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_pattern_selects_matching_files_only(tmp_path: Path) -> None:
    _write(tmp_path / "file1.txt")
    _write(tmp_path / "file2.txt")
    _write(tmp_path / "readme.md")

    entries = scan_tree(tmp_path, compile_wildcard("*.txt"), _limits())

    assert [entry.name for entry in entries] == ["file1.txt", "file2.txt"]
    assert all(entry.kind is FileKind.REGULAR for entry in entries)
    assert all(entry.archive_path is None for entry in entries)
    assert entries[0].relative_path == "file1.txt"
    assert entries[0].full_path == str(tmp_path / "file1.txt")
    assert entries[0].size_bytes == 1


def test_traversal_is_name_ordered_pre_order(tmp_path: Path) -> None:
    _write(tmp_path / "b.txt")
    _write(tmp_path / "a" / "z.txt")
    _write(tmp_path / "a" / "b" / "c.txt")
    _write(tmp_path / "c.txt")

    entries = scan_tree(tmp_path, compile_wildcard("*.txt"), _limits())

    assert [entry.relative_path for entry in entries] == [
        "a/b/c.txt",
        "a/z.txt",
        "b.txt",
        "c.txt",
    ]


def test_depth_limit_caps_relative_path_segments(tmp_path: Path) -> None:
    _write(tmp_path / "l1.txt")
    _write(tmp_path / "d1" / "l2.txt")
    _write(tmp_path / "d1" / "d2" / "l3.txt")
    _write(tmp_path / "d1" / "d2" / "d3" / "l4.txt")

    for depth in (1, 2, 3):
        entries = scan_tree(tmp_path, compile_wildcard("*"), _limits(max_depth=depth))
        assert len(entries) == depth
        assert all(len(entry.relative_path.split("/")) <= depth for entry in entries)


def test_oversized_files_are_skipped(tmp_path: Path) -> None:
    _write(tmp_path / "small.log", "ok")
    _write(tmp_path / "large.log", "x" * 64)

    entries = scan_tree(tmp_path, compile_wildcard("*.log"), _limits(max_file_bytes=10))

    assert [entry.name for entry in entries] == ["small.log"]


def test_result_cap_truncates_without_error(tmp_path: Path) -> None:
    for index in range(7):
        _write(tmp_path / f"f{index}.txt")

    entries = scan_tree(tmp_path, compile_wildcard("*.txt"), _limits(max_results=3))

    assert [entry.name for entry in entries] == ["f0.txt", "f1.txt", "f2.txt"]


def test_missing_root_returns_empty_list(tmp_path: Path) -> None:
    assert scan_tree(tmp_path / "missing", compile_wildcard("*"), _limits()) == []


def test_symlinked_directories_are_not_followed(tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    _write(outside / "secret.txt")
    root = tmp_path / "root"
    root.mkdir()
    try:
        (root / "link").symlink_to(outside, target_is_directory=True)
    except OSError:
        pytest.skip("symlinks are not supported on this platform")

    assert scan_tree(root, compile_wildcard("*.txt"), _limits()) == []


def test_cancelled_token_interrupts_scan(tmp_path: Path) -> None:
    _write(tmp_path / "a.txt")
    token = CancellationToken()
    token.cancel()

    with pytest.raises(SearchError) as error:
        scan_tree(tmp_path, compile_wildcard("*"), _limits(), token)

    assert error.value.kind is ErrorKind.INTERRUPTED
