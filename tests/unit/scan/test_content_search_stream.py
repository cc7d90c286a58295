from __future__ import annotations

import io
from pathlib import Path

import pytest

from archive_search.errors import ErrorKind, SearchError
from archive_search.models import ContentSearchOptions
from archive_search.scan import is_text_file, search_stream

SAMPLE = b"Hello world\nThis is a test\nHello again"


def _search(
    data: bytes,
    term: str,
    *,
    case_sensitive: bool = False,
    whole_word: bool = False,
    max_results: int = 100,
):
    return search_stream(
        io.BytesIO(data),
        term,
        ContentSearchOptions(case_sensitive=case_sensitive, whole_word=whole_word),
        max_results=max_results,
    )


def test_finds_every_line_with_columns() -> None:
    result = _search(SAMPLE, "Hello")

    assert [match.line_number for match in result.matches] == [1, 3]
    assert [(match.column_start, match.column_end) for match in result.matches] == [
        (0, 5),
        (0, 5),
    ]
    assert result.matches[0].line_text == "Hello world"
    assert result.total_matches == 2
    assert result.truncated is False
    assert result.download_suggestion is None


def test_cap_keeps_counting_and_suggests_download() -> None:
    result = _search(SAMPLE, "Hello", max_results=1)

    assert len(result.matches) == 1
    assert result.total_matches == 2
    assert result.truncated is True
    assert result.download_suggestion == (
        "Results truncated to 1 matches. Download the complete file to see all 2 matches."
    )


def test_multiple_occurrences_on_one_line_are_separate_matches() -> None:
    result = _search(b"abc abc ABC\n", "abc")

    assert [(match.column_start, match.column_end) for match in result.matches] == [
        (0, 3),
        (4, 7),
        (8, 11),
    ]
    assert all(match.line_text == "abc abc ABC" for match in result.matches)


def test_case_sensitive_and_whole_word_switches() -> None:
    data = b"Error errors ERROR error\n"

    assert _search(data, "error", case_sensitive=True).total_matches == 2
    assert _search(data, "error", whole_word=True).total_matches == 3
    assert _search(data, "error", case_sensitive=True, whole_word=True).total_matches == 1


def test_term_is_literal_not_regex() -> None:
    result = _search(b"a.b axb\n(x)\n", "a.b")

    assert result.total_matches == 1
    assert _search(b"a.b axb\n(x)\n", "(x)").matches[0].line_number == 2


def test_truncation_invariant_matches_independent_count() -> None:
    lines = [f"line {index} needle needle" if index % 3 == 0 else "hay" for index in range(50)]
    data = "\n".join(lines).encode("utf-8")
    expected = sum(line.count("needle") for line in lines)

    for cap in (0, 1, 5, expected, expected + 10):
        result = _search(data, "needle", max_results=cap)
        assert result.total_matches == expected
        assert len(result.matches) == min(cap, expected)
        assert result.truncated == (result.total_matches > len(result.matches))


def test_crlf_line_endings_are_not_part_of_line_text() -> None:
    result = _search(b"first hit\r\nsecond hit\r\n", "hit")

    assert [match.line_text for match in result.matches] == ["first hit", "second hit"]


def test_expired_deadline_returns_partial_result() -> None:
    ticks = iter([0.0, 0.0, 5.0, 5.0, 5.0, 5.0])

    result = search_stream(
        io.BytesIO(b"hit\nhit\nhit\n"),
        "hit",
        ContentSearchOptions(),
        max_results=10,
        deadline=1.0,
        clock=lambda: next(ticks),
    )

    assert result.total_matches == 1
    assert result.truncated is False


def test_empty_term_is_rejected() -> None:
    with pytest.raises(SearchError) as error:
        _search(SAMPLE, "")

    assert error.value.kind is ErrorKind.INVALID_ARGUMENT


def test_stream_is_left_open_after_search() -> None:
    stream = io.BytesIO(SAMPLE)

    search_stream(stream, "test", ContentSearchOptions(), max_results=5)

    assert stream.closed is False


def test_text_sniff_rejects_null_byte_in_first_kib(tmp_path: Path) -> None:
    text = tmp_path / "notes.txt"
    text.write_bytes(b"plain text\n")
    binary = tmp_path / "blob.bin"
    binary.write_bytes(b"PK\x03\x04\x00\x00")
    late_null = tmp_path / "late.dat"
    late_null.write_bytes(b"a" * 2048 + b"\x00")
    empty = tmp_path / "empty.txt"
    empty.write_bytes(b"")

    assert is_text_file(text) is True
    assert is_text_file(binary) is False
    assert is_text_file(late_null) is True
    assert is_text_file(empty) is True
