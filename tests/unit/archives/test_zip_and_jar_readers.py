from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from archive_search.archives import JarArchiveReader, ZipArchiveReader
from archive_search.errors import ErrorKind, SearchError
from archive_search.matching import compile_wildcard
from archive_search.models import FileKind

MAX_BYTES = 1024 * 1024


def _zip(path: Path, members: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return path


def test_lists_matching_entry_and_extracts_stored_bytes(tmp_path: Path) -> None:
    archive = _zip(
        tmp_path / "bundle.zip",
        {"file1.txt": b"Content of file1", "image.png": b"\x89PNG"},
    )
    reader = ZipArchiveReader()

    entries = reader.list_entries(
        archive, compile_wildcard("*.txt"), max_file_bytes=MAX_BYTES, max_results=10
    )

    assert len(entries) == 1
    entry = entries[0]
    assert entry.name == "file1.txt"
    assert entry.kind is FileKind.ARCHIVE_ENTRY
    assert entry.archive_path == str(archive)
    assert entry.size_bytes == len(b"Content of file1")
    assert entry.locator == f"{archive}::file1.txt"
    assert reader.extract(archive, "file1.txt").read() == b"Content of file1"


def test_nested_entries_keep_their_full_path(tmp_path: Path) -> None:
    archive = _zip(
        tmp_path / "app.zip",
        {"config/": b"", "config/app.properties": b"port=8080\n", "README": b"hi"},
    )

    entries = ZipArchiveReader().list_entries(
        archive, compile_wildcard("*.properties"), max_file_bytes=MAX_BYTES, max_results=10
    )

    assert [(entry.name, entry.full_path, entry.relative_path) for entry in entries] == [
        ("app.properties", "config/app.properties", "config/app.properties")
    ]


def test_directories_oversized_and_unaddressable_entries_are_skipped(tmp_path: Path) -> None:
    archive = _zip(
        tmp_path / "mixed.zip",
        {
            "docs/": b"",
            "small.txt": b"ok",
            "large.txt": b"x" * 200,
            "odd::name.txt": b"nope",
        },
    )

    entries = ZipArchiveReader().list_entries(
        archive, compile_wildcard("*"), max_file_bytes=100, max_results=10
    )

    assert [entry.full_path for entry in entries] == ["small.txt"]


def test_result_cap_stops_listing(tmp_path: Path) -> None:
    archive = _zip(tmp_path / "many.zip", {f"f{index}.txt": b"x" for index in range(5)})

    entries = ZipArchiveReader().list_entries(
        archive, compile_wildcard("*.txt"), max_file_bytes=MAX_BYTES, max_results=2
    )

    assert [entry.full_path for entry in entries] == ["f0.txt", "f1.txt"]


def test_archive_larger_than_file_limit_yields_nothing(tmp_path: Path) -> None:
    archive = _zip(tmp_path / "big.zip", {"a.txt": b"a" * 4096})

    entries = ZipArchiveReader().list_entries(
        archive, compile_wildcard("*"), max_file_bytes=10, max_results=10
    )

    assert entries == []


def test_missing_entry_raises_entry_not_found(tmp_path: Path) -> None:
    archive = _zip(tmp_path / "bundle.zip", {"a.txt": b"a"})

    with pytest.raises(SearchError) as error:
        ZipArchiveReader().extract(archive, "missing.txt")

    assert error.value.kind is ErrorKind.ENTRY_NOT_FOUND
    assert error.value.path == f"{archive}::missing.txt"


def test_corrupt_zip_is_io_failure(tmp_path: Path) -> None:
    archive = tmp_path / "broken.zip"
    archive.write_bytes(b"this is not a zip file")

    with pytest.raises(SearchError) as error:
        ZipArchiveReader().list_entries(
            archive, compile_wildcard("*"), max_file_bytes=MAX_BYTES, max_results=10
        )

    assert error.value.kind is ErrorKind.IO_FAILURE
    assert isinstance(error.value.__cause__, zipfile.BadZipFile)


def test_undecodable_entry_name_is_io_failure(tmp_path: Path) -> None:
    archive = _zip(tmp_path / "names.zip", {"\u00e9.txt": b"x"})
    archive.write_bytes(archive.read_bytes().replace("\u00e9.txt".encode(), b"\xff\xfe.txt"))

    with pytest.raises(SearchError) as error:
        ZipArchiveReader().list_entries(
            archive, compile_wildcard("*"), max_file_bytes=MAX_BYTES, max_results=10
        )

    assert error.value.kind is ErrorKind.IO_FAILURE
    assert error.value.path == str(archive)
    assert isinstance(error.value.__cause__, UnicodeDecodeError)


def test_jar_hides_manifest_but_lists_classes(tmp_path: Path) -> None:
    archive = _zip(
        tmp_path / "lib.jar",
        {
            "META-INF/MANIFEST.MF": b"Manifest-Version: 1.0\n",
            "com/example/App.class": b"\xca\xfe\xba\xbe",
            "application.yml": b"server: {}\n",
        },
    )
    reader = JarArchiveReader()

    entries = reader.list_entries(
        archive, compile_wildcard("*"), max_file_bytes=MAX_BYTES, max_results=10
    )

    assert [entry.full_path for entry in entries] == ["com/example/App.class", "application.yml"]
    assert reader.extract(archive, "application.yml").read() == b"server: {}\n"
    with pytest.raises(SearchError) as error:
        reader.extract(archive, "META-INF/MANIFEST.MF")
    assert error.value.kind is ErrorKind.ENTRY_NOT_FOUND
