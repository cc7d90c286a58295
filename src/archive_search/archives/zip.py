"""ZIP and JAR readers."""

from __future__ import annotations

import zipfile
import zlib
from collections.abc import Iterator
from datetime import UTC, datetime
from functools import partial
from pathlib import Path

from archive_search.archives.base import EPOCH, ArchiveMember, ArchiveReader

JAR_MANIFEST = "META-INF/MANIFEST.MF"


class ZipArchiveReader(ArchiveReader):
    """Reads entry sizes from the central directory; nothing is inflated to filter."""

    name = "zip"
    extensions = (".zip",)
    read_errors = (
        OSError,
        EOFError,
        ValueError,
        zipfile.BadZipFile,
        zlib.error,
        NotImplementedError,
        RuntimeError,
    )

    def _members(self, path: Path) -> Iterator[ArchiveMember]:
        with zipfile.ZipFile(path) as archive:
            for info in archive.infolist():
                yield ArchiveMember(
                    name=info.filename,
                    size=info.file_size,
                    modified_at=_zip_timestamp(info),
                    is_file=not info.is_dir(),
                    read=partial(archive.read, info),
                )


class JarArchiveReader(ZipArchiveReader):
    """ZIP layout; the manifest is consumed by the reader and never listed."""

    name = "jar"
    extensions = (".jar",)

    def _is_listed(self, entry_name: str) -> bool:
        return entry_name.upper() != JAR_MANIFEST


def _zip_timestamp(info: zipfile.ZipInfo) -> datetime:
    try:
        return datetime(*info.date_time, tzinfo=UTC)
    except ValueError:
        return EPOCH
