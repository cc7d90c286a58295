"""TAR and gzip-compressed TAR readers."""

from __future__ import annotations

import tarfile
import zlib
from collections.abc import Iterator
from datetime import UTC, datetime
from functools import partial
from pathlib import Path

from archive_search.archives.base import EPOCH, ArchiveMember, ArchiveReader


class TarArchiveReader(ArchiveReader):
    """Streams headers in order; sizes come from each header."""

    name = "tar"
    extensions = (".tar",)
    read_errors = (OSError, EOFError, ValueError, tarfile.TarError, zlib.error)
    stream_mode = "r|"

    def _members(self, path: Path) -> Iterator[ArchiveMember]:
        with tarfile.open(path, mode=self.stream_mode) as archive:
            for member in archive:
                yield ArchiveMember(
                    name=member.name,
                    size=member.size,
                    modified_at=_tar_timestamp(member),
                    is_file=member.isfile(),
                    read=partial(_read_member, archive, member),
                )


class TarGzArchiveReader(TarArchiveReader):
    """Gzip decompression layered beneath the tar stream."""

    name = "tar.gz"
    extensions = (".tar.gz", ".tgz")
    stream_mode = "r|gz"


def _read_member(archive: tarfile.TarFile, member: tarfile.TarInfo) -> bytes:
    handle = archive.extractfile(member)
    if handle is None:
        return b""
    with handle:
        return handle.read()


def _tar_timestamp(member: tarfile.TarInfo) -> datetime:
    try:
        return datetime.fromtimestamp(member.mtime, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return EPOCH
