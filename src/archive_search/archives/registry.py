"""Archive reader registry with extension-based selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from archive_search.archives.base import ArchiveReader
from archive_search.archives.tar import TarArchiveReader, TarGzArchiveReader
from archive_search.archives.zip import JarArchiveReader, ZipArchiveReader

SUPPORTED_ARCHIVE_TYPES = ("zip", "jar", "tar", "tar.gz", "tgz")
_READER_TYPES: tuple[type[ArchiveReader], ...] = (
    ZipArchiveReader,
    JarArchiveReader,
    TarGzArchiveReader,
    TarArchiveReader,
)


@dataclass(slots=True)
class ArchiveRegistry:
    """Ordered reader registry; the first reader claiming a path wins."""

    _readers: list[ArchiveReader] = field(default_factory=list)

    def register(self, reader: ArchiveReader) -> None:
        self._readers.append(reader)

    def select(self, path: Path | str) -> ArchiveReader | None:
        """Return the reader for ``path`` by extension, or None."""
        for reader in self._readers:
            if reader.handles(path):
                return reader
        return None

    def is_archive(self, path: Path | str) -> bool:
        return self.select(path) is not None

    def names(self) -> tuple[str, ...]:
        return tuple(reader.name for reader in self._readers)

    def extensions(self) -> tuple[str, ...]:
        return tuple(ext for reader in self._readers for ext in reader.handled_extensions)


def build_archive_registry(
    supported_types: tuple[str, ...] = SUPPORTED_ARCHIVE_TYPES,
) -> ArchiveRegistry:
    """Register one reader per configured archive type."""
    wanted = {f".{item.lower().lstrip('.')}" for item in supported_types}
    registry = ArchiveRegistry()
    for reader_type in _READER_TYPES:
        enabled = tuple(ext for ext in reader_type.extensions if ext in wanted)
        if enabled:
            registry.register(reader_type(extensions=enabled))
    return registry
