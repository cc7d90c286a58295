"""Read-only archive readers."""

from .base import ArchiveMember, ArchiveReader
from .registry import SUPPORTED_ARCHIVE_TYPES, ArchiveRegistry, build_archive_registry
from .tar import TarArchiveReader, TarGzArchiveReader
from .zip import JarArchiveReader, ZipArchiveReader

__all__ = [
    "ArchiveMember",
    "ArchiveReader",
    "ArchiveRegistry",
    "JarArchiveReader",
    "SUPPORTED_ARCHIVE_TYPES",
    "TarArchiveReader",
    "TarGzArchiveReader",
    "ZipArchiveReader",
    "build_archive_registry",
]
