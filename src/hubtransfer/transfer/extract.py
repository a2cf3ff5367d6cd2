"""Archive detection and extraction.

This module provides:
- ArchiveKind: Supported archive formats
- detect_archive_kind: Format from the file name (longest suffix wins)
- extract: Unpack an archive into a directory
- extract_cached: Unpack next to a cached archive, reusing earlier output
"""

from __future__ import annotations

import gzip
import logging
import lzma
import os
import shutil
import stat
import tarfile
import threading
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath

from hubtransfer.cache import layout
from hubtransfer.core.errors import ExtractionError

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024


class ArchiveKind(str, Enum):
    """Archive formats recognized by suffix."""

    ZIP = "zip"
    TAR = "tar"
    TAR_GZ = "tar.gz"
    TAR_XZ = "tar.xz"
    GZIP = "gz"
    UNKNOWN = "unknown"


# Longest suffixes first so ".tar.gz" wins over ".gz"
_SUFFIXES: tuple[tuple[str, ArchiveKind], ...] = tuple(
    sorted(
        (
            (".tar.gz", ArchiveKind.TAR_GZ),
            (".tgz", ArchiveKind.TAR_GZ),
            (".tar.xz", ArchiveKind.TAR_XZ),
            (".txz", ArchiveKind.TAR_XZ),
            (".tar", ArchiveKind.TAR),
            (".zip", ArchiveKind.ZIP),
            (".gz", ArchiveKind.GZIP),
        ),
        key=lambda item: len(item[0]),
        reverse=True,
    )
)


def _match_suffix(name: str) -> tuple[str, ArchiveKind]:
    lowered = name.lower()
    for suffix, kind in _SUFFIXES:
        if lowered.endswith(suffix) and len(lowered) > len(suffix):
            return suffix, kind
    return "", ArchiveKind.UNKNOWN


def detect_archive_kind(name: str | Path) -> ArchiveKind:
    """Detect the archive format of a file name (case-insensitive)."""
    return _match_suffix(Path(name).name)[1]


def default_extract_path(path: Path) -> Path:
    """Sibling directory named after the archive without its suffix.

    "weights.tar.gz" -> "weights"; unknown formats get an ".extracted" suffix.
    """
    suffix, kind = _match_suffix(path.name)
    if kind is ArchiveKind.UNKNOWN:
        return path.with_name(path.name + layout.EXTRACTED_SUFFIX)
    return path.with_name(path.name[: -len(suffix)])


@dataclass
class ExtractionResult:
    """Outcome of extracting an archive.

    Attributes:
        kind: Detected format.
        destination: Directory holding the extracted files.
        files: Extracted paths relative to destination (POSIX, sorted).
        total_size: Sum of extracted file sizes in bytes.
        reused: True when an earlier extraction was reused.
    """

    kind: ArchiveKind
    destination: Path
    files: list[str] = field(default_factory=list)
    total_size: int = 0
    reused: bool = False


@dataclass(frozen=True)
class UnsupportedArchive:
    """The file is not a recognized archive; use it as-is."""

    path: Path

    @property
    def kind(self) -> ArchiveKind:
        """Always UNKNOWN."""
        return ArchiveKind.UNKNOWN


def _member_path(name: str) -> Path:
    """Validate an archive member name and return it as a relative path."""
    relative = PurePosixPath(name.replace("\\", "/"))
    if relative.is_absolute():
        raise ExtractionError(f"Absolute path in archive: {name}")
    parts = [part for part in relative.parts if part not in ("", ".")]
    if not parts:
        raise ExtractionError(f"Empty path in archive: {name!r}")
    if ".." in parts or ":" in parts[0]:
        raise ExtractionError(f"Unsafe path in archive: {name}")
    return Path(*parts)


def _extract_zip(archive: Path, destination: Path) -> None:
    with zipfile.ZipFile(archive) as zf:
        members = [(info, _member_path(info.filename)) for info in zf.infolist()]
        for info, relative in members:
            mode = (info.external_attr >> 16) & 0xFFFF
            if stat.S_ISLNK(mode):
                raise ExtractionError(f"Link in archive: {info.filename}")
            target = destination / relative
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as source, target.open("wb") as sink:
                shutil.copyfileobj(source, sink, COPY_BUFFER_SIZE)


def _tar_extractor(mode: str) -> Callable[[Path, Path], None]:
    def extract_tar(archive: Path, destination: Path) -> None:
        with tarfile.open(archive, mode=mode) as tf:
            for member in tf:
                relative = _member_path(member.name)
                target = destination / relative
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                if not member.isfile():
                    raise ExtractionError(f"Unsupported tar member type: {member.name}")
                source = tf.extractfile(member)
                if source is None:
                    raise ExtractionError(f"Could not read tar member: {member.name}")
                target.parent.mkdir(parents=True, exist_ok=True)
                with source, target.open("wb") as sink:
                    shutil.copyfileobj(source, sink, COPY_BUFFER_SIZE)

    return extract_tar


def _extract_gzip(archive: Path, destination: Path) -> None:
    name = archive.name[: -len(".gz")]
    destination.mkdir(parents=True, exist_ok=True)
    with gzip.open(archive, "rb") as source, (destination / name).open("wb") as sink:
        shutil.copyfileobj(source, sink, COPY_BUFFER_SIZE)


_EXTRACTORS: dict[ArchiveKind, Callable[[Path, Path], None]] = {
    ArchiveKind.ZIP: _extract_zip,
    ArchiveKind.TAR: _tar_extractor("r:"),
    ArchiveKind.TAR_GZ: _tar_extractor("r:gz"),
    ArchiveKind.TAR_XZ: _tar_extractor("r:xz"),
    ArchiveKind.GZIP: _extract_gzip,
}


def _list_files(destination: Path) -> tuple[list[str], int]:
    files: list[str] = []
    total = 0
    for dirpath, _, filenames in os.walk(destination):
        for name in filenames:
            file_path = Path(dirpath) / name
            files.append(file_path.relative_to(destination).as_posix())
            total += file_path.stat().st_size
    return sorted(files), total


def extract(path: Path, destination: Path) -> ExtractionResult | UnsupportedArchive:
    """Extract an archive into a directory.

    Args:
        path: Archive file.
        destination: Directory to extract into (created if missing).

    Returns:
        ExtractionResult, or UnsupportedArchive for unrecognized suffixes.

    Raises:
        ExtractionError: If the archive is corrupt or has unsafe members.
    """
    kind = detect_archive_kind(path)
    if kind is ArchiveKind.UNKNOWN:
        logger.debug(f"Not an archive: {path.name}")
        return UnsupportedArchive(path)

    destination.mkdir(parents=True, exist_ok=True)
    try:
        _EXTRACTORS[kind](path, destination)
    except (zipfile.BadZipFile, tarfile.TarError, lzma.LZMAError, EOFError, OSError) as e:
        raise ExtractionError(f"Failed to extract {path.name}: {e}") from e

    files, total_size = _list_files(destination)
    logger.info(f"Extracted {len(files)} files ({total_size} bytes) from {path.name}")
    return ExtractionResult(kind=kind, destination=destination, files=files, total_size=total_size)


def extract_cached(path: Path, digest: str) -> ExtractionResult | UnsupportedArchive:
    """Extract a cached archive into a sibling directory keyed by its digest.

    An existing non-empty directory is reused. Extraction goes to a staging
    directory that is renamed into place, so a partial extraction is never
    mistaken for a complete one.

    Args:
        path: Cached archive file.
        digest: SHA-256 of the archive.

    Returns:
        ExtractionResult (reused=True when already extracted), or UnsupportedArchive.

    Raises:
        ExtractionError: If the archive is corrupt or has unsafe members.
    """
    kind = detect_archive_kind(path)
    if kind is ArchiveKind.UNKNOWN:
        return UnsupportedArchive(path)

    target = layout.extraction_dir(path, digest)
    if _is_populated(target):
        return _reuse(kind, target)

    staging = layout.extraction_staging_dir(target, os.getpid(), threading.get_ident())
    shutil.rmtree(staging, ignore_errors=True)
    try:
        result = extract(path, staging)
        try:
            os.replace(staging, target)
        except OSError:
            if not _is_populated(target):
                raise
            # Another extraction of the same archive won the rename
            shutil.rmtree(staging, ignore_errors=True)
            return _reuse(kind, target)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    assert isinstance(result, ExtractionResult)
    result.destination = target
    return result


def _is_populated(directory: Path) -> bool:
    return directory.is_dir() and any(directory.iterdir())


def _reuse(kind: ArchiveKind, target: Path) -> ExtractionResult:
    files, total_size = _list_files(target)
    logger.debug(f"Reusing extraction at {target}")
    return ExtractionResult(
        kind=kind,
        destination=target,
        files=files,
        total_size=total_size,
        reused=True,
    )
