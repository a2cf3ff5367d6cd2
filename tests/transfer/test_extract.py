"""Tests for archive extraction."""

from __future__ import annotations

import gzip
import io
import tarfile
import zipfile
from pathlib import Path

import pytest

from hubtransfer.cache import layout
from hubtransfer.core.errors import ExtractionError
from hubtransfer.core.hashing import sha256_file
from hubtransfer.transfer.extract import (
    ArchiveKind,
    ExtractionResult,
    UnsupportedArchive,
    default_extract_path,
    detect_archive_kind,
    extract,
    extract_cached,
)

MEMBERS = {"config.json": b'{"layers": 2}', "weights/part-0.bin": b"\x00\x01" * 50}


def write_zip(path: Path, members: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return path


def write_tar(path: Path, members: dict[str, bytes], mode: str) -> Path:
    with tarfile.open(path, mode) as tf:
        for name, content in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tf.addfile(info, io.BytesIO(content))
    return path


class TestDetect:
    """Tests for archive format detection."""

    @pytest.mark.parametrize(
        ("name", "kind"),
        [
            ("data.zip", ArchiveKind.ZIP),
            ("data.tar", ArchiveKind.TAR),
            ("data.tar.gz", ArchiveKind.TAR_GZ),
            ("data.TGZ", ArchiveKind.TAR_GZ),
            ("data.tar.xz", ArchiveKind.TAR_XZ),
            ("data.txz", ArchiveKind.TAR_XZ),
            ("data.json.gz", ArchiveKind.GZIP),
            ("model.safetensors", ArchiveKind.UNKNOWN),
            (".zip", ArchiveKind.UNKNOWN),
        ],
    )
    def test_detect(self, name: str, kind: ArchiveKind) -> None:
        """Should pick the longest matching suffix."""
        assert detect_archive_kind(name) is kind

    def test_default_extract_path(self, tmp_path: Path) -> None:
        """Should strip the archive suffix."""
        assert default_extract_path(tmp_path / "weights.tar.gz") == tmp_path / "weights"
        assert default_extract_path(tmp_path / "data.zip") == tmp_path / "data"
        assert default_extract_path(tmp_path / "notes.txt") == tmp_path / "notes.txt.extracted"


class TestExtract:
    """Tests for extracting each format."""

    @pytest.mark.parametrize(
        ("name", "mode"),
        [("data.tar", "w:"), ("data.tar.gz", "w:gz"), ("data.tar.xz", "w:xz")],
    )
    def test_tar_formats(self, tmp_path: Path, name: str, mode: str) -> None:
        """Should extract every member of a tar archive."""
        archive = write_tar(tmp_path / name, MEMBERS, mode)

        result = extract(archive, tmp_path / "out")

        assert isinstance(result, ExtractionResult)
        assert result.files == ["config.json", "weights/part-0.bin"]
        assert result.total_size == sum(len(c) for c in MEMBERS.values())
        assert (tmp_path / "out" / "weights" / "part-0.bin").read_bytes() == MEMBERS["weights/part-0.bin"]

    def test_zip(self, tmp_path: Path) -> None:
        """Should extract every member of a zip archive."""
        archive = write_zip(tmp_path / "data.zip", MEMBERS)

        result = extract(archive, tmp_path / "out")

        assert isinstance(result, ExtractionResult)
        assert result.kind is ArchiveKind.ZIP
        assert result.files == ["config.json", "weights/part-0.bin"]

    def test_gzip(self, tmp_path: Path) -> None:
        """Should decompress a single gzip file."""
        archive = tmp_path / "rows.csv.gz"
        archive.write_bytes(gzip.compress(b"a,b\n1,2\n"))

        result = extract(archive, tmp_path / "out")

        assert isinstance(result, ExtractionResult)
        assert result.files == ["rows.csv"]
        assert (tmp_path / "out" / "rows.csv").read_bytes() == b"a,b\n1,2\n"

    def test_unsupported(self, tmp_path: Path) -> None:
        """Should leave unknown formats alone."""
        plain = tmp_path / "model.bin"
        plain.write_bytes(b"raw")

        result = extract(plain, tmp_path / "out")

        assert result == UnsupportedArchive(plain)
        assert result.kind is ArchiveKind.UNKNOWN
        assert not (tmp_path / "out").exists()

    @pytest.mark.parametrize("member", ["../escape.txt", "a/../../escape.txt", "C:/evil.txt"])
    def test_rejects_unsafe_zip_members(self, tmp_path: Path, member: str) -> None:
        """Should refuse members escaping the destination."""
        archive = write_zip(tmp_path / "evil.zip", {member: b"x"})

        with pytest.raises(ExtractionError):
            extract(archive, tmp_path / "out")
        assert not (tmp_path / "escape.txt").exists()

    def test_rejects_unsafe_tar_members(self, tmp_path: Path) -> None:
        """Should refuse tar members escaping the destination."""
        archive = write_tar(tmp_path / "evil.tar", {"../escape.txt": b"x"}, "w:")

        with pytest.raises(ExtractionError):
            extract(archive, tmp_path / "out")
        assert not (tmp_path / "escape.txt").exists()

    def test_rejects_tar_symlinks(self, tmp_path: Path) -> None:
        """Should refuse link members."""
        archive = tmp_path / "links.tar"
        with tarfile.open(archive, "w:") as tf:
            info = tarfile.TarInfo("link")
            info.type = tarfile.SYMTYPE
            info.linkname = "/etc/passwd"
            tf.addfile(info)

        with pytest.raises(ExtractionError):
            extract(archive, tmp_path / "out")

    def test_corrupt_archive(self, tmp_path: Path) -> None:
        """Should wrap format errors in ExtractionError."""
        archive = tmp_path / "broken.tar.gz"
        archive.write_bytes(b"definitely not gzip")

        with pytest.raises(ExtractionError):
            extract(archive, tmp_path / "out")


class TestExtractCached:
    """Tests for extraction next to cached archives."""

    def test_extracts_once(self, tmp_path: Path) -> None:
        """Should extract into a digest-keyed sibling and reuse it."""
        archive = write_zip(tmp_path / "data.zip", MEMBERS)
        digest = sha256_file(archive)

        first = extract_cached(archive, digest)
        second = extract_cached(archive, digest)

        assert isinstance(first, ExtractionResult)
        assert isinstance(second, ExtractionResult)
        assert first.destination == layout.extraction_dir(archive, digest)
        assert first.reused is False
        assert second.reused is True
        assert second.files == first.files
        assert [p.name for p in tmp_path.iterdir() if p.is_dir()] == [first.destination.name]

    def test_failed_extraction_leaves_nothing(self, tmp_path: Path) -> None:
        """Should remove the staging directory after a failure."""
        archive = write_zip(tmp_path / "evil.zip", {"../escape.txt": b"x"})

        with pytest.raises(ExtractionError):
            extract_cached(archive, sha256_file(archive))

        assert [p for p in tmp_path.iterdir() if p.is_dir()] == []

    def test_unsupported(self, tmp_path: Path) -> None:
        """Should report non-archives without creating directories."""
        plain = tmp_path / "model.bin"
        plain.write_bytes(b"raw")

        assert isinstance(extract_cached(plain, sha256_file(plain)), UnsupportedArchive)
        assert [p for p in tmp_path.iterdir() if p.is_dir()] == []
