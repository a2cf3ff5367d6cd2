"""Tests for hashing helpers and checksum sidecars."""

from __future__ import annotations

import hashlib
from pathlib import Path

from hubtransfer.core.hashing import (
    is_sha256_hex,
    read_checksum_sidecar,
    sha256_bytes,
    sha256_file,
    short_hash,
    write_checksum_sidecar,
)


class TestSha256:
    """Tests for digest computation."""

    def test_file_matches_bytes(self, tmp_path: Path) -> None:
        """File and in-memory digests should agree across block boundaries."""
        data = b"x" * 200_000
        path = tmp_path / "blob.bin"
        path.write_bytes(data)

        assert sha256_file(path, block_size=4096) == sha256_bytes(data)
        assert sha256_bytes(data) == hashlib.sha256(data).hexdigest()

    def test_empty_file(self, tmp_path: Path) -> None:
        """Should hash empty files."""
        path = tmp_path / "empty"
        path.touch()
        assert sha256_file(path) == hashlib.sha256(b"").hexdigest()


class TestIsSha256Hex:
    """Tests for hash-shaped ETag detection."""

    def test_accepts_digest(self) -> None:
        """A 64-char hex digest is hash-shaped, in either case."""
        digest = sha256_bytes(b"abc")
        assert is_sha256_hex(digest) is True
        assert is_sha256_hex(digest.upper()) is True

    def test_rejects_opaque_etags(self) -> None:
        """Git blob ids, short strings and None are opaque."""
        assert is_sha256_hex("a" * 40) is False
        assert is_sha256_hex("not-a-hash") is False
        assert is_sha256_hex("g" * 64) is False
        assert is_sha256_hex(None) is False
        assert is_sha256_hex("") is False

    def test_short_hash(self) -> None:
        """Should keep the first 12 characters by default."""
        assert short_hash("0123456789abcdef") == "0123456789ab"


class TestChecksumSidecar:
    """Tests for checksum sidecar files."""

    def test_write_and_read(self, tmp_path: Path) -> None:
        """Should store one lower-case hex line at the given path."""
        sidecar = tmp_path / "meta" / "model.bin"
        digest = sha256_bytes(b"weights")

        written = write_checksum_sidecar(sidecar, digest.upper())

        assert written == sidecar
        assert sidecar.read_text() == digest + "\n"
        assert read_checksum_sidecar(sidecar) == digest

    def test_missing_sidecar(self, tmp_path: Path) -> None:
        """Should return None when no sidecar exists."""
        assert read_checksum_sidecar(tmp_path / "nothing") is None

    def test_no_temporary_files_left(self, tmp_path: Path) -> None:
        """Atomic writes should not leave temporary files behind."""
        write_checksum_sidecar(tmp_path / "a.txt", "ab" * 32)
        write_checksum_sidecar(tmp_path / "a.txt", "cd" * 32)

        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.txt"]
        assert read_checksum_sidecar(tmp_path / "a.txt") == "cd" * 32
