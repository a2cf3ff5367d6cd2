"""Hashing helpers shared by the download and upload paths.

This module provides:
- SHA-256 over files and byte strings
- Detection of hash-shaped ETags
- Checksum sidecar files (one lower-case digest per file)
"""

from __future__ import annotations

import hashlib
import os
import re
import tempfile
from pathlib import Path

HASH_BLOCK_SIZE = 64 * 1024

_SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")


def sha256_bytes(data: bytes) -> str:
    """Compute the hex SHA-256 digest of data."""
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path, block_size: int = HASH_BLOCK_SIZE) -> str:
    """Compute the hex SHA-256 digest of a file.

    Reads the file in blocks to handle large files efficiently.

    Args:
        path: Path to the file to hash.
        block_size: Read size in bytes.

    Returns:
        Lower-case hexadecimal SHA-256 digest.
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(block_size), b""):
            hasher.update(block)
    return hasher.hexdigest()


def is_sha256_hex(value: str | None) -> bool:
    """Check whether a value is a 64-char lower-case hex digest."""
    if not value:
        return False
    return _SHA256_HEX.match(value.lower()) is not None


def short_hash(digest: str, length: int = 12) -> str:
    """Shorten a hex digest for use in directory names."""
    return digest[:length]


def read_checksum_sidecar(sidecar: Path) -> str | None:
    """Read a stored digest, if any.

    Returns:
        The digest, or None if the sidecar is missing or unreadable.
    """
    try:
        value = sidecar.read_text(encoding="ascii").strip().lower()
    except (OSError, UnicodeDecodeError):
        return None
    return value or None


def write_checksum_sidecar(sidecar: Path, digest: str) -> Path:
    """Atomically write a digest to its sidecar."""
    write_text_atomic(sidecar, digest.lower() + "\n")
    return sidecar


def write_text_atomic(path: Path, text: str) -> None:
    """Write text to a file via a temporary file and rename.

    Parent directories are created as needed. The temporary file is created
    exclusively, so concurrent writers never share one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
