"""On-disk layout of the content store.

Layout:
    <root>/<kind>s--<owner>--<name>/<revision>/<relative-path>
    <root>/<kind>s--<owner>--<name>/.meta/sha256/<revision>/<relative-path>
    <root>/<kind>s--<owner>--<name>/.meta/etag/<revision>/<relative-path>
    <root>/<kind>s--<owner>--<name>/.meta/progress/<revision>/<relative-path>
    <root>/<kind>s--<owner>--<name>/.tmp/<revision>/<relative-path>
    <root>/.locks/<kind>s--<owner>--<name>/<key-hash>.lock

Sidecars and partial downloads mirror the revision tree under reserved
directories, so they never share a namespace with repository files. Revision
folders cannot start with ".", which keeps them apart from those directories.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from urllib.parse import quote, unquote

from hubtransfer.core.errors import InvalidPathError
from hubtransfer.core.hashing import short_hash
from hubtransfer.core.types import RepoScope, validate_relative_path

META_DIR = ".meta"
TMP_DIR = ".tmp"
LOCKS_DIR = ".locks"
RESERVED_DIRS = (META_DIR, TMP_DIR)

CHECKSUM_AREA = "sha256"
ETAG_AREA = "etag"
PROGRESS_AREA = "progress"

EXTRACTED_SUFFIX = ".extracted"

_EXTRACTION_NAME = re.compile(r"^(?P<archive>.+)\.[0-9a-f]{12}\.extracted(?:\.\d+-\d+)?$")


def revision_folder(revision: str) -> str:
    """Folder name for a revision ("refs/pr/1" -> "refs%2Fpr%2F1")."""
    if not revision or revision.startswith("."):
        raise InvalidPathError(f"Invalid revision: {revision!r}")
    return quote(revision, safe="")


def revision_from_folder(name: str) -> str:
    """Inverse of revision_folder."""
    return unquote(name)


def scope_dir(root: Path, scope: RepoScope) -> Path:
    """Directory holding every revision of a repository."""
    return root / scope.folder_name


def entry_path(root: Path, scope: RepoScope, revision: str, path: str) -> Path:
    """Absolute location of a cached file."""
    return scope_dir(root, scope) / revision_folder(revision) / validate_relative_path(path)


def _mirror(base: Path, revision: str, path: str) -> Path:
    return base / revision_folder(revision) / validate_relative_path(path)


def checksum_path(root: Path, scope: RepoScope, revision: str, path: str) -> Path:
    """Sidecar recording the SHA-256 of a cached file."""
    return _mirror(scope_dir(root, scope) / META_DIR / CHECKSUM_AREA, revision, path)


def etag_path(root: Path, scope: RepoScope, revision: str, path: str) -> Path:
    """Sidecar recording the source ETag of a cached file."""
    return _mirror(scope_dir(root, scope) / META_DIR / ETAG_AREA, revision, path)


def progress_path(root: Path, scope: RepoScope, revision: str, path: str) -> Path:
    """Resume record of an in-flight download."""
    return _mirror(scope_dir(root, scope) / META_DIR / PROGRESS_AREA, revision, path)


def incomplete_path(root: Path, scope: RepoScope, revision: str, path: str) -> Path:
    """Temporary file a download streams into."""
    return _mirror(staging_dir(root, scope), revision, path)


def staging_dir(root: Path, scope: RepoScope) -> Path:
    """Scratch directory for files not yet promoted."""
    return scope_dir(root, scope) / TMP_DIR


def is_reserved(name: str) -> bool:
    """Check whether a directory directly under a scope holds no revision."""
    return name.startswith(".")


def extraction_dir(archive: Path, digest: str) -> Path:
    """Sibling directory an archive is extracted into, keyed by its digest."""
    return archive.with_name(f"{archive.name}.{short_hash(digest)}{EXTRACTED_SUFFIX}")


def extraction_staging_dir(target: Path, pid: int, thread_id: int) -> Path:
    """Staging directory renamed onto an extraction target once complete."""
    return target.with_name(f"{target.name}.{pid}-{thread_id}")


def is_extraction_dir(path: Path) -> bool:
    """Check whether a directory is an extraction next to its cached archive.

    A repository directory with a similar name is not one unless the archive
    it would belong to sits beside it.
    """
    match = _EXTRACTION_NAME.match(path.name)
    return match is not None and (path.parent / match.group("archive")).is_file()


def lock_path(root: Path, scope: RepoScope, key: str) -> Path:
    """Advisory lock file for one key (revision/path) within a scope."""
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return root / LOCKS_DIR / scope.folder_name / f"{digest[:16]}.lock"
