"""Tests for the on-disk cache layout."""

from __future__ import annotations

from pathlib import Path

import pytest

from hubtransfer.cache import layout
from hubtransfer.core.errors import InvalidPathError
from hubtransfer.core.types import RepoScope, RepoType


class TestEntryPath:
    """Tests for entry locations."""

    def test_layout(self, tmp_path: Path) -> None:
        """Should follow <root>/<kind>s--<owner>--<name>/<revision>/<path>."""
        scope = RepoScope("acme/corpus", RepoType.DATASET)
        path = layout.entry_path(tmp_path, scope, "main", "data/train.csv")
        assert path == tmp_path / "datasets--acme--corpus" / "main" / "data" / "train.csv"

    def test_revision_with_slash(self) -> None:
        """Revisions are quoted into a single folder name and round-trip."""
        folder = layout.revision_folder("refs/pr/1")
        assert folder == "refs%2Fpr%2F1"
        assert layout.revision_from_folder(folder) == "refs/pr/1"

    @pytest.mark.parametrize("revision", ["", ".", "..", ".meta", ".tmp"])
    def test_invalid_revision(self, revision: str) -> None:
        """Should reject revisions that would escape or shadow reserved folders."""
        with pytest.raises(InvalidPathError):
            layout.revision_folder(revision)


class TestSidecars:
    """Tests for sidecar placement."""

    def test_mirrored_under_reserved_dirs(self, tmp_path: Path) -> None:
        """Sidecars mirror the revision tree under .meta and .tmp."""
        scope = RepoScope("acme/widget")
        base = tmp_path / "models--acme--widget"
        meta = base / ".meta"

        assert layout.checksum_path(tmp_path, scope, "main", "sub/a.bin") == meta / "sha256" / "main" / "sub" / "a.bin"
        assert layout.etag_path(tmp_path, scope, "main", "a.bin") == meta / "etag" / "main" / "a.bin"
        assert layout.progress_path(tmp_path, scope, "main", "a.bin") == meta / "progress" / "main" / "a.bin"
        assert layout.incomplete_path(tmp_path, scope, "main", "a.bin") == base / ".tmp" / "main" / "a.bin"

    def test_no_collision_with_suffixed_names(self, tmp_path: Path) -> None:
        """A file named like another file's sidecar gets distinct sidecars."""
        scope = RepoScope("acme/widget")
        names = ["model.bin", "model.bin.sha256", "model.bin.etag", "model.bin.incomplete"]
        paths = {layout.entry_path(tmp_path, scope, "main", n) for n in names}
        helpers = (layout.checksum_path, layout.etag_path, layout.progress_path, layout.incomplete_path)
        for helper in helpers:
            paths.update(helper(tmp_path, scope, "main", n) for n in names)

        assert len(paths) == len(names) * 5

    def test_reserved_names(self) -> None:
        """Dot directories under a scope hold no revision."""
        assert layout.is_reserved(".meta")
        assert layout.is_reserved(".tmp")
        assert not layout.is_reserved("main")
        assert not layout.is_reserved(layout.revision_folder("refs/pr/1"))

    def test_extraction_dir(self, tmp_path: Path) -> None:
        """Should be a sibling keyed by the short digest."""
        archive = tmp_path / "data.tar.gz"
        assert layout.extraction_dir(archive, "0123456789abcdef" * 4) == (
            tmp_path / "data.tar.gz.0123456789ab.extracted"
        )

    def test_lock_path(self, tmp_path: Path) -> None:
        """Locks live under .locks per scope, one per key."""
        scope = RepoScope("acme/widget")
        first = layout.lock_path(tmp_path, scope, "main/a.bin")
        second = layout.lock_path(tmp_path, scope, "main/b.bin")
        assert first.parent == tmp_path / ".locks" / "models--acme--widget"
        assert first != second
        assert first.suffix == ".lock"

    def test_is_extraction_dir(self, tmp_path: Path) -> None:
        """Only directories next to their archive count as extractions."""
        (tmp_path / "data.zip").write_bytes(b"zip")
        target = layout.extraction_dir(tmp_path / "data.zip", "ab" * 32)
        staging = layout.extraction_staging_dir(target, 123, 456)

        assert layout.is_extraction_dir(target)
        assert layout.is_extraction_dir(staging)
        assert not layout.is_extraction_dir(tmp_path / "other.zip.abababababab.extracted")
        assert not layout.is_extraction_dir(tmp_path / "results.extracted")
