"""Tests for the large-object upload data model."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from hubtransfer.upload.lfs import (
    DEFAULT_CHUNK_SIZE,
    SAMPLE_SIZE,
    ObjectActions,
    UploadAction,
    UploadInfo,
    UploadMode,
    UploadStatus,
    UploadUnit,
)


class TestUploadInfo:
    """Tests for UploadInfo."""

    def test_from_bytes(self) -> None:
        """Should hash content and keep a sample."""
        data = b"x" * 1000
        info = UploadInfo.from_bytes(data)

        assert info.oid == hashlib.sha256(data).hexdigest()
        assert info.size == 1000
        assert info.sample == data[:SAMPLE_SIZE]

    def test_from_path_matches_bytes(self, tmp_path: Path) -> None:
        """Should give the same identity for a file and its bytes."""
        data = bytes(range(256)) * 4000
        path = tmp_path / "weights.bin"
        path.write_bytes(data)

        assert UploadInfo.from_path(path) == UploadInfo.from_bytes(data)

    def test_oid_determinism(self) -> None:
        """Should give identical content one OID and distinct content another."""
        assert UploadInfo.from_bytes(b"abc").oid == UploadInfo.from_bytes(b"abc").oid
        assert UploadInfo.from_bytes(b"abc").oid != UploadInfo.from_bytes(b"abd").oid

    def test_oid_lowercase(self) -> None:
        """Should expose a lowercase OID."""
        info = UploadInfo(sha256="ABCDEF" + "0" * 58, size=3)

        assert info.oid == "abcdef" + "0" * 58
        assert info.to_batch_object() == {"oid": info.oid, "size": 3}


class TestUploadAction:
    """Tests for parsing negotiated actions."""

    def test_single_part(self) -> None:
        """Should select single-part without a chunk size."""
        action = UploadAction.from_dict({"href": "https://s3.test/put", "header": {"x-amz-acl": "private"}})

        assert action.mode is UploadMode.SINGLE_PART
        assert action.upload_headers() == {"x-amz-acl": "private"}
        assert action.part_urls() == []

    def test_multipart(self) -> None:
        """Should parse chunk size and part URLs in part order."""
        action = UploadAction.from_dict(
            {
                "href": "https://hub.test/complete",
                "header": {
                    "X-Amz-Meta-Chunk-Size": "10",
                    "x-amz-meta-part-2-url": "https://s3.test/2",
                    "x-amz-meta-part-10-url": "https://s3.test/10",
                    "x-amz-meta-part-1-url": "https://s3.test/1",
                },
            }
        )

        assert action.mode is UploadMode.MULTIPART
        assert action.chunk_size == 10
        assert action.part_urls() == [
            (1, "https://s3.test/1"),
            (2, "https://s3.test/2"),
            (10, "https://s3.test/10"),
        ]
        assert action.upload_headers() == {}

    def test_unparsable_chunk_size(self) -> None:
        """Should fall back to the default part size."""
        action = UploadAction(href="https://hub.test/complete", header={"x-amz-meta-chunk-size": "big"})

        assert action.mode is UploadMode.MULTIPART
        assert action.chunk_size == DEFAULT_CHUNK_SIZE


class TestObjectActions:
    """Tests for batch response entries."""

    def test_already_present(self) -> None:
        """Should have no upload action when the server has the object."""
        actions = ObjectActions.from_dict({"oid": "ABC", "size": 3})

        assert actions.oid == "abc"
        assert actions.upload is None
        assert not actions.rejected

    def test_rejected(self) -> None:
        """Should carry the per-object error."""
        actions = ObjectActions.from_dict({"oid": "abc", "error": {"code": 422, "message": "too large"}})

        assert actions.rejected
        assert actions.error_code == 422
        assert actions.error_message == "too large"

    def test_upload_and_verify(self) -> None:
        """Should parse both actions."""
        actions = ObjectActions.from_dict(
            {
                "oid": "abc",
                "size": 3,
                "actions": {
                    "upload": {"href": "https://s3.test/put"},
                    "verify": {"href": "https://hub.test/verify", "header": {"Authorization": "t"}},
                },
            }
        )

        assert actions.upload == UploadAction("https://s3.test/put")
        assert actions.verify is not None
        assert actions.verify.header == {"Authorization": "t"}


class TestUploadUnit:
    """Tests for UploadUnit."""

    def test_read_slices(self, tmp_path: Path) -> None:
        """Should read the same slices from a file and from memory."""
        data = bytes(range(100))
        path = tmp_path / "blob"
        path.write_bytes(data)
        on_disk = UploadUnit.from_path(path, "blob")
        in_memory = UploadUnit.from_bytes(data, "blob")

        for unit in (on_disk, in_memory):
            assert unit.read() == data
            assert unit.read(10, 5) == data[10:15]
            assert unit.read(95, 10) == data[95:]
        assert on_disk.oid == in_memory.oid

    def test_plan_parts(self) -> None:
        """Should cover the content with consecutive parts."""
        unit = UploadUnit.from_bytes(b"a" * 25, "blob")
        action = UploadAction(
            href="https://hub.test/complete",
            header={
                "x-amz-meta-chunk-size": "10",
                **{f"x-amz-meta-part-{n}-url": f"https://s3.test/{n}" for n in range(1, 5)},
            },
        )

        parts = unit.plan_parts(action)

        assert [(p.part_number, p.offset, p.length) for p in parts] == [(1, 0, 10), (2, 10, 10), (3, 20, 5)]
        assert [p.url for p in parts] == ["https://s3.test/1", "https://s3.test/2", "https://s3.test/3"]

    def test_plan_parts_missing_urls(self) -> None:
        """Should refuse when the server issued too few part URLs."""
        unit = UploadUnit.from_bytes(b"a" * 25, "blob")
        action = UploadAction(
            href="https://hub.test/complete",
            header={"x-amz-meta-chunk-size": "10", "x-amz-meta-part-1-url": "https://s3.test/1"},
        )

        with pytest.raises(ValueError):
            unit.plan_parts(action)

    def test_reset_and_fail(self) -> None:
        """Should track failure and return to PLANNED on reset."""
        unit = UploadUnit.from_bytes(b"abc", "blob")
        error = RuntimeError("boom")

        unit.fail(error)
        assert unit.status is UploadStatus.FAILED
        assert unit.error is error

        unit.reset()
        assert unit.status is UploadStatus.PLANNED
        assert unit.error is None
        assert unit.mode is None
