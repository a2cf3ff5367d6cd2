"""Tests for advisory download locks."""

from __future__ import annotations

import threading
import time
from pathlib import Path

from hubtransfer.cache import lock
from hubtransfer.cache.lock import file_lock


class TestFileLock:
    """Tests for file_lock."""

    def test_creates_lock_file(self, tmp_path: Path) -> None:
        """Should create parent directories and the lock file."""
        path = tmp_path / "locks" / "a.lock"
        with file_lock(path):
            assert path.exists()

    def test_mutual_exclusion(self, tmp_path: Path) -> None:
        """Threads holding the same lock should never overlap."""
        path = tmp_path / "same.lock"
        inside = 0
        overlaps = 0
        guard = threading.Lock()

        def worker() -> None:
            nonlocal inside, overlaps
            for _ in range(5):
                with file_lock(path):
                    with guard:
                        inside += 1
                        if inside > 1:
                            overlaps += 1
                    time.sleep(0.001)
                    with guard:
                        inside -= 1

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == 0

    def test_distinct_paths_do_not_block(self, tmp_path: Path) -> None:
        """Holding one lock should not block a different one."""
        acquired = threading.Event()

        def other() -> None:
            with file_lock(tmp_path / "b.lock"):
                acquired.set()

        with file_lock(tmp_path / "a.lock"):
            thread = threading.Thread(target=other)
            thread.start()
            assert acquired.wait(timeout=5)
            thread.join()

    def test_released_locks_are_forgotten(self, tmp_path: Path) -> None:
        """Per-path thread locks should not accumulate across many distinct files."""
        before = len(lock._thread_locks)
        for n in range(50):
            with file_lock(tmp_path / f"{n}.lock"):
                assert len(lock._thread_locks) == before + 1

        assert len(lock._thread_locks) == before

    def test_forgotten_after_contention(self, tmp_path: Path) -> None:
        """The entry for a contended path should go once the last holder leaves."""
        path = tmp_path / "shared.lock"
        before = len(lock._thread_locks)

        def worker() -> None:
            with file_lock(path):
                time.sleep(0.005)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(lock._thread_locks) == before
