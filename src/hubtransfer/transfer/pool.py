"""Bounded worker pool for concurrent transfer operations.

This module provides:
- WorkerPool: Runs a batch of tasks on a fixed number of threads
- TaskOutcome: Result or error of one task
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum, auto
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PoolState(Enum):
    """State of the worker pool."""

    STOPPED = auto()
    RUNNING = auto()


@dataclass
class TaskOutcome(Generic[T]):
    """Outcome of one task run by the pool.

    Attributes:
        index: Position of the task in the submitted batch.
        value: Return value if the task succeeded.
        error: Exception raised by the task, if any.
    """

    index: int
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        """Check if the task completed without raising."""
        return self.error is None


class WorkerPool:
    """Pool of threads executing a batch of tasks with structured join.

    Every submitted task is awaited before run() returns; a failing task
    never cancels its siblings.

    Usage:
        pool = WorkerPool(max_workers=4)
        outcomes = pool.run([lambda: upload(a), lambda: upload(b)])
        errors = [o.error for o in outcomes if not o.ok]
    """

    def __init__(self, max_workers: int, name: str = "WorkerPool") -> None:
        """Initialize the worker pool.

        Args:
            max_workers: Maximum concurrent workers.
            name: Thread name prefix.
        """
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._max_workers = max_workers
        self._name = name
        self._pool_state = PoolState.STOPPED
        self._lock = threading.Lock()

        # Statistics
        self._completed_count = 0
        self._error_count = 0

    @property
    def max_workers(self) -> int:
        """Maximum number of concurrent workers."""
        return self._max_workers

    @property
    def state(self) -> PoolState:
        """Get current pool state."""
        return self._pool_state

    @property
    def completed_count(self) -> int:
        """Get number of completed tasks."""
        return self._completed_count

    @property
    def error_count(self) -> int:
        """Get number of failed tasks."""
        return self._error_count

    def run(self, tasks: Sequence[Callable[[], T]]) -> list[TaskOutcome[T]]:
        """Run tasks concurrently and wait for all of them.

        Args:
            tasks: Zero-argument callables.

        Returns:
            One outcome per task, in submission order.
        """
        if not tasks:
            return []

        task_queue: queue.Queue[tuple[int, Callable[[], T]] | None] = queue.Queue()
        outcomes: list[TaskOutcome[T]] = [TaskOutcome(index=i) for i in range(len(tasks))]
        width = min(self._max_workers, len(tasks))

        for index, task in enumerate(tasks):
            task_queue.put((index, task))
        # Poison pills to stop workers once the queue is drained
        for _ in range(width):
            task_queue.put(None)

        workers = [
            threading.Thread(
                target=self._worker_loop,
                args=(task_queue, outcomes),
                name=f"{self._name}-{i}",
                daemon=True,
            )
            for i in range(width)
        ]

        with self._lock:
            self._pool_state = PoolState.RUNNING
        logger.debug(f"{self._name}: running {len(tasks)} tasks on {width} workers")

        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        with self._lock:
            self._pool_state = PoolState.STOPPED
        return outcomes

    def _worker_loop(
        self,
        task_queue: queue.Queue[tuple[int, Callable[[], T]] | None],
        outcomes: list[TaskOutcome[T]],
    ) -> None:
        """Main loop for worker threads."""
        while True:
            item = task_queue.get()
            if item is None:
                break
            index, task = item
            try:
                outcomes[index].value = task()
                with self._lock:
                    self._completed_count += 1
            except Exception as e:
                outcomes[index].error = e
                with self._lock:
                    self._error_count += 1
                logger.debug(f"{self._name}: task {index} failed: {e}")
