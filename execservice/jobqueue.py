"""A thread-safe first-in first-out job queue held in memory."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Any


@dataclass
class Job:
    """A queued unit of work."""

    id: str
    payload: Any = None


class QueueEmptyError(IndexError):
    """Raised when taking a job from an empty queue."""


class InMemoryQueue:
    """A FIFO queue of jobs guarded by a lock."""

    def __init__(self) -> None:
        self._jobs: deque[Job] = deque()
        self._lock = threading.Lock()

    def enqueue(self, job: Job) -> None:
        """Add ``job`` to the back of the queue."""
        with self._lock:
            self._jobs.append(job)

    def dequeue(self) -> Job:
        """Remove and return the job at the front of the queue."""
        with self._lock:
            if not self._jobs:
                raise QueueEmptyError("queue is empty")
            return self._jobs.popleft()

    def is_empty(self) -> bool:
        """Return whether the queue holds no jobs."""
        with self._lock:
            return not self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)