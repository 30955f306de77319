"""Deterministic virtual clock driving periodic simulation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable
import heapq
import itertools
import logging

logger = logging.getLogger(__name__)


@dataclass
class ScheduledJob:
    """Periodic callback registered with a ``TickScheduler``."""
    name: str
    interval_ms: int
    callback: Callable[[], object]
    next_due_ms: int
    cancelled: bool = False
    runs: int = 0


@dataclass(order=True)
class _QueueEntry:
    due_ms: int
    seq: int
    job: ScheduledJob = field(compare=False)


class TickScheduler:
    """Virtual clock that runs due jobs synchronously.

    Jobs never interleave: ``advance`` pops the earliest due job, runs it
    to completion, reschedules it and repeats. Jobs due at the same instant
    run in registration order.
    """

    def __init__(self):
        self.now_ms = 0
        self._queue: list[_QueueEntry] = []
        self._jobs: dict[str, ScheduledJob] = {}
        self._order: dict[str, int] = {}
        self._seq = itertools.count()

    def schedule(self, name: str, interval_ms: int, callback: Callable[[], object]) -> ScheduledJob:
        """Register a job firing every ``interval_ms`` from now.

        Re-registering a name cancels the previous job.

        Raises:
            ValueError: If ``interval_ms`` is not positive.
        """
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.cancel(name)
        job = ScheduledJob(name, interval_ms, callback, self.now_ms + interval_ms)
        self._jobs[name] = job
        self._order[name] = next(self._seq)
        heapq.heappush(self._queue, _QueueEntry(job.next_due_ms, self._order[name], job))
        return job

    def cancel(self, name: str) -> bool:
        """Cancel a job; it is dropped lazily from the queue.

        Returns:
            True if the job was registered.
        """
        job = self._jobs.pop(name, None)
        if job is None:
            return False
        job.cancelled = True
        return True

    def cancel_all(self) -> None:
        for name in list(self._jobs):
            self.cancel(name)

    def get_job(self, name: str) -> ScheduledJob | None:
        return self._jobs.get(name)

    @property
    def jobs(self) -> list[ScheduledJob]:
        return list(self._jobs.values())

    def advance(self, elapsed_ms: int) -> int:
        """Move the clock forward, running every job that falls due.

        Args:
            elapsed_ms: Virtual milliseconds to advance.

        Returns:
            Number of job executions.
        """
        if elapsed_ms < 0:
            raise ValueError("elapsed_ms must not be negative")
        target = self.now_ms + elapsed_ms
        executed = 0
        while self._queue and self._queue[0].due_ms <= target:
            entry = heapq.heappop(self._queue)
            job = entry.job
            if job.cancelled:
                continue
            self.now_ms = entry.due_ms
            job.callback()
            job.runs += 1
            executed += 1
            # The callback may have cancelled its own job
            if not job.cancelled:
                job.next_due_ms = entry.due_ms + job.interval_ms
                heapq.heappush(self._queue, _QueueEntry(job.next_due_ms, entry.seq, job))
        self.now_ms = target
        logger.debug("Clock advanced to %dms (%d jobs run)", self.now_ms, executed)
        return executed
