"""Serialized, prioritized request dispatcher.

The appliance's HTTP session and websocket are single-consumer
resources, so every side-effecting operation (HTTP calls and channel
sends alike) runs through one :class:`RequestDispatcher`:

* concurrency is exactly one job at a time;
* jobs run by ascending priority, ties by submission order;
* job starts are spaced by at least ``spacing`` seconds;
* every job is bound to a :class:`Generation`.  A job whose generation
  was cancelled before it started settles with
  :class:`~pynxm.exceptions.NxmCancelledError` and its body never runs.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pynxm._constants import PRIORITY_COMMAND
from pynxm.exceptions import NxmCancelledError, NxmDispatcherError

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_generation_counter = itertools.count(1)


class Generation:
    """Cancellation scope for one connection attempt."""

    __slots__ = ("number", "_cancelled")

    def __init__(self) -> None:
        self.number = next(_generation_counter)
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "current"
        return f"<Generation {self.number} {state}>"


@dataclass(order=True, slots=True)
class _Job:
    priority: int
    seq: int
    fn: Callable[[], Awaitable[Any]] = field(compare=False)
    generation: Generation = field(compare=False)
    future: asyncio.Future[Any] = field(compare=False)
    label: str = field(default="", compare=False)


class RequestDispatcher:
    """Single-concurrency priority queue of awaitable jobs."""

    def __init__(self, *, spacing: float = 0.05) -> None:
        self._spacing = spacing
        self._heap: list[_Job] = []
        self._seq = itertools.count()
        self._wakeup: asyncio.Event | None = None
        self._worker: asyncio.Task[None] | None = None
        self._next_start = 0.0
        self._running: _Job | None = None
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of jobs waiting to start."""
        return len(self._heap)

    @property
    def busy(self) -> bool:
        return self._running is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        generation: Generation,
        priority: int = PRIORITY_COMMAND,
        label: str = "",
    ) -> asyncio.Future[T]:
        """Admit a job and return a future for its outcome.

        Raises :class:`NxmDispatcherError` immediately when the
        dispatcher is closed; the job body is never scheduled.
        """
        if self._closed:
            raise NxmDispatcherError("Dispatcher is closed")
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        if generation.cancelled:
            future.set_exception(NxmCancelledError(f"{label or 'job'} belongs to a stale generation"))
            return future

        job = _Job(priority, next(self._seq), fn, generation, future, label)
        heapq.heappush(self._heap, job)
        _logger.debug("Queued %s priority=%d pending=%d", label or "job", priority, len(self._heap))
        self._ensure_worker(loop)
        assert self._wakeup is not None  # noqa: S101
        self._wakeup.set()
        return future

    def cancel_all(self) -> int:
        """Settle every job that has not started as cancelled.

        A job that is already executing is left to finish on its own.
        Returns the number of jobs cancelled.
        """
        heap, self._heap = self._heap, []
        for job in heap:
            self._settle_cancelled(job, "cleared")
        if heap:
            _logger.debug("Cancelled %d queued jobs", len(heap))
        return len(heap)

    async def close(self) -> None:
        """Cancel queued jobs and stop the worker."""
        self._closed = True
        self.cancel_all()
        worker = self._worker
        self._worker = None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _ensure_worker(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._wakeup is None:
            self._wakeup = asyncio.Event()
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run(), name="pynxm-dispatcher")

    @staticmethod
    def _settle_cancelled(job: _Job, reason: str) -> None:
        if not job.future.done():
            job.future.set_exception(NxmCancelledError(f"{job.label or 'job'} {reason}"))

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        wakeup = self._wakeup
        assert wakeup is not None  # noqa: S101
        while True:
            if not self._heap:
                wakeup.clear()
                await wakeup.wait()
                continue

            delay = self._next_start - loop.time()
            if delay > 0:
                # Re-evaluate the heap afterwards: a higher-priority job may arrive meanwhile.
                await asyncio.sleep(delay)
                continue

            job = heapq.heappop(self._heap)
            if job.generation.cancelled:
                self._settle_cancelled(job, "belongs to a stale generation")
                continue
            if job.future.done():
                # Caller gave up waiting.
                continue

            self._next_start = loop.time() + self._spacing
            self._running = job
            try:
                result = await job.fn()
            except asyncio.CancelledError:
                self._settle_cancelled(job, "interrupted")
                raise
            except Exception as exc:  # noqa: BLE001
                if not job.future.done():
                    job.future.set_exception(exc)
            else:
                if not job.future.done():
                    job.future.set_result(result)
            finally:
                self._running = None
