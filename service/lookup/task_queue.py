"""
Ordered, single-flight lookup queue.

Lookups arrive concurrently from many callers but are sent to the backend one
at a time, oldest flow first:

  - pending tasks are kept sorted by (timestamp, arrival sequence); the order
    is restored on every enqueue, so a late-arriving older flow overtakes
    queued-but-not-started tasks (never the one already running)
  - tasks without a timestamp sort ahead of every timestamped task, in arrival
    order among themselves
  - exactly one worker drains the queue; it is started by enqueue() and exits
    once the queue is empty
  - a task whose run() raises gets callback(None, empty_result) and the drain
    carries on

Concurrency guard:
  Everything runs on one asyncio event loop. enqueue() and the worker only
  touch the pending list between awaits, so no lock is needed. Callers on
  other threads must hop onto the loop (loop.call_soon_threadsafe) first.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from models import LookupKey

logger = logging.getLogger(__name__)

# callback(error, encoded_result) - error is always None from this queue
ResultCallback = Callable[[Optional[BaseException], bytes], Any]


@dataclass
class LookupTask:
    run: Callable[[], Awaitable[None]]
    callback: ResultCallback
    key: Optional[LookupKey] = None
    timestamp: Optional[int] = None
    sequence: Optional[int] = field(default=None)

    def order_key(self) -> Tuple[int, int, int]:
        if self.timestamp is None:
            return (0, 0, self.sequence)
        return (1, self.timestamp, self.sequence)


class OrderedTaskQueue:
    def __init__(self, empty_result: bytes):
        self._empty_result = empty_result
        self._pending: List[LookupTask] = []
        self._sequence = itertools.count()
        self._worker: Optional[asyncio.Task] = None
        self._current: Optional[LookupTask] = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def is_running(self) -> bool:
        return self._worker is not None

    def pending(self) -> List[LookupTask]:
        """Snapshot of the not-yet-started tasks, in drain order."""
        return list(self._pending)

    def enqueue(self, task: LookupTask) -> LookupTask:
        """Queue a task and make sure a worker is draining. Must be called on the loop."""
        if task.sequence is None:
            task.sequence = next(self._sequence)
        self._pending.append(task)
        self._pending.sort(key=LookupTask.order_key)

        if self._worker is None:
            self._idle.clear()
            self._worker = asyncio.get_running_loop().create_task(self._drain())
        return task

    async def join(self) -> None:
        """Wait until every queued task has run."""
        await self._idle.wait()

    async def abort(self) -> None:
        """
        Stop the worker and answer every unfinished task with the empty result.

        Used on shutdown once the grace period for join() has run out. Tasks
        enqueued while the worker is being cancelled are not aborted; they get
        a fresh worker.
        """
        interrupted = [self._current] if self._current is not None else []
        leftovers, self._pending = interrupted + self._pending, []
        self._current = None

        worker = self._worker
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
            # a worker cancelled before its first step never reaches _drain's finally
            if self._worker is worker:
                self._worker = None
                self._idle.set()

        for task in leftovers:
            self._deliver_empty(task)
        if leftovers:
            logger.warning("Aborted %d unfinished lookup(s)", len(leftovers))

        if self._pending and self._worker is None:
            self._idle.clear()
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._pending:
                task = self._pending.pop(0)
                self._current = task
                try:
                    await task.run()
                except Exception:  # pylint: disable=broad-except
                    logger.exception("Lookup task %s failed; answering with empty result", task.sequence)
                    self._deliver_empty(task)
                self._current = None
        finally:
            if self._worker is asyncio.current_task():
                self._worker = None
                self._idle.set()

    def _deliver_empty(self, task: LookupTask) -> None:
        try:
            task.callback(None, self._empty_result)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Callback for lookup task %s raised", task.sequence)
