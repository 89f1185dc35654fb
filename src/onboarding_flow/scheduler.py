"""Schedulers — the timing seam of the autosave coordinator.

The coordinator never calls ``asyncio.sleep`` or ``loop.call_later``
directly.  It asks a :class:`Scheduler` for one-shot timers and for
background tasks, so tests can drive debounce windows and retry backoff with
a virtual clock instead of real time.

  - AsyncioScheduler: production implementation on the running event loop
  - ManualScheduler:  virtual clock; timers fire only on :meth:`advance`
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(ABC):
    """One-shot timers plus fire-and-forget tasks."""

    @abstractmethod
    def now(self) -> float:
        """Monotonic time in seconds."""
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds; return a cancellable handle."""
        ...

    @abstractmethod
    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run ``coro`` in the background and return its task."""
        ...


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self) -> None:
        # Strong references so spawned tasks are not garbage-collected mid-flight
        self._tasks: set[asyncio.Task] = set()

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed", exc_info=task.exception())


@dataclass(order=True)
class _ManualTimer:
    when: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Virtual-clock scheduler for deterministic tests.

    Usage::

        scheduler = ManualScheduler()
        await coordinator.record_edit({"email": "a@b.com"})
        scheduler.advance(0.5)      # fires the debounce timer
        await scheduler.drain()     # runs the spawned sync to completion
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._seq = itertools.count()
        self._timers: list[_ManualTimer] = []
        self._tasks: list[asyncio.Task] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(self._now + max(delay, 0.0), next(self._seq), callback)
        self._timers.append(timer)
        return timer

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.append(task)
        return task

    @property
    def pending_timers(self) -> list[float]:
        """Due times of timers that are still armed, earliest first."""
        return sorted(t.when for t in self._timers if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in order; return how many fired."""
        target = self._now + seconds
        fired = 0
        while True:
            due = sorted(t for t in self._timers if not t.cancelled and t.when <= target)
            if not due:
                break
            timer = due[0]
            self._timers.remove(timer)
            self._now = timer.when
            timer.callback()
            fired += 1
        self._timers = [t for t in self._timers if not t.cancelled]
        self._now = target
        return fired

    async def drain(self) -> None:
        """Await every spawned task, including tasks spawned while draining."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                break
            await asyncio.gather(*pending)
        # Surface exceptions of finished tasks
        for task in self._tasks:
            task.result()
        self._tasks.clear()
