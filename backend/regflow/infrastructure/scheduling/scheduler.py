"""Scheduler abstraction for staging lifecycle tasks.

Lifecycle tasks never call ``asyncio.sleep`` or read the wall clock
directly; they go through a Scheduler so tests can drive them with
``VirtualScheduler.advance()`` instead of waiting on real delays.
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Coroutine, List, Optional, Set, Tuple


# Event loop turns granted to woken tasks before the virtual clock moves on
SETTLE_ITERATIONS = 25

# Virtual timestamps are rounded so repeated float additions stay comparable
TIME_PRECISION = 9


class Scheduler(ABC):
    """Spawns background tasks and provides sleeping and the current time."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        """Start ``coro`` as a background task on the running loop.

        A strong reference is kept until the task finishes.
        """
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        pass

    @abstractmethod
    def now(self) -> datetime:
        """Current time as a timezone-aware datetime."""
        pass


class AsyncioScheduler(Scheduler):
    """Wall-clock scheduler backed by the running asyncio event loop."""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class VirtualScheduler(Scheduler):
    """Manually advanced clock for deterministic tests.

    ``sleep()`` parks the caller until ``advance()`` moves virtual time past
    its wake-up point. Sleepers are woken in wake-time order, and every woken
    task runs until its next suspension before the clock moves again.

    Example:
        scheduler = VirtualScheduler()
        scheduler.spawn(worker())
        await scheduler.advance(1.0)
    """

    def __init__(self, start: Optional[datetime] = None):
        super().__init__()
        self._start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._elapsed = 0.0
        self._sleepers: List[Tuple[float, int, asyncio.Future]] = []
        self._sequence = itertools.count()

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def pending_sleepers(self) -> int:
        return sum(1 for _, _, future in self._sleepers if not future.done())

    async def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        wake_at = round(self._elapsed + seconds, TIME_PRECISION)
        heapq.heappush(self._sleepers, (wake_at, next(self._sequence), future))
        await future

    async def advance(self, seconds: float) -> None:
        """Move virtual time forward, waking every sleeper due on the way."""
        target = round(self._elapsed + seconds, TIME_PRECISION)
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            wake_at, _, future = heapq.heappop(self._sleepers)
            if future.done():
                continue
            self._elapsed = max(self._elapsed, wake_at)
            future.set_result(None)
            await self.settle()
        self._elapsed = target
        await self.settle()

    async def run_until_idle(self, step: float = 0.1, max_seconds: float = 600.0) -> None:
        """Advance in ``step`` increments until no task is sleeping.

        Raises:
            TimeoutError: If tasks are still sleeping after ``max_seconds``
        """
        deadline = self._elapsed + max_seconds
        await self.settle()
        while self.pending_sleepers:
            if self._elapsed >= deadline:
                raise TimeoutError(f"Tasks still sleeping after {max_seconds} virtual seconds")
            await self.advance(step)

    async def settle(self) -> None:
        """Yield to the event loop so runnable tasks reach their next suspension."""
        for _ in range(SETTLE_ITERATIONS):
            await asyncio.sleep(0)
