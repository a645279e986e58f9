"""Cancellable scheduled tasks for phase timeouts.

The phase state machine owns one TimerRegistry per session. Each timer
has a name (one live timer per name), a token identifying the state it was
scheduled for, and an async callback. Cancelling is idempotent: cancelling
a fired, cancelled or unknown timer does nothing.

AsyncioTimerRegistry runs on the event loop clock. ManualTimerRegistry
keeps virtual time that only moves when a test calls advance().
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable, Optional

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[Any]]


class ScheduledTask:
    """A single pending timer."""

    def __init__(self, name: str, token: Hashable, deadline: float, callback: TimerCallback):
        self.name = name
        self.token = token
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False
        self.fired = False
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if not self.active:
            return
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def __repr__(self) -> str:
        state = "active" if self.active else ("fired" if self.fired else "cancelled")
        return f"ScheduledTask({self.name}, token={self.token}, deadline={self.deadline:.1f}, {state})"


class TimerRegistry:
    """Common bookkeeping for named timers."""

    def __init__(self) -> None:
        self._tasks: dict[str, ScheduledTask] = {}

    def now(self) -> float:
        raise NotImplementedError

    def _arm(self, task: ScheduledTask, delay: float) -> None:
        raise NotImplementedError

    def schedule(self, name: str, delay: float, callback: TimerCallback, token: Hashable = None) -> ScheduledTask:
        """Schedule ``callback`` after ``delay`` seconds, replacing any timer of the same name."""
        self.cancel(name)
        task = ScheduledTask(name, token, self.now() + delay, callback)
        self._tasks[name] = task
        self._arm(task, delay)
        logger.debug("Scheduled %r", task)
        return task

    def cancel(self, name: str) -> bool:
        """Cancel the named timer. Returns True if a live timer was cancelled."""
        task = self._tasks.pop(name, None)
        if task is None or not task.active:
            return False
        task.cancel()
        logger.debug("Cancelled %r", task)
        return True

    def cancel_all(self) -> None:
        for name in list(self._tasks):
            self.cancel(name)

    def get(self, name: str) -> Optional[ScheduledTask]:
        task = self._tasks.get(name)
        if task is not None and task.active:
            return task
        return None

    def active_names(self) -> set[str]:
        return {name for name, task in self._tasks.items() if task.active}

    def _take_for_firing(self, task: ScheduledTask) -> bool:
        """Mark the task fired if it is still the live timer for its name."""
        if not task.active or self._tasks.get(task.name) is not task:
            return False
        task.fired = True
        del self._tasks[task.name]
        return True


class AsyncioTimerRegistry(TimerRegistry):
    """Timers on the running event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        super().__init__()
        self._loop = loop
        self._running: set[asyncio.Future] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time()

    def _arm(self, task: ScheduledTask, delay: float) -> None:
        task._handle = self.loop.call_later(delay, self._fire, task)

    def _fire(self, task: ScheduledTask) -> None:
        if not self._take_for_firing(task):
            return
        future = asyncio.ensure_future(task.callback())
        self._running.add(future)
        future.add_done_callback(self._finished)

    def _finished(self, future: asyncio.Future) -> None:
        self._running.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Timer callback failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for callbacks that are already running."""
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)


class ManualTimerRegistry(TimerRegistry):
    """Virtual-time timers for tests."""

    def __init__(self, start: float = 0.0) -> None:
        super().__init__()
        self._now = start

    def now(self) -> float:
        return self._now

    def _arm(self, task: ScheduledTask, delay: float) -> None:
        pass

    async def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in deadline order.

        Timers scheduled by a callback fire too if they fall inside the
        window. Returns the number of callbacks run.
        """
        target = self._now + seconds
        fired = 0
        while True:
            due = [t for t in self._tasks.values() if t.active and t.deadline <= target]
            if not due:
                break
            task = min(due, key=lambda t: t.deadline)
            self._now = max(self._now, task.deadline)
            if self._take_for_firing(task):
                fired += 1
                await task.callback()
        self._now = target
        return fired

    async def fire(self, name: str) -> bool:
        """Jump to the named timer's deadline and fire it."""
        task = self.get(name)
        if task is None:
            return False
        await self.advance(max(0.0, task.deadline - self._now))
        return True
