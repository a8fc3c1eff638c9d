"""Timer and clock capabilities injected into the orchestrator.

The orchestrator never calls asyncio timers or datetime.now() directly, so
tests can swap in a manual scheduler with virtual time and a fixed clock.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Protocol

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class Cancelable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule_after(self, delay_seconds: float, callback: TimerCallback) -> Cancelable: ...


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time, timezone-aware UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class _AsyncioTimer:
    def __init__(self, scheduler: AsyncioScheduler, callback: TimerCallback) -> None:
        self._scheduler = scheduler
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None
        self.cancelled = False

    def _fire(self) -> None:
        if self.cancelled:
            return
        self._scheduler._spawn(self._callback)

    def cancel(self) -> None:
        # Only the pending timer is cancelled; a callback already running
        # is left to finish.
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()


class AsyncioScheduler:
    """Runs callbacks as tasks on the running event loop after a delay."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def schedule_after(self, delay_seconds: float, callback: TimerCallback) -> _AsyncioTimer:
        loop = asyncio.get_running_loop()
        timer = _AsyncioTimer(self, callback)
        timer._handle = loop.call_later(max(delay_seconds, 0.0), timer._fire)
        logger.debug("timer armed delay=%.0fs", delay_seconds)
        return timer

    def _spawn(self, callback: TimerCallback) -> None:
        task = asyncio.ensure_future(callback())
        # keep a reference until done, the loop only holds weak ones
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
