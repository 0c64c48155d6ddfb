"""Session clock and the background ticker that drives it."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Clock:
    elapsed: int = 0
    # None means elapsed-only mode
    remaining: Optional[int] = None
    expired: bool = False

    @property
    def is_countdown(self) -> bool:
        return self.remaining is not None


def start_clock(already_spent: int = 0, limit_seconds: Optional[int] = None) -> Clock:
    if limit_seconds is None:
        return Clock(elapsed=already_spent)
    return Clock(elapsed=already_spent, remaining=max(0, limit_seconds - already_spent))


def tick(clock: Clock) -> Clock:
    elapsed = clock.elapsed + 1
    if clock.remaining is None:
        return replace(clock, elapsed=elapsed)
    remaining = max(0, clock.remaining - 1)
    return replace(clock, elapsed=elapsed, remaining=remaining, expired=clock.expired or remaining == 0)


def format_clock(seconds: int) -> str:
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_minutes(minutes: float) -> str:
    hours = int(minutes // 60)
    mins = round(minutes % 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


TickCallback = Callable[[], Union[None, Awaitable[None]]]


class Ticker:
    """Calls ``on_tick`` once per ``period`` seconds until stopped."""

    def __init__(self, on_tick: TickCallback, period: float = 1.0) -> None:
        self.on_tick = on_tick
        self.period = period
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self) -> None:
        # stop() from inside a tick clears _task instead of cancelling, which ends the loop here
        while self._task is asyncio.current_task():
            await asyncio.sleep(self.period)
            if self._task is not asyncio.current_task():
                break
            try:
                result = self.on_tick()
                if asyncio.iscoroutine(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Timer tick failed")
