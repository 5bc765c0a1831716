"""
Update scheduler - decides when the next reconciliation pass runs.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from ..errors import InvalidScheduleExpression
from ..logger import log_exception, logger
from .types import (
    SAFETY_INTERVAL,
    CalendarSchedule,
    IntervalSchedule,
    SchedulerState,
    ScheduleSpec,
)

AsyncPassFunction = Callable[[], Awaitable[Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    """
    Runs a pass function forever on an interval or calendar schedule.

    Only one pass is ever in flight: the next wait is computed after the
    previous pass returned. Calendar waits are recomputed from the current
    time on every cycle, so missed occurrences (e.g. after the process was
    suspended) are never replayed.
    """

    def __init__(
        self,
        schedule: ScheduleSpec,
        run_on_start: bool = False,
        safety_interval: float = SAFETY_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
        stop_event: asyncio.Event | None = None,
    ):
        self.schedule = schedule
        self.run_on_start = run_on_start
        self.safety_interval = safety_interval
        self.state = SchedulerState.IDLE
        self.fire_count = 0
        self._clock = clock
        self._stop_event = stop_event if stop_event is not None else asyncio.Event()

    @property
    def stop_event(self) -> asyncio.Event:
        """Set once ``stop`` was called; shared with the engine for cancellation"""
        return self._stop_event

    def stop(self) -> None:
        """Request shutdown. The current pass finishes its in-flight call first."""
        if not self._stop_event.is_set():
            logger.info("Scheduler stop requested")
        self._stop_event.set()

    def compute_wait(self, now: datetime | None = None) -> float:
        """
        Seconds until the next pass should start.

        Never raises: unusable calendar expressions fall back to the safety interval.
        """
        if isinstance(self.schedule, IntervalSchedule):
            return self.schedule.seconds

        assert isinstance(self.schedule, CalendarSchedule)
        if now is None:
            now = self._clock()

        try:
            next_fire_time = self.schedule.next_fire_time(now)
        except InvalidScheduleExpression as e:
            logger.warning(f"{e}, retrying in {self.safety_interval:g}s")
            return self.safety_interval

        if next_fire_time is None:
            logger.warning(
                f"Schedule expression '{self.schedule.expression}' has no future "
                f"occurrence, retrying in {self.safety_interval:g}s"
            )
            return self.safety_interval

        return max((next_fire_time - now).total_seconds(), 0.0)

    async def _wait(self, seconds: float) -> bool:
        """Sleep for ``seconds``; return True if stop was requested meanwhile"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    @log_exception("Reconciliation pass #{self.fire_count}")
    async def _fire(self, pass_function: AsyncPassFunction) -> Any:
        self.state = SchedulerState.FIRING
        self.fire_count += 1
        return await pass_function()

    async def run(self, pass_function: AsyncPassFunction) -> None:
        """
        Drive ``pass_function`` until ``stop`` is called.

        Exceptions raised by a pass are logged and do not end the loop.
        """
        logger.info(f"Starting update loop ({self.schedule.describe()})")

        if self.run_on_start and not self._stop_event.is_set():
            await self._fire(pass_function)

        while not self._stop_event.is_set():
            self.state = SchedulerState.WAITING
            wait = self.compute_wait()
            logger.info(f"Next update in {wait:.1f}s")

            if await self._wait(wait):
                break

            await self._fire(pass_function)

        self.state = SchedulerState.STOPPED
        logger.info("Update loop stopped")
