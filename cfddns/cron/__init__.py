"""
Scheduling for reconciliation passes.

Supports a fixed interval between passes or a six-field calendar expression
evaluated with APScheduler's cron trigger.
"""

from .scheduler import AsyncPassFunction, Scheduler
from .types import (
    SAFETY_INTERVAL,
    CalendarSchedule,
    IntervalSchedule,
    SchedulerState,
    ScheduleSpec,
    build_schedule,
)

__all__ = [
    "Scheduler",
    "AsyncPassFunction",
    "ScheduleSpec",
    "IntervalSchedule",
    "CalendarSchedule",
    "SchedulerState",
    "SAFETY_INTERVAL",
    "build_schedule",
]
