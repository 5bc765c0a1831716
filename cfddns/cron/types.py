"""
Type definitions for update scheduling.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from apscheduler.triggers.cron import CronTrigger

from ..errors import ConfigurationConflict, InvalidScheduleExpression

# Used whenever a calendar expression yields no usable next fire time
SAFETY_INTERVAL = 60.0

CALENDAR_FIELDS = ("second", "minute", "hour", "day", "month", "day_of_week")


class SchedulerState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    FIRING = "firing"
    STOPPED = "stopped"


@dataclass(frozen=True)
class IntervalSchedule:
    """Fixed gap between the end of one pass and the start of the next"""

    seconds: float

    def __post_init__(self):
        if self.seconds <= 0:
            raise ConfigurationConflict(
                f"Update interval must be positive, got {self.seconds}"
            )

    def describe(self) -> str:
        return f"every {self.seconds:g}s"


@dataclass(frozen=True)
class CalendarSchedule:
    """
    Six-field calendar expression: second minute hour day month day_of_week.

    Field syntax is APScheduler's ``CronTrigger`` syntax. Numeric day_of_week
    values count from 0 = Monday; names (mon-sun) are unambiguous.
    """

    expression: str
    timezone: str = "UTC"

    def build_trigger(self) -> CronTrigger:
        """
        Raises:
            InvalidScheduleExpression: If the expression cannot be parsed
        """
        parts = self.expression.strip().split()
        if len(parts) != len(CALENDAR_FIELDS):
            raise InvalidScheduleExpression(
                self.expression,
                "expected 6 fields (second minute hour day month day_of_week)",
            )

        try:
            return CronTrigger(
                **dict(zip(CALENDAR_FIELDS, parts)), timezone=self.timezone
            )
        except (ValueError, TypeError, KeyError) as e:
            raise InvalidScheduleExpression(self.expression, str(e)) from e

    def next_fire_time(self, now: datetime) -> Optional[datetime]:
        """
        Earliest occurrence strictly after ``now`` (timezone-aware), or None.

        The trigger is rebuilt on every call so that clock adjustments are
        always honored.
        """
        trigger = self.build_trigger()
        try:
            # CronTrigger returns occurrences at or after its start point
            return trigger.get_next_fire_time(None, now + timedelta(microseconds=1))
        except (ValueError, OverflowError):
            return None

    def describe(self) -> str:
        return f"cron '{self.expression}' ({self.timezone})"


ScheduleSpec = IntervalSchedule | CalendarSchedule


def build_schedule(
    interval: Optional[float],
    expression: Optional[str],
    timezone: str = "UTC",
) -> ScheduleSpec:
    """
    Pick the scheduling mode from configuration.

    Raises:
        ConfigurationConflict: If neither or both modes are configured
    """
    has_expression = bool(expression and expression.strip())

    if interval is not None and has_expression:
        raise ConfigurationConflict(
            "Configure either an update interval or a calendar expression, not both"
        )
    if interval is None and not has_expression:
        raise ConfigurationConflict(
            "Either an update interval or a calendar expression must be configured"
        )

    if interval is not None:
        return IntervalSchedule(seconds=interval)
    assert expression is not None
    return CalendarSchedule(expression=expression.strip(), timezone=timezone)
