"""
Office window arithmetic shared by the attendance state machine.

The office window is a start/end time-of-day pair. Its midpoint is the latest
moment a check-in is still accepted, so that a late arrival can still reach
the minimum-presence threshold before the office closes.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time

from app.core.config import Settings, settings


@dataclass(frozen=True)
class OfficeWindow:
    """Office hours and presence policy for a working day."""

    start: time
    end: time
    min_present_minutes: int = 270
    rest_days: frozenset[int] = field(default_factory=lambda: frozenset({5, 6}))

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError("Office end must be later than office start")

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "OfficeWindow":
        return cls(
            start=config.OFFICE_START_TIME,
            end=config.OFFICE_END_TIME,
            min_present_minutes=config.MIN_PRESENT_MINUTES,
            rest_days=frozenset(config.WEEKLY_REST_DAYS),
        )

    def start_on(self, day: date) -> datetime:
        return datetime.combine(day, self.start)

    def end_on(self, day: date) -> datetime:
        return datetime.combine(day, self.end)

    def midpoint_on(self, day: date) -> datetime:
        """Latest accepted check-in time for ``day``."""
        start = self.start_on(day)
        return start + (self.end_on(day) - start) / 2

    def is_weekend(self, day: date) -> bool:
        return day.weekday() in self.rest_days

    def effective_checkout(self, day: date, now: datetime) -> datetime:
        """Checkouts are clamped to the office end."""
        return min(now, self.end_on(day))

    def present_verdict(self, worked_minutes: int) -> bool:
        return worked_minutes >= self.min_present_minutes


def worked_minutes(check_in: datetime, check_out: datetime) -> int:
    """Whole minutes between two instants, never negative."""
    seconds = (check_out - check_in).total_seconds()
    return max(0, int(seconds // 60))


def current_time() -> datetime:
    """Local wall-clock time; overridden in tests through the route dependency."""
    return datetime.now()
