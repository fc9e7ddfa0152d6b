"""
Clock
Injectable time source so services never read wall-clock time directly.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current date and time."""

    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    """Production clock returning the real UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


def _as_utc(value: datetime | date) -> datetime:
    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FixedClock:
    """Clock frozen at a given instant, used by tests and batch replays."""

    def __init__(self, current: datetime | date) -> None:
        self._current = _as_utc(current)

    def now(self) -> datetime:
        return self._current

    def today(self) -> date:
        return self._current.date()

    def set(self, current: datetime | date) -> None:
        self._current = _as_utc(current)

    def advance(self, delta: timedelta) -> None:
        self._current = self._current + delta
