"""Time sources.

All instants in the service are naive datetimes in UTC. Services read the
clock once per operation and use that instant for every comparison.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """Clock that only moves when told to. Used by tests."""

    def __init__(self, instant: datetime):
        self.instant = to_naive_utc(instant)

    def now(self) -> datetime:
        return self.instant

    def set(self, instant: datetime) -> None:
        self.instant = to_naive_utc(instant)

    def advance(self, delta: timedelta) -> None:
        self.instant += delta


_system_clock = SystemClock()


def get_clock() -> Clock:
    return _system_clock
