"""
Clock -- injectable time source.

Responsibility:
    Services stamp ``validated_at`` and override ``decided_at`` from an
    injected clock and never call ``datetime.now()`` themselves.  Domain
    functions take the timestamp as an argument and never read a clock.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the only place that reads the
    system time.

Audit relevance:
    With a ``DeterministicClock`` a replayed validation or override
    produces byte-identical compliance records.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of timezone-aware UTC timestamps."""

    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class DeterministicClock:
    """Clock frozen at a given instant until moved explicitly."""

    def __init__(self, at: datetime | None = None):
        self._at = at or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._at

    def today(self) -> date:
        return self._at.astimezone(timezone.utc).date()

    def advance(self, delta: timedelta | float = 1) -> datetime:
        """Move forward by ``delta`` (a timedelta or seconds); return the new time."""
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        self._at += delta
        return self._at

    def set_time(self, at: datetime) -> None:
        self._at = at
