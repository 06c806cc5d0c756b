"""
Injectable time source.

Services stamp router events and sweep results with ``clock.now()`` and
never read the system time themselves, so tests can pin every timestamp.
``SystemClock`` is the only place the kernel touches wall-clock time.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Clock for tests.

    Starts at ``start`` and moves forward by ``step`` after every reading,
    so consecutive events get distinct, ordered timestamps.  With the default
    zero step the time only changes through ``advance()``.
    """

    def __init__(self, start: datetime = _EPOCH, step: timedelta = timedelta(0)):
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start time")
        self._current = start
        self._step = step

    def now(self) -> datetime:
        reading = self._current
        self._current += self._step
        return reading

    def advance(self, delta: timedelta) -> None:
        self._current += delta
