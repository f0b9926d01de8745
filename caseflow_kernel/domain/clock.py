"""
Clock -- injectable source of "now" for the case workflow.

The engine, repository and audit log never call ``datetime.now()``
themselves; they ask the Clock they were constructed with.  Every
``occurred_at`` and ``updated_at`` therefore comes from one place, and
tests pin it with ``DeterministicClock``.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the only code here that reads the
    real time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Returns timezone-aware datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Repeated ``now()`` calls return the same instant, so a single workflow
    operation stamps its case row and its audit entry identically.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or DEFAULT_TEST_EPOCH
        if self._current.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start")

    def now(self) -> datetime:
        return self._current

    def set_time(self, when: datetime) -> None:
        if when.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware time")
        self._current = when

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance one second and return the new instant."""
        self.advance()
        return self._current
