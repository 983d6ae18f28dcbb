"""
Clock abstraction.

Services read the current time through ``clock.now()`` instead of calling
``datetime`` directly, so order-number month scopes and history timestamps
can be pinned in tests.
"""

from datetime import datetime, date, timezone, timedelta
from typing import Optional


class Clock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """
    Clock frozen at a given instant.

    ``advance`` moves it forward, which is enough to order history entries
    in tests.
    """

    def __init__(self, current: datetime):
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: int = 1) -> datetime:
        self.current = self.current + timedelta(seconds=seconds)
        return self.current


_clock: Clock = Clock()


def set_clock(clock: Optional[Clock]) -> None:
    """Install a clock (``None`` restores the wall clock)."""
    global _clock
    _clock = clock or Clock()


def now() -> datetime:
    return _clock.now()


def today() -> date:
    return _clock.today()
