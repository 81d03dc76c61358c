"""
EATME Core Time — Clock Protocol
==================================
Timeline entries, ledger history and notifications are stamped with
time from an injected Clock, so tests can pin the date (birthdays,
calendar-year caps) without patching datetime.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Injectable time source."""

    def now_utc(self) -> datetime:
        """Return current UTC time."""
        ...  # pragma: no cover

    def today(self) -> date:
        """Return the current calendar date (UTC)."""
        ...  # pragma: no cover


class SystemClock:
    """Production clock backed by the system time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now_utc().date()


class FixedClock:
    """
    Test clock pinned to one instant.

    Usage:
        clock = FixedClock(datetime(2026, 3, 14, tzinfo=timezone.utc))
        clock.advance(days=1)
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._fixed_dt = fixed_dt

    def now_utc(self) -> datetime:
        return self._fixed_dt

    def today(self) -> date:
        return self._fixed_dt.date()

    def advance(self, seconds: float = 0, *, days: int = 0) -> None:
        self._fixed_dt = self._fixed_dt + timedelta(days=days, seconds=seconds)
