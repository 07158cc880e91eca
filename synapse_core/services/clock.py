"""
Wall-clock and calendar date source.

All timestamps are timezone-aware UTC; calendar dates are the user's local dates.
"""

from datetime import UTC, date, datetime
from typing import Protocol


class Clock(Protocol):
    """Protocol for the current instant and the user's local calendar date."""

    def now(self) -> datetime: ...

    def today(self) -> date: ...

    def local_date(self, instant: datetime) -> date:
        """Calendar date an instant falls on for the user."""
        ...


class SystemClock:
    """Clock backed by the operating system, using the host's local timezone."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def today(self) -> date:
        return datetime.now().astimezone().date()

    def local_date(self, instant: datetime) -> date:
        return instant.astimezone().date()
