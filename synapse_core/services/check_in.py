"""
Check-in scheduling keyed off an absolute deadline.

The deadline lives in SickModeState.check_in_timer, so a restarted process
re-derives the remaining delay from the stored timestamp and the clock
instead of restarting a relative countdown.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime

from synapse_core.domain.models import SickModePhase, SickModeState
from synapse_core.services.clock import Clock
from synapse_core.services.dose_ledger import logger


class CheckInScheduler:
    """Holds at most one pending check-in callback on the running event loop."""

    def __init__(self, clock: Clock, on_due: Callable[[datetime], None] | None = None) -> None:
        self.clock = clock
        self.on_due = on_due
        self.deadline: datetime | None = None
        self._fired_for: datetime | None = None
        self._handle: asyncio.TimerHandle | None = None
        self.logger = logger.bind(component="check_in_scheduler")

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, deadline: datetime) -> None:
        """Schedule the callback for the deadline, replacing any pending one."""
        self.cancel()
        self.deadline = deadline
        delay = max(0.0, (deadline - self.clock.now()).total_seconds())

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (sync callers): the deadline is still answered by is_due()
            self.logger.debug("check_in_deadline_recorded_without_loop", deadline=deadline.isoformat())
            return

        self._handle = loop.call_later(delay, self._fire, deadline)
        self.logger.info(
            "check_in_armed", deadline=deadline.isoformat(), delay_seconds=round(delay, 1)
        )

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            self.logger.info("check_in_cancelled")
        self.deadline = None

    def sync(self, state: SickModeState) -> None:
        """Match the pending callback to the state's deadline. Each deadline fires once."""
        if state.phase is SickModePhase.ACTIVE and state.check_in_timer is not None:
            if state.check_in_timer == self._fired_for:
                self.deadline = state.check_in_timer
            elif state.check_in_timer != self.deadline or self._handle is None:
                self.arm(state.check_in_timer)
        elif self.deadline is not None or self._handle is not None:
            self.cancel()

    def is_due(self) -> bool:
        return self.deadline is not None and self.clock.now() >= self.deadline

    def _fire(self, deadline: datetime) -> None:
        self._handle = None
        self._fired_for = deadline
        self.logger.info("check_in_due", deadline=deadline.isoformat())
        if self.on_due is not None:
            self.on_due(deadline)
