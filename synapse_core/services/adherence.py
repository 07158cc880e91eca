"""
Adherence calculations derived from the dose ledger and the medication catalog.

Historical days are evaluated with each medication's current dose
configuration; log entries do not pin the count that applied when written.
"""

from collections import defaultdict
from datetime import date, timedelta

from pydantic import BaseModel, computed_field

from synapse_core.domain.models import DoseLogEntry, Medication, SickModeState
from synapse_core.services.clock import Clock
from synapse_core.services.dose_ledger import logger
from synapse_core.services.dose_schedule import (
    effective_dose_count,
    is_day_complete,
    sick_mode_covers,
    taken_indices,
)
from synapse_core.services.stores import DoseLogStore, MedicationStore, SickModeStore

MAX_STREAK_LOOKBACK_DAYS = 365


class AdherenceSummary(BaseModel):
    """Taken vs. required dose slots for one day."""

    date: date
    taken: int
    total: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def fraction(self) -> float:
        return self.taken / self.total if self.total else 0.0

    def as_tuple(self) -> tuple[int, int]:
        return (self.taken, self.total)


class AdherenceCalculator:
    """Derives daily completion and multi-day streaks."""

    def __init__(
        self,
        medication_store: MedicationStore,
        log_store: DoseLogStore,
        sick_mode_store: SickModeStore,
        clock: Clock,
    ) -> None:
        self.medication_store = medication_store
        self.log_store = log_store
        self.sick_mode_store = sick_mode_store
        self.clock = clock
        self.logger = logger.bind(component="adherence_calculator")

    async def _active_medications(self) -> list[Medication]:
        return [m for m in await self.medication_store.list() if m.active]

    async def day_adherence(self, day: date) -> AdherenceSummary:
        medications = await self._active_medications()
        entries = await self.log_store.by_date(day)
        sick = sick_mode_covers(await self.sick_mode_store.get(), day, self.clock)

        total = 0
        taken = 0
        for medication in medications:
            count = effective_dose_count(medication, sick)
            done = taken_indices(entries, medication.id, day)
            total += count
            taken += sum(1 for i in range(count) if i in done)
        return AdherenceSummary(date=day, taken=taken, total=total)

    async def today_adherence(self) -> AdherenceSummary:
        return await self.day_adherence(self.clock.today())

    def _day_complete(
        self,
        day: date,
        medications: list[Medication],
        entries: list[DoseLogEntry],
        state: SickModeState,
    ) -> bool:
        sick = sick_mode_covers(state, day, self.clock)
        return all(is_day_complete(m, day, entries, sick) for m in medications)

    async def meds_streak(self) -> int:
        """
        Consecutive fully-taken days ending today.

        Today counts only once complete. Zero when no medication is active.
        """
        medications = await self._active_medications()
        if not medications:
            return 0

        by_day: dict[date, list[DoseLogEntry]] = defaultdict(list)
        for entry in await self.log_store.list_all():
            by_day[entry.date].append(entry)
        state = await self.sick_mode_store.get()

        today = self.clock.today()
        streak = 0
        for offset in range(MAX_STREAK_LOOKBACK_DAYS):
            day = today - timedelta(days=offset)
            if not self._day_complete(day, medications, by_day.get(day, []), state):
                break
            streak += 1

        self.logger.debug("meds_streak_computed", streak=streak, medications=len(medications))
        return streak
