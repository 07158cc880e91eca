"""Shared fixtures: a frozen clock and fresh in-memory stores for each test."""

from datetime import UTC, date, datetime, timedelta

import pytest

from adapters.storage.memory import (
    InMemoryDoseLogStore,
    InMemoryGoalStore,
    InMemoryMedicationStore,
    InMemorySickModeStore,
)
from synapse_core.domain.models import Medication, MedicationDraft
from synapse_core.services.integrated_tracking import RecoveryTracker

START = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


class FrozenClock:
    """Test clock that only moves when told to. Local dates are UTC dates."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()

    def local_date(self, instant: datetime) -> date:
        return instant.astimezone(UTC).date()

    def advance(self, delta: timedelta) -> None:
        self.current += delta


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def medication_store() -> InMemoryMedicationStore:
    return InMemoryMedicationStore()


@pytest.fixture
def log_store() -> InMemoryDoseLogStore:
    return InMemoryDoseLogStore()


@pytest.fixture
def sick_mode_store() -> InMemorySickModeStore:
    return InMemorySickModeStore()


@pytest.fixture
def goal_store() -> InMemoryGoalStore:
    return InMemoryGoalStore()


@pytest.fixture
def tracker(
    medication_store: InMemoryMedicationStore,
    log_store: InMemoryDoseLogStore,
    sick_mode_store: InMemorySickModeStore,
    goal_store: InMemoryGoalStore,
    clock: FrozenClock,
) -> RecoveryTracker:
    return RecoveryTracker(medication_store, log_store, sick_mode_store, goal_store, clock=clock)


@pytest.fixture
async def hydrocortisone(medication_store: InMemoryMedicationStore) -> Medication:
    return await medication_store.save(
        MedicationDraft(name="Hydrocortisone", dosage="10", unit="mg", has_stress_dose=True)
    )


@pytest.fixture
async def levothyroxine(medication_store: InMemoryMedicationStore) -> Medication:
    return await medication_store.save(MedicationDraft(name="Levothyroxine", dosage="50", unit="mcg"))


@pytest.fixture
def take_all(log_store: InMemoryDoseLogStore):
    """Mark dose slots [0, count) taken for a day, count defaulting to the configured doses."""

    async def _take(medication: Medication, day: date, count: int | None = None) -> None:
        for index in range(count if count is not None else medication.doses):
            await log_store.toggle(medication.id, day, index)

    return _take
