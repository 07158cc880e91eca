"""
Persistence contracts consumed by the core.

Structural protocols: the in-memory and JSON adapters and test doubles share
no base class. Every method may raise StoreError; the core never retries.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol

from synapse_core.domain.models import (
    DoseLogEntry,
    Goal,
    GoalDraft,
    Medication,
    MedicationDraft,
    SickModeState,
)


class MedicationStore(Protocol):
    async def list(self) -> list[Medication]: ...

    async def get(self, medication_id: str) -> Medication | None: ...

    async def save(self, draft: MedicationDraft) -> Medication: ...

    async def update(self, medication_id: str, patch: dict[str, Any]) -> Medication: ...

    async def delete(self, medication_id: str) -> None: ...


class DoseLogStore(Protocol):
    async def by_date(self, day: date) -> list[DoseLogEntry]: ...

    async def list_all(self) -> list[DoseLogEntry]: ...

    async def toggle(self, medication_id: str, day: date, dose_index: int) -> DoseLogEntry:
        """Flip the slot, creating it as taken when absent. Returns the stored entry."""
        ...

    async def set_taken(
        self, medication_id: str, day: date, dose_indices: list[int]
    ) -> list[DoseLogEntry]:
        """Mark several slots taken in one write. Nothing is stored if the write fails."""
        ...

    async def delete_for_medication(self, medication_id: str) -> int: ...


class SickModeStore(Protocol):
    async def get(self) -> SickModeState: ...

    async def save(self, state: SickModeState) -> None: ...

    async def reset(self) -> SickModeState:
        """Persist and return the default inactive state."""
        ...


class GoalStore(Protocol):
    async def list(self) -> list[Goal]: ...

    async def save(self, draft: GoalDraft) -> Goal: ...

    async def update(self, goal_id: str, patch: dict[str, Any]) -> Goal: ...

    async def delete(self, goal_id: str) -> None: ...
