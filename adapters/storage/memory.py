"""
In-memory record stores implementing the core's store protocols.

Every mutation builds the next collection first and hands it to _commit();
subclasses that persist override _commit() and only adopt the new
collection once the write succeeded.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import date
from typing import Any

from synapse_core.domain.errors import RecordNotFoundError
from synapse_core.domain.models import (
    DoseLogEntry,
    Goal,
    GoalDraft,
    Medication,
    MedicationDraft,
    SickModeState,
)

SlotKey = tuple[str, date, int]


def new_id() -> str:
    return uuid.uuid4().hex


class InMemoryMedicationStore:
    def __init__(self, medications: Iterable[Medication] = ()) -> None:
        self._items: dict[str, Medication] = {m.id: m for m in medications}

    async def _commit(self, items: dict[str, Medication]) -> None:
        self._items = items

    async def list(self) -> list[Medication]:
        return list(self._items.values())

    async def get(self, medication_id: str) -> Medication | None:
        return self._items.get(medication_id)

    async def save(self, draft: MedicationDraft) -> Medication:
        medication = Medication(id=new_id(), **draft.model_dump())
        await self._commit({**self._items, medication.id: medication})
        return medication

    async def update(self, medication_id: str, patch: dict[str, Any]) -> Medication:
        current = self._items.get(medication_id)
        if current is None:
            raise RecordNotFoundError("medication", medication_id)
        updated = Medication.model_validate({**current.model_dump(), **patch, "id": medication_id})
        await self._commit({**self._items, medication_id: updated})
        return updated

    async def delete(self, medication_id: str) -> None:
        if medication_id not in self._items:
            raise RecordNotFoundError("medication", medication_id)
        await self._commit({k: v for k, v in self._items.items() if k != medication_id})


class InMemoryDoseLogStore:
    """Upsert/toggle log: at most one entry per (medication, date, dose index)."""

    def __init__(self, entries: Iterable[DoseLogEntry] = ()) -> None:
        self._entries: dict[SlotKey, DoseLogEntry] = {e.slot: e for e in entries}

    async def _commit(self, entries: dict[SlotKey, DoseLogEntry]) -> None:
        self._entries = entries

    async def by_date(self, day: date) -> list[DoseLogEntry]:
        return [e for e in self._entries.values() if e.date == day]

    async def list_all(self) -> list[DoseLogEntry]:
        return list(self._entries.values())

    async def toggle(self, medication_id: str, day: date, dose_index: int) -> DoseLogEntry:
        key = (medication_id, day, dose_index)
        current = self._entries.get(key)
        if current is None:
            entry = DoseLogEntry(medication_id=medication_id, date=day, dose_index=dose_index, taken=True)
        else:
            entry = current.model_copy(update={"taken": not current.taken})
        await self._commit({**self._entries, key: entry})
        return entry

    async def set_taken(
        self, medication_id: str, day: date, dose_indices: list[int]
    ) -> list[DoseLogEntry]:
        written = [
            DoseLogEntry(medication_id=medication_id, date=day, dose_index=i, taken=True)
            for i in dose_indices
        ]
        if written:
            await self._commit({**self._entries, **{e.slot: e for e in written}})
        return written

    async def delete_for_medication(self, medication_id: str) -> int:
        kept = {k: v for k, v in self._entries.items() if v.medication_id != medication_id}
        removed = len(self._entries) - len(kept)
        if removed:
            await self._commit(kept)
        return removed


class InMemorySickModeStore:
    def __init__(self, state: SickModeState | None = None) -> None:
        self._state = state or SickModeState()

    async def _commit(self, state: SickModeState) -> None:
        self._state = state

    async def get(self) -> SickModeState:
        return self._state

    async def save(self, state: SickModeState) -> None:
        await self._commit(state)

    async def reset(self) -> SickModeState:
        state = SickModeState()
        await self._commit(state)
        return state


class InMemoryGoalStore:
    def __init__(self, goals: Iterable[Goal] = ()) -> None:
        self._items: dict[str, Goal] = {g.id: g for g in goals}

    async def _commit(self, items: dict[str, Goal]) -> None:
        self._items = items

    async def list(self) -> list[Goal]:
        return list(self._items.values())

    async def save(self, draft: GoalDraft) -> Goal:
        goal = Goal(id=new_id(), **draft.model_dump())
        await self._commit({**self._items, goal.id: goal})
        return goal

    async def update(self, goal_id: str, patch: dict[str, Any]) -> Goal:
        current = self._items.get(goal_id)
        if current is None:
            raise RecordNotFoundError("goal", goal_id)
        updated = Goal.model_validate({**current.model_dump(), **patch, "id": goal_id})
        await self._commit({**self._items, goal_id: updated})
        return updated

    async def delete(self, goal_id: str) -> None:
        if goal_id not in self._items:
            raise RecordNotFoundError("goal", goal_id)
        await self._commit({k: v for k, v in self._items.items() if k != goal_id})
