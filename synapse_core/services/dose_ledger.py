"""
Dose ledger: per-slot taken/untaken facts with validated toggling.

Key patterns:
- Protocol-based stores injected at construction
- Generic Result type for expected rejections (unknown medication, slot out of range)
- Store failures propagate as exceptions, nothing is retried
- Read-modify-write cycles serialized by an asyncio.Lock
"""

import asyncio
from datetime import date
from typing import Generic, TypeVar

import structlog
from pydantic import BaseModel

from synapse_core.domain.errors import DoseSlotError
from synapse_core.domain.models import DoseLogEntry, Medication, TimeTag
from synapse_core.services.clock import Clock
from synapse_core.services.dose_schedule import (
    effective_dose_count,
    is_stress_dosing,
    labels_for,
    sick_mode_covers,
    taken_indices,
)
from synapse_core.services.stores import DoseLogStore, MedicationStore, SickModeStore

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

# Generic Result type for explicit error handling
ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    When to use: when the failure is expected business logic (a rejected
    toggle, a mutation outside sick mode), not a broken store.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class DoseSlot(BaseModel):
    """Read model of one required intake for a day."""

    medication_id: str
    medication_name: str
    time_tag: TimeTag
    dose_index: int
    label: str
    stress_dose: bool
    taken: bool


class DoseLedger:
    """
    Tracks which dose slots were taken on which day.

    A slot is only writable while its index is below the medication's
    effective dose count for that day, so no dangling entries are created.
    """

    def __init__(
        self,
        log_store: DoseLogStore,
        medication_store: MedicationStore,
        sick_mode_store: SickModeStore,
        clock: Clock,
    ) -> None:
        self.log_store = log_store
        self.medication_store = medication_store
        self.sick_mode_store = sick_mode_store
        self.clock = clock
        self.logger = logger.bind(component="dose_ledger")
        self._lock = asyncio.Lock()

    async def _sick_mode_on(self, day: date) -> bool:
        state = await self.sick_mode_store.get()
        return sick_mode_covers(state, day, self.clock)

    async def _resolve(self, medication_id: str, day: date) -> Result[tuple[Medication, int], DoseSlotError]:
        medication = await self.medication_store.get(medication_id)
        if medication is None:
            return Result.err(DoseSlotError(f"Unknown medication {medication_id!r}"))
        count = effective_dose_count(medication, await self._sick_mode_on(day))
        return Result.ok((medication, count))

    async def toggle(
        self, medication_id: str, day: date, dose_index: int
    ) -> Result[DoseLogEntry, DoseSlotError]:
        """Flip one slot. Toggling twice restores the original state."""
        async with self._lock:
            resolved = await self._resolve(medication_id, day)
            if resolved.is_err():
                self.logger.warning(
                    "dose_toggle_rejected", medication_id=medication_id, reason="unknown_medication"
                )
                return Result.err(resolved.unwrap_err())

            medication, count = resolved.unwrap()
            if not 0 <= dose_index < count:
                self.logger.warning(
                    "dose_toggle_rejected",
                    medication_id=medication_id,
                    dose_index=dose_index,
                    effective_count=count,
                    reason="index_out_of_range",
                )
                return Result.err(
                    DoseSlotError(
                        f"Dose index {dose_index} out of range for {medication.name} "
                        f"({count} doses on {day.isoformat()})"
                    )
                )

            entry = await self.log_store.toggle(medication_id, day, dose_index)
            self.logger.info(
                "dose_toggled",
                medication_id=medication_id,
                date=day.isoformat(),
                dose_index=dose_index,
                taken=entry.taken,
            )
            return Result.ok(entry)

    async def is_taken(self, medication_id: str, day: date, dose_index: int) -> bool:
        entries = await self.log_store.by_date(day)
        return dose_index in taken_indices(entries, medication_id, day)

    async def entries_for_date(self, day: date) -> list[DoseLogEntry]:
        return await self.log_store.by_date(day)

    async def mark_all_taken(
        self, medication_id: str, day: date
    ) -> Result[list[DoseLogEntry], DoseSlotError]:
        """Mark every remaining slot of a medication taken for the day."""
        async with self._lock:
            resolved = await self._resolve(medication_id, day)
            if resolved.is_err():
                return Result.err(resolved.unwrap_err())

            _, count = resolved.unwrap()
            taken = taken_indices(await self.log_store.by_date(day), medication_id, day)
            written = await self.log_store.set_taken(
                medication_id, day, [i for i in range(count) if i not in taken]
            )
            self.logger.info(
                "doses_marked_taken",
                medication_id=medication_id,
                date=day.isoformat(),
                newly_taken=len(written),
            )
            return Result.ok(written)

    async def log_next_dose(self, medication_id: str, day: date) -> Result[DoseLogEntry, DoseSlotError]:
        """Mark the first untaken slot taken (quick stress dose logging)."""
        async with self._lock:
            resolved = await self._resolve(medication_id, day)
            if resolved.is_err():
                return Result.err(resolved.unwrap_err())

            medication, count = resolved.unwrap()
            taken = taken_indices(await self.log_store.by_date(day), medication_id, day)
            free = next((i for i in range(count) if i not in taken), None)
            if free is None:
                return Result.err(
                    DoseSlotError(f"All {count} doses of {medication.name} already taken")
                )

            entry = await self.log_store.toggle(medication_id, day, free)
            self.logger.info(
                "dose_logged", medication_id=medication_id, date=day.isoformat(), dose_index=free
            )
            return Result.ok(entry)

    async def day_slots(self, day: date, medications: list[Medication]) -> list[DoseSlot]:
        """Every dose slot of the given medications for a day, with taken state."""
        sick = await self._sick_mode_on(day)
        entries = await self.log_store.by_date(day)
        slots: list[DoseSlot] = []
        for medication in medications:
            taken = taken_indices(entries, medication.id, day)
            stress = is_stress_dosing(medication, sick)
            for index, label in enumerate(labels_for(medication, sick)):
                slots.append(
                    DoseSlot(
                        medication_id=medication.id,
                        medication_name=medication.name,
                        time_tag=medication.time_tag,
                        dose_index=index,
                        label=label,
                        stress_dose=stress,
                        taken=index in taken,
                    )
                )
        return slots
