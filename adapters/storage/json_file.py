"""
JSON file backed record stores.

One file per entity kind under the data directory. Writes go to a temporary
file that replaces the target atomically; the in-memory copy is only updated
after the write succeeded, so a failed save leaves no partial state behind.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from adapters.storage.memory import (
    InMemoryDoseLogStore,
    InMemoryGoalStore,
    InMemoryMedicationStore,
    InMemorySickModeStore,
    SlotKey,
)
from synapse_core.config import StorageConfig
from synapse_core.domain.errors import StoreError
from synapse_core.domain.models import DoseLogEntry, Goal, Medication, SickModeState
from synapse_core.services.dose_ledger import logger
from synapse_core.services.stores import DoseLogStore, GoalStore, MedicationStore, SickModeStore

DataT = TypeVar("DataT")

MEDICATIONS_FILE = "medications.json"
DOSE_LOG_FILE = "medication_logs.json"
SICK_MODE_FILE = "sick_mode.json"
GOALS_FILE = "goals.json"


class JsonDocument(Generic[DataT]):
    """A single JSON document validated through a pydantic TypeAdapter."""

    def __init__(self, path: Path, adapter: TypeAdapter[DataT]) -> None:
        self.path = path
        self.adapter = adapter
        self.logger = logger.bind(component="json_store", file=path.name)

    def load(self, default: DataT) -> DataT:
        if not self.path.exists():
            return default
        try:
            return self.adapter.validate_json(self.path.read_bytes())
        except OSError as e:
            raise StoreError(f"Failed to read {self.path}: {e}") from e
        except ValidationError as e:
            raise StoreError(f"Corrupt data in {self.path}: {e.error_count()} errors") from e

    async def write(self, data: DataT) -> None:
        payload = self.adapter.dump_json(data, indent=2)
        await asyncio.to_thread(self._replace, payload)
        self.logger.debug("json_document_written", bytes=len(payload))

    def _replace(self, payload: bytes) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(payload)
            os.replace(tmp, self.path)
        except OSError as e:
            self.logger.error("json_document_write_failed", error=str(e))
            raise StoreError(f"Failed to write {self.path}: {e}") from e


class JsonMedicationStore(InMemoryMedicationStore):
    def __init__(self, data_dir: Path) -> None:
        self.document = JsonDocument(data_dir / MEDICATIONS_FILE, TypeAdapter(list[Medication]))
        super().__init__(self.document.load([]))

    async def _commit(self, items: dict[str, Medication]) -> None:
        await self.document.write(list(items.values()))
        await super()._commit(items)


class JsonDoseLogStore(InMemoryDoseLogStore):
    def __init__(self, data_dir: Path) -> None:
        self.document = JsonDocument(data_dir / DOSE_LOG_FILE, TypeAdapter(list[DoseLogEntry]))
        super().__init__(self.document.load([]))

    async def _commit(self, entries: dict[SlotKey, DoseLogEntry]) -> None:
        await self.document.write(list(entries.values()))
        await super()._commit(entries)


class JsonSickModeStore(InMemorySickModeStore):
    def __init__(self, data_dir: Path) -> None:
        self.document = JsonDocument(data_dir / SICK_MODE_FILE, TypeAdapter(SickModeState))
        super().__init__(self.document.load(SickModeState()))

    async def _commit(self, state: SickModeState) -> None:
        await self.document.write(state)
        await super()._commit(state)


class JsonGoalStore(InMemoryGoalStore):
    def __init__(self, data_dir: Path) -> None:
        self.document = JsonDocument(data_dir / GOALS_FILE, TypeAdapter(list[Goal]))
        super().__init__(self.document.load([]))

    async def _commit(self, items: dict[str, Goal]) -> None:
        await self.document.write(list(items.values()))
        await super()._commit(items)


def build_stores(
    config: StorageConfig,
) -> tuple[MedicationStore, DoseLogStore, SickModeStore, GoalStore]:
    """Create the four stores for the configured backend."""
    if config.backend == "memory":
        return (
            InMemoryMedicationStore(),
            InMemoryDoseLogStore(),
            InMemorySickModeStore(),
            InMemoryGoalStore(),
        )

    data_dir = Path(config.data_dir)
    logger.info("json_stores_opened", data_dir=str(data_dir))
    return (
        JsonMedicationStore(data_dir),
        JsonDoseLogStore(data_dir),
        JsonSickModeStore(data_dir),
        JsonGoalStore(data_dir),
    )
