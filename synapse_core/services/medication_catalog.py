"""
Medication catalog: the configured medications and their lifecycle.

Deleting a medication cascades to its dose log entries so no orphaned slots
remain in the ledger.
"""

from typing import Any

from synapse_core.domain.errors import RecordNotFoundError
from synapse_core.domain.models import Medication, MedicationDraft
from synapse_core.services.dose_ledger import logger
from synapse_core.services.stores import DoseLogStore, MedicationStore


class MedicationCatalog:
    """Thin service over the medication store with validation and cascade rules."""

    def __init__(self, medication_store: MedicationStore, log_store: DoseLogStore) -> None:
        self.medication_store = medication_store
        self.log_store = log_store
        self.logger = logger.bind(component="medication_catalog")

    async def all(self) -> list[Medication]:
        return await self.medication_store.list()

    async def active(self) -> list[Medication]:
        return [m for m in await self.medication_store.list() if m.active]

    async def stress_medications(self) -> list[Medication]:
        """Active medications eligible for stress dosing."""
        return [m for m in await self.active() if m.has_stress_dose]

    async def get(self, medication_id: str) -> Medication | None:
        return await self.medication_store.get(medication_id)

    async def add(self, draft: MedicationDraft) -> Medication:
        medication = await self.medication_store.save(draft)
        self.logger.info(
            "medication_added",
            medication_id=medication.id,
            doses=medication.doses,
            has_stress_dose=medication.has_stress_dose,
        )
        return medication

    async def edit(self, medication_id: str, patch: dict[str, Any]) -> Medication:
        """
        Apply a partial update. The patch is validated against the full model.

        Changing doses does not rewrite history: past days are evaluated with
        the current configuration.
        """
        if "id" in patch and patch["id"] != medication_id:
            raise ValueError("medication id cannot be changed")
        medication = await self.medication_store.update(medication_id, patch)
        self.logger.info("medication_updated", medication_id=medication_id, fields=sorted(patch))
        return medication

    async def set_active(self, medication_id: str, active: bool) -> Medication:
        return await self.edit(medication_id, {"active": active})

    async def remove(self, medication_id: str) -> None:
        """
        Delete a medication and its dose history.

        Logs go first: a failure between the two writes leaves a medication
        without history, never history without a medication.
        """
        if await self.medication_store.get(medication_id) is None:
            raise RecordNotFoundError("medication", medication_id)
        removed = await self.log_store.delete_for_medication(medication_id)
        await self.medication_store.delete(medication_id)
        self.logger.info("medication_removed", medication_id=medication_id, log_entries_removed=removed)
