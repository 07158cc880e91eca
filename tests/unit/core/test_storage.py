"""
Tests for the record stores and the medication catalog's cascade rules.

Covers:
- In-memory store CRUD and not-found errors
- JSON persistence across store instances
- Failed writes leave both disk and memory unchanged
- Corrupt files surface as StoreError
"""

from datetime import timedelta
from pathlib import Path

import pytest

from adapters.storage import json_file
from adapters.storage.json_file import (
    JsonDoseLogStore,
    JsonGoalStore,
    JsonMedicationStore,
    JsonSickModeStore,
    build_stores,
)
from adapters.storage.memory import InMemoryDoseLogStore, InMemoryMedicationStore
from synapse_core.config import StorageConfig
from synapse_core.domain.errors import RecordNotFoundError, StoreError
from synapse_core.domain.models import GoalDraft, GoalType, MedicationDraft, SickModeState
from synapse_core.services.medication_catalog import MedicationCatalog


class RefusingDeleteMedicationStore(InMemoryMedicationStore):
    async def delete(self, medication_id: str) -> None:
        raise StoreError("medications file locked")


class TestInMemoryStores:
    async def test_medication_crud(self, medication_store) -> None:
        med = await medication_store.save(MedicationDraft(name="Levothyroxine"))

        updated = await medication_store.update(med.id, {"doses": 2})
        assert updated.doses == 2
        assert (await medication_store.get(med.id)) == updated

        await medication_store.delete(med.id)
        assert await medication_store.get(med.id) is None

    async def test_update_validates_patch(self, medication_store) -> None:
        med = await medication_store.save(MedicationDraft(name="Levothyroxine"))

        with pytest.raises(ValueError):
            await medication_store.update(med.id, {"doses": 0})
        assert (await medication_store.get(med.id)).doses == 1

    async def test_missing_records(self, medication_store, goal_store) -> None:
        with pytest.raises(RecordNotFoundError):
            await medication_store.update("nope", {"doses": 2})
        with pytest.raises(RecordNotFoundError):
            await goal_store.delete("nope")

    async def test_dose_log_toggle_upserts(self, log_store, clock) -> None:
        first = await log_store.toggle("med", clock.today(), 0)
        second = await log_store.toggle("med", clock.today(), 0)

        assert first.taken and not second.taken
        assert len(await log_store.list_all()) == 1

    async def test_sick_mode_reset(self, sick_mode_store, clock) -> None:
        await sick_mode_store.save(SickModeState(active=True, started_at=clock.now()))

        state = await sick_mode_store.reset()

        assert state == SickModeState()
        assert await sick_mode_store.get() == SickModeState()


class TestJsonStores:
    async def test_records_survive_reopen(self, tmp_path: Path, clock) -> None:
        meds = JsonMedicationStore(tmp_path)
        med = await meds.save(MedicationDraft(name="Hydrocortisone", has_stress_dose=True))
        logs = JsonDoseLogStore(tmp_path)
        await logs.toggle(med.id, clock.today(), 0)
        sick = JsonSickModeStore(tmp_path)
        await sick.save(
            SickModeState(
                active=True,
                started_at=clock.now(),
                check_in_timer=clock.now() + timedelta(hours=2),
                hydration_ml=500,
            )
        )
        goals = JsonGoalStore(tmp_path)
        await goals.save(
            GoalDraft(title="Week", type=GoalType.MEDS_STREAK, target_days=7, start_date=clock.today())
        )

        assert await JsonMedicationStore(tmp_path).get(med.id) == med
        assert await JsonDoseLogStore(tmp_path).by_date(clock.today()) == await logs.list_all()
        reopened = await JsonSickModeStore(tmp_path).get()
        assert reopened.check_in_timer == clock.now() + timedelta(hours=2)
        assert reopened.hydration_ml == 500
        assert [g.title for g in await JsonGoalStore(tmp_path).list()] == ["Week"]

    async def test_file_names(self, tmp_path: Path) -> None:
        await JsonMedicationStore(tmp_path).save(MedicationDraft(name="Levothyroxine"))
        await JsonSickModeStore(tmp_path).reset()

        assert {p.name for p in tmp_path.iterdir()} == {"medications.json", "sick_mode.json"}

    async def test_failed_write_changes_nothing(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, clock
    ) -> None:
        store = JsonSickModeStore(tmp_path)
        await store.save(SickModeState())

        def refuse(src: str, dst: str) -> None:
            raise OSError("read-only file system")

        monkeypatch.setattr(json_file.os, "replace", refuse)

        with pytest.raises(StoreError, match="read-only"):
            await store.save(SickModeState(active=True, started_at=clock.now()))

        assert await store.get() == SickModeState()
        monkeypatch.undo()
        assert await JsonSickModeStore(tmp_path).get() == SickModeState()

    def test_corrupt_file_raises_store_error(self, tmp_path: Path) -> None:
        (tmp_path / "medications.json").write_text("{not json")

        with pytest.raises(StoreError, match="Corrupt data"):
            JsonMedicationStore(tmp_path)

    def test_build_stores(self, tmp_path: Path) -> None:
        memory = build_stores(StorageConfig(backend="memory"))
        persisted = build_stores(StorageConfig(backend="json", data_dir=str(tmp_path)))

        assert isinstance(memory[0], InMemoryMedicationStore)
        assert not isinstance(memory[0], JsonMedicationStore)
        assert isinstance(persisted[1], JsonDoseLogStore)

    async def test_bulk_taken_persisted_in_one_file_write(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, clock
    ) -> None:
        logs = JsonDoseLogStore(tmp_path)
        writes: list[bytes] = []
        replace = logs.document._replace

        def counting(payload: bytes) -> None:
            writes.append(payload)
            replace(payload)

        monkeypatch.setattr(logs.document, "_replace", counting)

        await logs.set_taken("med", clock.today(), [0, 1, 2])

        assert len(writes) == 1
        reopened = await JsonDoseLogStore(tmp_path).by_date(clock.today())
        assert sorted(e.dose_index for e in reopened) == [0, 1, 2]


class TestMedicationCatalog:
    @pytest.fixture
    def catalog(self, medication_store, log_store) -> MedicationCatalog:
        return MedicationCatalog(medication_store, log_store)

    async def test_remove_cascades_to_logs(
        self, catalog: MedicationCatalog, log_store: InMemoryDoseLogStore, clock
    ) -> None:
        gone = await catalog.add(MedicationDraft(name="Amoxicillin", doses=3))
        kept = await catalog.add(MedicationDraft(name="Levothyroxine"))
        for index in range(3):
            await log_store.toggle(gone.id, clock.today(), index)
        await log_store.toggle(kept.id, clock.today(), 0)

        await catalog.remove(gone.id)

        assert [e.medication_id for e in await log_store.list_all()] == [kept.id]
        assert await catalog.get(gone.id) is None

    async def test_active_and_stress_lists(self, catalog: MedicationCatalog) -> None:
        hydro = await catalog.add(MedicationDraft(name="Hydrocortisone", has_stress_dose=True))
        await catalog.add(MedicationDraft(name="Levothyroxine"))

        assert [m.id for m in await catalog.stress_medications()] == [hydro.id]

        await catalog.set_active(hydro.id, False)

        assert await catalog.stress_medications() == []
        assert len(await catalog.active()) == 1
        assert len(await catalog.all()) == 2

    async def test_edit_cannot_change_id(self, catalog: MedicationCatalog) -> None:
        med = await catalog.add(MedicationDraft(name="Levothyroxine"))

        with pytest.raises(ValueError, match="cannot be changed"):
            await catalog.edit(med.id, {"id": "other"})

    async def test_failed_medication_delete_leaves_no_orphaned_logs(
        self, log_store: InMemoryDoseLogStore, clock
    ) -> None:
        medications = RefusingDeleteMedicationStore()
        catalog = MedicationCatalog(medications, log_store)
        med = await catalog.add(MedicationDraft(name="Amoxicillin", doses=2))
        await log_store.toggle(med.id, clock.today(), 0)

        with pytest.raises(StoreError, match="locked"):
            await catalog.remove(med.id)

        assert await catalog.get(med.id) == med
        assert await log_store.list_all() == []

    async def test_remove_unknown_medication(
        self, catalog: MedicationCatalog, log_store: InMemoryDoseLogStore, clock
    ) -> None:
        await log_store.toggle("ghost", clock.today(), 0)

        with pytest.raises(RecordNotFoundError):
            await catalog.remove("ghost")

        assert len(await log_store.list_all()) == 1
