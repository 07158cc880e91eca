"""
Tests for dose schedule resolution.

Property-based checks for the effective dose count rule, plus labels,
day completeness and the date range stress dosing applies to.
"""

from datetime import UTC, date, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from synapse_core.domain.models import DoseLogEntry, Medication, SickModeState
from synapse_core.services.dose_schedule import (
    STRESS_DOSE_MULTIPLIER,
    dose_labels,
    effective_dose_count,
    is_day_complete,
    labels_for,
    sick_mode_covers,
)

DAY = date(2026, 3, 10)


class _UtcClock:
    def local_date(self, instant: datetime) -> date:
        return instant.astimezone(UTC).date()


def _med(doses: int = 1, stress: bool = False, name: str = "Med") -> Medication:
    return Medication(id=f"{name}-{doses}", name=name, doses=doses, has_stress_dose=stress)


class TestEffectiveDoseCount:
    @given(doses=st.integers(min_value=1, max_value=24), stress=st.booleans())
    def test_inactive_sick_mode_uses_configured_doses(self, doses: int, stress: bool) -> None:
        assert effective_dose_count(_med(doses, stress), sick_mode_active=False) == doses

    @given(doses=st.integers(min_value=1, max_value=24))
    def test_stress_eligible_medication_triples_in_sick_mode(self, doses: int) -> None:
        assert effective_dose_count(_med(doses, stress=True), sick_mode_active=True) == 3 * doses

    @given(doses=st.integers(min_value=1, max_value=24))
    def test_other_medications_unchanged_in_sick_mode(self, doses: int) -> None:
        assert effective_dose_count(_med(doses), sick_mode_active=True) == doses

    def test_eligibility_is_the_flag_not_the_name(self) -> None:
        by_name_only = _med(1, stress=False, name="Hydrocortisone")
        flagged = _med(1, stress=True, name="Prednisolone")

        assert effective_dose_count(by_name_only, True) == 1
        assert effective_dose_count(flagged, True) == STRESS_DOSE_MULTIPLIER

    def test_invalid_dose_count_falls_back_to_one(self) -> None:
        broken = Medication.model_construct(id="m", name="Med", doses=0, has_stress_dose=False)
        assert effective_dose_count(broken, False) == 1


class TestDoseLabels:
    @pytest.mark.parametrize(
        "count,stress,expected",
        [
            (1, False, ["Dose"]),
            (2, False, ["AM Dose", "PM Dose"]),
            (3, False, ["Dose 1", "Dose 2", "Dose 3"]),
            (3, True, ["Stress Dose 1", "Stress Dose 2", "Stress Dose 3"]),
            (6, True, [f"Stress Dose {i}" for i in range(1, 7)]),
        ],
    )
    def test_labels(self, count: int, stress: bool, expected: list[str]) -> None:
        assert dose_labels(_med(), count, stress) == expected

    def test_labels_for_resolves_stress_dosing(self) -> None:
        hydrocortisone = _med(1, stress=True)

        assert labels_for(hydrocortisone, False) == ["Dose"]
        assert labels_for(hydrocortisone, True) == ["Stress Dose 1", "Stress Dose 2", "Stress Dose 3"]


class TestDayComplete:
    def _entries(self, med: Medication, indices: list[int], taken: bool = True) -> list[DoseLogEntry]:
        return [
            DoseLogEntry(medication_id=med.id, date=DAY, dose_index=i, taken=taken) for i in indices
        ]

    def test_all_slots_taken(self) -> None:
        med = _med(2)
        assert is_day_complete(med, DAY, self._entries(med, [0, 1]), False)

    def test_missing_slot(self) -> None:
        med = _med(2)
        assert not is_day_complete(med, DAY, self._entries(med, [0]), False)

    def test_untaken_entries_do_not_count(self) -> None:
        med = _med(1)
        assert not is_day_complete(med, DAY, self._entries(med, [0], taken=False), False)

    def test_out_of_range_entries_do_not_fill_gaps(self) -> None:
        med = _med(2)
        assert not is_day_complete(med, DAY, self._entries(med, [0, 5]), False)

    def test_stress_dosing_requires_all_three_slots(self) -> None:
        med = _med(1, stress=True)

        assert not is_day_complete(med, DAY, self._entries(med, [0, 1]), True)
        assert is_day_complete(med, DAY, self._entries(med, [0, 1, 2]), True)

    def test_other_days_ignored(self) -> None:
        med = _med(1)
        yesterday = [DoseLogEntry(medication_id=med.id, date=DAY - timedelta(days=1), dose_index=0)]
        assert not is_day_complete(med, DAY, yesterday, False)


class TestSickModeCovers:
    def test_inactive_never_covers(self) -> None:
        assert not sick_mode_covers(SickModeState(), DAY, _UtcClock())

    def test_covers_from_start_date(self) -> None:
        started = datetime(2026, 3, 10, 15, 0, tzinfo=UTC)
        state = SickModeState(active=True, started_at=started)

        assert sick_mode_covers(state, DAY, _UtcClock())
        assert sick_mode_covers(state, DAY + timedelta(days=1), _UtcClock())
        assert not sick_mode_covers(state, DAY - timedelta(days=1), _UtcClock())

    def test_recovery_still_covers(self) -> None:
        started = datetime(2026, 3, 10, 15, 0, tzinfo=UTC)
        state = SickModeState(active=True, recovery_mode=True, started_at=started)

        assert sick_mode_covers(state, DAY, _UtcClock())
