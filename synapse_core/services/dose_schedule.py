"""
Dose schedule resolution: how many dose slots a medication has on a given day.

Pure functions only. The effective count feeds straight into adherence math,
so labels and completeness are resolved from the same rule.
"""

from collections.abc import Iterable
from datetime import date

from synapse_core.domain.models import DoseLogEntry, Medication, SickModeState
from synapse_core.services.clock import Clock

STRESS_DOSE_MULTIPLIER = 3


def is_stress_dosing(medication: Medication, sick_mode_active: bool) -> bool:
    return sick_mode_active and medication.has_stress_dose


def effective_dose_count(medication: Medication, sick_mode_active: bool) -> int:
    """Daily dose count after applying any stress dosing multiplier. Always >= 1."""
    base = medication.doses if isinstance(medication.doses, int) and medication.doses >= 1 else 1
    if is_stress_dosing(medication, sick_mode_active):
        return base * STRESS_DOSE_MULTIPLIER
    return base


def dose_labels(medication: Medication, effective_count: int, stress_dosing: bool) -> list[str]:
    """Human labels for each dose slot, in dose index order."""
    if effective_count == 1:
        return ["Dose"]
    if stress_dosing:
        return [f"Stress Dose {i + 1}" for i in range(effective_count)]
    if effective_count == 2:
        return ["AM Dose", "PM Dose"]
    return [f"Dose {i + 1}" for i in range(effective_count)]


def labels_for(medication: Medication, sick_mode_active: bool) -> list[str]:
    count = effective_dose_count(medication, sick_mode_active)
    return dose_labels(medication, count, is_stress_dosing(medication, sick_mode_active))


def sick_mode_covers(state: SickModeState, day: date, clock: Clock) -> bool:
    """
    Whether stress dosing applies on a calendar day.

    Applies from the local date sick mode started onward, for as long as the
    state is active (recovery included). Days before activation keep their
    base counts so an illness does not retroactively break a streak.
    """
    if not state.stress_dosing:
        return False
    if state.started_at is None:
        return True
    return day >= clock.local_date(state.started_at)


def taken_indices(entries: Iterable[DoseLogEntry], medication_id: str, day: date) -> set[int]:
    return {
        e.dose_index
        for e in entries
        if e.medication_id == medication_id and e.date == day and e.taken
    }


def is_day_complete(
    medication: Medication,
    day: date,
    entries: Iterable[DoseLogEntry],
    sick_mode_active: bool,
) -> bool:
    """Every dose index in [0, effective count) has a taken entry for the day."""
    taken = taken_indices(entries, medication.id, day)
    return all(i in taken for i in range(effective_dose_count(medication, sick_mode_active)))
