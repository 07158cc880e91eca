"""
Domain models for medication dosing and sick-day recovery.

These models represent the core business concepts and are storage-agnostic.
They use Pydantic for validation; invalid input is rejected at construction.
"""

from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TimeTag(str, Enum):
    """Part of the day a medication is scheduled for."""

    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    NIGHT = "Night"
    BEFORE_FAJR = "BeforeFajr"
    AFTER_IFTAR = "AfterIftar"


class SickModePhase(str, Enum):
    """Phases of the recovery protocol state machine."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    RECOVERING = "recovering"


class TemperatureBand(str, Enum):
    """Fahrenheit temperature classification shown next to readings."""

    NORMAL = "normal"
    FEVER = "fever"
    HIGH_FEVER = "high_fever"


class GoalType(str, Enum):
    MEDS_STREAK = "meds_streak"
    CUSTOM = "custom"


class MedicationDraft(BaseModel):
    """Medication fields as entered by the user, before the store assigns an id."""

    name: str = Field(min_length=1, max_length=120)
    dosage: str = Field(default="", description="Free-text strength, e.g. '10'")
    unit: str = Field(default="", description="e.g. mg, mcg, ml")
    route: str = Field(default="", description="e.g. oral, injection")
    frequency: str = Field(default="", description="Free-text frequency shown to the user")
    time_tag: TimeTag = TimeTag.MORNING
    doses: int = Field(default=1, ge=1, description="Configured daily dose count")
    active: bool = True

    # Stress dosing eligibility is decided when the medication is created
    has_stress_dose: bool = False
    stress_dose_amount: str | None = None
    stress_dose_frequency: str | None = None
    stress_dose_duration_days: int | None = Field(default=None, ge=1)
    stress_dose_instructions: str | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("medication name must not be blank")
        return v


class Medication(MedicationDraft):
    """A configured medication."""

    id: str


class DoseLogEntry(BaseModel):
    """Taken/untaken fact for one dose slot (medication, date, dose index)."""

    model_config = ConfigDict(frozen=True)

    medication_id: str
    date: date
    dose_index: int = Field(ge=0)
    taken: bool = True

    @property
    def slot(self) -> tuple[str, date, int]:
        return (self.medication_id, self.date, self.dose_index)


class TemperatureReading(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float = Field(gt=80.0, lt=115.0, description="Degrees Fahrenheit")
    time: datetime = Field(default_factory=lambda: datetime.now(UTC))


class PRNDose(BaseModel):
    """One as-needed dose taken during the recovery protocol."""

    model_config = ConfigDict(frozen=True)

    med: str = Field(min_length=1)
    time: datetime = Field(default_factory=lambda: datetime.now(UTC))


class FoodChecklist(BaseModel):
    model_config = ConfigDict(frozen=True)

    light_meal: bool = False
    salty_snack: bool = False
    liquid_calories: bool = False


class RestChecklist(BaseModel):
    model_config = ConfigDict(frozen=True)

    lying: bool = False
    napping: bool = False
    screen_break: bool = False


class SickModeState(BaseModel):
    """
    The single owned recovery protocol state.

    Immutable: every transition produces a new, re-validated value via evolve().
    Invariants: recovery_mode implies active, and check_in_timer is only set
    while active and not yet recovering.
    """

    model_config = ConfigDict(frozen=True)

    active: bool = False
    started_at: datetime | None = None
    recovery_mode: bool = False
    check_in_timer: datetime | None = Field(
        default=None, description="Absolute deadline of the next re-check"
    )
    last_check_in: datetime | None = None
    hydration_ml: int = Field(default=0, ge=0)
    food_checklist: FoodChecklist = Field(default_factory=FoodChecklist)
    rest_checklist: RestChecklist = Field(default_factory=RestChecklist)
    symptoms: list[str] = Field(default_factory=list)
    temperatures: list[TemperatureReading] = Field(default_factory=list)
    prn_doses: list[PRNDose] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_phase_invariants(self) -> Self:
        if self.recovery_mode and not self.active:
            raise ValueError("recovery_mode requires an active sick mode")
        if self.check_in_timer is not None and (self.recovery_mode or not self.active):
            raise ValueError("check_in_timer is only allowed while active and not recovering")
        return self

    @property
    def phase(self) -> SickModePhase:
        if not self.active:
            return SickModePhase.INACTIVE
        if self.recovery_mode:
            return SickModePhase.RECOVERING
        return SickModePhase.ACTIVE

    @property
    def stress_dosing(self) -> bool:
        """Stress multipliers apply while active, recovery included."""
        return self.active

    @property
    def latest_temperature(self) -> TemperatureReading | None:
        return self.temperatures[-1] if self.temperatures else None

    def evolve(self, **changes: Any) -> "SickModeState":
        """Return a validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)


class GoalDraft(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    type: GoalType
    target_days: int | None = Field(default=None, ge=1)
    start_date: date

    @model_validator(mode="after")
    def check_target_days(self) -> Self:
        if self.type == GoalType.MEDS_STREAK and self.target_days is None:
            raise ValueError("meds_streak goals require target_days")
        if self.type == GoalType.CUSTOM and self.target_days is not None:
            raise ValueError("target_days only applies to meds_streak goals")
        return self


class Goal(GoalDraft):
    """A user goal. completed_at is set once and never cleared."""

    id: str
    completed_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
