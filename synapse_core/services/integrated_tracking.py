"""
Integration service that ties dosing, sick mode, adherence and goals together.

This is the end-to-end flow the presentation layer drives:
1. Log temperatures and offer sick mode on fever
2. Resolve and toggle today's dose slots (stress dosing included)
3. Run the 2-hour re-check protocol and raise medical-attention alerts
4. Recompute adherence and auto-complete streak goals
"""

from collections import deque
from dataclasses import dataclass
from datetime import date, datetime

import structlog
from pydantic import BaseModel

from synapse_core.config import AppConfig, RecoveryConfig
from synapse_core.domain.errors import DoseSlotError, SickModeStateError
from synapse_core.domain.models import (
    DoseLogEntry,
    Goal,
    SickModePhase,
    SickModeState,
    TemperatureBand,
)
from synapse_core.services.adherence import AdherenceCalculator, AdherenceSummary
from synapse_core.services.clock import Clock, SystemClock
from synapse_core.services.dose_ledger import DoseLedger, DoseSlot, Result
from synapse_core.services.goals import GoalEvaluator
from synapse_core.services.medication_catalog import MedicationCatalog
from synapse_core.services.sick_mode import (
    CheckInOutcome,
    PRNStatus,
    SickModeController,
    classify_temperature,
    format_countdown,
)
from synapse_core.services.stores import DoseLogStore, GoalStore, MedicationStore, SickModeStore

logger = structlog.get_logger()


@dataclass
class AlertEvent:
    """An alert the presentation layer should show once."""

    timestamp: datetime
    severity: str
    title: str
    description: str
    temperature: float | None = None


class AlertManager:
    """Keeps a bounded history of medical-attention alerts."""

    def __init__(self, history_size: int = 100) -> None:
        self.alert_history: deque[AlertEvent] = deque(maxlen=history_size)
        self.logger = logger.bind(component="alert_manager")

    def process_check_in(self, outcome: CheckInOutcome) -> AlertEvent | None:
        """One alert per high-fever submission, none otherwise."""
        if not outcome.seek_medical_attention:
            return None

        alert = AlertEvent(
            timestamp=outcome.reading.time,
            severity="critical",
            title="High Fever Detected",
            description=(
                f"Your temperature is {outcome.reading.value}°F. "
                "Please contact a doctor as soon as possible."
            ),
            temperature=outcome.reading.value,
        )
        self.alert_history.append(alert)
        self.logger.warning("medical_attention_alert", temperature=outcome.reading.value)
        return alert


class TemperatureLogOutcome(BaseModel):
    value: float
    band: TemperatureBand
    recorded: bool
    escalation_offered: bool


class RecoveryProgress(BaseModel):
    """Recovery checklist completion, matching the sick-day checklist shown to the user."""

    completed: int
    total: int
    hydration_ml: int
    hydration_goal_ml: int

    @property
    def hydration_fraction(self) -> float:
        return min(1.0, self.hydration_ml / self.hydration_goal_ml)


class TrackerSnapshot(BaseModel):
    """Everything a home screen needs in one read."""

    date: date
    phase: SickModePhase
    adherence: AdherenceSummary
    streak: int
    check_in_due: bool
    check_in_countdown: str | None
    recovery: RecoveryProgress | None


class RecoveryTracker:
    """
    Orchestrates the dosing and recovery engine over a set of stores.

    Design principles:
    - Services share stores, never copies of state
    - Expected rejections come back as Results
    - Store failures propagate unchanged to the caller
    """

    def __init__(
        self,
        medication_store: MedicationStore,
        log_store: DoseLogStore,
        sick_mode_store: SickModeStore,
        goal_store: GoalStore,
        clock: Clock | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.recovery_config: RecoveryConfig = (config or AppConfig()).recovery
        self.logger = logger.bind(component="recovery_tracker")

        self.catalog = MedicationCatalog(medication_store, log_store)
        self.ledger = DoseLedger(log_store, medication_store, sick_mode_store, self.clock)
        self.sick_mode = SickModeController(
            sick_mode_store, self.clock, on_check_in_due=self._on_check_in_due
        )
        self.adherence = AdherenceCalculator(
            medication_store, log_store, sick_mode_store, self.clock
        )
        self.goals = GoalEvaluator(goal_store, self.adherence, self.clock)
        self.alerts = AlertManager(self.recovery_config.alert_history_size)

        self.check_in_prompt_pending = False

    def _on_check_in_due(self, deadline: datetime) -> None:
        self.check_in_prompt_pending = True
        self.logger.info("check_in_prompt_raised", deadline=deadline.isoformat())

    async def start(self) -> SickModeState:
        """Restore timers after a restart and surface an overdue check-in."""
        state = await self.sick_mode.resume()
        if await self.sick_mode.is_check_in_due():
            self.check_in_prompt_pending = True
        self.logger.info(
            "recovery_tracker_started",
            phase=state.phase.value,
            check_in_pending=self.check_in_prompt_pending,
        )
        return state

    # -- temperatures & sick mode ----------------------------------------

    async def log_temperature(self, value: float) -> TemperatureLogOutcome:
        """
        Record a reading while sick; otherwise only assess it.

        A fever while inactive produces an escalation offer that the user
        must accept through accept_escalation().
        """
        if (await self.sick_mode.phase()) is not SickModePhase.INACTIVE:
            (await self.sick_mode.log_temperature(value)).unwrap()
            return TemperatureLogOutcome(
                value=value,
                band=classify_temperature(value),
                recorded=True,
                escalation_offered=False,
            )

        offered = await self.sick_mode.offers_escalation(value)
        if offered:
            self.logger.info("sick_mode_offered", temperature=value)
        return TemperatureLogOutcome(
            value=value,
            band=classify_temperature(value),
            recorded=False,
            escalation_offered=offered,
        )

    async def accept_escalation(self, value: float) -> Result[SickModeState, SickModeStateError]:
        return await self.sick_mode.activate(initial_temperature=value)

    async def activate_sick_mode(self) -> Result[SickModeState, SickModeStateError]:
        return await self.sick_mode.activate()

    async def submit_check_in(
        self, value: float
    ) -> Result[tuple[CheckInOutcome, AlertEvent | None], SickModeStateError]:
        result = await self.sick_mode.submit_check_in(value)
        if result.is_err():
            return Result.err(result.unwrap_err())

        outcome = result.unwrap()
        self.check_in_prompt_pending = False
        alert = self.alerts.process_check_in(outcome)
        return Result.ok((outcome, alert))

    async def im_better(self) -> Result[SickModeState, SickModeStateError]:
        result = await self.sick_mode.deactivate()
        if result.is_ok():
            self.check_in_prompt_pending = False
        return result

    async def prn_status(self, med: str, interval_hours: float | None = None) -> PRNStatus:
        hours = (
            self.recovery_config.default_prn_interval_hours
            if interval_hours is None
            else interval_hours
        )
        return await self.sick_mode.prn_status(med, hours)

    # -- dosing -----------------------------------------------------------

    async def today_slots(self) -> list[DoseSlot]:
        return await self.ledger.day_slots(self.clock.today(), await self.catalog.active())

    async def toggle_dose(
        self, medication_id: str, dose_index: int, day: date | None = None
    ) -> Result[DoseLogEntry, DoseSlotError]:
        """Toggle a slot, then let streak goals catch up."""
        result = await self.ledger.toggle(medication_id, day or self.clock.today(), dose_index)
        if result.is_ok():
            await self.goals.evaluate()
        return result

    async def evaluate_goals(self) -> list[Goal]:
        return await self.goals.evaluate()

    # -- read models ------------------------------------------------------

    async def recovery_progress(self) -> RecoveryProgress | None:
        state = await self.sick_mode.state()
        if not state.active:
            return None

        today = self.clock.today()
        stress_meds = await self.catalog.stress_medications()
        entries = await self.ledger.entries_for_date(today)
        stress_taken = bool(stress_meds) and all(
            any(e.medication_id == m.id and e.taken for e in entries) for m in stress_meds
        )

        checks = [
            state.hydration_ml >= self.recovery_config.hydration_checkpoint_ml,
            state.food_checklist.light_meal,
            stress_taken,
            state.rest_checklist.lying,
            bool(state.temperatures),
        ]
        return RecoveryProgress(
            completed=sum(checks),
            total=5 if stress_meds else 4,
            hydration_ml=state.hydration_ml,
            hydration_goal_ml=self.recovery_config.hydration_goal_ml,
        )

    async def snapshot(self) -> TrackerSnapshot:
        state = await self.sick_mode.state()
        remaining = await self.sick_mode.check_in_remaining()
        return TrackerSnapshot(
            date=self.clock.today(),
            phase=state.phase,
            adherence=await self.adherence.today_adherence(),
            streak=await self.adherence.meds_streak(),
            check_in_due=await self.sick_mode.is_check_in_due(),
            check_in_countdown=format_countdown(remaining) if remaining is not None else None,
            recovery=await self.recovery_progress(),
        )

