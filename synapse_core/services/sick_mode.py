"""
Sick mode controller: the recovery protocol state machine.

Phases:
- INACTIVE: normal dosing
- ACTIVE: fever or manual trigger, stress dosing on, re-check every 2 hours
- RECOVERING: a re-check came back below 99°F, stress dosing still on

Only an explicit "I'm better" returns to INACTIVE. Mutations outside their
allowed phases are rejected with a Result, never written.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel

from synapse_core.domain.errors import SickModeStateError
from synapse_core.domain.models import (
    FoodChecklist,
    PRNDose,
    RestChecklist,
    SickModePhase,
    SickModeState,
    TemperatureBand,
    TemperatureReading,
)
from synapse_core.services.check_in import CheckInScheduler
from synapse_core.services.clock import Clock
from synapse_core.services.dose_ledger import Result, logger
from synapse_core.services.stores import SickModeStore

FEVER_THRESHOLD_F = 100.0
RECOVERY_THRESHOLD_F = 99.0
HIGH_FEVER_THRESHOLD_F = 102.0
CHECK_IN_INTERVAL = timedelta(hours=2)

SICK_SYMPTOMS = (
    "Nausea",
    "Vomiting",
    "Diarrhea",
    "Dizziness",
    "Fatigue",
    "Headache",
    "Chills",
    "Body aches",
    "Fever",
    "Loss of appetite",
)

FoodItem = Literal["light_meal", "salty_snack", "liquid_calories"]
RestItem = Literal["lying", "napping", "screen_break"]


def classify_temperature(value: float) -> TemperatureBand:
    if value >= HIGH_FEVER_THRESHOLD_F:
        return TemperatureBand.HIGH_FEVER
    if value >= FEVER_THRESHOLD_F:
        return TemperatureBand.FEVER
    return TemperatureBand.NORMAL


def format_countdown(remaining: timedelta) -> str:
    """Check-in countdown: '1h 5m', '4m 30s', '45s', or '0m' once elapsed."""
    total_seconds = int(remaining.total_seconds())
    if total_seconds <= 0:
        return "0m"
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def format_prn_countdown(remaining: timedelta) -> str:
    """PRN cooldown floored to whole minutes, always as 'Hh Mm'."""
    total_minutes = max(0, int(remaining.total_seconds() // 60))
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m"


def last_prn_time(state: SickModeState, med: str) -> datetime | None:
    times = [d.time for d in state.prn_doses if d.med == med]
    return times[-1] if times else None


def next_allowed_time(state: SickModeState, med: str, interval_hours: float) -> datetime | None:
    """Earliest time the PRN medication may be taken again, None if never taken."""
    last = last_prn_time(state, med)
    if last is None:
        return None
    return last + timedelta(hours=interval_hours)


class CheckInOutcome(BaseModel):
    """Result of a re-check temperature submission."""

    reading: TemperatureReading
    band: TemperatureBand
    phase: SickModePhase
    next_check_in: datetime | None
    seek_medical_attention: bool = False


class PRNStatus(BaseModel):
    med: str
    interval_hours: float
    last_taken: datetime | None
    next_allowed: datetime | None
    in_cooldown: bool
    remaining: timedelta | None
    countdown: str | None


class SickModeController:
    """
    Owns SickModeState transitions and the check-in deadline.

    Every mutation is a read-modify-write under one asyncio.Lock; the new
    state is only adopted once the store has accepted it.
    """

    def __init__(
        self,
        store: SickModeStore,
        clock: Clock,
        on_check_in_due: Callable[[datetime], None] | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.scheduler = CheckInScheduler(clock, on_due=on_check_in_due)
        self.logger = logger.bind(component="sick_mode_controller")
        self._lock = asyncio.Lock()

    async def state(self) -> SickModeState:
        return await self.store.get()

    async def phase(self) -> SickModePhase:
        return (await self.store.get()).phase

    async def resume(self) -> SickModeState:
        """
        Re-derive the check-in deadline after a restart.

        A stored deadline is kept as is (it may already be due); an active
        state without one gets startedAt + 2h.
        """
        async with self._lock:
            state = await self.store.get()
            if state.phase is SickModePhase.ACTIVE and state.check_in_timer is None:
                anchor = state.started_at or self.clock.now()
                state = state.evolve(check_in_timer=anchor + CHECK_IN_INTERVAL)
                await self.store.save(state)
                self.logger.info("check_in_deadline_rederived", deadline=state.check_in_timer)
            self.scheduler.sync(state)
            return state

    # -- escalation -------------------------------------------------------

    async def offers_escalation(self, value: float) -> bool:
        """A fever reading while inactive is offered as an activation, never applied."""
        state = await self.store.get()
        return state.phase is SickModePhase.INACTIVE and value >= FEVER_THRESHOLD_F

    async def activate(
        self, initial_temperature: float | None = None
    ) -> Result[SickModeState, SickModeStateError]:
        """Enter ACTIVE from INACTIVE, manually or by accepting a fever offer."""
        async with self._lock:
            current = await self.store.get()
            if current.active:
                return Result.err(SickModeStateError("Sick mode is already active"))

            now = self.clock.now()
            readings = []
            symptoms = []
            if initial_temperature is not None:
                readings.append(TemperatureReading(value=initial_temperature, time=now))
                if initial_temperature >= FEVER_THRESHOLD_F:
                    symptoms.append("Fever")

            state = SickModeState(
                active=True,
                started_at=now,
                check_in_timer=now + CHECK_IN_INTERVAL,
                symptoms=symptoms,
                temperatures=readings,
            )
            await self.store.save(state)
            self.scheduler.sync(state)
            self.logger.info(
                "sick_mode_activated",
                trigger="fever" if initial_temperature is not None else "manual",
                temperature=initial_temperature,
                check_in_at=state.check_in_timer.isoformat() if state.check_in_timer else None,
            )
            return Result.ok(state)

    # -- check-in ---------------------------------------------------------

    async def check_in_remaining(self) -> timedelta | None:
        state = await self.store.get()
        if state.check_in_timer is None:
            return None
        return max(timedelta(0), state.check_in_timer - self.clock.now())

    async def is_check_in_due(self) -> bool:
        state = await self.store.get()
        return state.check_in_timer is not None and self.clock.now() >= state.check_in_timer

    async def submit_check_in(self, value: float) -> Result[CheckInOutcome, SickModeStateError]:
        """
        Record a re-check temperature and apply the transition it implies.

        Below 99°F moves to RECOVERING; everything else re-arms the timer,
        and 102°F or above also asks the user to seek medical attention.
        """
        async with self._lock:
            state = await self.store.get()
            if state.phase is not SickModePhase.ACTIVE:
                return Result.err(
                    SickModeStateError(f"Check-in not accepted while {state.phase.value}")
                )

            now = self.clock.now()
            reading = TemperatureReading(value=value, time=now)
            temperatures = [*state.temperatures, reading]

            if value < RECOVERY_THRESHOLD_F:
                updated = state.evolve(
                    recovery_mode=True,
                    check_in_timer=None,
                    last_check_in=now,
                    temperatures=temperatures,
                )
            else:
                updated = state.evolve(
                    check_in_timer=now + CHECK_IN_INTERVAL,
                    last_check_in=now,
                    temperatures=temperatures,
                )

            await self.store.save(updated)
            self.scheduler.sync(updated)

            outcome = CheckInOutcome(
                reading=reading,
                band=classify_temperature(value),
                phase=updated.phase,
                next_check_in=updated.check_in_timer,
                seek_medical_attention=value >= HIGH_FEVER_THRESHOLD_F,
            )
            self.logger.info(
                "check_in_submitted",
                temperature=value,
                phase=outcome.phase.value,
                seek_medical_attention=outcome.seek_medical_attention,
            )
            return Result.ok(outcome)

    # -- deactivation -----------------------------------------------------

    async def deactivate(self) -> Result[SickModeState, SickModeStateError]:
        """'I'm better': back to INACTIVE with counters and checklists reset."""
        async with self._lock:
            current = await self.store.get()
            if not current.active:
                return Result.err(SickModeStateError("Sick mode is not active"))

            state = await self.store.reset()
            self.scheduler.cancel()
            duration = (
                self.clock.now() - current.started_at if current.started_at is not None else None
            )
            self.logger.info(
                "sick_mode_deactivated",
                from_phase=current.phase.value,
                duration_hours=round(duration.total_seconds() / 3600, 2) if duration else None,
            )
            return Result.ok(state)

    # -- protocol mutators ------------------------------------------------

    async def _mutate(
        self, action: str, change: Callable[[SickModeState], SickModeState]
    ) -> Result[SickModeState, SickModeStateError]:
        async with self._lock:
            state = await self.store.get()
            if not state.active:
                self.logger.warning("sick_mode_update_rejected", action=action)
                return Result.err(SickModeStateError(f"Cannot {action} while sick mode is inactive"))

            updated = change(state)
            await self.store.save(updated)
            self.scheduler.sync(updated)
            self.logger.info("sick_mode_updated", action=action)
            return Result.ok(updated)

    async def add_hydration(self, ml: int) -> Result[SickModeState, SickModeStateError]:
        if ml <= 0:
            raise ValueError("hydration amount must be positive")
        return await self._mutate(
            "add_hydration", lambda s: s.evolve(hydration_ml=s.hydration_ml + ml)
        )

    async def toggle_food(self, item: FoodItem) -> Result[SickModeState, SickModeStateError]:
        if item not in FoodChecklist.model_fields:
            raise ValueError(f"Unknown food checklist item: {item}")

        def change(s: SickModeState) -> SickModeState:
            checklist = s.food_checklist.model_copy(update={item: not getattr(s.food_checklist, item)})
            return s.evolve(food_checklist=checklist)

        return await self._mutate("toggle_food", change)

    async def toggle_rest(self, item: RestItem) -> Result[SickModeState, SickModeStateError]:
        if item not in RestChecklist.model_fields:
            raise ValueError(f"Unknown rest checklist item: {item}")

        def change(s: SickModeState) -> SickModeState:
            checklist = s.rest_checklist.model_copy(update={item: not getattr(s.rest_checklist, item)})
            return s.evolve(rest_checklist=checklist)

        return await self._mutate("toggle_rest", change)

    async def toggle_symptom(self, symptom: str) -> Result[SickModeState, SickModeStateError]:
        symptom = symptom.strip()
        if not symptom:
            raise ValueError("symptom must not be blank")

        def change(s: SickModeState) -> SickModeState:
            if symptom in s.symptoms:
                return s.evolve(symptoms=[x for x in s.symptoms if x != symptom])
            return s.evolve(symptoms=[*s.symptoms, symptom])

        return await self._mutate("toggle_symptom", change)

    async def log_temperature(self, value: float) -> Result[SickModeState, SickModeStateError]:
        """Append a reading without affecting the check-in schedule."""
        reading = TemperatureReading(value=value, time=self.clock.now())
        return await self._mutate(
            "log_temperature", lambda s: s.evolve(temperatures=[*s.temperatures, reading])
        )

    async def take_prn(self, med: str) -> Result[SickModeState, SickModeStateError]:
        """
        Record an as-needed dose.

        Cooldowns are reported by prn_status(); blocking an early dose is the
        caller's decision.
        """
        dose = PRNDose(med=med, time=self.clock.now())
        return await self._mutate(
            "take_prn", lambda s: s.evolve(prn_doses=[*s.prn_doses, dose])
        )

    async def next_allowed_time(self, med: str, interval_hours: float) -> datetime | None:
        return next_allowed_time(await self.store.get(), med, interval_hours)

    async def prn_status(self, med: str, interval_hours: float) -> PRNStatus:
        state = await self.store.get()
        now = self.clock.now()
        next_allowed = next_allowed_time(state, med, interval_hours)
        in_cooldown = next_allowed is not None and now < next_allowed
        remaining = next_allowed - now if in_cooldown and next_allowed is not None else None
        return PRNStatus(
            med=med,
            interval_hours=interval_hours,
            last_taken=last_prn_time(state, med),
            next_allowed=next_allowed,
            in_cooldown=in_cooldown,
            remaining=remaining,
            countdown=format_prn_countdown(remaining) if remaining is not None else None,
        )
