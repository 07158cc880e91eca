"""
End-to-end sick day walkthrough of the dosing and recovery engine.

This script exercises:
1. Configuration loading and validation
2. Medication setup and today's dose slots
3. Fever escalation into sick mode with stress dosing
4. The 2-hour re-check protocol and medical-attention alerts
5. Recovery, "I'm better", streaks and goals

Run with: uv run python run_scenario.py
"""

import asyncio
import os
from datetime import UTC, date, datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.storage.json_file import build_stores
from synapse_core.config import configure_logging, get_config, print_config_summary, validate_config
from synapse_core.domain.models import GoalType, MedicationDraft, TimeTag
from synapse_core.services.integrated_tracking import RecoveryTracker

# Scenario runs leave no records behind unless a backend is chosen explicitly
os.environ.setdefault("STORAGE_BACKEND", "memory")

console = Console()


class ScenarioClock:
    """Clock the scenario can move forward by hand."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()

    def local_date(self, instant: datetime) -> date:
        return instant.date()

    def advance(self, delta: timedelta) -> None:
        self.current += delta


def build_tracker(clock: ScenarioClock) -> RecoveryTracker:
    config = get_config()
    medications, logs, sick_mode, goals = build_stores(config.storage)
    return RecoveryTracker(medications, logs, sick_mode, goals, clock=clock, config=config)


async def show_slots(tracker: RecoveryTracker) -> None:
    table = Table(title=f"Dose slots for {tracker.clock.today().isoformat()}")
    table.add_column("Medication", style="cyan")
    table.add_column("Slot", style="magenta")
    table.add_column("Stress", style="red")
    table.add_column("Taken", style="green")
    for slot in await tracker.today_slots():
        table.add_row(
            slot.medication_name,
            slot.label,
            "yes" if slot.stress_dose else "",
            "✅" if slot.taken else "·",
        )
    console.print(table)


async def step_configuration() -> bool:
    console.print(Panel("🔧 Configuration", style="blue"))
    validate_config()
    config = get_config()
    configure_logging(config.logging)
    print_config_summary()
    return True


async def step_daily_dosing(tracker: RecoveryTracker) -> bool:
    console.print(Panel("💊 Daily Dosing", style="blue"))
    hydrocortisone = await tracker.catalog.add(
        MedicationDraft(
            name="Hydrocortisone",
            dosage="10",
            unit="mg",
            route="oral",
            frequency="Once daily",
            time_tag=TimeTag.MORNING,
            has_stress_dose=True,
            stress_dose_amount="20 mg",
            stress_dose_frequency="3 times daily",
            stress_dose_duration_days=3,
        )
    )
    levothyroxine = await tracker.catalog.add(
        MedicationDraft(name="Levothyroxine", dosage="50", unit="mcg", doses=2)
    )
    await tracker.goals.create(GoalType.MEDS_STREAK, target_days=1)

    await show_slots(tracker)
    for med in (hydrocortisone, levothyroxine):
        (await tracker.ledger.mark_all_taken(med.id, tracker.clock.today())).unwrap()
    completed = await tracker.evaluate_goals()

    summary = await tracker.adherence.today_adherence()
    console.print(f"✅ {summary.taken}/{summary.total} doses taken", style="green")
    console.print(f"🏆 Goals completed today: {len(completed)}", style="green")
    return summary.taken == summary.total


async def step_fever(tracker: RecoveryTracker) -> bool:
    console.print(Panel("🤒 Fever Escalation", style="blue"))
    tracker.clock.advance(timedelta(days=1))

    outcome = await tracker.log_temperature(101.0)
    console.print(f"Reading 101.0°F → {outcome.band.value}, sick mode offered: {outcome.escalation_offered}")
    if not outcome.escalation_offered:
        return False

    state = (await tracker.accept_escalation(101.0)).unwrap()
    console.print(f"Sick mode {state.phase.value}, next check-in {state.check_in_timer}", style="yellow")
    await show_slots(tracker)
    return True


async def step_check_ins(tracker: RecoveryTracker) -> bool:
    console.print(Panel("🌡️  Re-check Protocol", style="blue"))
    for value in (103.0, 100.2, 98.4):
        tracker.clock.advance(timedelta(hours=2))
        outcome, alert = (await tracker.submit_check_in(value)).unwrap()
        console.print(f"Check-in {value}°F → {outcome.phase.value}")
        if alert is not None:
            console.print(f"🚨 {alert.title}: {alert.description}", style="red")

    snapshot = await tracker.snapshot()
    console.print(f"Phase: {snapshot.phase.value}, streak: {snapshot.streak} day(s)")
    if snapshot.recovery is not None:
        console.print(f"Recovery checklist: {snapshot.recovery.completed}/{snapshot.recovery.total}")
    return snapshot.phase.value == "recovering"


async def step_recovered(tracker: RecoveryTracker) -> bool:
    console.print(Panel("💚 I'm Better", style="blue"))
    state = (await tracker.im_better()).unwrap()
    console.print(f"Sick mode {state.phase.value}, hydration reset to {state.hydration_ml} ml")
    await show_slots(tracker)
    return not state.active


async def run_scenario() -> list[tuple[str, bool]]:
    console.print(Panel("🧪 Synapse Recovery Engine - Sick Day Scenario", style="bold blue"))

    clock = ScenarioClock(datetime(2026, 1, 12, 8, 0, tzinfo=UTC))
    results: list[tuple[str, bool]] = [("Configuration", await step_configuration())]
    tracker = build_tracker(clock)

    steps = [
        ("Daily Dosing", step_daily_dosing),
        ("Fever Escalation", step_fever),
        ("Re-check Protocol", step_check_ins),
        ("Recovery", step_recovered),
    ]
    for name, step in steps:
        console.print(f"\n{'=' * 60}")
        try:
            results.append((name, await step(tracker)))
        except Exception as e:
            console.print(f"❌ {name} failed with exception: {e}", style="red")
            results.append((name, False))

    summary_table = Table()
    summary_table.add_column("Step", style="cyan")
    summary_table.add_column("Result", style="white")
    for name, ok in results:
        summary_table.add_row(name, "✅ PASSED" if ok else "❌ FAILED")
    console.print(summary_table)
    return results


if __name__ == "__main__":
    try:
        asyncio.run(run_scenario())
    except KeyboardInterrupt:
        console.print("\n👋 Scenario stopped by user", style="yellow")
