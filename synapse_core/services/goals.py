"""
Goal evaluation: streak goals complete themselves, custom goals wait for the user.

Completion is one-way. A later broken streak never clears completed_at.
"""

import asyncio

from pydantic import BaseModel

from synapse_core.domain.errors import RecordNotFoundError
from synapse_core.domain.models import Goal, GoalDraft, GoalType
from synapse_core.services.adherence import AdherenceCalculator
from synapse_core.services.clock import Clock
from synapse_core.services.dose_ledger import logger
from synapse_core.services.stores import GoalStore

DEFAULT_STREAK_GOAL_TITLE = "Take meds on time every day"
DEFAULT_CUSTOM_GOAL_TITLE = "My goal"


class GoalProgress(BaseModel):
    goal: Goal
    current_days: int
    target_days: int | None
    completed: bool


class GoalEvaluator:
    """Creates goals and auto-completes meds_streak goals from the current streak."""

    def __init__(self, store: GoalStore, adherence: AdherenceCalculator, clock: Clock) -> None:
        self.store = store
        self.adherence = adherence
        self.clock = clock
        self.logger = logger.bind(component="goal_evaluator")
        self._lock = asyncio.Lock()

    async def create(
        self, goal_type: GoalType, title: str = "", target_days: int | None = None
    ) -> Goal:
        draft = GoalDraft(
            title=title.strip()
            or (DEFAULT_STREAK_GOAL_TITLE if goal_type == GoalType.MEDS_STREAK else DEFAULT_CUSTOM_GOAL_TITLE),
            type=goal_type,
            target_days=target_days,
            start_date=self.clock.today(),
        )
        goal = await self.store.save(draft)
        self.logger.info("goal_created", goal_id=goal.id, type=goal.type.value, target_days=target_days)
        return goal

    async def evaluate(self) -> list[Goal]:
        """Complete every open meds_streak goal whose target the streak has reached."""
        async with self._lock:
            streak = await self.adherence.meds_streak()
            completed: list[Goal] = []
            for goal in await self.store.list():
                if goal.type != GoalType.MEDS_STREAK or goal.is_completed:
                    continue
                if goal.target_days is not None and streak >= goal.target_days:
                    updated = await self.store.update(goal.id, {"completed_at": self.clock.now()})
                    completed.append(updated)
                    self.logger.info(
                        "goal_completed", goal_id=goal.id, streak=streak, target_days=goal.target_days
                    )
            return completed

    async def complete(self, goal_id: str) -> Goal:
        """Explicit user completion. Completing twice keeps the first timestamp."""
        async with self._lock:
            goal = next((g for g in await self.store.list() if g.id == goal_id), None)
            if goal is None:
                raise RecordNotFoundError("goal", goal_id)
            if goal.is_completed:
                return goal
            updated = await self.store.update(goal_id, {"completed_at": self.clock.now()})
            self.logger.info("goal_completed", goal_id=goal_id, manual=True)
            return updated

    async def remove(self, goal_id: str) -> None:
        await self.store.delete(goal_id)
        self.logger.info("goal_removed", goal_id=goal_id)

    async def progress(self) -> list[GoalProgress]:
        streak = await self.adherence.meds_streak()
        result = []
        for goal in await self.store.list():
            is_streak = goal.type == GoalType.MEDS_STREAK
            result.append(
                GoalProgress(
                    goal=goal,
                    current_days=streak if is_streak else 0,
                    target_days=goal.target_days,
                    completed=goal.is_completed,
                )
            )
        return result
