from __future__ import annotations

import logging
from datetime import datetime
from enum import StrEnum
from typing import Optional, cast

from growth_console.constants import COLLECTION_HISTORY, COLLECTION_TASKS
from growth_console.errors import InvalidPlanTransition
from growth_console.models import EnergyLevel, HistoryEntry, Task, TaskUpdate
from growth_console.scoring import DailyPlan, compute_plan
from growth_console.storage import RecordStore

LOGGER = logging.getLogger(__name__)


class PlanState(StrEnum):
    IDLE = "idle"
    PLANNED = "planned"


class PlanSession:
    """Holds the last computed daily plan for display.

    The plan is a cache only; the task collection stays the source of truth.
    ``accept_main_task`` is the single terminal action and returns to idle.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._plan: Optional[DailyPlan] = None

    @property
    def state(self) -> PlanState:
        return PlanState.PLANNED if self._plan is not None else PlanState.IDLE

    @property
    def plan(self) -> Optional[DailyPlan]:
        return self._plan

    async def generate(self, energy_level: EnergyLevel | str, *, now: datetime | None = None) -> DailyPlan:
        backlog = cast(list[Task], await self._store.list_all(COLLECTION_TASKS))
        plan = compute_plan(backlog, energy_level, now=now)
        self._plan = None if plan.is_empty else plan
        LOGGER.debug("Generated plan with %d tasks for energy %s", len(plan), plan.energy_level)
        return plan

    async def accept_main_task(self, *, rating: int = 5) -> Task:
        if self._plan is None or self._plan.main is None:
            raise InvalidPlanTransition("No plan to accept")

        main = self._plan.main
        completed = cast(Task, await self._store.update(COLLECTION_TASKS, main.id, TaskUpdate(completed=True)))
        await self._store.insert(COLLECTION_HISTORY, HistoryEntry(title=completed.title, task_id=completed.id, rating=rating))
        self._plan = None
        LOGGER.info("Accepted main task %s", completed.id)
        return completed

    def reset(self) -> None:
        self._plan = None

    def invalidate(self) -> None:
        """Drop the cached plan after the backlog changed."""

        self.reset()


__all__ = ["PlanSession", "PlanState"]
