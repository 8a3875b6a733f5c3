"""Deterministic ranking of a backlog into a bounded daily plan.

The plan holds one main task, the highest scoring pending task, followed by
up to two low-friction filler tasks. Scores combine priority, due-date
urgency and the gap between the user's energy and the task's demand.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import StrEnum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from growth_console.constants import (
    DEFAULT_ENERGY_VALUE,
    DUE_SOON_DAYS,
    ENERGY_SCALE,
    FILLER_MAX_MINUTES,
    LONG_TASK_MINUTES,
    MAX_FILLER_TASKS,
    PRIORITY_SCORES,
    SCORE_DUE_SOON,
    SCORE_ENERGY_MATCH,
    SCORE_ENERGY_MISMATCH,
    SCORE_LOW_ENERGY_LONG_TASK,
    SCORE_OVERDUE,
)
from growth_console.models import EnergyLevel, Task, ensure_energy_level

_SECONDS_PER_DAY = 24 * 60 * 60
_TOP_ENERGY = max(ENERGY_SCALE.values())
_LOW_ENERGY = min(ENERGY_SCALE.values())


class PlanSlot(StrEnum):
    MAIN = "main"
    FILLER = "filler"


class PlanEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    task: Task
    score: int
    slot: PlanSlot


class DailyPlan(BaseModel):
    """Ordered plan for one energy context: ``[main, filler, filler]`` at most."""

    model_config = ConfigDict(frozen=True)

    energy_level: EnergyLevel
    entries: tuple[PlanEntry, ...] = ()

    @property
    def main(self) -> Optional[Task]:
        for entry in self.entries:
            if entry.slot is PlanSlot.MAIN:
                return entry.task
        return None

    @property
    def fillers(self) -> list[Task]:
        return [entry.task for entry in self.entries if entry.slot is PlanSlot.FILLER]

    @property
    def tasks(self) -> list[Task]:
        return [entry.task for entry in self.entries]

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def __len__(self) -> int:
        return len(self.entries)


def resolve_energy_level(value: EnergyLevel | str | None) -> EnergyLevel:
    """Return the matching level, falling back to ``Med`` for anything unrecognized."""

    if value is None:
        return EnergyLevel.MED
    try:
        return ensure_energy_level(value)
    except ValueError:
        return EnergyLevel.MED


def energy_value(value: EnergyLevel | str | None) -> int:
    if value is None:
        return DEFAULT_ENERGY_VALUE
    try:
        level = ensure_energy_level(value)
    except ValueError:
        return DEFAULT_ENERGY_VALUE
    return ENERGY_SCALE.get(level.value, DEFAULT_ENERGY_VALUE)


def _normalize_now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _days_left(due_date: date, now: datetime) -> float:
    due_at = datetime.combine(due_date, time.min, tzinfo=timezone.utc)
    return (due_at - now).total_seconds() / _SECONDS_PER_DAY


def score_task(task: Task, energy_level: EnergyLevel | str | None, *, now: datetime | None = None) -> int:
    current = _normalize_now(now)
    user_energy = energy_value(energy_level)
    task_energy = energy_value(task.energy_need)

    score = PRIORITY_SCORES.get(str(task.priority), 0)

    if task.due_date is not None:
        days_left = _days_left(task.due_date, current)
        if days_left < 0:
            score += SCORE_OVERDUE
        elif days_left < DUE_SOON_DAYS:
            score += SCORE_DUE_SOON

    if user_energy < task_energy:
        score += SCORE_ENERGY_MISMATCH
    if user_energy == _TOP_ENERGY and task_energy == _TOP_ENERGY:
        score += SCORE_ENERGY_MATCH

    if user_energy == _LOW_ENERGY and task.estimate_min > LONG_TASK_MINUTES:
        score += SCORE_LOW_ENERGY_LONG_TASK

    return score


def _is_filler(task: Task) -> bool:
    return task.estimate_min <= FILLER_MAX_MINUTES or task.energy_need is EnergyLevel.LOW


def compute_plan(
    backlog: Iterable[Task],
    energy_level: EnergyLevel | str | None,
    *,
    now: datetime | None = None,
) -> DailyPlan:
    level = resolve_energy_level(energy_level)
    current = _normalize_now(now)

    pending = [task for task in backlog if not task.completed]
    if not pending:
        return DailyPlan(energy_level=level)

    scored = [(task, score_task(task, level, now=current)) for task in pending]
    # sorted() is stable, so ties keep backlog order.
    ranked = sorted(scored, key=lambda item: item[1], reverse=True)

    main_task, main_score = ranked[0]
    entries = [PlanEntry(task=main_task, score=main_score, slot=PlanSlot.MAIN)]
    for task, score in ranked[1:]:
        if len(entries) > MAX_FILLER_TASKS:
            break
        if _is_filler(task):
            entries.append(PlanEntry(task=task, score=score, slot=PlanSlot.FILLER))

    return DailyPlan(energy_level=level, entries=tuple(entries))


__all__ = [
    "PlanSlot",
    "PlanEntry",
    "DailyPlan",
    "compute_plan",
    "score_task",
    "energy_value",
    "resolve_energy_level",
]
