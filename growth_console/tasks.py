from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, List, Literal, Optional, cast

from growth_console.constants import COLLECTION_TASKS, DEFAULT_GOAL_TAG, QUICK_ADD_ESTIMATE_MIN
from growth_console.models import EnergyLevel, Priority, Task, TaskUpdate, ensure_energy_level, ensure_priority
from growth_console.storage import RecordStore

SortKey = Literal["created_at", "due_date", "priority", "title"]


async def list_tasks(store: RecordStore) -> List[Task]:
    """Return all tasks, newest first."""

    tasks = cast(list[Task], await store.list_all(COLLECTION_TASKS))
    return sort_tasks(tasks, by="created_at")


async def pending_tasks(store: RecordStore) -> List[Task]:
    """Return tasks not yet completed, newest first."""

    return [task for task in await list_tasks(store) if not task.completed]


async def add_task(
    store: RecordStore,
    title: str,
    *,
    priority: Priority | str = Priority.P1,
    energy_need: EnergyLevel | str = EnergyLevel.MED,
    estimate_min: int = 30,
    due_date: Optional[date | datetime] = None,
    goal_tag: str = DEFAULT_GOAL_TAG,
) -> Task:
    """Create and persist a task. Priority and energy accept their string forms."""

    if isinstance(due_date, datetime):
        due_date = due_date.date()

    task = Task(
        title=title,
        priority=ensure_priority(priority),
        energy_need=ensure_energy_level(energy_need),
        estimate_min=int(estimate_min),
        due_date=due_date,
        goal_tag=goal_tag,
    )
    return cast(Task, await store.insert(COLLECTION_TASKS, task))


async def quick_add(store: RecordStore, title: str) -> Task:
    """Capture a small chore with the low-friction preset (P2, low energy, 15 minutes)."""

    return await add_task(
        store,
        title,
        priority=Priority.P2,
        energy_need=EnergyLevel.LOW,
        estimate_min=QUICK_ADD_ESTIMATE_MIN,
    )


async def toggle_task(store: RecordStore, task_id: str) -> Task:
    """Flip the completion flag of a task and return the stored result."""

    current = cast(Task, await store.get(COLLECTION_TASKS, task_id))
    updated = await store.update(COLLECTION_TASKS, task_id, TaskUpdate(completed=not current.completed))
    return cast(Task, updated)


async def delete_task(store: RecordStore, task_id: str) -> bool:
    """Remove a task. Returns ``False`` when it did not exist."""

    return await store.remove(COLLECTION_TASKS, task_id)


def _due_date_sort_key(task: Task) -> tuple[int, date]:
    return (0 if task.due_date is not None else 1, task.due_date or date.max)


def sort_tasks(tasks: Iterable[Task], *, by: SortKey = "created_at") -> List[Task]:
    """Sort tasks for display: newest first, earliest due (undated last), priority or title."""

    match by:
        case "created_at":
            return sorted(tasks, key=lambda task: task.created_at, reverse=True)
        case "due_date":
            return sorted(tasks, key=_due_date_sort_key)
        case "priority":
            return sorted(tasks, key=lambda task: task.priority.rank)
        case "title":
            return sorted(tasks, key=lambda task: task.title.casefold())
        case _:
            raise ValueError(f"Unsupported sort key: {by}")


__all__ = [
    "SortKey",
    "list_tasks",
    "pending_tasks",
    "add_task",
    "quick_add",
    "toggle_task",
    "delete_task",
    "sort_tasks",
]
