from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from growth_console.models import EnergyLevel, Priority, Task
from growth_console.scoring import PlanSlot, compute_plan, energy_value, score_task


def _task(title: str, **fields: object) -> Task:
    return Task.model_validate({"title": title, **fields})


def test_empty_backlog_yields_empty_plan(now: datetime) -> None:
    for level in EnergyLevel:
        plan = compute_plan([], level, now=now)
        assert plan.is_empty
        assert plan.main is None
        assert len(plan) == 0


def test_completed_tasks_are_ignored(now: datetime) -> None:
    plan = compute_plan([_task("Done", completed=True)], EnergyLevel.HIGH, now=now)

    assert plan.is_empty


def test_concrete_scenario(now: datetime) -> None:
    today = now.date()
    task1 = _task(
        "Ship release",
        priority=Priority.P0,
        due_date=today - timedelta(days=1),
        energy_need=EnergyLevel.HIGH,
        estimate_min=20,
    )
    task2 = _task("Water plants", priority=Priority.P2, energy_need=EnergyLevel.LOW, estimate_min=10)
    task3 = _task(
        "Review budget",
        priority=Priority.P1,
        due_date=today + timedelta(days=1),
        energy_need=EnergyLevel.MED,
        estimate_min=45,
    )

    assert score_task(task1, EnergyLevel.MED, now=now) == 250
    assert score_task(task2, EnergyLevel.MED, now=now) == 20
    assert score_task(task3, EnergyLevel.MED, now=now) == 130

    plan = compute_plan([task1, task2, task3], EnergyLevel.MED, now=now)

    assert plan.tasks == [task1, task2]
    assert plan.main == task1
    assert plan.fillers == [task2]
    assert [entry.score for entry in plan.entries] == [250, 20]
    assert plan.energy_level is EnergyLevel.MED


def test_low_energy_penalties_still_select_only_task(now: datetime) -> None:
    heavy = _task("Deep work", priority=Priority.P3, energy_need=EnergyLevel.HIGH, estimate_min=90)

    plan = compute_plan([heavy], EnergyLevel.LOW, now=now)

    assert plan.main == heavy
    assert plan.entries[0].score == 0 - 50 - 30


def test_high_energy_match_bonus_only_at_top_of_scale(now: datetime) -> None:
    hard = _task("Hard", priority=Priority.P3, energy_need=EnergyLevel.HIGH)
    medium = _task("Medium", priority=Priority.P3, energy_need=EnergyLevel.MED)

    assert score_task(hard, EnergyLevel.HIGH, now=now) == 30
    assert score_task(medium, EnergyLevel.MED, now=now) == 0
    assert score_task(medium, EnergyLevel.HIGH, now=now) == 0


def test_long_task_penalty_requires_low_energy_and_over_an_hour(now: datetime) -> None:
    exactly_hour = _task("Hour", priority=Priority.P3, energy_need=EnergyLevel.LOW, estimate_min=60)
    longer = _task("Longer", priority=Priority.P3, energy_need=EnergyLevel.LOW, estimate_min=61)

    assert score_task(exactly_hour, EnergyLevel.LOW, now=now) == 0
    assert score_task(longer, EnergyLevel.LOW, now=now) == -30
    assert score_task(longer, EnergyLevel.MED, now=now) == 0


@pytest.mark.parametrize(
    ("due_date", "expected"),
    [
        (date(2024, 5, 9), 200),
        (date(2024, 5, 10), 200),
        (date(2024, 5, 11), 80),
        (date(2024, 5, 12), 80),
        (date(2024, 5, 13), 0),
        (None, 0),
    ],
)
def test_due_date_adjustment(now: datetime, due_date: date | None, expected: int) -> None:
    task = _task("Due", priority=Priority.P3, energy_need=EnergyLevel.LOW, due_date=due_date)

    assert score_task(task, EnergyLevel.LOW, now=now) == expected


def test_plan_is_bounded_and_fillers_follow_score_order(now: datetime) -> None:
    backlog = [_task(f"Quick {index}", priority=Priority.P2, estimate_min=15) for index in range(5)]
    backlog.append(_task("Top", priority=Priority.P0, estimate_min=120))

    plan = compute_plan(backlog, EnergyLevel.MED, now=now)

    assert len(plan) == 3
    assert [entry.slot for entry in plan.entries] == [PlanSlot.MAIN, PlanSlot.FILLER, PlanSlot.FILLER]
    assert plan.main is not None and plan.main.title == "Top"
    assert [task.title for task in plan.fillers] == ["Quick 0", "Quick 1"]


def test_low_energy_tasks_qualify_as_fillers_regardless_of_length(now: datetime) -> None:
    main = _task("Main", priority=Priority.P0, estimate_min=45)
    long_low = _task("Long but easy", priority=Priority.P1, energy_need=EnergyLevel.LOW, estimate_min=50)
    long_med = _task("Long and medium", priority=Priority.P1, energy_need=EnergyLevel.MED, estimate_min=50)

    plan = compute_plan([main, long_med, long_low], EnergyLevel.MED, now=now)

    assert plan.tasks == [main, long_low]


def test_ties_keep_backlog_order(now: datetime) -> None:
    first = _task("First", priority=Priority.P1)
    second = _task("Second", priority=Priority.P1)

    assert compute_plan([first, second], EnergyLevel.MED, now=now).main == first
    assert compute_plan([second, first], EnergyLevel.MED, now=now).main == second


def test_compute_plan_is_deterministic(now: datetime) -> None:
    backlog = [
        _task("A", priority=Priority.P1, estimate_min=10),
        _task("B", priority=Priority.P0, energy_need=EnergyLevel.HIGH, due_date=date(2024, 5, 11)),
        _task("C", priority=Priority.P3, energy_need=EnergyLevel.LOW, estimate_min=90),
    ]

    assert compute_plan(backlog, "Low", now=now) == compute_plan(backlog, "Low", now=now)


def test_unrecognized_energy_defaults_to_medium(now: datetime) -> None:
    backlog = [_task("X", energy_need=EnergyLevel.HIGH), _task("Y", estimate_min=10)]

    plan = compute_plan(backlog, "exhausted", now=now)

    assert plan.energy_level is EnergyLevel.MED
    assert plan == compute_plan(backlog, EnergyLevel.MED, now=now)
    assert energy_value("exhausted") == 2
    assert energy_value(None) == 2


def test_naive_now_is_treated_as_utc() -> None:
    task = _task("Due", priority=Priority.P3, energy_need=EnergyLevel.LOW, due_date=date(2024, 5, 11))

    naive = datetime(2024, 5, 10, 12, 0)
    aware = naive.replace(tzinfo=timezone.utc)
    assert score_task(task, "Low", now=naive) == score_task(task, "Low", now=aware)
