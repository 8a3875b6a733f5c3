from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import Sequence

from growth_console.backup import BackupManager, ImportReport, default_backup_filename, read_backup
from growth_console.errors import GrowthConsoleError
from growth_console.models import EnergyLevel, Priority, Task
from growth_console.planning import PlanSession
from growth_console.scoring import DailyPlan, PlanSlot
from growth_console.storage import DATA_DIR_ENV_VAR, RecordStore
from growth_console.tasks import add_task, delete_task, list_tasks, quick_add, toggle_task

LOGGER = logging.getLogger(__name__)

LOG_LEVEL_ENV_VAR = "GROWTH_CONSOLE_LOG_LEVEL"


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.getenv(LOG_LEVEL_ENV_VAR, "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_due(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got {value!r}") from exc


def _format_task(task: Task) -> str:
    mark = "x" if task.completed else " "
    due = f" due {task.due_date.isoformat()}" if task.due_date else ""
    return f"{task.id}  [{mark}] {task.priority} {task.energy_need:<4} {task.estimate_min:>3}min{due}  {task.title}"


def _format_plan(plan: DailyPlan) -> list[str]:
    if plan.is_empty:
        return ["Nothing pending. Add tasks first."]

    lines = [f"Plan for energy {plan.energy_level}:"]
    for entry in plan.entries:
        label = "Main  " if entry.slot is PlanSlot.MAIN else "Filler"
        lines.append(f"  {label} ({entry.score:>4})  {_format_task(entry.task)}")
    return lines


def _format_report(report: ImportReport) -> list[str]:
    lines: list[str] = []
    for name, result in report.results.items():
        if result.ok:
            lines.append(f"  {name}: restored {result.count} records")
        else:
            lines.append(f"  {name}: FAILED ({result.error})")
    return lines


def _confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="growth-console",
        description="Collect tasks and derive a daily plan from your current energy level.",
    )
    ap.add_argument(
        "--data-dir",
        default=None,
        help=f"Directory or sqlite file for the record store (default: env {DATA_DIR_ENV_VAR} or ./.data)",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Add a task to the backlog")
    add.add_argument("title")
    add.add_argument("--priority", default=Priority.P1.value, choices=[p.value for p in Priority])
    add.add_argument("--energy", default=EnergyLevel.MED.value, choices=[e.value for e in EnergyLevel])
    add.add_argument("--estimate", type=int, default=30, help="Estimated minutes (default: 30)")
    add.add_argument("--due", type=_parse_due, default=None, help="Due date YYYY-MM-DD")
    add.add_argument("--tag", default=None, help="Goal tag")
    add.add_argument("--quick", action="store_true", help="Use the quick preset (P2, Low, 15 min)")

    lst = sub.add_parser("list", help="List tasks")
    lst.add_argument("--all", action="store_true", help="Include completed tasks")

    done = sub.add_parser("done", help="Toggle a task's completion")
    done.add_argument("task_id")

    remove = sub.add_parser("remove", help="Delete a task")
    remove.add_argument("task_id")

    plan = sub.add_parser("plan", help="Compute today's plan")
    plan.add_argument("--energy", required=True, choices=[e.value for e in EnergyLevel])
    plan.add_argument("--accept", action="store_true", help="Mark the main task completed right away")

    export = sub.add_parser("export", help="Write a JSON backup of all collections")
    export.add_argument("path", nargs="?", default=None, help="Target file or directory")

    restore = sub.add_parser("import", help="Replace collections from a JSON backup")
    restore.add_argument("path")
    restore.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    return ap


async def _run_command(args: argparse.Namespace, store: RecordStore) -> int:
    match args.command:
        case "add":
            if args.quick:
                task = await quick_add(store, args.title)
            else:
                kwargs = {"goal_tag": args.tag} if args.tag else {}
                task = await add_task(
                    store,
                    args.title,
                    priority=args.priority,
                    energy_need=args.energy,
                    estimate_min=args.estimate,
                    due_date=args.due,
                    **kwargs,
                )
            print(_format_task(task))
        case "list":
            for task in await list_tasks(store):
                if args.all or not task.completed:
                    print(_format_task(task))
        case "done":
            print(_format_task(await toggle_task(store, args.task_id)))
        case "remove":
            if await delete_task(store, args.task_id):
                print(f"Removed {args.task_id}")
            else:
                print(f"Nothing removed for {args.task_id}")
        case "plan":
            session = PlanSession(store)
            for line in _format_plan(await session.generate(args.energy)):
                print(line)
            if args.accept and session.plan is not None:
                completed = await session.accept_main_task()
                print(f"Completed: {completed.title}")
        case "export":
            manager = BackupManager(store)
            target = await manager.export_to_file(args.path or Path.cwd() / default_backup_filename())
            print(f"Backup written to {target}")
        case "import":
            bundle = read_backup(args.path)
            if not args.yes and not _confirm("Importing replaces the current data. Continue?"):
                print("Import cancelled")
                return 1
            report = await BackupManager(store).import_all(bundle)
            for line in _format_report(report):
                print(line)
            return 0 if report.ok else 1
    return 0


async def _main_async(args: argparse.Namespace) -> int:
    async with RecordStore(args.data_dir) as store:
        if not store.available:
            print(f"Warning: storage unavailable ({store.init_error})", file=sys.stderr)
        return await _run_command(args, store)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        return asyncio.run(_main_async(args))
    except (GrowthConsoleError, ValueError, OSError) as exc:
        LOGGER.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
