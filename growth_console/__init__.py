from growth_console.backup import BackupBundle, BackupManager, ImportReport
from growth_console.models import EnergyLevel, Priority, Task, TaskUpdate
from growth_console.planning import PlanSession, PlanState
from growth_console.scoring import DailyPlan, compute_plan
from growth_console.storage import RecordStore

__all__ = [
    "BackupBundle",
    "BackupManager",
    "DailyPlan",
    "EnergyLevel",
    "ImportReport",
    "PlanSession",
    "PlanState",
    "Priority",
    "RecordStore",
    "Task",
    "TaskUpdate",
    "compute_plan",
]
