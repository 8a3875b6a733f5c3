"""Central constants for collection names, scoring weights and defaults."""

from typing import Final, Mapping

COLLECTION_TASKS: Final[str] = "tasks"
COLLECTION_HISTORY: Final[str] = "history"
COLLECTION_DESIGN_CASES: Final[str] = "design_logs"
COLLECTION_TERMS: Final[str] = "design_terms"
COLLECTION_EMOTIONS: Final[str] = "emotion_logs"

COLLECTION_NAMES: Final[tuple[str, ...]] = (
    COLLECTION_TASKS,
    COLLECTION_HISTORY,
    COLLECTION_DESIGN_CASES,
    COLLECTION_TERMS,
    COLLECTION_EMOTIONS,
)

BACKUP_FORMAT_VERSION: Final[int] = 1
BACKUP_VERSION_KEY: Final[str] = "formatVersion"

PRIORITY_SCORES: Final[Mapping[str, int]] = {"P0": 100, "P1": 50, "P2": 20, "P3": 0}
ENERGY_SCALE: Final[Mapping[str, int]] = {"Low": 1, "Med": 2, "High": 3}
DEFAULT_ENERGY_VALUE: Final[int] = 2

SCORE_OVERDUE: Final[int] = 200
SCORE_DUE_SOON: Final[int] = 80
DUE_SOON_DAYS: Final[float] = 2.0
SCORE_ENERGY_MISMATCH: Final[int] = -50
SCORE_ENERGY_MATCH: Final[int] = 30
SCORE_LOW_ENERGY_LONG_TASK: Final[int] = -30
LONG_TASK_MINUTES: Final[int] = 60

MAX_FILLER_TASKS: Final[int] = 2
FILLER_MAX_MINUTES: Final[int] = 30

DEFAULT_GOAL_TAG: Final[str] = "Default"
QUICK_ADD_ESTIMATE_MIN: Final[int] = 15
