from __future__ import annotations

from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Annotated, Any, Mapping, Optional
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StringConstraints, create_model, field_validator
from pydantic.alias_generators import to_camel

from growth_console.constants import (
    COLLECTION_DESIGN_CASES,
    COLLECTION_EMOTIONS,
    COLLECTION_HISTORY,
    COLLECTION_TASKS,
    COLLECTION_TERMS,
    DEFAULT_GOAL_TAG,
)


class Priority(StrEnum):
    """Ordered task priority, P0 is the most important."""

    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"

    @property
    def rank(self) -> int:
        return int(self.value[1:])


class EnergyLevel(StrEnum):
    """Coarse three-point capacity signal used for tasks and for the user."""

    LOW = "Low"
    MED = "Med"
    HIGH = "High"


_ENERGY_ALIASES: Mapping[str, EnergyLevel] = {
    "low": EnergyLevel.LOW,
    "l": EnergyLevel.LOW,
    "1": EnergyLevel.LOW,
    "med": EnergyLevel.MED,
    "mid": EnergyLevel.MED,
    "medium": EnergyLevel.MED,
    "m": EnergyLevel.MED,
    "2": EnergyLevel.MED,
    "high": EnergyLevel.HIGH,
    "h": EnergyLevel.HIGH,
    "3": EnergyLevel.HIGH,
}


def ensure_energy_level(value: EnergyLevel | str) -> EnergyLevel:
    if isinstance(value, EnergyLevel):
        return value

    normalized = str(value).strip().lower()
    try:
        return _ENERGY_ALIASES[normalized]
    except KeyError as exc:  # noqa: TRY003
        raise ValueError(f"Unknown energy level: {value!r}") from exc


def ensure_priority(value: Priority | str) -> Priority:
    if isinstance(value, Priority):
        return value

    try:
        return Priority(str(value).strip().upper())
    except ValueError as exc:  # noqa: TRY003
        raise ValueError(f"Unknown priority: {value!r}") from exc


NonEmptyText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

# Never changed by a partial update.
IMMUTABLE_FIELDS: frozenset[str] = frozenset({"id", "created_at"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


def coerce_due_date(value: Any) -> Any:
    """Accept blank strings and ISO datetimes for a due date, keeping only the day."""

    if value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return value


class Record(BaseModel):
    """Base for every persisted record: a unique id plus a creation timestamp.

    Keys a schema does not declare are kept as they are, so records written by
    other versions of the app survive a restore unchanged.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str = Field(default_factory=_new_id, min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # Legacy backups stored numeric ids.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        return value

    @field_validator("created_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Task(Record):
    """Unit of backlog work."""

    title: NonEmptyText
    priority: Priority = Priority.P1
    energy_need: EnergyLevel = EnergyLevel.MED
    estimate_min: int = Field(default=30, gt=0)
    due_date: Optional[date] = None
    completed: bool = False
    goal_tag: str = DEFAULT_GOAL_TAG

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> Any:
        return ensure_priority(value) if isinstance(value, str) else value

    @field_validator("energy_need", mode="before")
    @classmethod
    def _coerce_energy(cls, value: Any) -> Any:
        return ensure_energy_level(value) if isinstance(value, str) else value

    @field_validator("due_date", mode="before")
    @classmethod
    def _coerce_due_date(cls, value: Any) -> Any:
        return coerce_due_date(value)


class HistoryEntry(Record):
    """Completed plan item kept for later review."""

    title: str
    task_id: Optional[str] = None
    rating: int = Field(default=5, ge=1, le=5)


class DesignCase(Record):
    """Collected design reference with its mood and takeaway."""

    name: str = ""
    case_type: str = Field(default="", alias="type")
    styles: list[str] = Field(default_factory=list, validation_alias=AliasChoices("styles", "styleTags"))
    primary_mood: str = ""
    golden_sentence: str = ""
    analysis: str = ""


class DesignTerm(Record):
    term: NonEmptyText
    understanding: str = Field(default="", validation_alias=AliasChoices("understanding", "def"))
    source: str = ""
    example: str = ""
    tags: list[str] = Field(default_factory=list)


class EmotionLog(Record):
    """Point-in-time emotional temperature (0 to 10) with free-form context."""

    temp: int = Field(default=5, ge=0, le=10)
    tags: list[str] = Field(default_factory=list)
    event: str = ""


class RecordUpdate(BaseModel):
    """Base for partial updates. Only fields explicitly set are merged."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class TaskUpdate(RecordUpdate):
    title: Optional[NonEmptyText] = None
    priority: Optional[Priority] = None
    energy_need: Optional[EnergyLevel] = None
    estimate_min: Optional[int] = Field(default=None, gt=0)
    due_date: Optional[date] = None
    completed: Optional[bool] = None
    goal_tag: Optional[str] = None

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> Any:
        return ensure_priority(value) if isinstance(value, str) else value

    @field_validator("energy_need", mode="before")
    @classmethod
    def _coerce_energy(cls, value: Any) -> Any:
        return ensure_energy_level(value) if isinstance(value, str) else value

    @field_validator("due_date", mode="before")
    @classmethod
    def _coerce_due_date(cls, value: Any) -> Any:
        return coerce_due_date(value)


def partial_model_for(model: type[Record]) -> type[RecordUpdate]:
    """Build an update schema from ``model``: every mutable field optional, unknown keys rejected."""

    fields: dict[str, Any] = {}
    for name, info in model.model_fields.items():
        if name in IMMUTABLE_FIELDS:
            continue
        annotation: Any = info.annotation
        if info.metadata:
            annotation = Annotated[annotation, *info.metadata]
        fields[name] = (
            Optional[annotation],
            Field(default=None, alias=info.alias, validation_alias=info.validation_alias),
        )
    return create_model(f"{model.__name__}Update", __base__=RecordUpdate, **fields)


COLLECTION_MODELS: Mapping[str, type[Record]] = {
    COLLECTION_TASKS: Task,
    COLLECTION_HISTORY: HistoryEntry,
    COLLECTION_DESIGN_CASES: DesignCase,
    COLLECTION_TERMS: DesignTerm,
    COLLECTION_EMOTIONS: EmotionLog,
}

COLLECTION_UPDATE_MODELS: Mapping[str, type[RecordUpdate]] = {
    COLLECTION_TASKS: TaskUpdate,
    COLLECTION_HISTORY: partial_model_for(HistoryEntry),
    COLLECTION_DESIGN_CASES: partial_model_for(DesignCase),
    COLLECTION_TERMS: partial_model_for(DesignTerm),
    COLLECTION_EMOTIONS: partial_model_for(EmotionLog),
}


def apply_update(record: Record, changes: RecordUpdate) -> Record:
    """Merge the explicitly set fields of ``changes`` onto ``record`` and re-validate."""

    merged = record.model_dump()
    merged.update(changes.model_dump(exclude_unset=True))
    return type(record).model_validate(merged)


__all__ = [
    "Priority",
    "EnergyLevel",
    "ensure_energy_level",
    "ensure_priority",
    "coerce_due_date",
    "NonEmptyText",
    "IMMUTABLE_FIELDS",
    "Record",
    "Task",
    "HistoryEntry",
    "DesignCase",
    "DesignTerm",
    "EmotionLog",
    "RecordUpdate",
    "TaskUpdate",
    "partial_model_for",
    "COLLECTION_MODELS",
    "COLLECTION_UPDATE_MODELS",
    "apply_update",
]
