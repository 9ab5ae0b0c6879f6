from datetime import date, datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def to_datetime(value: Any) -> datetime | None:
    """Rehydrate a stored timestamp (epoch ms, ISO string or datetime) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class WorkoutSet(_CamelModel):
    set_number: int
    weight: float = 0
    completed: bool = False
    completed_at: datetime | None = None

    @field_validator("weight", mode="before")
    @classmethod
    def _clamp_weight(cls, value: Any) -> float:
        if value is None or value == "":
            return 0
        return max(0.0, float(value))

    @field_validator("completed_at", mode="before")
    @classmethod
    def _parse_completed_at(cls, value: Any) -> datetime | None:
        return to_datetime(value)


class ExerciseLog(_CamelModel):
    exercise_id: str
    user_id: str
    date: str
    sets: list[WorkoutSet] = Field(default_factory=list)

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, value: Any) -> str:
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        return date.fromisoformat(str(value)).isoformat()

    @property
    def completed_count(self) -> int:
        return sum(1 for workout_set in self.sets if workout_set.completed)


class ExerciseDefinition(_CamelModel):
    id: str
    name: str = ""
    sets: int = Field(default=0, ge=0)
    reps: int = 0
    rest_time: int | None = Field(default=None, validation_alias=AliasChoices("restTime", "restSeconds", "rest_time"))


class TimerState(_CamelModel):
    time_left: int = 0
    is_active: bool = False
    initial_time: int = 0
    start_time: int | None = None
    has_notified: bool = False

    @classmethod
    def zero(cls) -> "TimerState":
        return cls()


class ProgressSnapshot(_CamelModel):
    session_id: str
    exercise_logs: list[ExerciseLog] = Field(default_factory=list)
    timestamp: int


class WorkoutSession(_CamelModel):
    id: str
    user_id: str
    routine_id: str | None = None
    routine_name: str = ""
    started_at: datetime
    completed_at: datetime | None = None
    exercises: list[ExerciseLog] = Field(default_factory=list)
    total_duration: int | None = None

    @field_validator("started_at", "completed_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> datetime | None:
        return to_datetime(value)


def has_completed_sets(logs: list[ExerciseLog]) -> bool:
    return any(log.completed_count for log in logs)


def replace_log(logs: list[ExerciseLog], log: ExerciseLog) -> list[ExerciseLog]:
    """Return ``logs`` with ``log`` superseding the entry for the same exercise.

    A session holds one log per exercise, whatever date it was started on.
    """
    updated = [existing if existing.exercise_id != log.exercise_id else log for existing in logs]
    if not any(existing.exercise_id == log.exercise_id for existing in logs):
        updated.append(log)
    return updated
