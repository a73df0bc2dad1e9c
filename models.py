"""Row models for the workout tables.

Each model mirrors one row shape and converts between domain entities and the
column mapping stored in SQLite.
"""

import datetime
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Mapping, Optional

from entities import ExerciseSet, SetType, Workout, WorkoutExercise, WorkoutSummary


def datetime_to_column(value: datetime.datetime) -> str:
    """Serialize ``value`` as local naive ISO-8601 text with milliseconds."""
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds")


def datetime_from_column(value: str) -> datetime.datetime:
    return datetime.datetime.fromisoformat(value)


def _get(row: Mapping[str, Any], key: str, default: Any = None) -> Any:
    # sqlite3.Row has keys() but no get()
    if key in row.keys():
        return row[key]
    return default


@dataclass
class WorkoutModel:
    """Row of the ``workouts`` table."""

    name: str
    created_on: datetime.datetime
    id: Optional[int] = None

    @classmethod
    def from_entity(cls, entity: Workout) -> "WorkoutModel":
        return cls(id=entity.id, name=entity.name, created_on=entity.created_on)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "WorkoutModel":
        return cls(
            id=row["id"],
            name=row["name"],
            created_on=datetime_from_column(row["created_on"]),
        )

    def to_entity(self, exercises: Optional[Iterable[WorkoutExercise]] = None) -> Workout:
        return Workout(
            id=self.id,
            name=self.name,
            created_on=self.created_on,
            exercises=list(exercises or []),
        )

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {}
        if self.id is not None:
            row["id"] = self.id
        row["name"] = self.name
        row["created_on"] = datetime_to_column(self.created_on)
        return row

    def copy_with(self, **changes) -> "WorkoutModel":
        return replace(self, **changes)


@dataclass(frozen=True)
class WorkoutSummaryModel:
    """Projection of ``workouts`` without child rows."""

    id: int
    name: str
    created_on: datetime.datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "WorkoutSummaryModel":
        return cls(
            id=row["id"],
            name=row["name"],
            created_on=datetime_from_column(row["created_on"]),
        )

    def to_entity(self) -> WorkoutSummary:
        return WorkoutSummary(id=self.id, name=self.name, created_on=self.created_on)


@dataclass
class WorkoutExerciseModel:
    """Row of the ``workout_exercises`` table."""

    workout_id: int
    name: str
    order: int
    notes: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def from_entity(cls, entity: WorkoutExercise, workout_id: int) -> "WorkoutExerciseModel":
        return cls(
            id=entity.id,
            workout_id=workout_id,
            name=entity.name,
            order=entity.order,
            notes=entity.notes,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "WorkoutExerciseModel":
        return cls(
            id=row["id"],
            workout_id=row["workout_id"],
            name=row["name"],
            order=row["exercise_order"],
            notes=_get(row, "notes"),
        )

    def to_entity(self, sets: Optional[Iterable[ExerciseSet]] = None) -> WorkoutExercise:
        return WorkoutExercise(
            id=self.id,
            name=self.name,
            order=self.order,
            notes=self.notes,
            sets=list(sets or []),
        )

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {}
        if self.id is not None:
            row["id"] = self.id
        row.update(
            {
                "workout_id": self.workout_id,
                "name": self.name,
                "exercise_order": self.order,
                "notes": self.notes,
            }
        )
        return row


@dataclass
class ExerciseSetModel:
    """Row of the ``exercise_sets`` table.

    ``rest_time_seconds`` holds the rest duration in whole seconds and
    ``set_type`` the stored value of a :class:`SetType`.
    """

    exercise_id: int
    order: int
    reps: int
    weight: Optional[float] = None
    rest_time_seconds: Optional[int] = None
    set_type: str = SetType.WORKING.value
    id: Optional[int] = None

    @classmethod
    def from_entity(cls, entity: ExerciseSet, exercise_id: int) -> "ExerciseSetModel":
        rest = None
        if entity.rest_time is not None:
            rest = int(entity.rest_time.total_seconds())
        return cls(
            id=entity.id,
            exercise_id=exercise_id,
            order=entity.order,
            reps=entity.reps,
            weight=entity.weight,
            rest_time_seconds=rest,
            set_type=entity.set_type.value,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ExerciseSetModel":
        return cls(
            id=row["id"],
            exercise_id=row["exercise_id"],
            order=row["set_order"],
            reps=row["reps"],
            weight=row["weight"],
            rest_time_seconds=row["rest_time_seconds"],
            set_type=_get(row, "set_type") or SetType.WORKING.value,
        )

    def to_entity(self) -> ExerciseSet:
        rest_time = None
        if self.rest_time_seconds is not None:
            rest_time = datetime.timedelta(seconds=self.rest_time_seconds)
        return ExerciseSet(
            id=self.id,
            order=self.order,
            reps=self.reps,
            weight=self.weight,
            rest_time=rest_time,
            set_type=SetType.from_value(self.set_type),
        )

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {}
        if self.id is not None:
            row["id"] = self.id
        row.update(
            {
                "exercise_id": self.exercise_id,
                "set_order": self.order,
                "reps": self.reps,
                "weight": self.weight,
                "rest_time_seconds": self.rest_time_seconds,
                "set_type": self.set_type,
            }
        )
        return row

    def __str__(self) -> str:
        return f"ExerciseSetModel(id={self.id}, exercise_id={self.exercise_id}, set={self.order})"
