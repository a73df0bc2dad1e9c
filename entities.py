"""Domain entities for logged workouts."""

import datetime
import enum
from dataclasses import dataclass, field, replace
from typing import List, Optional


class SetType(enum.Enum):
    """Kind of set performed within an exercise."""

    WARMUP = ("warmup", "Warm-up")
    WORKING = ("working", "Working Set")
    DROP_SET = ("drop_set", "Drop Set")
    FAILURE = ("failure", "To Failure")

    def __new__(cls, value: str, display_name: str) -> "SetType":
        obj = object.__new__(cls)
        obj._value_ = value
        obj.display_name = display_name
        return obj

    @classmethod
    def from_value(cls, value: Optional[str]) -> "SetType":
        """Return the member stored as ``value``, or ``WORKING`` if unknown."""
        for member in cls:
            if member.value == value:
                return member
        return cls.WORKING


@dataclass
class ExerciseSet:
    """A single set within an exercise.

    Attributes:
        id: Primary key assigned on insert (None for new sets).
        order: Position of the set within its exercise, starting at 1.
        reps: Repetitions performed.
        weight: Load used, None for body weight.
        rest_time: Rest taken before this set, None for the first set.
        set_type: Warm-up, working, drop set or to failure.
    """

    order: int
    reps: int
    weight: Optional[float] = None
    rest_time: Optional[datetime.timedelta] = None
    set_type: SetType = SetType.WORKING
    id: Optional[int] = None

    @property
    def volume(self) -> float:
        return self.reps * (self.weight if self.weight is not None else 1)

    def copy_with(self, **changes) -> "ExerciseSet":
        return replace(self, **changes)

    def __str__(self) -> str:
        weight = "BW" if self.weight is None else f"{self.weight:g}"
        return f"#{self.order} {self.reps} x {weight} ({self.set_type.display_name})"


@dataclass
class WorkoutExercise:
    """An exercise performed as part of a workout."""

    name: str
    order: int
    sets: List[ExerciseSet] = field(default_factory=list)
    notes: Optional[str] = None
    id: Optional[int] = None

    @property
    def volume(self) -> float:
        return sum(s.volume for s in self.sets)

    @property
    def set_count(self) -> int:
        return len(self.sets)

    def copy_with(self, **changes) -> "WorkoutExercise":
        return replace(self, **changes)


@dataclass
class Workout:
    """A training session with its exercises."""

    name: str
    created_on: datetime.datetime = field(default_factory=datetime.datetime.now)
    exercises: List[WorkoutExercise] = field(default_factory=list)
    id: Optional[int] = None

    @property
    def volume(self) -> float:
        return sum(e.volume for e in self.exercises)

    @property
    def set_count(self) -> int:
        return sum(e.set_count for e in self.exercises)

    def copy_with(self, **changes) -> "Workout":
        return replace(self, **changes)


@dataclass(frozen=True)
class WorkoutSummary:
    """Lightweight view of a workout used by history listings."""

    id: int
    name: str
    created_on: datetime.datetime

    def __str__(self) -> str:
        return f"{self.id}: {self.name} ({self.created_on:%Y-%m-%d %H:%M})"
