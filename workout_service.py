from __future__ import annotations

from typing import List, Optional

import aiosqlite

from db import AppDatabase, ExerciseSetDao, WorkoutDao, WorkoutExerciseDao
from entities import Workout, WorkoutExercise, WorkoutSummary
from logger import get_logger
from models import ExerciseSetModel, WorkoutExerciseModel, WorkoutModel
from settings_schema import Settings

logger = get_logger(__name__)


class WorkoutService:
    """Persist and load whole workouts across the three workout tables."""

    def __init__(self, db: AppDatabase, settings: Optional[Settings] = None) -> None:
        self.db = db
        self.settings = settings or Settings()
        self.workouts = WorkoutDao(db)
        self.exercises = WorkoutExerciseDao(db)
        self.sets = ExerciseSetDao(db)

    async def create_workout(self, workout: Workout) -> int:
        """Insert ``workout`` with all exercises and sets; return its new id."""
        async with self.db.transaction() as txn:
            workout_id = await self.workouts.insert_with_transaction(
                WorkoutModel.from_entity(workout.copy_with(id=None)), txn
            )
            await self._insert_children(workout_id, workout.exercises, txn)
        logger.info(
            f"Created workout #{workout_id} '{workout.name}' with "
            f"{len(workout.exercises)} exercises and {workout.set_count} sets"
        )
        return workout_id

    async def get_workout(self, workout_id: int) -> Optional[Workout]:
        model = await self.workouts.get_by_id(workout_id)
        if model is None:
            return None
        exercises: List[WorkoutExercise] = []
        for ex in await self.exercises.get_by_workout_id(workout_id):
            sets = [s.to_entity() for s in await self.sets.get_by_exercise_id(ex.id)]
            exercises.append(ex.to_entity(sets))
        return model.to_entity(exercises)

    async def get_recent_workouts(
        self, max_days_ago: int | None = None, limit: int | None = None
    ) -> List[WorkoutSummary]:
        if max_days_ago is None:
            max_days_ago = self.settings.recent_workout_days
        if limit is None:
            limit = self.settings.recent_workout_limit
        rows = await self.workouts.get_recent_summaries(max_days_ago=max_days_ago, limit=limit)
        return [r.to_entity() for r in rows]

    async def update_workout(self, workout: Workout) -> bool:
        """Replace the stored workout and its exercises and sets.

        Returns False when no workout with ``workout.id`` exists.
        """
        if workout.id is None:
            raise ValueError("cannot update a workout without an id")
        async with self.db.transaction() as txn:
            updated = await self.workouts.update_with_transaction(
                WorkoutModel.from_entity(workout), txn
            )
            if not updated:
                return False
            await self.exercises.delete_by_workout_id(workout.id, txn)
            await self._insert_children(workout.id, workout.exercises, txn)
        logger.info(f"Updated workout #{workout.id}")
        return True

    async def rename_workout(self, workout_id: int, name: str) -> bool:
        model = await self.workouts.get_by_id(workout_id)
        if model is None:
            return False
        return await self.workouts.update(model.copy_with(name=name)) > 0

    async def delete_workout(self, workout_id: int) -> bool:
        deleted = await self.workouts.delete(workout_id) > 0
        if deleted:
            logger.info(f"Deleted workout #{workout_id}")
        return deleted

    async def clear_all(self) -> None:
        async with self.db.transaction() as txn:
            for dao in (self.sets, self.exercises, self.workouts):
                await dao.clear_table(txn)

    async def _insert_children(
        self,
        workout_id: int,
        exercises: List[WorkoutExercise],
        txn: aiosqlite.Connection,
    ) -> None:
        for exercise in exercises:
            exercise_id = await self.exercises.insert_with_transaction(
                WorkoutExerciseModel.from_entity(exercise.copy_with(id=None), workout_id),
                txn,
            )
            await self.sets.insert_all_with_transaction(
                [
                    ExerciseSetModel.from_entity(s.copy_with(id=None), exercise_id)
                    for s in exercise.sets
                ],
                txn,
            )
