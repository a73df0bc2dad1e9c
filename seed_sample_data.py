import asyncio
import datetime

from db import AppDatabase
from entities import ExerciseSet, SetType, Workout, WorkoutExercise
from workout_service import WorkoutService


def sample_workout(now: datetime.datetime | None = None) -> Workout:
    now = now or datetime.datetime.now()
    rest = datetime.timedelta(seconds=90)
    return Workout(
        name="Morning Push Workout",
        created_on=now,
        exercises=[
            WorkoutExercise(
                name="Bench Press",
                order=1,
                sets=[
                    ExerciseSet(order=1, reps=10, weight=60.0, set_type=SetType.WARMUP),
                    ExerciseSet(order=2, reps=5, weight=100.0, rest_time=rest),
                    ExerciseSet(order=3, reps=5, weight=105.0, rest_time=rest),
                ],
            ),
            WorkoutExercise(
                name="Push-up",
                order=2,
                notes="Body weight",
                sets=[
                    ExerciseSet(order=1, reps=20),
                    ExerciseSet(order=2, reps=12, rest_time=rest, set_type=SetType.FAILURE),
                ],
            ),
        ],
    )


async def seed(service: WorkoutService) -> int | None:
    """Insert the sample workout unless workouts already exist."""
    if await service.workouts.get_all():
        print("Database already contains workouts")
        return None
    workout_id = await service.create_workout(sample_workout())
    print("Seed data inserted")
    return workout_id


async def _main() -> None:
    db = AppDatabase()
    try:
        await seed(WorkoutService(db))
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(_main())
