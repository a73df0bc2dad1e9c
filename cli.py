import argparse
import asyncio
import shutil
from typing import List, Optional

from config import load_settings
from db import AppDatabase
from entities import Workout
from logger import configure_logging
from migrate import migrate
from seed_sample_data import seed
from settings_schema import Settings
from workout_service import WorkoutService


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def format_workout(workout: Workout, unit: str = "kg") -> str:
    lines = [
        f"{workout.name} ({workout.created_on:%Y-%m-%d %H:%M})",
        f"  {len(workout.exercises)} exercises, {workout.set_count} sets, volume {workout.volume:g}",
    ]
    for exercise in workout.exercises:
        header = f"  {exercise.order}. {exercise.name}"
        if exercise.notes:
            header += f" - {exercise.notes}"
        lines.append(header)
        for s in exercise.sets:
            weight = "BW" if s.weight is None else f"{s.weight:g} {unit}"
            rest = f", rest {int(s.rest_time.total_seconds())}s" if s.rest_time else ""
            lines.append(
                f"     set {s.order}: {s.reps} x {weight} [{s.set_type.display_name}]{rest}"
            )
    return "\n".join(lines)


async def _run(settings: Settings, action) -> object:
    db = AppDatabase(settings.db_path)
    try:
        return await action(WorkoutService(db, settings))
    finally:
        await db.close()


def history(settings: Settings, days: Optional[int] = None, limit: Optional[int] = None) -> List[str]:
    async def action(service: WorkoutService):
        return await service.get_recent_workouts(days, limit)

    summaries = asyncio.run(_run(settings, action))
    if not summaries:
        return ["No workouts yet."]
    return [str(s) for s in summaries]


def show(settings: Settings, workout_id: int) -> str:
    async def action(service: WorkoutService):
        return await service.get_workout(workout_id)

    workout = asyncio.run(_run(settings, action))
    if workout is None:
        return f"Workout {workout_id} not found"
    return format_workout(workout, settings.weight_unit)


def delete(settings: Settings, workout_id: int) -> str:
    async def action(service: WorkoutService):
        return await service.delete_workout(workout_id)

    if asyncio.run(_run(settings, action)):
        return f"Deleted workout {workout_id}"
    return f"Workout {workout_id} not found"


def demo_data(settings: Settings) -> Optional[int]:
    return asyncio.run(_run(settings, seed))


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="LogRat workout log utilities")
    parser.add_argument("--config", default="settings.yaml")
    sub = parser.add_subparsers(dest="cmd", required=True)

    hist = sub.add_parser("history")
    hist.add_argument("--days", type=int)
    hist.add_argument("--limit", type=int)

    shw = sub.add_parser("show")
    shw.add_argument("workout_id", type=int)

    dele = sub.add_parser("delete")
    dele.add_argument("workout_id", type=int)

    sub.add_parser("demo")
    sub.add_parser("migrate")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    args = parser.parse_args(argv)
    settings = load_settings(args.config)
    configure_logging(settings)

    if args.cmd == "history":
        print("\n".join(history(settings, args.days, args.limit)))
    elif args.cmd == "show":
        print(show(settings, args.workout_id))
    elif args.cmd == "delete":
        print(delete(settings, args.workout_id))
    elif args.cmd == "demo":
        demo_data(settings)
    elif args.cmd == "migrate":
        before, after = migrate(settings.db_path)
        print(f"Schema version {before} -> {after}")
    elif args.cmd == "backup":
        backup_db(settings.db_path, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, settings.db_path)


if __name__ == "__main__":
    main()
