import asyncio
import datetime
import sqlite3
from contextlib import asynccontextmanager, nullcontext
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple

import aiosqlite

from logger import get_logger
from models import (
    ExerciseSetModel,
    WorkoutExerciseModel,
    WorkoutModel,
    WorkoutSummaryModel,
    datetime_to_column,
)

logger = get_logger(__name__)

SCHEMA_VERSION = 1

RECENT_WORKOUT_DAYS = 90
RECENT_WORKOUT_LIMIT = 20


class AppDatabase:
    """Owns the SQLite connection and keeps the schema current."""

    _TABLE_DEFINITIONS = {
        "workouts": (
            """CREATE TABLE {name} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    created_on TEXT NOT NULL
                );""",
            ["id", "name", "created_on"],
        ),
        "workout_exercises": (
            """CREATE TABLE {name} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    exercise_order INTEGER NOT NULL,
                    notes TEXT,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            ["id", "workout_id", "name", "exercise_order", "notes"],
        ),
        "exercise_sets": (
            """CREATE TABLE {name} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_id INTEGER NOT NULL,
                    set_order INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    weight REAL,
                    rest_time_seconds INTEGER,
                    set_type TEXT NOT NULL DEFAULT 'working',
                    FOREIGN KEY(exercise_id) REFERENCES workout_exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "exercise_id",
                "set_order",
                "reps",
                "weight",
                "rest_time_seconds",
                "set_type",
            ],
        ),
    }

    _INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_workouts_created_on ON workouts(created_on);",
        "CREATE INDEX IF NOT EXISTS idx_workout_exercises_workout ON workout_exercises(workout_id);",
        "CREATE INDEX IF NOT EXISTS idx_exercise_sets_exercise ON exercise_sets(exercise_id);",
    ]

    # Fill values for NOT NULL columns missing from an older table layout.
    _COLUMN_DEFAULTS = {
        "name": "''",
        "created_on": "strftime('%Y-%m-%dT%H:%M:%f', 'now', 'localtime')",
        "exercise_order": "0",
        "set_order": "0",
        "reps": "0",
        "set_type": "'working'",
    }

    def __init__(self, db_path: str = "lograt.db") -> None:
        self._db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None
        self._open_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    @classmethod
    def in_memory(cls) -> "AppDatabase":
        return cls(":memory:")

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def write_lock(self) -> asyncio.Lock:
        """Held by a transaction for its whole body and by each plain write."""
        return self._write_lock

    async def database(self) -> aiosqlite.Connection:
        """Return the open connection, opening and migrating it on first use."""
        if self._conn is not None:
            return self._conn
        async with self._open_lock:
            if self._conn is None:
                conn = await aiosqlite.connect(self._db_path)
                conn.row_factory = aiosqlite.Row
                try:
                    await conn.execute("PRAGMA foreign_keys=off;")
                    await self._ensure_schema(conn)
                    await conn.execute("PRAGMA foreign_keys=on;")
                except Exception:
                    await conn.close()
                    raise
                self._conn = conn
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the enclosed statements in one transaction.

        Commits when the block exits normally; rolls back and re-raises on
        error or cancellation. Transactions and plain writes on the shared
        connection run one at a time. DAO ``*_with_transaction`` methods take
        the yielded connection; plain writes inside the block would wait on
        the block itself.
        """
        conn = await self.database()
        async with self._write_lock:
            await conn.execute("BEGIN;")
            try:
                yield conn
            except BaseException as e:
                await conn.rollback()
                logger.error(f"Transaction rolled back: {e!r}")
                raise
            else:
                await conn.commit()

    async def schema_version(self) -> int:
        conn = await self.database()
        return await self._user_version(conn)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @staticmethod
    async def _user_version(conn: aiosqlite.Connection) -> int:
        async with conn.execute("PRAGMA user_version;") as cursor:
            row = await cursor.fetchone()
        return int(row[0])

    async def _ensure_schema(self, conn: aiosqlite.Connection) -> None:
        version = await self._user_version(conn)
        if version > SCHEMA_VERSION:
            raise RuntimeError(
                f"database schema version {version} is newer than supported version {SCHEMA_VERSION}"
            )
        await conn.execute("BEGIN;")
        try:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                await self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEXES:
                await conn.execute(sql)
            if version != SCHEMA_VERSION:
                await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
        except Exception as e:
            await conn.rollback()
            logger.error(f"Failed to initialize schema for {self._db_path}: {e}")
            raise
        await conn.commit()
        if version != SCHEMA_VERSION:
            logger.info(
                f"Database {self._db_path} schema upgraded from version {version} to {SCHEMA_VERSION}"
            )

    async def _ensure_table(
        self, conn: aiosqlite.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        async with conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        ) as cursor:
            exists = await cursor.fetchone() is not None
        if not exists:
            await conn.execute(sql.format(name=table))
            logger.info(f"Created table {table}")
            return

        async with conn.execute(f"PRAGMA table_info({table});") as cursor:
            existing_cols = [row[1] for row in await cursor.fetchall()]
        if existing_cols == columns:
            return

        # Build the new layout beside the old one so foreign keys in child
        # tables keep pointing at the original table name.
        new_table = f"{table}_new"
        await conn.execute(f"DROP TABLE IF EXISTS {new_table};")
        await conn.execute(sql.format(name=new_table))
        common = [c for c in columns if c in existing_cols]
        missing = [
            c for c in columns if c not in existing_cols and c in self._COLUMN_DEFAULTS
        ]
        required = await self._required_columns(conn, new_table)
        unfilled = [
            c for c in required if c not in existing_cols and c not in self._COLUMN_DEFAULTS
        ]
        if unfilled:
            async with conn.execute(f"SELECT COUNT(*) FROM {table};") as cursor:
                row_count = (await cursor.fetchone())[0]
            if row_count:
                raise RuntimeError(
                    f"cannot rebuild {table}: {row_count} existing rows have no value "
                    f"for required column(s) {', '.join(unfilled)}"
                )
        if common or missing:
            target = ", ".join(common + missing)
            source = ", ".join(common + [self._COLUMN_DEFAULTS[c] for c in missing])
            await conn.execute(
                f"INSERT INTO {new_table} ({target}) SELECT {source} FROM {table};"
            )
        await conn.execute(f"DROP TABLE {table};")
        await conn.execute(f"ALTER TABLE {new_table} RENAME TO {table};")
        logger.info(
            f"Rebuilt table {table}: added {[c for c in columns if c not in existing_cols]}, "
            f"dropped {[c for c in existing_cols if c not in columns]}"
        )

    @staticmethod
    async def _required_columns(conn: aiosqlite.Connection, table: str) -> List[str]:
        """NOT NULL columns of ``table`` that have no default and are not the key."""
        async with conn.execute(f"PRAGMA table_info({table});") as cursor:
            rows = await cursor.fetchall()
        return [row[1] for row in rows if row[3] and row[4] is None and not row[5]]


class AsyncBaseRepository:
    """Query helpers shared by the DAOs.

    Every helper accepts an optional ``txn`` connection obtained from
    :meth:`AppDatabase.transaction`. Without one, a write waits for any open
    transaction and then commits immediately.
    """

    table = ""

    def __init__(self, db: AppDatabase) -> None:
        self._db = db

    async def _run(
        self, query: str, params: Sequence[Any], txn: Optional[aiosqlite.Connection]
    ) -> Tuple[int, int]:
        conn = txn if txn is not None else await self._db.database()
        async with nullcontext() if txn is not None else self._db.write_lock:
            try:
                async with conn.execute(query, params) as cursor:
                    result = (cursor.lastrowid, cursor.rowcount)
                if txn is None:
                    await conn.commit()
            except sqlite3.Error as e:
                if txn is None:
                    await conn.rollback()
                logger.error(f"Query on {self.table} failed: {e}")
                raise
        return result

    async def execute(
        self,
        query: str,
        params: Sequence[Any] = (),
        txn: Optional[aiosqlite.Connection] = None,
    ) -> int:
        """Run a write statement and return the last inserted row id."""
        lastrowid, _ = await self._run(query, params, txn)
        return int(lastrowid or 0)

    async def execute_rowcount(
        self,
        query: str,
        params: Sequence[Any] = (),
        txn: Optional[aiosqlite.Connection] = None,
    ) -> int:
        """Run a write statement and return the number of affected rows."""
        _, rowcount = await self._run(query, params, txn)
        return max(rowcount, 0)

    async def fetch_all(
        self,
        query: str,
        params: Sequence[Any] = (),
        txn: Optional[aiosqlite.Connection] = None,
    ) -> List[aiosqlite.Row]:
        conn = txn if txn is not None else await self._db.database()
        async with conn.execute(query, params) as cursor:
            return list(await cursor.fetchall())

    async def fetch_one(
        self,
        query: str,
        params: Sequence[Any] = (),
        txn: Optional[aiosqlite.Connection] = None,
    ) -> Optional[aiosqlite.Row]:
        rows = await self.fetch_all(query, params, txn)
        return rows[0] if rows else None

    async def _insert_row(
        self, row: Dict[str, Any], txn: Optional[aiosqlite.Connection] = None
    ) -> int:
        cols = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        return await self.execute(
            f"INSERT INTO {self.table} ({cols}) VALUES ({placeholders});",
            tuple(row.values()),
            txn,
        )

    async def _update_row(
        self,
        row_id: Optional[int],
        row: Dict[str, Any],
        txn: Optional[aiosqlite.Connection] = None,
    ) -> int:
        if row_id is None:
            raise ValueError(f"cannot update {self.table} row without an id")
        values = {k: v for k, v in row.items() if k != "id"}
        assignments = ", ".join(f"{k} = ?" for k in values)
        return await self.execute_rowcount(
            f"UPDATE {self.table} SET {assignments} WHERE id = ?;",
            (*values.values(), row_id),
            txn,
        )

    async def _delete_by_id(
        self, row_id: int, txn: Optional[aiosqlite.Connection] = None
    ) -> int:
        count = await self.execute_rowcount(
            f"DELETE FROM {self.table} WHERE id = ?;", (row_id,), txn
        )
        if count:
            logger.debug(f"Deleted {self.table} #{row_id}")
        return count

    async def _delete_all(self, txn: Optional[aiosqlite.Connection] = None) -> int:
        count = await self.execute_rowcount(f"DELETE FROM {self.table};", (), txn)
        logger.info(f"Cleared {count} rows from {self.table}")
        return count


def _require_name(name: str, what: str) -> None:
    if not name or not name.strip():
        raise ValueError(f"{what} name must not be empty")


class WorkoutDao(AsyncBaseRepository):
    """Data access for the ``workouts`` table."""

    table = "workouts"

    async def insert(self, workout: WorkoutModel) -> int:
        return await self.insert_with_transaction(workout, None)

    async def insert_with_transaction(
        self, workout: WorkoutModel, txn: Optional[aiosqlite.Connection]
    ) -> int:
        _require_name(workout.name, "workout")
        workout_id = await self._insert_row(workout.to_row(), txn)
        logger.debug(f"Inserted workout #{workout_id} '{workout.name}'")
        return workout_id

    async def get_by_id(self, workout_id: int) -> Optional[WorkoutModel]:
        row = await self.fetch_one(
            "SELECT id, name, created_on FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        return WorkoutModel.from_row(row) if row else None

    async def get_summary_by_id(self, workout_id: int) -> Optional[WorkoutSummaryModel]:
        row = await self.fetch_one(
            "SELECT id, name, created_on FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        return WorkoutSummaryModel.from_row(row) if row else None

    async def get_recent_summaries(
        self,
        max_days_ago: int = RECENT_WORKOUT_DAYS,
        limit: int = RECENT_WORKOUT_LIMIT,
    ) -> List[WorkoutSummaryModel]:
        """Return workouts created within ``max_days_ago`` days, newest first."""
        if max_days_ago < 0:
            raise ValueError("max_days_ago must be non-negative")
        if limit < 0:
            raise ValueError("limit must be non-negative")
        cutoff = datetime.datetime.now() - datetime.timedelta(days=max_days_ago)
        rows = await self.fetch_all(
            "SELECT id, name, created_on FROM workouts WHERE created_on >= ? "
            "ORDER BY created_on DESC, id DESC LIMIT ?;",
            (datetime_to_column(cutoff), limit),
        )
        return [WorkoutSummaryModel.from_row(r) for r in rows]

    async def get_all(self) -> List[WorkoutModel]:
        rows = await self.fetch_all(
            "SELECT id, name, created_on FROM workouts ORDER BY created_on DESC, id DESC;"
        )
        return [WorkoutModel.from_row(r) for r in rows]

    async def update(self, workout: WorkoutModel) -> int:
        return await self.update_with_transaction(workout, None)

    async def update_with_transaction(
        self, workout: WorkoutModel, txn: Optional[aiosqlite.Connection]
    ) -> int:
        _require_name(workout.name, "workout")
        return await self._update_row(workout.id, workout.to_row(), txn)

    async def delete(
        self, workout_id: int, txn: Optional[aiosqlite.Connection] = None
    ) -> int:
        return await self._delete_by_id(workout_id, txn)

    async def clear_table(self, txn: Optional[aiosqlite.Connection] = None) -> int:
        return await self._delete_all(txn)


class WorkoutExerciseDao(AsyncBaseRepository):
    """Data access for the ``workout_exercises`` table."""

    table = "workout_exercises"

    _COLUMNS = "id, workout_id, name, exercise_order, notes"

    async def insert(self, exercise: WorkoutExerciseModel) -> int:
        return await self.insert_with_transaction(exercise, None)

    async def insert_with_transaction(
        self, exercise: WorkoutExerciseModel, txn: Optional[aiosqlite.Connection]
    ) -> int:
        _require_name(exercise.name, "exercise")
        exercise_id = await self._insert_row(exercise.to_row(), txn)
        logger.debug(
            f"Inserted exercise #{exercise_id} '{exercise.name}' into workout #{exercise.workout_id}"
        )
        return exercise_id

    async def get_by_id(self, exercise_id: int) -> Optional[WorkoutExerciseModel]:
        row = await self.fetch_one(
            f"SELECT {self._COLUMNS} FROM workout_exercises WHERE id = ?;",
            (exercise_id,),
        )
        return WorkoutExerciseModel.from_row(row) if row else None

    async def get_by_workout_id(
        self, workout_id: int, txn: Optional[aiosqlite.Connection] = None
    ) -> List[WorkoutExerciseModel]:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_exercises WHERE workout_id = ? "
            "ORDER BY exercise_order, id;",
            (workout_id,),
            txn,
        )
        return [WorkoutExerciseModel.from_row(r) for r in rows]

    async def update(self, exercise: WorkoutExerciseModel) -> int:
        return await self.update_with_transaction(exercise, None)

    async def update_with_transaction(
        self, exercise: WorkoutExerciseModel, txn: Optional[aiosqlite.Connection]
    ) -> int:
        _require_name(exercise.name, "exercise")
        return await self._update_row(exercise.id, exercise.to_row(), txn)

    async def delete(
        self, exercise_id: int, txn: Optional[aiosqlite.Connection] = None
    ) -> int:
        return await self._delete_by_id(exercise_id, txn)

    async def delete_by_workout_id(
        self, workout_id: int, txn: Optional[aiosqlite.Connection] = None
    ) -> int:
        return await self.execute_rowcount(
            "DELETE FROM workout_exercises WHERE workout_id = ?;", (workout_id,), txn
        )

    async def clear_table(self, txn: Optional[aiosqlite.Connection] = None) -> int:
        return await self._delete_all(txn)


class ExerciseSetDao(AsyncBaseRepository):
    """Data access for the ``exercise_sets`` table."""

    table = "exercise_sets"

    _COLUMNS = "id, exercise_id, set_order, reps, weight, rest_time_seconds, set_type"

    @staticmethod
    def _validate(exercise_set: ExerciseSetModel) -> None:
        if exercise_set.reps < 0:
            raise ValueError("reps must be non-negative")
        if exercise_set.weight is not None and exercise_set.weight < 0:
            raise ValueError("weight must be non-negative")
        if exercise_set.rest_time_seconds is not None and exercise_set.rest_time_seconds < 0:
            raise ValueError("rest time must be non-negative")

    async def insert(self, exercise_set: ExerciseSetModel) -> int:
        return await self.insert_with_transaction(exercise_set, None)

    async def insert_with_transaction(
        self, exercise_set: ExerciseSetModel, txn: Optional[aiosqlite.Connection]
    ) -> int:
        self._validate(exercise_set)
        set_id = await self._insert_row(exercise_set.to_row(), txn)
        logger.debug(f"Inserted set #{set_id} into exercise #{exercise_set.exercise_id}")
        return set_id

    async def insert_all_with_transaction(
        self, exercise_sets: Iterable[ExerciseSetModel], txn: aiosqlite.Connection
    ) -> List[int]:
        return [await self.insert_with_transaction(s, txn) for s in exercise_sets]

    async def get_by_id(self, set_id: int) -> Optional[ExerciseSetModel]:
        row = await self.fetch_one(
            f"SELECT {self._COLUMNS} FROM exercise_sets WHERE id = ?;",
            (set_id,),
        )
        return ExerciseSetModel.from_row(row) if row else None

    async def get_by_exercise_id(
        self, exercise_id: int, txn: Optional[aiosqlite.Connection] = None
    ) -> List[ExerciseSetModel]:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_sets WHERE exercise_id = ? "
            "ORDER BY set_order, id;",
            (exercise_id,),
            txn,
        )
        return [ExerciseSetModel.from_row(r) for r in rows]

    async def update(self, exercise_set: ExerciseSetModel) -> int:
        return await self.update_with_transaction(exercise_set, None)

    async def update_with_transaction(
        self, exercise_set: ExerciseSetModel, txn: Optional[aiosqlite.Connection]
    ) -> int:
        self._validate(exercise_set)
        return await self._update_row(exercise_set.id, exercise_set.to_row(), txn)

    async def delete(
        self, set_id: int, txn: Optional[aiosqlite.Connection] = None
    ) -> int:
        return await self._delete_by_id(set_id, txn)

    async def delete_by_exercise_id(
        self, exercise_id: int, txn: Optional[aiosqlite.Connection] = None
    ) -> int:
        return await self.execute_rowcount(
            "DELETE FROM exercise_sets WHERE exercise_id = ?;", (exercise_id,), txn
        )

    async def clear_table(self, txn: Optional[aiosqlite.Connection] = None) -> int:
        return await self._delete_all(txn)
