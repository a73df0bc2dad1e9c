import asyncio
import sqlite3
import sys
from typing import Tuple

from db import AppDatabase, SCHEMA_VERSION


def stored_version(db_path: str) -> int:
    conn = sqlite3.connect(db_path)
    try:
        return int(conn.execute("PRAGMA user_version;").fetchone()[0])
    finally:
        conn.close()


async def _upgrade(db_path: str) -> int:
    db = AppDatabase(db_path)
    try:
        return await db.schema_version()
    finally:
        await db.close()


def migrate(db_path: str = "lograt.db") -> Tuple[int, int]:
    """Bring ``db_path`` to the current schema; return (old, new) versions."""
    old = stored_version(db_path)
    new = asyncio.run(_upgrade(db_path))
    return old, new


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else "lograt.db"
    before, after = migrate(path)
    if before == after:
        print(f"{path} already at schema version {SCHEMA_VERSION}")
    else:
        print(f"{path} migrated from schema version {before} to {after}")
