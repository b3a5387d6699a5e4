from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Sequence

import aiosqlite

from medaid.config import DATABASE_PATH

logger = logging.getLogger(__name__)


@dataclass
class SQLiteAdapter:
    conn: aiosqlite.Connection

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        await self.conn.execute(query, params or ())

    async def fetch_one(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchone()

    async def commit(self) -> None:
        await self.conn.commit()

    async def close(self) -> None:
        await self.conn.close()

    async def executescript(self, script: str) -> None:
        await self.conn.executescript(script)


_db: SQLiteAdapter | None = None


async def get_db() -> SQLiteAdapter:
    global _db
    if _db is None:
        conn = await aiosqlite.connect(DATABASE_PATH)
        conn.row_factory = aiosqlite.Row
        _db = SQLiteAdapter(conn)
        logger.info("Connected to SQLite database at %s", DATABASE_PATH)
    return _db


SQLITE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS records (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
"""


async def init_db() -> None:
    db = await get_db()
    await db.executescript(SQLITE_SCHEMA)
    await db.commit()


async def close_db() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None


async def read_record(key: str) -> str | None:
    """Return the stored JSON text for a named record, or None when absent."""
    db = await get_db()
    row = await db.fetch_one("SELECT value FROM records WHERE key = ?", (key,))
    return row["value"] if row else None


async def write_record(key: str, value: str) -> None:
    """Overwrite a named record in a single statement and commit."""
    db = await get_db()
    now = datetime.now(UTC).isoformat()
    await db.execute(
        """INSERT INTO records (key, value, updated_at) VALUES (?, ?, ?)
           ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at""",
        (key, value, now),
    )
    await db.commit()


async def delete_record(key: str) -> None:
    db = await get_db()
    await db.execute("DELETE FROM records WHERE key = ?", (key,))
    await db.commit()
