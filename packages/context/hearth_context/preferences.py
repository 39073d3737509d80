"""
SQLite persistence for the preferred active group.

Stores one row per user under the key ``active_group:<user_id>``. Every
operation is best-effort: storage failures are logged and behave as if no
preference were stored.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone

import aiosqlite
import structlog

from .errors import PersistenceFailure

log = structlog.get_logger()

KEY_PREFIX = "active_group"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS preferences (
    pref_key    TEXT PRIMARY KEY,
    group_id    TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""


def preference_key(user_id: str) -> str:
    return f"{KEY_PREFIX}:{user_id}"


class PreferenceStore:
    """Async SQLite store for the per-user preferred group id."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> None:
        try:
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
            self._db = await aiosqlite.connect(self._db_path)
            self._db.row_factory = aiosqlite.Row
            await self._db.executescript(_SCHEMA)
            await self._db.commit()
        except (aiosqlite.Error, OSError) as exc:
            # Keep running without persistence
            log.warning("preferences.open_failed", path=self._db_path, error=str(exc))
            await self.close()

    async def close(self) -> None:
        if self._db:
            try:
                await self._db.close()
            except (aiosqlite.Error, OSError) as exc:
                log.warning("preferences.close_failed", error=str(exc))
            self._db = None

    @property
    def available(self) -> bool:
        return self._db is not None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise PersistenceFailure(f"Preference store not open: {self._db_path}")
        return self._db

    async def read_preferred(self, user_id: str) -> str | None:
        """Return the stored group id for ``user_id``, or None. Never raises."""
        try:
            cursor = await self._conn().execute(
                "SELECT group_id FROM preferences WHERE pref_key = ?",
                (preference_key(user_id),),
            )
            row = await cursor.fetchone()
        except (PersistenceFailure, aiosqlite.Error, OSError) as exc:
            log.warning("preferences.read_failed", user_id=user_id, error=str(exc))
            return None
        return row["group_id"] if row else None

    async def write_preferred(self, user_id: str, group_id: str) -> bool:
        """Store ``group_id`` for ``user_id``. Returns False if it was not persisted."""
        now = datetime.now(timezone.utc).isoformat()
        try:
            db = self._conn()
            await db.execute(
                """INSERT INTO preferences (pref_key, group_id, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(pref_key) DO UPDATE SET group_id=?, updated_at=?""",
                (preference_key(user_id), group_id, now, group_id, now),
            )
            await db.commit()
        except (PersistenceFailure, aiosqlite.Error, OSError) as exc:
            log.warning(
                "preferences.write_failed",
                user_id=user_id,
                group_id=group_id,
                error=str(exc),
            )
            return False
        return True

    async def clear(self, user_id: str) -> None:
        try:
            db = self._conn()
            await db.execute(
                "DELETE FROM preferences WHERE pref_key = ?", (preference_key(user_id),)
            )
            await db.commit()
        except (PersistenceFailure, aiosqlite.Error, OSError) as exc:
            log.warning("preferences.clear_failed", user_id=user_id, error=str(exc))
