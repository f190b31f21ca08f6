"""
Persistent storage for moderation records.

Timestamps are stored as ISO-8601 UTC strings. Rows are never deleted; the
autoincrement id doubles as the tie-breaker for records written within the
same microsecond, so "most recent first" is ``ORDER BY timestamp DESC, id DESC``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List

import aiosqlite

from aegis.datatypes.action_datatypes import ActionType, ModerationRecord
from aegis.util.logger import get_logger

logger = get_logger("moderation_records_repo")

_COLUMNS = (
    "id, action, target_id, target_tag, moderator_id, moderator_tag, "
    "reason, duration, timestamp, edited_at, edited_by"
)


def _parse_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_record(row: aiosqlite.Row) -> ModerationRecord:
    return ModerationRecord(
        record_id=row[0],
        action=ActionType(row[1]),
        target_id=row[2],
        target_tag=row[3],
        moderator_id=row[4],
        moderator_tag=row[5],
        reason=row[6],
        duration=row[7],
        timestamp=_parse_timestamp(row[8]),
        edited_at=_parse_timestamp(row[9]),
        edited_by=row[10],
    )


class ModerationRecordRepository:
    """Low-level access to the ``moderation_records`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, conn: aiosqlite.Connection, guild_id: str, record: ModerationRecord) -> int:
        """Insert a record and return its row id. ``record.timestamp`` must be set."""
        cursor = await conn.execute(
            """
            INSERT INTO moderation_records (
                guild_id, action, target_id, target_tag, moderator_id, moderator_tag,
                reason, duration, timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                guild_id,
                record.action.value,
                record.target_id,
                record.target_tag,
                record.moderator_id,
                record.moderator_tag,
                record.reason,
                record.duration,
                record.timestamp.isoformat() if record.timestamp else None,
            ),
        )
        return cursor.lastrowid

    async def update_reason(
        self,
        conn: aiosqlite.Connection,
        guild_id: str,
        record_id: int,
        reason: str,
        edited_at: datetime,
        edited_by: str,
    ) -> int:
        """Edit a record's reason and stamp the edit. Returns the number of rows changed."""
        cursor = await conn.execute(
            """
            UPDATE moderation_records
            SET reason = ?, edited_at = ?, edited_by = ?
            WHERE guild_id = ? AND id = ?
            """,
            (reason, edited_at.isoformat(), edited_by, guild_id, record_id),
        )
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, conn: aiosqlite.Connection, guild_id: str, record_id: int) -> ModerationRecord | None:
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM moderation_records WHERE guild_id = ? AND id = ?",
            (guild_id, record_id),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def query(
        self,
        conn: aiosqlite.Connection,
        guild_id: str,
        target_id: str | None = None,
        actions: Iterable[ActionType] | None = None,
    ) -> List[ModerationRecord]:
        """Return matching records, most recent first."""
        clauses = ["guild_id = ?"]
        params: list = [guild_id]

        if target_id is not None:
            clauses.append("target_id = ?")
            params.append(target_id)

        if actions is not None:
            action_values = sorted(action.value for action in actions)
            if not action_values:
                return []
            placeholders = ",".join("?" * len(action_values))
            clauses.append(f"action IN ({placeholders})")
            params.extend(action_values)

        async with conn.execute(
            f"""
            SELECT {_COLUMNS} FROM moderation_records
            WHERE {" AND ".join(clauses)}
            ORDER BY timestamp DESC, id DESC
            """,
            params,
        ) as cursor:
            rows = await cursor.fetchall()

        return [_row_to_record(row) for row in rows]
