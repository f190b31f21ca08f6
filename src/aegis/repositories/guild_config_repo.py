"""
Repository for the guild settings, banned words and escalation rule tables.

No transactions here: the caller owns the connection and its transaction.
"""

from __future__ import annotations

from typing import Dict, Iterable

import aiosqlite

from aegis.datatypes.guild_config import EscalationRule, GuildConfig, rule_from_dict, rule_to_dict
from aegis.util.logger import get_logger

logger = get_logger("guild_config_repo")


class GuildConfigRepository:
    """CRUD for the three per-guild configuration tables."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, conn: aiosqlite.Connection, guild_id: str) -> GuildConfig | None:
        """Fetch a guild's full configuration, or None if the guild has no settings row."""
        async with conn.execute(
            """
            SELECT log_channel_id, auto_role_id, verification_role_id
            FROM guild_settings
            WHERE guild_id = ?
            """,
            (guild_id,),
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None

        return GuildConfig(
            guild_id=guild_id,
            banned_words=await self.get_banned_words(conn, guild_id),
            escalation_rules=await self.get_escalation_rules(conn, guild_id),
            log_channel_id=row[0],
            auto_role_id=row[1],
            verification_role_id=row[2],
        )

    async def get_banned_words(self, conn: aiosqlite.Connection, guild_id: str) -> frozenset[str]:
        async with conn.execute(
            "SELECT word FROM guild_banned_words WHERE guild_id = ?",
            (guild_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return frozenset(row[0] for row in rows)

    async def get_escalation_rules(self, conn: aiosqlite.Connection, guild_id: str) -> Dict[int, EscalationRule]:
        async with conn.execute(
            "SELECT warning_count, action, duration FROM guild_escalation_rules WHERE guild_id = ?",
            (guild_id,),
        ) as cursor:
            rows = await cursor.fetchall()

        rules: Dict[int, EscalationRule] = {}
        for warning_count, action, duration in rows:
            rules[int(warning_count)] = rule_from_dict({"action": action, "duration": duration})
        return rules

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def ensure_row(self, conn: aiosqlite.Connection, guild_id: str) -> None:
        """Create an empty settings row so dependent rows satisfy the foreign key."""
        await conn.execute(
            "INSERT OR IGNORE INTO guild_settings (guild_id) VALUES (?)",
            (guild_id,),
        )

    async def update_channels(
        self,
        conn: aiosqlite.Connection,
        guild_id: str,
        *,
        log_channel_id: str | None = None,
        auto_role_id: str | None = None,
        verification_role_id: str | None = None,
    ) -> None:
        """Overwrite the scalar settings that are not None."""
        await conn.execute(
            """
            UPDATE guild_settings SET
                log_channel_id       = COALESCE(?, log_channel_id),
                auto_role_id         = COALESCE(?, auto_role_id),
                verification_role_id = COALESCE(?, verification_role_id)
            WHERE guild_id = ?
            """,
            (log_channel_id, auto_role_id, verification_role_id, guild_id),
        )

    async def clear_settings(self, conn: aiosqlite.Connection, guild_id: str, columns: Iterable[str]) -> None:
        """Reset scalar settings to NULL. ``columns`` must come from ``CLEARABLE_SETTINGS``."""
        assignments = ", ".join(f"{column} = NULL" for column in sorted(columns))
        if not assignments:
            return
        await conn.execute(f"UPDATE guild_settings SET {assignments} WHERE guild_id = ?", (guild_id,))

    async def add_banned_words(self, conn: aiosqlite.Connection, guild_id: str, words: Iterable[str]) -> None:
        await conn.executemany(
            "INSERT OR IGNORE INTO guild_banned_words (guild_id, word) VALUES (?, ?)",
            [(guild_id, word) for word in words],
        )

    async def clear_banned_words(self, conn: aiosqlite.Connection, guild_id: str) -> None:
        await conn.execute("DELETE FROM guild_banned_words WHERE guild_id = ?", (guild_id,))

    async def upsert_escalation_rules(
        self, conn: aiosqlite.Connection, guild_id: str, rules: Dict[int, EscalationRule]
    ) -> None:
        """Insert or replace rules keyed by warning count."""
        rows = []
        for warning_count, rule in rules.items():
            payload = rule_to_dict(rule)
            rows.append((guild_id, int(warning_count), payload["action"], payload["duration"]))

        await conn.executemany(
            """
            INSERT INTO guild_escalation_rules (guild_id, warning_count, action, duration)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(guild_id, warning_count) DO UPDATE SET
                action   = excluded.action,
                duration = excluded.duration
            """,
            rows,
        )

    async def clear_escalation_rules(self, conn: aiosqlite.Connection, guild_id: str) -> None:
        await conn.execute("DELETE FROM guild_escalation_rules WHERE guild_id = ?", (guild_id,))
