"""
Store: the narrow persistence interface used by the moderation core.

Responsibilities:
- Read and patch a guild's configuration
- Append, query and edit moderation records

All SQL lives in the repositories; the store owns transactions and turns
every storage failure into :class:`PersistenceError`.
"""

from __future__ import annotations

import dataclasses
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, FrozenSet, Iterator, List

import aiosqlite

from aegis.database.db_connection import ConnectionManager
from aegis.datatypes.action_datatypes import ActionType, ModerationRecord
from aegis.datatypes.guild_config import CLEARABLE_SETTINGS, GuildConfig, GuildConfigPatch
from aegis.repositories.guild_config_repo import GuildConfigRepository
from aegis.repositories.moderation_records_repo import ModerationRecordRepository
from aegis.util.errors import NotFoundError, PersistenceError, ValidationError
from aegis.util.logger import get_logger

logger = get_logger("store")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class RecordFilter:
    """Selects moderation records by target and/or action."""
    target_id: str | None = None
    actions: FrozenSet[ActionType] | None = None


@contextmanager
def _persistence_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (aiosqlite.Error, RuntimeError) as exc:
        logger.error("[STORE] %s failed: %s", operation, exc)
        raise PersistenceError(f"{operation} failed: {exc}") from exc


class Store:
    """
    Store backed by the shared SQLite connection.

    Args:
        connection: Open (or later opened) connection manager
        clock: Source of record timestamps, UTC
    """

    def __init__(self, connection: ConnectionManager, clock: Callable[[], datetime] = utcnow) -> None:
        self._connection = connection
        self._clock = clock
        self._guild_config_repo = GuildConfigRepository()
        self._records_repo = ModerationRecordRepository()

    # ------------------------------------------------------------------
    # Guild configuration
    # ------------------------------------------------------------------

    async def get_guild_config(self, guild_id: str) -> GuildConfig | None:
        """Return the guild's configuration, or None if it never stored any."""
        with _persistence_errors("get_guild_config"):
            async with self._connection.read() as conn:
                return await self._guild_config_repo.get(conn, guild_id)

    async def set_guild_config(self, guild_id: str, patch: GuildConfigPatch, merge: bool = True) -> None:
        """
        Apply a partial configuration update in one transaction.

        With ``merge`` the patch's banned words are added and its rules are
        merged by warning count; without it, each collection present in the
        patch replaces the stored one. Scalar fields that are None are kept;
        those named in ``patch.cleared`` are reset.

        Raises:
            ValidationError: If ``patch.cleared`` names an unknown setting.
            PersistenceError: If the write fails.
        """
        unknown = patch.cleared - CLEARABLE_SETTINGS
        if unknown:
            raise ValidationError(f"Cannot clear unknown settings: {sorted(unknown)}")

        with _persistence_errors("set_guild_config"):
            async with self._connection.transaction() as conn:
                repo = self._guild_config_repo
                await repo.ensure_row(conn, guild_id)
                await repo.update_channels(
                    conn,
                    guild_id,
                    log_channel_id=patch.log_channel_id,
                    auto_role_id=patch.auto_role_id,
                    verification_role_id=patch.verification_role_id,
                )
                await repo.clear_settings(conn, guild_id, patch.cleared)

                if patch.banned_words is not None:
                    if not merge:
                        await repo.clear_banned_words(conn, guild_id)
                    await repo.add_banned_words(conn, guild_id, sorted(patch.banned_words))

                if patch.escalation_rules is not None:
                    if not merge:
                        await repo.clear_escalation_rules(conn, guild_id)
                    await repo.upsert_escalation_rules(conn, guild_id, patch.escalation_rules)

        logger.debug("[STORE] Updated config of guild %s (merge=%s)", guild_id, merge)

    # ------------------------------------------------------------------
    # Moderation records
    # ------------------------------------------------------------------

    async def append_moderation_record(self, guild_id: str, record: ModerationRecord) -> ModerationRecord:
        """Append a record, stamping its timestamp. Returns the stored copy with its id."""
        stored = dataclasses.replace(record, timestamp=self._clock(), edited_at=None, edited_by=None)
        with _persistence_errors("append_moderation_record"):
            async with self._connection.transaction() as conn:
                stored.record_id = await self._records_repo.insert(conn, guild_id, stored)

        logger.debug(
            "[STORE] Appended %s record #%s for user %s in guild %s",
            stored.action.value, stored.record_id, stored.target_id, guild_id,
        )
        return stored

    async def query_moderation_records(self, guild_id: str, record_filter: RecordFilter) -> List[ModerationRecord]:
        """Return the guild's records matching the filter, most recent first."""
        with _persistence_errors("query_moderation_records"):
            async with self._connection.read() as conn:
                return await self._records_repo.query(
                    conn, guild_id, target_id=record_filter.target_id, actions=record_filter.actions
                )

    async def edit_moderation_record(
        self, guild_id: str, record_id: int, reason: str, edited_by: str
    ) -> ModerationRecord:
        """
        Change a record's reason and stamp ``edited_at``/``edited_by``.

        Raises:
            NotFoundError: If the record does not exist in this guild.
            PersistenceError: If the write fails.
        """
        with _persistence_errors("edit_moderation_record"):
            async with self._connection.transaction() as conn:
                changed = await self._records_repo.update_reason(
                    conn, guild_id, record_id, reason, self._clock(), edited_by
                )
                updated = await self._records_repo.get(conn, guild_id, record_id) if changed else None

        if updated is None:
            raise NotFoundError(f"No moderation record #{record_id} in guild {guild_id}")
        return updated
