"""
Append-only writer and reader of moderation records.

Records are never deleted; a user's effective warning count is the number of
``warn`` and ``auto-warn`` records targeting them.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, List, Set

from aegis.database.store import RecordFilter, Store
from aegis.datatypes.action_datatypes import WARNING_ACTIONS, ActionType, ModerationRecord
from aegis.util.errors import NotFoundError
from aegis.util.logger import get_logger

logger = get_logger("moderation_recorder")


class ModerationRecorder:
    """
    Thin layer over the store for moderation records.

    Args:
        store: Persistence backend
    """

    def __init__(self, store: Store) -> None:
        self._store = store
        self._pending: Set[asyncio.Task] = set()

    # ========== Writes ==========

    async def append(self, guild_id: str, record: ModerationRecord) -> ModerationRecord:
        """
        Durably append a record and return the stored copy (with id and timestamp).

        Raises:
            PersistenceError: If the write fails.
        """
        stored = await self._store.append_moderation_record(guild_id, record)
        logger.info(
            "[RECORDER] %s on user %s by %s in guild %s",
            stored.action.value, stored.target_id, stored.moderator_id, guild_id,
        )
        return stored

    def append_nowait(self, guild_id: str, record: ModerationRecord) -> asyncio.Task:
        """
        Schedule an append without waiting for it.

        The write's failure is logged when the task finishes; use ``flush()``
        to wait for outstanding writes.
        """
        task = asyncio.get_running_loop().create_task(self.append(guild_id, record))
        self._pending.add(task)

        def _cleanup(completed: asyncio.Task) -> None:
            self._pending.discard(completed)
            if completed.cancelled():
                return
            exc = completed.exception()
            if exc is not None:
                logger.error(
                    "[RECORDER] Background append of %s for user %s in guild %s failed: %s",
                    record.action.value, record.target_id, guild_id, exc,
                )

        task.add_done_callback(_cleanup)
        return task

    async def flush(self) -> None:
        """Wait for every scheduled append to finish."""
        await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()

    async def edit_reason(
        self,
        guild_id: str,
        target_id: str,
        case_number: int,
        new_reason: str,
        editor: str,
    ) -> ModerationRecord:
        """
        Edit the reason of one of a user's manual warnings.

        ``case_number`` is 1-based over the user's ``warn`` records ordered
        most recent first, so case 1 is the latest warning.

        Raises:
            NotFoundError: If the user has fewer than ``case_number`` warnings.
            PersistenceError: If the read or write fails.
        """
        record = await self.get_warning_case(guild_id, target_id, case_number)
        updated = await self._store.edit_moderation_record(guild_id, record.record_id, new_reason, editor)
        logger.info(
            "[RECORDER] Case #%d of user %s in guild %s edited by %s",
            case_number, target_id, guild_id, editor,
        )
        return updated

    # ========== Reads ==========

    async def get_warning_case(self, guild_id: str, target_id: str, case_number: int) -> ModerationRecord:
        """
        Return the user's manual warning at ``case_number`` (1 = most recent).

        Raises:
            NotFoundError: If the user has no warning with that case number.
        """
        warnings = await self.query_by_target(guild_id, target_id, [ActionType.WARN])
        if not warnings:
            raise NotFoundError(f"No warnings found for user {target_id}.")
        if case_number < 1 or case_number > len(warnings):
            raise NotFoundError(
                f"Invalid case number {case_number}: user {target_id} only has {len(warnings)} warning(s)."
            )
        return warnings[case_number - 1]

    async def query_by_target(
        self,
        guild_id: str,
        target_id: str,
        actions: Iterable[ActionType] | None = None,
    ) -> List[ModerationRecord]:
        """Return the user's records, most recent first, optionally limited to ``actions``."""
        record_filter = RecordFilter(
            target_id=target_id,
            actions=frozenset(actions) if actions is not None else None,
        )
        return await self._store.query_moderation_records(guild_id, record_filter)

    async def count_warnings(self, guild_id: str, target_id: str) -> int:
        """Return the user's effective warning count (manual plus automatic)."""
        return len(await self.query_by_target(guild_id, target_id, WARNING_ACTIONS))
