"""
Manual moderation actions issued by moderators.

Each action validates first (raising ValidationError before any side effect),
then checks the bot's capability (MissingPermissionError), DMs the target on a
best-effort basis, performs the platform action, records it and posts a log
entry. A record that cannot be written after the platform action succeeded
turns the outcome into a partial success instead of an error.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Tuple

from aegis.datatypes.action_datatypes import ActionType, LogColor, ModerationRecord, ModLogEntry
from aegis.datatypes.discord_datatypes import MemberState
from aegis.moderation.automod_engine import AutomodEngine
from aegis.moderation.escalation_engine import EscalationResult
from aegis.moderation.notification_sink import NotificationSink
from aegis.moderation.platform import Platform
from aegis.util.duration import MAX_TIMEOUT_MS, format_duration, parse_duration
from aegis.util.errors import MissingPermissionError, ParseError, PersistenceError, ValidationError
from aegis.util.logger import get_logger

logger = get_logger("moderation_service")

NO_REASON = "No reason provided"
INVALID_DURATION_HELP = (
    "Invalid duration format. Use `s` for seconds, `m` for minutes, `h` for hours, "
    "or `d` for days (e.g., `10m`, `1h`, `7d`)."
)
DELETE_MESSAGE_DAYS = (0, 1, 7)


@dataclass(slots=True)
class _TargetLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


@dataclass(slots=True)
class ActionOutcome:
    """Result of a manual action, ready to be shown to the moderator.

    Attributes:
        message: Confirmation text
        record: The stored record, None if it could not be written
        partial: True when the action happened but was not logged
        warnings: Follow-up notices (logging failures, skipped escalations)
        escalation: Result of the escalation check, for warnings only
    """
    message: str
    record: ModerationRecord | None = None
    partial: bool = False
    warnings: List[str] = field(default_factory=list)
    escalation: EscalationResult | None = None


class ModerationService:
    """
    Moderator-issued warn, mute, unmute, kick, ban, warning edits and history.

    Args:
        engine: Automod engine; supplies the recorder and the escalation check
        platform: Performs member actions
        notifier: Receives DMs and log entries
        max_timeout_ms: Longest accepted mute
    """

    def __init__(
        self,
        engine: AutomodEngine,
        platform: Platform,
        notifier: NotificationSink,
        max_timeout_ms: int = MAX_TIMEOUT_MS,
    ) -> None:
        self._engine = engine
        self._recorder = engine.recorder
        self._platform = platform
        self._notifier = notifier
        self._max_timeout_ms = max_timeout_ms
        # Per-target locks: warnings for one user are appended and escalated one at a time.
        # An entry is dropped once nobody holds or awaits it.
        self._warn_locks: Dict[Tuple[str, str], _TargetLock] = {}

    @asynccontextmanager
    async def _target_lock(self, guild_id: str, target_id: str) -> AsyncIterator[None]:
        key = (guild_id, target_id)
        entry = self._warn_locks.setdefault(key, _TargetLock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._warn_locks[key]

    # ========== Validation ==========

    async def _resolve_target(
        self,
        guild_id: str,
        moderator_id: str,
        target_id: str,
        verb: str,
        *,
        check_hierarchy: bool = True,
    ) -> MemberState:
        if not target_id:
            raise ValidationError("A target user is required.")
        if target_id == moderator_id:
            raise ValidationError(f"You can't {verb} yourself!")
        if target_id == self._platform.bot_user_id:
            raise ValidationError(f"You can't {verb} me!")

        target = await self._platform.get_member_state(guild_id, target_id)
        if target is None:
            raise ValidationError("That user isn't in this server.")

        if check_hierarchy:
            moderator = await self._platform.get_member_state(guild_id, moderator_id)
            if moderator is not None and target.top_role_position >= moderator.top_role_position:
                raise ValidationError(f"You can't {verb} a member with an equal or higher role than you.")
        return target

    # ========== Shared steps ==========

    async def _record_primary(self, guild_id: str, record: ModerationRecord, outcome: ActionOutcome) -> None:
        try:
            outcome.record = await self._recorder.append(guild_id, record)
        except PersistenceError as exc:
            logger.error(
                "[MODERATION] %s of user %s in guild %s performed but not logged: %s",
                record.action.value, record.target_id, guild_id, exc,
            )
            outcome.partial = True
            outcome.warnings.append(f"The {record.action.value} was performed, but the action could not be logged.")

    async def _log(
        self,
        guild_id: str,
        action: str,
        moderator_id: str,
        target_id: str,
        color: LogColor,
        reason: str,
        duration: str | None = None,
    ) -> None:
        await self._notifier.post_log(
            guild_id,
            ModLogEntry(
                action=action,
                moderator_id=moderator_id,
                target_id=target_id,
                color=color,
                reason=reason,
                duration=duration,
            ),
        )

    # ========== Actions ==========

    async def warn(
        self,
        guild_id: str,
        moderator_id: str,
        target_id: str,
        reason: str,
        moderator_tag: str | None = None,
    ) -> ActionOutcome:
        """
        Record a warning and apply any escalation rule it reaches.

        Raises:
            ValidationError: Missing reason or target not in the server.
            PersistenceError: The warning could not be recorded (nothing else happened).
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to warn a member.")
        target = await self._platform.get_member_state(guild_id, target_id) if target_id else None
        if target is None:
            raise ValidationError("That user isn't in this server.")

        await self._notifier.send_dm(target_id, f"You have received a warning for the following reason: {reason}")

        async with self._target_lock(guild_id, target_id):
            record = await self._recorder.append(
                guild_id,
                ModerationRecord(
                    action=ActionType.WARN,
                    target_id=target_id,
                    target_tag=target.tag,
                    moderator_id=moderator_id,
                    moderator_tag=moderator_tag,
                    reason=reason,
                ),
            )
            escalation = await self._engine.on_warning_issued(guild_id, target_id)

        outcome = ActionOutcome(
            message=f"**{target.tag or target_id}** has been warned for: {reason}",
            record=record,
            escalation=escalation,
        )
        if escalation.notice:
            outcome.warnings.append(escalation.notice)
        return outcome

    async def mute(
        self,
        guild_id: str,
        moderator_id: str,
        target_id: str,
        duration: str,
        reason: str = NO_REASON,
        moderator_tag: str | None = None,
    ) -> ActionOutcome:
        """
        Time a member out for ``duration`` (e.g. ``10m``).

        Raises:
            ValidationError: Invalid target, duration, or the member is already muted.
            MissingPermissionError: The bot cannot time the member out.
        """
        target = await self._resolve_target(guild_id, moderator_id, target_id, "mute")
        try:
            duration_ms = parse_duration(duration)
        except ParseError as exc:
            raise ParseError(INVALID_DURATION_HELP) from exc
        if duration_ms > self._max_timeout_ms:
            raise ValidationError("The timeout duration cannot be longer than 28 days.")
        if target.is_muted:
            raise ValidationError("This member is already muted.")
        if not target.moderatable:
            raise MissingPermissionError("I don't have permission to mute that member. They may have a higher role than me.")

        await self._notifier.send_dm(target_id, f'You have been muted for "{duration}" for the following reason: {reason}')
        await self._platform.timeout_member(guild_id, target_id, duration_ms, reason)

        outcome = ActionOutcome(message=f"Successfully muted **{target.tag or target_id}** for {duration}. Reason: {reason}")
        await self._record_primary(
            guild_id,
            ModerationRecord(
                action=ActionType.MUTE,
                target_id=target_id,
                target_tag=target.tag,
                moderator_id=moderator_id,
                moderator_tag=moderator_tag,
                reason=reason,
                duration=duration,
            ),
            outcome,
        )
        await self._log(guild_id, "Mute", moderator_id, target_id, LogColor.YELLOW, reason, format_duration(duration_ms))
        return outcome

    async def unmute(
        self,
        guild_id: str,
        moderator_id: str,
        target_id: str,
        reason: str = NO_REASON,
        moderator_tag: str | None = None,
    ) -> ActionOutcome:
        """
        Remove a member's timeout.

        Raises:
            ValidationError: Invalid target or the member is not muted.
            MissingPermissionError: The bot cannot manage the member's timeout.
        """
        target = await self._resolve_target(guild_id, moderator_id, target_id, "unmute", check_hierarchy=False)
        if not target.is_muted:
            raise ValidationError("This member is not muted.")
        if not target.moderatable:
            raise MissingPermissionError("I don't have permission to unmute that member. They may have a higher role than me.")

        await self._platform.timeout_member(guild_id, target_id, None, reason)

        outcome = ActionOutcome(message=f"Successfully unmuted **{target.tag or target_id}**. Reason: {reason}")
        await self._record_primary(
            guild_id,
            ModerationRecord(
                action=ActionType.UNMUTE,
                target_id=target_id,
                target_tag=target.tag,
                moderator_id=moderator_id,
                moderator_tag=moderator_tag,
                reason=reason,
            ),
            outcome,
        )
        await self._log(guild_id, "Unmute", moderator_id, target_id, LogColor.GREEN, reason)
        return outcome

    async def kick(
        self,
        guild_id: str,
        moderator_id: str,
        target_id: str,
        reason: str = NO_REASON,
        moderator_tag: str | None = None,
    ) -> ActionOutcome:
        """
        Kick a member.

        Raises:
            ValidationError: Invalid target.
            MissingPermissionError: The bot cannot kick the member.
        """
        target = await self._resolve_target(guild_id, moderator_id, target_id, "kick")
        if not target.kickable:
            raise MissingPermissionError("I don't have permission to kick that member.")

        await self._notifier.send_dm(target_id, f"You have been kicked for the following reason: {reason}")
        await self._platform.kick_member(guild_id, target_id, reason)

        outcome = ActionOutcome(message=f"Successfully kicked **{target.tag or target_id}** for: {reason}")
        await self._record_primary(
            guild_id,
            ModerationRecord(
                action=ActionType.KICK,
                target_id=target_id,
                target_tag=target.tag,
                moderator_id=moderator_id,
                moderator_tag=moderator_tag,
                reason=reason,
            ),
            outcome,
        )
        await self._log(guild_id, "Kick", moderator_id, target_id, LogColor.ORANGE, reason)
        return outcome

    async def ban(
        self,
        guild_id: str,
        moderator_id: str,
        target_id: str,
        reason: str = NO_REASON,
        delete_message_days: int = 0,
        moderator_tag: str | None = None,
    ) -> ActionOutcome:
        """
        Ban a member, optionally deleting 1 or 7 days of their messages.

        Raises:
            ValidationError: Invalid target or message deletion window.
            MissingPermissionError: The bot cannot ban the member.
        """
        if delete_message_days not in DELETE_MESSAGE_DAYS:
            raise ValidationError("Message deletion must cover 0, 1 or 7 days.")
        target = await self._resolve_target(guild_id, moderator_id, target_id, "ban")
        if not target.bannable:
            raise MissingPermissionError("I don't have permission to ban that member. They may have a higher role than me.")

        await self._notifier.send_dm(target_id, f"You have been banned for the following reason: {reason}")
        await self._platform.ban_member(guild_id, target_id, reason, delete_message_days=delete_message_days)

        outcome = ActionOutcome(message=f"Successfully banned **{target.tag or target_id}** for: {reason}")
        await self._record_primary(
            guild_id,
            ModerationRecord(
                action=ActionType.BAN,
                target_id=target_id,
                target_tag=target.tag,
                moderator_id=moderator_id,
                moderator_tag=moderator_tag,
                reason=reason,
            ),
            outcome,
        )
        await self._log(guild_id, "Ban", moderator_id, target_id, LogColor.RED, reason)
        return outcome

    # ========== Records ==========

    async def edit_warning(
        self,
        guild_id: str,
        editor_id: str,
        editor_tag: str,
        target_id: str,
        case_number: int,
        new_reason: str,
    ) -> ActionOutcome:
        """
        Replace the reason of a user's warning, addressed by case number (1 = most recent).

        Raises:
            ValidationError: Empty new reason.
            NotFoundError: No warning with that case number.
            PersistenceError: The edit could not be stored.
        """
        if not new_reason or not new_reason.strip():
            raise ValidationError("A new reason is required.")

        previous = await self._recorder.get_warning_case(guild_id, target_id, case_number)
        updated = await self._recorder.edit_reason(guild_id, target_id, case_number, new_reason, editor_tag)

        await self._log(
            guild_id,
            "Warning Edit",
            editor_id,
            target_id,
            LogColor.BLURPLE,
            f"Case #{case_number} edited.\n**Old:** {previous.reason}\n**New:** {new_reason}",
        )
        return ActionOutcome(
            message=(
                f"Successfully edited Case #{case_number}.\n"
                f'> **Old Reason:** "{previous.reason}"\n> **New Reason:** "{new_reason}"'
            ),
            record=updated,
        )

    async def history(self, guild_id: str, target_id: str) -> List[ModerationRecord]:
        """Return every record targeting the user, most recent first."""
        return await self._recorder.query_by_target(guild_id, target_id)
