"""
Automatic punishment once a user's warning count reaches a configured rule.

Rules match an exact count: a rule registered at 3 fires on the third warning
only, never on the second or the fourth. The check reads the count and then
acts without a transaction, so two warnings for the same target processed
concurrently can both see the same count; callers that need to rule that out
serialise per target before appending the warning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, assert_never

from aegis.datatypes.action_datatypes import ActionType, LogColor, ModerationRecord, ModLogEntry
from aegis.datatypes.discord_datatypes import MemberState
from aegis.datatypes.guild_config import BanRule, EscalationRule, KickRule, MuteRule
from aegis.moderation.moderation_recorder import ModerationRecorder
from aegis.moderation.notification_sink import NotificationSink
from aegis.moderation.platform import Platform
from aegis.settings.guild_config_cache import GuildConfigCache
from aegis.util.duration import format_duration, parse_duration
from aegis.util.errors import ParseError, PersistenceError
from aegis.util.logger import get_logger

logger = get_logger("escalation_engine")

DEFAULT_MUTE_DURATION = "1h"


def escalation_reason(warning_count: int) -> str:
    return f"Automatic action for reaching {warning_count} warnings."


@dataclass(slots=True)
class EscalationResult:
    """What an escalation check did.

    Attributes:
        warning_count: The user's warning count that was evaluated
        rule: The rule registered at that count, if any
        applied: Whether the rule's action was carried out
        notice: Follow-up text for the moderator when something was skipped or failed
    """
    warning_count: int
    rule: EscalationRule | None = None
    applied: bool = False
    notice: str | None = None


class EscalationEngine:
    """
    Applies escalation rules after a manual warning has been recorded.

    Args:
        cache: Source of the guild's escalation rules
        recorder: Counts warnings and records the automatic action
        platform: Performs the mute, kick or ban
        notifier: Receives the log entry and the DM to the target
        default_mute: Duration used when a mute rule has none or an invalid one
    """

    def __init__(
        self,
        cache: GuildConfigCache,
        recorder: ModerationRecorder,
        platform: Platform,
        notifier: NotificationSink,
        default_mute: str = DEFAULT_MUTE_DURATION,
    ) -> None:
        self._cache = cache
        self._recorder = recorder
        self._platform = platform
        self._notifier = notifier
        self._default_mute = default_mute

    async def check_and_apply(self, guild_id: str, target_id: str) -> EscalationResult:
        """
        Apply the rule registered at the target's current warning count.

        Never raises: every failure is logged and reported in ``notice``. The
        warning that triggered the check is left untouched.
        """
        result = EscalationResult(warning_count=0)
        try:
            config = await self._cache.get(guild_id)
            result.warning_count = await self._recorder.count_warnings(guild_id, target_id)
            result.rule = config.escalation_rules.get(result.warning_count)
            if result.rule is None:
                return result

            logger.info(
                "[ESCALATION] User %s reached %d warnings in guild %s: %s",
                target_id, result.warning_count, guild_id, result.rule.action,
            )
            result.applied, result.notice = await self._dispatch(
                guild_id, target_id, result.rule, escalation_reason(result.warning_count)
            )
        except Exception as exc:
            logger.error("[ESCALATION] Failed for user %s in guild %s: %s", target_id, guild_id, exc)
            result.applied = False
            result.notice = f"Automatic escalation failed: {exc}"
        return result

    def resolve_mute_duration(self, rule: MuteRule) -> Tuple[str, int]:
        """Return the duration label and milliseconds for a mute rule, falling back to the default."""
        if rule.duration:
            try:
                return rule.duration, parse_duration(rule.duration)
            except ParseError:
                logger.warning(
                    "[ESCALATION] Invalid mute duration %r, using %s", rule.duration, self._default_mute
                )
        return self._default_mute, parse_duration(self._default_mute)

    async def _dispatch(
        self, guild_id: str, target_id: str, rule: EscalationRule, reason: str
    ) -> Tuple[bool, str | None]:
        member = await self._platform.get_member_state(guild_id, target_id)
        if member is None:
            return False, f"Automatic {rule.action} skipped: the user is not in this server."

        match rule:
            case MuteRule():
                if member.is_muted or not member.moderatable:
                    return False, "Automatic mute skipped: the user is already muted or cannot be muted."
                label, duration_ms = self.resolve_mute_duration(rule)
                await self._notifier.send_dm(target_id, f"You have been muted for {label}. Reason: {reason}")
                await self._platform.timeout_member(guild_id, target_id, duration_ms, reason)
                record = self._record(ActionType.MUTE, target_id, member, reason, duration=label)
                entry = self._log_entry("Auto-Mute", target_id, LogColor.YELLOW, reason, format_duration(duration_ms))
            case KickRule():
                if not member.kickable:
                    return False, "Automatic kick skipped: I don't have permission to kick that user."
                await self._notifier.send_dm(target_id, f"You have been kicked. Reason: {reason}")
                await self._platform.kick_member(guild_id, target_id, reason)
                record = self._record(ActionType.KICK, target_id, member, reason)
                entry = self._log_entry("Auto-Kick", target_id, LogColor.ORANGE, reason)
            case BanRule():
                if not member.bannable:
                    return False, "Automatic ban skipped: I don't have permission to ban that user."
                await self._notifier.send_dm(target_id, f"You have been banned. Reason: {reason}")
                await self._platform.ban_member(guild_id, target_id, reason)
                record = self._record(ActionType.BAN, target_id, member, reason)
                entry = self._log_entry("Auto-Ban", target_id, LogColor.RED, reason)
            case _:
                assert_never(rule)

        notice = None
        try:
            await self._recorder.append(guild_id, record)
        except PersistenceError as exc:
            logger.error("[ESCALATION] Automatic %s of user %s was not logged: %s", rule.action, target_id, exc)
            notice = f"Automatic {rule.action} was applied but could not be logged."

        await self._notifier.post_log(guild_id, entry)
        return True, notice

    def _record(
        self,
        action: ActionType,
        target_id: str,
        member: MemberState,
        reason: str,
        duration: str | None = None,
    ) -> ModerationRecord:
        return ModerationRecord(
            action=action,
            target_id=target_id,
            target_tag=member.tag,
            moderator_id=self._platform.bot_user_id,
            reason=reason,
            duration=duration,
        )

    def _log_entry(
        self, action: str, target_id: str, color: LogColor, reason: str, duration: str | None = None
    ) -> ModLogEntry:
        return ModLogEntry(
            action=action,
            moderator_id=self._platform.bot_user_id,
            target_id=target_id,
            color=color,
            reason=reason,
            duration=duration,
        )
