"""
Banned-word filter.

Matching is by substring of the lower-cased message, not by whole word: with
``bad`` banned, "badly" is flagged too. Guilds choose their words with that in
mind.
"""

from __future__ import annotations

from aegis.datatypes.action_datatypes import ActionType, LogColor, ModerationRecord, ModLogEntry
from aegis.datatypes.discord_datatypes import InboundMessage
from aegis.moderation.moderation_recorder import ModerationRecorder
from aegis.moderation.notification_sink import NotificationSink
from aegis.moderation.platform import Platform
from aegis.settings.guild_config_cache import GuildConfigCache
from aegis.util.errors import AegisError
from aegis.util.logger import get_logger

logger = get_logger("content_filter")


def auto_warn_reason(word: str) -> str:
    return f'Automatic detection of blacklisted word: "{word}"'


class ContentFilter:
    """
    Scans messages against the guild's banned words and acts on matches.

    Args:
        cache: Source of the guild's banned words
        recorder: Receives the AutoWarn record
        platform: Deletes the message and posts the notice
        notifier: Receives the log entry
        notice_ttl_ms: Lifetime of the in-channel notice
    """

    def __init__(
        self,
        cache: GuildConfigCache,
        recorder: ModerationRecorder,
        platform: Platform,
        notifier: NotificationSink,
        notice_ttl_ms: int = 5000,
    ) -> None:
        self._cache = cache
        self._recorder = recorder
        self._platform = platform
        self._notifier = notifier
        self.notice_ttl_ms = notice_ttl_ms

    async def scan(self, guild_id: str, lowered_text: str) -> str | None:
        """Return the first banned word contained in ``lowered_text``, or None."""
        config = await self._cache.get(guild_id)
        if not config.banned_words:
            return None

        for word in config.banned_words:
            if word in lowered_text:
                return word
        return None

    async def process(self, message: InboundMessage) -> str | None:
        """
        Scan ``message`` and, on a match, delete it, warn the author in channel,
        record an AutoWarn and post a log entry.

        Each of those steps is attempted independently; failures are logged.

        Returns:
            The matched word, or None.

        Raises:
            PersistenceError: If the banned words cannot be loaded.
        """
        word = await self.scan(message.guild_id, message.content.lower())
        if word is None:
            return None

        logger.info("[FILTER] Banned word %r from user %s in guild %s", word, message.user_id, message.guild_id)

        try:
            await self._platform.delete_message(message.guild_id, message.channel_id, message.message_id)
        except AegisError as exc:
            logger.warning("[FILTER] Could not delete message %s: %s", message.message_id, exc)
        except Exception:
            logger.exception("[FILTER] Error deleting message %s", message.message_id)

        try:
            await self._platform.send_ephemeral_notice(
                message.channel_id,
                f"<@{message.user_id}>, that word is not allowed here.",
                self.notice_ttl_ms,
            )
        except Exception as exc:
            logger.warning("[FILTER] Could not post notice in channel %s: %s", message.channel_id, exc)

        self._recorder.append_nowait(
            message.guild_id,
            ModerationRecord(
                action=ActionType.AUTO_WARN,
                target_id=message.user_id,
                target_tag=message.author_tag,
                moderator_id=self._platform.bot_user_id,
                reason=auto_warn_reason(word),
            ),
        )

        await self._notifier.post_log(
            message.guild_id,
            ModLogEntry(
                action="Auto-Warn (Banned Word)",
                moderator_id=self._platform.bot_user_id,
                target_id=message.user_id,
                color=LogColor.DARK_RED,
                reason=f"Contained the word: `{word}`",
            ),
        )
        return word
