"""
Entry points of the automod for the bot layer.

The engine owns its state (spam counters, config cache) instead of sharing
module-level singletons, so independent instances can run side by side.
"""

from __future__ import annotations

from aegis.configuration.automod_settings import AutomodSettings
from aegis.database.store import Store
from aegis.datatypes.discord_datatypes import InboundMessage
from aegis.moderation.content_filter import ContentFilter
from aegis.moderation.escalation_engine import EscalationEngine, EscalationResult
from aegis.moderation.moderation_recorder import ModerationRecorder
from aegis.moderation.notification_sink import NotificationSink
from aegis.moderation.platform import Platform
from aegis.moderation.spam_detector import SpamDetector
from aegis.settings.guild_config_cache import GuildConfigCache
from aegis.util.logger import get_logger

logger = get_logger("automod_engine")


class AutomodEngine:
    """
    Runs inbound messages through spam detection and the banned-word filter,
    and evaluates escalation rules after manual warnings.
    """

    def __init__(
        self,
        cache: GuildConfigCache,
        recorder: ModerationRecorder,
        spam_detector: SpamDetector,
        content_filter: ContentFilter,
        escalation_engine: EscalationEngine,
    ) -> None:
        self.cache = cache
        self.recorder = recorder
        self.spam_detector = spam_detector
        self.content_filter = content_filter
        self.escalation_engine = escalation_engine

    async def on_message(self, message: InboundMessage) -> None:
        """
        Moderate one inbound message.

        Members with the Manage Messages permission are exempt. A message that
        triggers the spam mute is not content-filtered. Errors stay scoped to
        this message.
        """
        if message.has_manage_messages:
            return

        try:
            if await self.spam_detector.process(message):
                return
            await self.content_filter.process(message)
        except Exception as exc:
            logger.error(
                "[AUTOMOD] Failed to process message %s in guild %s: %s",
                message.message_id, message.guild_id, exc,
            )

    async def on_warning_issued(self, guild_id: str, target_id: str) -> EscalationResult:
        """Evaluate escalation rules after a manual warning was appended."""
        return await self.escalation_engine.check_and_apply(guild_id, target_id)

    async def shutdown(self) -> None:
        """Wait for background record writes."""
        await self.recorder.flush()
        logger.info("[AUTOMOD] Shutdown complete")


def build_engine(
    store: Store,
    platform: Platform,
    notifier: NotificationSink,
    settings: AutomodSettings,
    cache: GuildConfigCache | None = None,
) -> AutomodEngine:
    """Wire a fresh engine with its own spam state and (unless given) its own config cache."""
    if cache is None:
        cache = GuildConfigCache(store, ttl_ms=settings.config_cache_ttl_ms)
    recorder = ModerationRecorder(store)

    return AutomodEngine(
        cache=cache,
        recorder=recorder,
        spam_detector=SpamDetector(
            platform,
            notifier,
            threshold=settings.spam_threshold,
            timeframe_ms=settings.spam_timeframe_ms,
            mute_duration_ms=settings.spam_mute_duration_ms,
            notice_ttl_ms=settings.notice_ttl_ms,
        ),
        content_filter=ContentFilter(cache, recorder, platform, notifier, notice_ttl_ms=settings.notice_ttl_ms),
        escalation_engine=EscalationEngine(
            cache, recorder, platform, notifier, default_mute=settings.escalation_default_mute
        ),
    )
