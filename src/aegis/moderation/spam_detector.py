"""
Per-user burst detection.

A counter with a timeout, not a sliding window: the first message of a user
opens a window, every message within ``timeframe_ms`` of the window start
increments the counter, and a message arriving later restarts the counter at 1.
Reaching ``threshold`` mutes the user and clears their state. The check is
O(1) per message and needs no background timers.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from aegis.datatypes.action_datatypes import LogColor, ModLogEntry
from aegis.datatypes.discord_datatypes import InboundMessage
from aegis.moderation.notification_sink import NotificationSink
from aegis.moderation.platform import Platform
from aegis.util.duration import format_duration
from aegis.util.errors import AegisError
from aegis.util.logger import get_logger

logger = get_logger("spam_detector")

SPAM_MUTE_REASON = "Automatic spam detection."
SPAM_LOG_REASON = "User sent messages too quickly."

SpamKey = Tuple[str, str]


def wall_clock_ms() -> float:
    return time.time() * 1000


@dataclass(slots=True)
class SpamState:
    count: int
    window_start_ms: float


class SpamDetector:
    """
    Tracks message bursts per ``(guild_id, user_id)`` and mutes spammers.

    Args:
        platform: Performs the timeout and the channel notice
        notifier: Receives the log entry
        threshold: Messages per window that trigger a mute
        timeframe_ms: Window length
        mute_duration_ms: Length of the automatic mute
        notice_ttl_ms: Lifetime of the in-channel notice
        clock: Millisecond clock
    """

    def __init__(
        self,
        platform: Platform,
        notifier: NotificationSink,
        threshold: int = 5,
        timeframe_ms: int = 3000,
        mute_duration_ms: int = 5 * 60 * 1000,
        notice_ttl_ms: int = 5000,
        clock: Callable[[], float] = wall_clock_ms,
    ) -> None:
        self._platform = platform
        self._notifier = notifier
        self.threshold = threshold
        self.timeframe_ms = timeframe_ms
        self.mute_duration_ms = mute_duration_ms
        self.notice_ttl_ms = notice_ttl_ms
        self._clock = clock
        self._states: Dict[SpamKey, SpamState] = {}

    def state_for(self, guild_id: str, user_id: str) -> SpamState | None:
        return self._states.get((guild_id, user_id))

    def track(self, guild_id: str, user_id: str, now_ms: float) -> bool:
        """
        Count one message and report whether the user crossed the threshold.

        The user's state is removed when this returns True.
        """
        key = (guild_id, user_id)
        state = self._states.get(key)

        if state is None or now_ms - state.window_start_ms > self.timeframe_ms:
            state = SpamState(count=1, window_start_ms=now_ms)
            self._states[key] = state
        else:
            state.count += 1

        if state.count >= self.threshold:
            del self._states[key]
            return True
        return False

    async def process(self, message: InboundMessage) -> bool:
        """
        Track ``message`` and mute its author on a burst.

        Returns True when the threshold was reached, whether or not the mute
        could be applied. Failures are logged and never raised.
        """
        if not self.track(message.guild_id, message.user_id, self._clock()):
            return False

        logger.info("[SPAM] Burst detected from user %s in guild %s", message.user_id, message.guild_id)
        try:
            await self._mute(message)
        except AegisError as exc:
            logger.warning("[SPAM] Could not mute user %s in guild %s: %s", message.user_id, message.guild_id, exc)
        except Exception:
            logger.exception("[SPAM] Error during anti-spam mute of user %s", message.user_id)
        return True

    async def _mute(self, message: InboundMessage) -> None:
        member = await self._platform.get_member_state(message.guild_id, message.user_id)
        if member is None or member.is_muted or not member.moderatable:
            logger.info("[SPAM] Skipping mute of user %s: already muted or not moderatable", message.user_id)
            return

        await self._platform.timeout_member(
            message.guild_id, message.user_id, self.mute_duration_ms, SPAM_MUTE_REASON
        )

        try:
            await self._platform.send_ephemeral_notice(
                message.channel_id,
                f"<@{message.user_id}> has been automatically muted for spamming.",
                self.notice_ttl_ms,
            )
        except Exception as exc:
            logger.warning("[SPAM] Could not post mute notice in channel %s: %s", message.channel_id, exc)

        await self._notifier.post_log(
            message.guild_id,
            ModLogEntry(
                action="Auto-Mute (Spam)",
                moderator_id=self._platform.bot_user_id,
                target_id=message.user_id,
                color=LogColor.DARK_PURPLE,
                reason=SPAM_LOG_REASON,
                duration=format_duration(self.mute_duration_ms),
            ),
        )
