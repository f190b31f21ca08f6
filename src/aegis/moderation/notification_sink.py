"""
Best-effort notifications: log channel embeds and DMs to affected users.

Every method here swallows its own failures. They return whether the
notification was delivered, and callers are free to ignore that value.
"""

from __future__ import annotations

import datetime
from typing import Protocol

import discord

from aegis.datatypes.action_datatypes import LogColor, ModLogEntry
from aegis.moderation.platform import Platform
from aegis.settings.guild_config_cache import GuildConfigCache
from aegis.util.errors import AegisError, NotificationError
from aegis.util.logger import get_logger

logger = get_logger("notification_sink")

FOOTER_NAME = "Aegis Guardian"

EMBED_COLORS = {
    LogColor.DARK_PURPLE: discord.Color.dark_purple,
    LogColor.DARK_RED: discord.Color.dark_red,
    LogColor.RED: discord.Color.red,
    LogColor.ORANGE: discord.Color.orange,
    LogColor.YELLOW: discord.Color.yellow,
    LogColor.GREEN: discord.Color.green,
    LogColor.BLURPLE: discord.Color.blurple,
}


class NotificationSink(Protocol):
    async def post_log(self, guild_id: str, entry: ModLogEntry) -> bool: ...

    async def send_dm(self, user_id: str, text: str) -> bool: ...


def build_log_embed(entry: ModLogEntry, guild_name: str) -> discord.Embed:
    """
    Build the "Moderation Log" embed for a log channel post.

    Args:
        entry: The action to describe.
        guild_name: Shown in the footer.

    Returns:
        discord.Embed: Embed with target and moderator fields, plus reason and
        duration when present.
    """
    color_factory = EMBED_COLORS.get(entry.color, discord.Color.light_grey)
    embed = discord.Embed(
        title=f"Action: {entry.action}",
        color=color_factory(),
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.set_author(name="Moderation Log")
    embed.add_field(name="Target User", value=f"<@{entry.target_id}> ({entry.target_id})", inline=True)
    embed.add_field(name="Moderator", value=f"<@{entry.moderator_id}> ({entry.moderator_id})", inline=True)
    if entry.reason:
        embed.add_field(name="Reason", value=entry.reason, inline=False)
    if entry.duration:
        embed.add_field(name="Duration", value=entry.duration, inline=True)
    embed.set_footer(text=f"{FOOTER_NAME} | {guild_name}")
    return embed


class DiscordNotificationSink:
    """
    Posts log embeds to the guild's configured log channel and DMs users.

    Args:
        bot: Connected py-cord client
        cache: Source of each guild's ``log_channel_id``
        platform: Delivers direct messages
    """

    def __init__(self, bot: discord.Client, cache: GuildConfigCache, platform: Platform) -> None:
        self._bot = bot
        self._cache = cache
        self._platform = platform

    async def post_log(self, guild_id: str, entry: ModLogEntry) -> bool:
        """Send ``entry`` to the log channel. Returns False when nothing was posted."""
        try:
            config = await self._cache.get(guild_id)
            if not config.log_channel_id:
                return False

            guild = self._bot.get_guild(int(guild_id))
            if guild is None:
                return False

            channel = guild.get_channel(int(config.log_channel_id))
            if channel is None:
                channel = await guild.fetch_channel(int(config.log_channel_id))
            if not isinstance(channel, (discord.TextChannel, discord.Thread)):
                logger.warning("[NOTIFY] Log channel %s of guild %s is not text-based", config.log_channel_id, guild_id)
                return False

            await channel.send(embed=build_log_embed(entry, guild.name))
            return True
        except (discord.HTTPException, AegisError) as exc:
            logger.warning("[NOTIFY] Failed to post %r log in guild %s: %s", entry.action, guild_id, exc)
        except Exception:
            logger.exception("[NOTIFY] Unexpected error posting log in guild %s", guild_id)
        return False

    async def send_dm(self, user_id: str, text: str) -> bool:
        """DM a user. Users with closed DMs are common, so failures log at info level."""
        try:
            await self._platform.send_direct_message(user_id, text)
            return True
        except NotificationError as exc:
            logger.info("[NOTIFY] Could not DM user %s: %s", user_id, exc)
        except Exception:
            logger.exception("[NOTIFY] Unexpected error sending DM to %s", user_id)
        return False
