"""
discord_utils.py
================

Discord-specific helpers and the py-cord implementation of the platform
actions used by the moderation core.

Error mapping: ``discord.Forbidden`` becomes :class:`MissingPermissionError`,
DM failures become :class:`NotificationError`, a target that is not in the
guild becomes :class:`ValidationError`. Other ``discord.HTTPException``
failures propagate unchanged.
"""

from __future__ import annotations

import datetime
from contextlib import contextmanager
from typing import Iterator, Union

import discord

from aegis.datatypes.discord_datatypes import MemberState, RoleState
from aegis.util.errors import MissingPermissionError, NotificationError, ValidationError
from aegis.util.logger import get_logger

logger = get_logger("discord_utils")


def is_ignored_author(author: Union[discord.User, discord.Member]) -> bool:
    """
    Check if an author should be ignored by moderation handlers (bots or non-members).

    Args:
        author (discord.User | discord.Member): The user or member to check.

    Returns:
        bool: True if the author is a bot or not a member, False otherwise.
    """
    return author.bot or not isinstance(author, discord.Member)


def should_process_message(message: discord.Message) -> bool:
    """Return True for guild messages written by human members."""
    return message.guild is not None and not is_ignored_author(message.author)


@contextmanager
def _permission_errors(action: str) -> Iterator[None]:
    try:
        yield
    except discord.Forbidden as exc:
        logger.warning("[PLATFORM] Missing permission to %s: %s", action, exc)
        raise MissingPermissionError(f"Missing permission to {action}") from exc


class DiscordPlatform:
    """
    Platform actions performed through a py-cord client.

    Args:
        bot: The connected client
    """

    def __init__(self, bot: discord.Client) -> None:
        self._bot = bot

    @property
    def bot_user_id(self) -> str:
        return str(self._bot.user.id)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _guild(self, guild_id: str) -> discord.Guild:
        guild = self._bot.get_guild(int(guild_id))
        if guild is None:
            guild = await self._bot.fetch_guild(int(guild_id))
        return guild

    async def _member(self, guild: discord.Guild, user_id: str) -> discord.Member | None:
        member = guild.get_member(int(user_id))
        if member is not None:
            return member
        try:
            return await guild.fetch_member(int(user_id))
        except discord.NotFound:
            return None

    async def _require_member(self, guild_id: str, user_id: str) -> discord.Member:
        member = await self._member(await self._guild(guild_id), user_id)
        if member is None:
            raise ValidationError(f"User {user_id} is not a member of guild {guild_id}")
        return member

    async def _messageable(self, channel_id: str) -> discord.abc.Messageable:
        channel = self._bot.get_channel(int(channel_id))
        if channel is None:
            channel = await self._bot.fetch_channel(int(channel_id))
        return channel

    async def get_member_state(self, guild_id: str, user_id: str) -> MemberState | None:
        member = await self._member(await self._guild(guild_id), user_id)
        return MemberState.from_member(member) if member is not None else None

    async def get_role_state(self, guild_id: str, role_id: str) -> RoleState | None:
        role = (await self._guild(guild_id)).get_role(int(role_id))
        return RoleState.from_role(role) if role is not None else None

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def timeout_member(self, guild_id: str, user_id: str, duration_ms: int | None, reason: str) -> None:
        member = await self._require_member(guild_id, user_id)
        with _permission_errors("time out member"):
            if duration_ms is None:
                await member.remove_timeout(reason=reason)
            else:
                await member.timeout_for(datetime.timedelta(milliseconds=duration_ms), reason=reason)

    async def kick_member(self, guild_id: str, user_id: str, reason: str) -> None:
        member = await self._require_member(guild_id, user_id)
        with _permission_errors("kick member"):
            await member.kick(reason=reason)

    async def ban_member(self, guild_id: str, user_id: str, reason: str, delete_message_days: int = 0) -> None:
        guild = await self._guild(guild_id)
        with _permission_errors("ban member"):
            await guild.ban(
                discord.Object(id=int(user_id)),
                reason=reason,
                delete_message_seconds=delete_message_days * 24 * 60 * 60,
            )

    async def assign_role(self, guild_id: str, user_id: str, role_id: str, reason: str) -> None:
        member = await self._require_member(guild_id, user_id)
        with _permission_errors("assign role"):
            await member.add_roles(discord.Object(id=int(role_id)), reason=reason)

    async def send_direct_message(self, user_id: str, text: str) -> None:
        try:
            user = self._bot.get_user(int(user_id)) or await self._bot.fetch_user(int(user_id))
            await user.send(text)
        except discord.HTTPException as exc:
            raise NotificationError(f"Could not DM user {user_id}: {exc}") from exc

    async def delete_message(self, guild_id: str, channel_id: str, message_id: str) -> None:
        channel = await self._messageable(channel_id)
        with _permission_errors("delete message"):
            try:
                await channel.get_partial_message(int(message_id)).delete()
            except discord.NotFound:
                logger.debug("[PLATFORM] Message %s already deleted", message_id)

    async def send_ephemeral_notice(self, channel_id: str, text: str, ttl_ms: int) -> None:
        channel = await self._messageable(channel_id)
        with _permission_errors("send message"):
            await channel.send(text, delete_after=ttl_ms / 1000)
