"""
Platform-neutral views of Discord messages and members.

The moderation core only ever sees these dataclasses; conversion from py-cord
objects happens at the edges through the ``from_*`` constructors.
"""

from __future__ import annotations

from dataclasses import dataclass

import discord


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """A guild message as seen by the automod.

    Attributes:
        guild_id: Guild the message was posted in
        channel_id: Channel the message was posted in
        message_id: ID of the message, used for deletion
        user_id: Author of the message
        content: Raw message text
        has_manage_messages: Whether the author holds the Manage Messages permission
        author_tag: Display tag of the author for log records
    """
    guild_id: str
    channel_id: str
    message_id: str
    user_id: str
    content: str
    has_manage_messages: bool = False
    author_tag: str | None = None

    @classmethod
    def from_message(cls, message: discord.Message) -> "InboundMessage":
        """Create an InboundMessage from a guild message authored by a member."""
        author = message.author
        permissions = getattr(author, "guild_permissions", None)
        return cls(
            guild_id=str(message.guild.id),
            channel_id=str(message.channel.id),
            message_id=str(message.id),
            user_id=str(author.id),
            content=message.content or "",
            has_manage_messages=bool(getattr(permissions, "manage_messages", False)),
            author_tag=str(author),
        )


@dataclass(frozen=True, slots=True)
class MemberState:
    """Platform-reported state of a guild member relative to the bot.

    ``moderatable``, ``kickable`` and ``bannable`` are True when the bot has the
    permission and its top role outranks the member's.
    """
    is_muted: bool
    moderatable: bool
    kickable: bool
    bannable: bool
    top_role_position: int = 0
    tag: str | None = None

    @classmethod
    def from_member(cls, member: discord.Member) -> "MemberState":
        """Derive a member's state from a py-cord Member of the bot's guild."""
        me = member.guild.me
        bot_perms = me.guild_permissions
        outranked = member.top_role < me.top_role and member.guild.owner_id != member.id
        return cls(
            is_muted=member.timed_out,
            moderatable=bot_perms.moderate_members and outranked,
            kickable=bot_perms.kick_members and outranked,
            bannable=bot_perms.ban_members and outranked,
            top_role_position=member.top_role.position,
            tag=str(member),
        )


@dataclass(frozen=True, slots=True)
class RoleState:
    """A guild role and whether the bot may hand it out.

    ``assignable`` is True when the bot has Manage Roles and its top role is
    above this one.
    """
    role_id: str
    name: str
    assignable: bool

    @classmethod
    def from_role(cls, role: discord.Role) -> "RoleState":
        me = role.guild.me
        return cls(
            role_id=str(role.id),
            name=role.name,
            assignable=me.guild_permissions.manage_roles and role < me.top_role,
        )
