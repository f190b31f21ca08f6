"""
Chat platform actions consumed by the moderation core.

Implementations raise :class:`MissingPermissionError` when the platform refuses
an action and :class:`NotificationError` when a DM cannot be delivered; any
other failure propagates as the platform client raised it. The core performs
no retries and applies no timeouts of its own.
"""

from __future__ import annotations

from typing import Protocol

from aegis.datatypes.discord_datatypes import MemberState, RoleState


class Platform(Protocol):
    @property
    def bot_user_id(self) -> str:
        """ID of the bot account, used as moderator of automatic actions."""
        ...

    async def get_member_state(self, guild_id: str, user_id: str) -> MemberState | None:
        """Return the member's state, or None if the user is not in the guild."""
        ...

    async def timeout_member(self, guild_id: str, user_id: str, duration_ms: int | None, reason: str) -> None:
        """Time the member out; ``None`` removes an active timeout."""
        ...

    async def kick_member(self, guild_id: str, user_id: str, reason: str) -> None: ...

    async def ban_member(self, guild_id: str, user_id: str, reason: str, delete_message_days: int = 0) -> None: ...

    async def get_role_state(self, guild_id: str, role_id: str) -> RoleState | None:
        """Return the role, or None if the guild has no such role."""
        ...

    async def assign_role(self, guild_id: str, user_id: str, role_id: str, reason: str) -> None: ...

    async def send_direct_message(self, user_id: str, text: str) -> None: ...

    async def delete_message(self, guild_id: str, channel_id: str, message_id: str) -> None: ...

    async def send_ephemeral_notice(self, channel_id: str, text: str, ttl_ms: int) -> None:
        """Post a message that deletes itself after ``ttl_ms``."""
        ...
