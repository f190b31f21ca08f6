"""
Automatic role assignment for members joining a guild.

The role comes from the guild's ``auto_role_id`` setting. A setting that
points at a deleted role is cleared so later joins stop looking for it.
Failures are logged and never propagate to the event loop.
"""

from __future__ import annotations

from typing import Protocol

from aegis.datatypes.guild_config import GuildConfigPatch
from aegis.moderation.platform import Platform
from aegis.settings.guild_config_cache import GuildConfigCache
from aegis.util.logger import get_logger

logger = get_logger("auto_role_service")

AUTO_ROLE_REASON = "Automatic role assignment"


class GuildConfigWriter(Protocol):
    async def set_guild_config(self, guild_id: str, patch: GuildConfigPatch, merge: bool = True) -> None: ...


class AutoRoleService:
    """
    Gives the configured auto role to new human members.

    Args:
        cache: Source of each guild's ``auto_role_id``
        store: Receives the reset of a stale ``auto_role_id``
        platform: Looks up and assigns roles
    """

    def __init__(self, cache: GuildConfigCache, store: GuildConfigWriter, platform: Platform) -> None:
        self._cache = cache
        self._store = store
        self._platform = platform

    async def on_member_join(self, guild_id: str, user_id: str, is_bot: bool = False) -> bool:
        """Assign the auto role to a member who just joined. Returns True if the role was given."""
        if is_bot:
            return False

        try:
            config = await self._cache.get(guild_id)
            role_id = config.auto_role_id
            if not role_id:
                return False

            role = await self._platform.get_role_state(guild_id, role_id)
            if role is None:
                logger.warning("[AUTO ROLE] Role %s no longer exists in guild %s; clearing the setting", role_id, guild_id)
                await self._store.set_guild_config(guild_id, GuildConfigPatch(cleared=frozenset({"auto_role_id"})))
                return False

            if not role.assignable:
                logger.error(
                    "[AUTO ROLE] Cannot assign role %s in guild %s: missing Manage Roles or the role is above mine",
                    role.name, guild_id,
                )
                return False

            await self._platform.assign_role(guild_id, user_id, role_id, AUTO_ROLE_REASON)
        except Exception as exc:
            logger.exception("[AUTO ROLE] Failed to assign auto role to %s in guild %s: %s", user_id, guild_id, exc)
            return False

        logger.info("[AUTO ROLE] Assigned role %s to %s in guild %s", role.name, user_id, guild_id)
        return True
