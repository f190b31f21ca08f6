"""Events listener Cog for Aegis.

Handles guild membership events; currently the auto role on join.
"""

import discord
from discord.ext import commands

from aegis.moderation.auto_role_service import AutoRoleService
from aegis.util.logger import get_logger

logger = get_logger("events_listener_cog")


class EventsListenerCog(commands.Cog):
    """Cog responsible for member join handling."""

    def __init__(self, discord_bot_instance, auto_role: AutoRoleService):
        self.bot = discord_bot_instance
        self.auto_role = auto_role
        logger.info("Events listener cog loaded")

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member):
        logger.debug(f"Member {member} joined guild {member.guild.id}")
        await self.auto_role.on_member_join(str(member.guild.id), str(member.id), is_bot=member.bot)


def setup(discord_bot_instance, auto_role: AutoRoleService):
    """Register the EventsListenerCog with the bot."""
    discord_bot_instance.add_cog(EventsListenerCog(discord_bot_instance, auto_role))
