"""Message listener Cog for Aegis.

Feeds every guild message written by a human member into the automod engine.
"""

import discord
from discord.ext import commands

from aegis.datatypes.discord_datatypes import InboundMessage
from aegis.moderation.automod_engine import AutomodEngine
from aegis.util import discord_utils
from aegis.util.logger import get_logger

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """Cog responsible for handing new messages to the automod."""

    def __init__(self, discord_bot_instance, engine: AutomodEngine):
        """
        Initialize the message listener cog.

        Parameters
        ----------
        discord_bot_instance:
            The Discord bot instance to attach this cog to.
        engine:
            Automod engine that moderates each message.
        """
        self.bot = discord_bot_instance
        self.engine = engine
        logger.info("Message listener cog loaded")

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message):
        """Skip DMs and bot authors, then run the message through the automod."""
        if not discord_utils.should_process_message(message):
            return

        logger.debug(f"Received message {message.id} from {message.author} in guild {message.guild.id}")
        await self.engine.on_message(InboundMessage.from_message(message))


def setup(discord_bot_instance, engine: AutomodEngine):
    """
    Register the MessageListenerCog with the bot.

    Parameters
    ----------
    discord_bot_instance:
        The Discord bot instance to add this cog to.
    engine:
        Automod engine shared with the rest of the runtime.
    """
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance, engine))
