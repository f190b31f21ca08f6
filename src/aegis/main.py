"""
Aegis
=====

A Discord bot that moderates chat automatically: it mutes spammers, removes
messages containing banned words, and escalates repeated warnings into mutes,
kicks or bans according to each guild's rules.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. AEGIS_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("AEGIS_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
from dataclasses import dataclass

import discord
from dotenv import load_dotenv

from aegis.configuration.app_configuration import app_config
from aegis.database.db_connection import db_connection
from aegis.database.store import Store
from aegis.moderation.auto_role_service import AutoRoleService
from aegis.moderation.automod_engine import AutomodEngine, build_engine
from aegis.moderation.moderation_service import ModerationService
from aegis.moderation.notification_sink import DiscordNotificationSink
from aegis.settings.guild_config_cache import GuildConfigCache
from aegis.settings.guild_settings_service import GuildSettingsService
from aegis.util.discord_utils import DiscordPlatform
from aegis.util.logger import get_logger, handle_exception


logger = get_logger("main")


@dataclass(slots=True)
class Runtime:
    """Everything wired around one bot instance."""
    bot: discord.Bot
    engine: AutomodEngine
    moderation: ModerationService
    settings: GuildSettingsService
    auto_role: AutoRoleService


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Construct the Discord intents the automod needs (message content and members)."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def create_runtime(store: Store) -> Runtime:
    """Instantiate the bot, wire the automod around it and register the cogs."""
    from aegis.bot.cogs import events_listener, message_listener

    settings = app_config.automod
    bot = discord.Bot(intents=build_intents())
    platform = DiscordPlatform(bot)
    cache = GuildConfigCache(store, ttl_ms=settings.config_cache_ttl_ms)
    notifier = DiscordNotificationSink(bot, cache, platform)
    engine = build_engine(store, platform, notifier, settings, cache=cache)
    auto_role = AutoRoleService(cache, store, platform)

    message_listener.setup(bot, engine)
    events_listener.setup(bot, auto_role)
    logger.info("All cogs loaded successfully.")

    return Runtime(
        bot=bot,
        engine=engine,
        moderation=ModerationService(engine, platform, notifier, max_timeout_ms=settings.max_timeout_ms),
        settings=GuildSettingsService(store, max_timeout_ms=settings.max_timeout_ms),
        auto_role=auto_role,
    )


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and log around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(runtime: Runtime | None) -> None:
    """Close the bot, wait for pending record writes and close the database."""
    if runtime is not None:
        try:
            if not runtime.bot.is_closed():
                await runtime.bot.close()
        except Exception as exc:
            logger.exception("Error while closing the Discord bot: %s", exc)

        try:
            await runtime.engine.shutdown()
        except Exception as exc:
            logger.exception("Error during automod shutdown: %s", exc)

    try:
        await db_connection.close()
    except Exception as exc:
        logger.exception("Error while closing the database: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database and the bot, returning an exit code."""
    token = load_environment()

    try:
        logger.info("Initializing database at %s...", app_config.database_path)
        await db_connection.open(app_config.database_path)
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    try:
        runtime = create_runtime(Store(db_connection))
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await shutdown_runtime(None)
        return 1

    exit_code = 0
    try:
        await start_bot(runtime.bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(runtime)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting Aegis…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
