"""
modledger entry point
=====================

Loads the environment, opens the case ledger, wires the moderation
components into a py-cord bot and runs it until interrupted.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. MODLEDGER_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("MODLEDGER_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from modledger.bot.runtime import ModerationRuntime, build_runtime
from modledger.configuration.app_configuration import app_config
from modledger.database.database import database
from modledger.util.logger import get_logger, handle_exception


logger = get_logger("main")


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
    """Intents for guild messages, their content and member lookups."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def load_cogs(bot: discord.Bot, runtime: ModerationRuntime) -> None:
    from modledger.cog.listener import automod_listener, scheduler_cog

    automod_listener.setup(bot, runtime.pipeline, runtime.detector)
    scheduler_cog.setup(bot, runtime.tempban_scheduler)

    logger.info("All cogs loaded successfully.")


def create_bot() -> tuple[discord.Bot, ModerationRuntime]:
    """Instantiate the Discord bot, its moderation runtime and cogs."""
    bot = discord.Bot(intents=build_intents())
    runtime = build_runtime(bot, database.cases)
    load_cogs(bot, runtime)
    return bot, runtime


async def shutdown_runtime(bot: discord.Bot, runtime: ModerationRuntime | None) -> None:
    """Stop the scheduler, close the Discord connection and the database."""
    if runtime is not None:
        try:
            await runtime.tempban_scheduler.shutdown()
        except Exception as exc:
            logger.exception("Error during tempban scheduler shutdown: %s", exc)

    if not bot.is_closed():
        await bot.close()

    try:
        await database.shutdown()
    except Exception as exc:
        logger.exception("Error during database shutdown: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database and bot, returning an exit code."""
    token = load_environment()

    logger.info("Initializing database at %s...", app_config.database_path)
    if not await database.initialize(app_config.database_path):
        logger.critical("Failed to initialize database")
        return 1

    try:
        bot, runtime = create_bot()
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await database.shutdown()
        return 1

    exit_code = 0
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Bot start cancelled; proceeding to shutdown")
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, runtime)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting modledger…")
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
