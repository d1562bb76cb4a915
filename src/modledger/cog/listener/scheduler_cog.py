"""Background scheduler cog that runs tempban expiry once the bot is connected."""

from __future__ import annotations

import discord
from discord.ext import commands

from modledger.scheduler.tempban_scheduler import TempbanExpiryScheduler
from modledger.util.logger import get_logger

logger = get_logger("scheduler_cog")


class TempbanSchedulerCog(commands.Cog):
    """
    Starts the DB-polling tempban expiry loop on ready and stops it on unload.

    State lives in the case ledger, so a restart simply picks up any
    tempbans that expired while the bot was offline.
    """

    def __init__(self, bot: discord.Bot, scheduler: TempbanExpiryScheduler) -> None:
        self.bot = bot
        self._scheduler = scheduler

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if not self._scheduler.is_running:
            self._scheduler.start()
        logger.info("[TEMPBAN] Scheduler ready")

    def cog_unload(self) -> None:
        self._scheduler.stop()
        logger.info("[TEMPBAN] Stopped")


def setup(bot: discord.Bot, scheduler: TempbanExpiryScheduler) -> None:
    bot.add_cog(TempbanSchedulerCog(bot, scheduler))
