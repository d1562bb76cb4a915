"""Message listener cog that feeds guild messages through the auto-mod pipeline."""

import asyncio

import discord
from discord.ext import commands

from modledger.bot.discord_adapters import DiscordGuildGateway
from modledger.datatypes.discord_datatypes import ChannelID, GuildID, MessageRef, RoleID, UserRef
from modledger.moderation.automod_pipeline import AutoModPipeline, InboundMessage
from modledger.moderation.spam_detector import SpamDetector
from modledger.util.logger import get_logger

logger = get_logger("automod_listener_cog")


def to_inbound_message(message: discord.Message) -> InboundMessage:
    author = message.author
    roles = getattr(author, "roles", [])
    return InboundMessage(
        guild_id=GuildID.from_guild(message.guild) if message.guild else None,
        channel_id=ChannelID.from_channel(message.channel),
        message_ref=MessageRef.from_message(message),
        author=UserRef.from_user(author),
        content=message.content or "",
        author_is_bot=author.bot,
        role_ids=frozenset(RoleID(role.id) for role in roles),
    )


class AutoModListenerCog(commands.Cog):
    """
    Thin event listener; all filtering decisions live in ``AutoModPipeline``.

    Parameters
    ----------
    bot:
        Discord bot instance.
    pipeline:
        Auto-mod pipeline every guild message is passed to.
    detector:
        Spam window store, cleared for guilds the bot leaves.
    """

    def __init__(self, bot: discord.Bot, pipeline: AutoModPipeline, detector: SpamDetector) -> None:
        self.bot = bot
        self._pipeline = pipeline
        self._detector = detector
        logger.info("[AUTOMOD] Auto-mod listener cog loaded")

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None or message.author.bot:
            return

        try:
            outcome = await self._pipeline.process(to_inbound_message(message), DiscordGuildGateway(message.guild))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("[AUTOMOD] Failed to process message %s: %s", message.id, exc)
            return

        if outcome.handled:
            logger.debug("[AUTOMOD] Message %s handled by %s (case #%s)", message.id, outcome.stage, outcome.case_id)

    @commands.Cog.listener(name="on_guild_remove")
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        self._detector.clear_guild(GuildID.from_guild(guild))


def setup(bot: discord.Bot, pipeline: AutoModPipeline, detector: SpamDetector) -> None:
    """Register the AutoModListenerCog with the bot."""
    bot.add_cog(AutoModListenerCog(bot, pipeline, detector))
