"""
py-cord implementations of the moderation collaborator interfaces.

These are the only place the moderation core meets the Discord client.
Recoverable Discord errors on best-effort calls (DMs, mod log posts,
message deletes) become ``DeliveryResult`` failures; errors from membership
changes propagate so the caller's per-action boundary can log them.
"""

from __future__ import annotations

import datetime
from typing import Callable, Optional

import discord

from modledger.datatypes.case_datatypes import Case
from modledger.datatypes.discord_datatypes import ChannelID, GuildID, MessageRef, UserID
from modledger.moderation.collaborators import DeliveryResult
from modledger.moderation.modlog import build_case_embed
from modledger.util.logger import get_logger

logger = get_logger("discord_adapters")

SECONDS_PER_DAY = 86400


def _outranks(me: discord.Member, member: discord.Member) -> bool:
    """True when the bot's top role sits above the member's and the member is not the owner."""
    if member.id == member.guild.owner_id:
        return False
    return me.top_role > member.top_role


class DiscordGuildGateway:
    """Moderation actions and capability checks for a single guild."""

    def __init__(self, guild: discord.Guild) -> None:
        self.guild = guild

    @property
    def guild_id(self) -> GuildID:
        return GuildID.from_guild(self.guild)

    @property
    def guild_name(self) -> str:
        return self.guild.name

    async def _get_member(self, user_id: UserID) -> Optional[discord.Member]:
        member = self.guild.get_member(int(user_id))
        if member is not None:
            return member
        try:
            return await self.guild.fetch_member(int(user_id))
        except discord.NotFound:
            return None

    # ------------------------------------------------------------------
    # Capability checks
    # ------------------------------------------------------------------

    async def can_timeout(self, subject_id: UserID) -> bool:
        me = self.guild.me
        member = await self._get_member(subject_id)
        if member is None or not me.guild_permissions.moderate_members:
            return False
        if member.guild_permissions.administrator:
            return False
        return _outranks(me, member)

    async def can_kick(self, subject_id: UserID) -> bool:
        me = self.guild.me
        member = await self._get_member(subject_id)
        if member is None or not me.guild_permissions.kick_members:
            return False
        return _outranks(me, member)

    async def can_ban(self, subject_id: UserID) -> bool:
        me = self.guild.me
        if not me.guild_permissions.ban_members:
            return False
        member = await self._get_member(subject_id)
        # Users who already left can still be banned by id
        return member is None or _outranks(me, member)

    # ------------------------------------------------------------------
    # Membership changes
    # ------------------------------------------------------------------

    async def apply_timeout(self, subject_id: UserID, seconds: int, reason: str) -> None:
        member = await self._get_member(subject_id)
        if member is None:
            raise LookupError(f"user {subject_id} is not a member of {self.guild.name}")
        until = discord.utils.utcnow() + datetime.timedelta(seconds=seconds)
        await member.timeout(until, reason=reason)

    async def kick(self, subject_id: UserID, reason: str) -> None:
        await self.guild.kick(discord.Object(id=int(subject_id)), reason=reason)

    async def ban(self, subject_id: UserID, reason: str, retention_days: int) -> None:
        await self.guild.ban(
            discord.Object(id=int(subject_id)),
            reason=reason,
            delete_message_seconds=retention_days * SECONDS_PER_DAY,
        )

    async def unban(self, subject_id: UserID, reason: str) -> None:
        await self.guild.unban(discord.Object(id=int(subject_id)), reason=reason)

    async def is_banned(self, subject_id: UserID) -> bool:
        try:
            await self.guild.fetch_ban(discord.Object(id=int(subject_id)))
        except discord.NotFound:
            return False
        return True

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def delete_message(self, ref: MessageRef) -> DeliveryResult:
        channel = self.guild.get_channel_or_thread(int(ref.channel_id))
        if channel is None or not hasattr(channel, "get_partial_message"):
            return DeliveryResult.failure(f"channel {ref.channel_id} not found")
        try:
            await channel.get_partial_message(int(ref.message_id)).delete()
        except discord.NotFound:
            # Already gone
            return DeliveryResult.success()
        except discord.Forbidden:
            return DeliveryResult.failure(f"no permission to delete messages in {ref.channel_id}")
        except discord.HTTPException as exc:
            return DeliveryResult.failure(exc)
        return DeliveryResult.success()


class DiscordGuildDirectory:
    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    async def resolve(self, guild_id: GuildID) -> Optional[DiscordGuildGateway]:
        guild = self.bot.get_guild(int(guild_id))
        if guild is None:
            return None
        return DiscordGuildGateway(guild)


class DiscordNotificationSink:
    """Sends plain-text direct messages, reporting closed DMs as failures."""

    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    async def send_direct_message(self, user_id: UserID, content: str) -> DeliveryResult:
        try:
            user = self.bot.get_user(int(user_id)) or await self.bot.fetch_user(int(user_id))
            await user.send(content)
        except discord.Forbidden:
            return DeliveryResult.failure("DMs disabled")
        except discord.HTTPException as exc:
            return DeliveryResult.failure(exc)
        return DeliveryResult.success()


class DiscordModlogSink:
    """
    Posts case embeds to the mod log channel.

    Args:
        bot: Connected bot used to look up the channel.
        channel_id: Returns the configured mod log channel, or None when
            the mod log is disabled; read on every publish.
    """

    def __init__(self, bot: discord.Bot, channel_id: Callable[[], Optional[ChannelID]]) -> None:
        self.bot = bot
        self.channel_id = channel_id

    async def publish(self, case: Case) -> DeliveryResult:
        channel_id = self.channel_id()
        if channel_id is None:
            return DeliveryResult.success()

        channel = self.bot.get_channel(int(channel_id))
        try:
            if channel is None:
                channel = await self.bot.fetch_channel(int(channel_id))
            if not isinstance(channel, discord.abc.Messageable):
                return DeliveryResult.failure(f"mod log channel {channel_id} is not a text channel")
            await channel.send(embed=build_case_embed(case))
        except discord.HTTPException as exc:
            return DeliveryResult.failure(exc)

        logger.debug("[MODLOG] Published case #%d to %s", case.id, channel_id)
        return DeliveryResult.success()
