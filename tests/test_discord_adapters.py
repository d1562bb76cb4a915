"""Tests for the py-cord adapters, using mocks in place of the Discord client."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from modledger.bot.discord_adapters import (
    DiscordGuildDirectory,
    DiscordGuildGateway,
    DiscordModlogSink,
    DiscordNotificationSink,
)
from modledger.datatypes.case_datatypes import Case, CaseType
from modledger.datatypes.discord_datatypes import ChannelID, DiscordUsername, GuildID, UserID

from fakes import message_ref

OWNER_ID = 1
BOT_ID = 999


def http_error(cls, status):
    return cls(MagicMock(status=status, reason="error"), "error")


def perms(**flags):
    base = dict(moderate_members=False, kick_members=False, ban_members=False, administrator=False)
    base.update(flags)
    return SimpleNamespace(**base)


def make_guild(me_role=10, member=None, **bot_perms):
    guild = MagicMock()
    guild.id = 1000
    guild.name = "Test Guild"
    guild.owner_id = OWNER_ID
    guild.me = SimpleNamespace(id=BOT_ID, top_role=me_role, guild_permissions=perms(**bot_perms))
    guild.get_member.return_value = member
    guild.fetch_member = AsyncMock(side_effect=http_error(discord.NotFound, 404))
    guild.kick = AsyncMock()
    guild.ban = AsyncMock()
    guild.unban = AsyncMock()
    guild.fetch_ban = AsyncMock()
    return guild


def make_member(member_id=42, top_role=5, **member_perms):
    member = SimpleNamespace(
        id=member_id,
        top_role=top_role,
        guild_permissions=perms(**member_perms),
        timeout=AsyncMock(),
    )
    member.guild = SimpleNamespace(owner_id=OWNER_ID)
    return member


@pytest.mark.asyncio
async def test_capabilities_follow_role_hierarchy_and_permissions():
    gateway = DiscordGuildGateway(make_guild(member=make_member(top_role=5), moderate_members=True, kick_members=True))

    assert await gateway.can_timeout(UserID(42)) is True
    assert await gateway.can_kick(UserID(42)) is True
    assert await gateway.can_ban(UserID(42)) is False


@pytest.mark.asyncio
async def test_higher_ranked_member_cannot_be_actioned():
    gateway = DiscordGuildGateway(make_guild(member=make_member(top_role=20), moderate_members=True, kick_members=True, ban_members=True))

    assert await gateway.can_timeout(UserID(42)) is False
    assert await gateway.can_kick(UserID(42)) is False
    assert await gateway.can_ban(UserID(42)) is False


@pytest.mark.asyncio
async def test_owner_and_admins_are_protected():
    owner_gateway = DiscordGuildGateway(make_guild(member=make_member(member_id=OWNER_ID), kick_members=True))
    admin_gateway = DiscordGuildGateway(make_guild(member=make_member(administrator=True), moderate_members=True))

    assert await owner_gateway.can_kick(UserID(OWNER_ID)) is False
    assert await admin_gateway.can_timeout(UserID(42)) is False


@pytest.mark.asyncio
async def test_departed_user_can_still_be_banned():
    gateway = DiscordGuildGateway(make_guild(member=None, ban_members=True))

    assert await gateway.can_ban(UserID(42)) is True
    assert await gateway.can_kick(UserID(42)) is False


@pytest.mark.asyncio
async def test_membership_changes_call_guild_api():
    member = make_member()
    guild = make_guild(member=member)
    gateway = DiscordGuildGateway(guild)

    await gateway.apply_timeout(UserID(42), 600, "flooding")
    await gateway.kick(UserID(42), "bye")
    await gateway.ban(UserID(42), "gone", retention_days=2)
    await gateway.unban(UserID(42), "Temporary ban expired")

    member.timeout.assert_awaited_once()
    assert member.timeout.await_args.kwargs["reason"] == "flooding"
    assert guild.kick.await_args.kwargs["reason"] == "bye"
    assert guild.ban.await_args.kwargs["delete_message_seconds"] == 2 * 86400
    assert guild.unban.await_args.args[0].id == 42


@pytest.mark.asyncio
async def test_is_banned():
    guild = make_guild()
    gateway = DiscordGuildGateway(guild)

    assert await gateway.is_banned(UserID(42)) is True

    guild.fetch_ban.side_effect = http_error(discord.NotFound, 404)
    assert await gateway.is_banned(UserID(42)) is False


@pytest.mark.asyncio
async def test_delete_message_results():
    guild = make_guild()
    partial = MagicMock()
    partial.delete = AsyncMock()
    channel = MagicMock()
    channel.get_partial_message.return_value = partial
    guild.get_channel_or_thread.return_value = channel
    gateway = DiscordGuildGateway(guild)

    assert (await gateway.delete_message(message_ref(5))).ok

    partial.delete.side_effect = http_error(discord.NotFound, 404)
    assert (await gateway.delete_message(message_ref(5))).ok

    partial.delete.side_effect = http_error(discord.Forbidden, 403)
    result = await gateway.delete_message(message_ref(5))
    assert not result.ok

    guild.get_channel_or_thread.return_value = None
    assert not (await gateway.delete_message(message_ref(5))).ok


@pytest.mark.asyncio
async def test_directory_resolves_known_guilds():
    bot = MagicMock()
    bot.get_guild.side_effect = lambda guild_id: make_guild() if guild_id == 1000 else None
    directory = DiscordGuildDirectory(bot)

    gateway = await directory.resolve(GuildID(1000))
    assert gateway is not None and gateway.guild_id == GuildID(1000)
    assert await directory.resolve(GuildID(1)) is None


@pytest.mark.asyncio
async def test_notification_sink_reports_closed_dms():
    user = MagicMock()
    user.send = AsyncMock()
    bot = MagicMock()
    bot.get_user.return_value = user
    sink = DiscordNotificationSink(bot)

    assert (await sink.send_direct_message(UserID(42), "hello")).ok
    user.send.assert_awaited_once_with("hello")

    user.send.side_effect = http_error(discord.Forbidden, 403)
    result = await sink.send_direct_message(UserID(42), "hello")
    assert not result.ok
    assert result.error == "DMs disabled"


def make_case():
    return Case(
        id=3,
        case_type=CaseType.UNBAN,
        subject_id=UserID(42),
        subject_tag=DiscordUsername("offender"),
        actor_id=UserID(BOT_ID),
        actor_tag=DiscordUsername("modledger"),
        reason="Temporary ban expired",
        duration_seconds=None,
        created_at=1_700_000_000.0,
    )


@pytest.mark.asyncio
async def test_modlog_sink_posts_embed():
    channel = MagicMock(spec=discord.TextChannel)
    channel.send = AsyncMock()
    bot = MagicMock()
    bot.get_channel.return_value = channel
    sink = DiscordModlogSink(bot, lambda: ChannelID(555))

    result = await sink.publish(make_case())

    assert result.ok
    embed = channel.send.await_args.kwargs["embed"]
    assert embed.title == "Case #3 | UNBAN"


@pytest.mark.asyncio
async def test_modlog_sink_without_channel_is_noop():
    bot = MagicMock()
    sink = DiscordModlogSink(bot, lambda: None)

    assert (await sink.publish(make_case())).ok
    bot.get_channel.assert_not_called()
