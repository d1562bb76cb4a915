from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from modledger.cog.listener.automod_listener import AutoModListenerCog, to_inbound_message
from modledger.cog.listener.scheduler_cog import TempbanSchedulerCog
from modledger.datatypes.action_datatypes import PipelineOutcome
from modledger.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, RoleID, UserID


def make_message(*, bot_author=False, guild=True):
    message = MagicMock()
    message.id = 3
    message.content = "hello there"
    message.channel.id = 2
    message.guild = SimpleNamespace(id=1000) if guild else None
    message.author = MagicMock()
    message.author.id = 42
    message.author.bot = bot_author
    message.author.roles = [SimpleNamespace(id=5), SimpleNamespace(id=6)]
    message.author.__str__.return_value = "offender#4242"
    return message


def test_to_inbound_message():
    inbound = to_inbound_message(make_message())

    assert inbound.guild_id == GuildID(1000)
    assert inbound.channel_id == ChannelID(2)
    assert inbound.message_ref.message_id == MessageID(3)
    assert inbound.author.user_id == UserID(42)
    assert inbound.author.tag == "offender#4242"
    assert inbound.role_ids == frozenset({RoleID(5), RoleID(6)})
    assert inbound.content == "hello there"


@pytest.mark.asyncio
async def test_listener_forwards_guild_messages():
    pipeline = MagicMock()
    pipeline.process = AsyncMock(return_value=PipelineOutcome())
    cog = AutoModListenerCog(MagicMock(), pipeline, MagicMock())

    await cog.on_message(make_message())
    await cog.on_message(make_message(bot_author=True))
    await cog.on_message(make_message(guild=False))

    pipeline.process.assert_awaited_once()


@pytest.mark.asyncio
async def test_listener_survives_pipeline_errors():
    pipeline = MagicMock()
    pipeline.process = AsyncMock(side_effect=RuntimeError("database is locked"))
    cog = AutoModListenerCog(MagicMock(), pipeline, MagicMock())

    await cog.on_message(make_message())


@pytest.mark.asyncio
async def test_listener_clears_spam_windows_on_guild_remove():
    detector = MagicMock()
    cog = AutoModListenerCog(MagicMock(), MagicMock(), detector)

    await cog.on_guild_remove(SimpleNamespace(id=1000))

    detector.clear_guild.assert_called_once_with(GuildID(1000))


@pytest.mark.asyncio
async def test_scheduler_cog_starts_once_and_stops_on_unload():
    scheduler = MagicMock()
    scheduler.is_running = False
    cog = TempbanSchedulerCog(MagicMock(), scheduler)

    await cog.on_ready()
    scheduler.start.assert_called_once()

    scheduler.is_running = True
    await cog.on_ready()
    scheduler.start.assert_called_once()

    cog.cog_unload()
    scheduler.stop.assert_called_once()
