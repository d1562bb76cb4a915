"""Tests for the tempban expiry scheduler."""

import asyncio

import pytest

from modledger.datatypes.case_datatypes import CaseType, NewCase
from modledger.datatypes.discord_datatypes import GuildID
from modledger.scheduler.tempban_scheduler import UNBAN_REASON, TempbanExpiryScheduler

from fakes import BOT, GUILD_ID, OFFENDER, FakeDirectory, FakeGateway, FakeModlog, bot_actor


async def add_tempban(cases, expires_at, guild_id=GUILD_ID):
    return await cases.create_case(NewCase(
        CaseType.TEMPBAN, OFFENDER, BOT, "cool off",
        duration_seconds=3600, expires_at=expires_at, guild_id=guild_id,
    ))


def make_scheduler(cases, clock, *gateways, modlog=None):
    return TempbanExpiryScheduler(
        cases,
        FakeDirectory(*gateways),
        modlog if modlog is not None else FakeModlog(),
        bot_actor,
        get_interval=lambda: 0.01,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_expired_tempban_is_lifted_once(cases, clock):
    gateway = FakeGateway(banned={OFFENDER.user_id})
    modlog = FakeModlog()
    scheduler = make_scheduler(cases, clock, gateway, modlog=modlog)
    tempban_id = await add_tempban(cases, clock.now - 1)

    report = await scheduler.tick()

    assert report.unbanned == 1
    assert gateway.calls == [("unban", OFFENDER.user_id, UNBAN_REASON)]
    unbans = [case for case in await cases.list_all_cases() if case.case_type is CaseType.UNBAN]
    assert len(unbans) == 1
    assert unbans[0].reason == UNBAN_REASON
    assert unbans[0].guild_id == GUILD_ID
    assert unbans[0].actor == BOT
    assert [case.id for case in modlog.published] == [unbans[0].id]

    # Same now: nothing left to process
    assert await cases.get_expired_tempbans(clock.now) == []
    second = await scheduler.tick()
    assert second.expired == 0
    assert len(gateway.calls) == 1
    assert (await cases.get_case(tempban_id)).case_type is CaseType.TEMPBAN


@pytest.mark.asyncio
async def test_future_tempban_is_left_alone(cases, clock):
    gateway = FakeGateway(banned={OFFENDER.user_id})
    scheduler = make_scheduler(cases, clock, gateway)
    await add_tempban(cases, clock.now + 60)

    report = await scheduler.tick()

    assert report.expired == 0
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_manually_unbanned_user_is_skipped(cases, clock):
    gateway = FakeGateway(banned=set())
    scheduler = make_scheduler(cases, clock, gateway)
    await add_tempban(cases, clock.now)

    report = await scheduler.tick()

    assert report.skipped == 1
    assert gateway.calls == []
    assert await cases.get_expired_tempbans(clock.now) == []


@pytest.mark.asyncio
async def test_unknown_guild_is_retried_later(cases, clock):
    scheduler = make_scheduler(cases, clock)
    await add_tempban(cases, clock.now, guild_id=GuildID(404))

    report = await scheduler.tick()

    assert report.skipped == 1
    assert len(await cases.get_expired_tempbans(clock.now)) == 1


@pytest.mark.asyncio
async def test_one_failure_does_not_abort_batch(cases, clock):
    broken = FakeGateway(GuildID(1), banned={OFFENDER.user_id})
    broken.fail_on["unban"] = RuntimeError("discord is down")
    healthy = FakeGateway(GuildID(2), banned={OFFENDER.user_id})
    scheduler = make_scheduler(cases, clock, broken, healthy)
    await add_tempban(cases, clock.now - 2, guild_id=GuildID(1))
    await add_tempban(cases, clock.now - 1, guild_id=GuildID(2))

    report = await scheduler.tick()

    assert (report.failed, report.unbanned) == (1, 1)
    assert healthy.calls == [("unban", OFFENDER.user_id, UNBAN_REASON)]
    # The failed case stays pending
    pending = await cases.get_expired_tempbans(clock.now)
    assert [case.guild_id for case in pending] == [GuildID(1)]


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped(cases, clock):
    entered = asyncio.Event()
    release = asyncio.Event()

    class SlowGateway(FakeGateway):
        async def is_banned(self, subject_id):
            entered.set()
            await release.wait()
            return await super().is_banned(subject_id)

    gateway = SlowGateway(banned={OFFENDER.user_id})
    scheduler = make_scheduler(cases, clock, gateway)
    await add_tempban(cases, clock.now)

    first = asyncio.create_task(scheduler.tick())
    await entered.wait()
    skipped = await scheduler.tick()
    release.set()
    completed = await first

    assert skipped.ran is False
    assert completed.unbanned == 1
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_start_and_shutdown(cases, clock):
    gateway = FakeGateway(banned={OFFENDER.user_id})
    scheduler = make_scheduler(cases, clock, gateway)
    await add_tempban(cases, clock.now)

    scheduler.start()
    assert scheduler.is_running
    for _ in range(50):
        if gateway.calls:
            break
        await asyncio.sleep(0.01)
    await scheduler.shutdown()

    assert not scheduler.is_running
    assert gateway.calls == [("unban", OFFENDER.user_id, UNBAN_REASON)]
