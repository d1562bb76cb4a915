"""Periodic expiry of temporary bans.

The scheduler polls the case ledger for ``tempban`` cases whose expiry has
passed, lifts each ban in its guild and records an ``unban`` case. Every
handled tempban is marked processed in the ledger, so a restart or a second
tick never unbans the same case twice.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from modledger.database.case_repo import CaseRepo
from modledger.datatypes.case_datatypes import Case, CaseType, NewCase
from modledger.moderation.action_executor import publish_to_modlog
from modledger.moderation.collaborators import ActorProvider, GuildDirectory, ModlogSink
from modledger.util.logger import get_logger

logger = get_logger("tempban_scheduler")

UNBAN_REASON = "Temporary ban expired"

OUTCOME_UNBANNED = "unbanned"
OUTCOME_NOT_BANNED = "not_banned"
OUTCOME_NO_GUILD = "no_guild"


@dataclass(slots=True)
class TickReport:
    """Counters for one scheduler pass."""

    expired: int = 0
    unbanned: int = 0
    skipped: int = 0
    failed: int = 0
    ran: bool = True


class TempbanExpiryScheduler:
    """
    Lifts expired temporary bans on a fixed interval.

    Args:
        cases: Ledger to read expired tempbans from and write unban cases to.
        directory: Resolves a guild id to something that can unban in it.
        modlog: Mod log sink, or None when no mod log is configured.
        actor: Returns the bot identity recorded on unban cases.
        get_interval: Seconds between ticks, read when the loop starts.
        clock: Unix seconds source used as ``now`` for each tick.
    """

    def __init__(
        self,
        cases: CaseRepo,
        directory: GuildDirectory,
        modlog: Optional[ModlogSink],
        actor: ActorProvider,
        get_interval: Callable[[], float] = lambda: 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cases = cases
        self._directory = directory
        self._modlog = modlog
        self._actor = actor
        self._get_interval = get_interval
        self._clock = clock
        self._tick_lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self, now: Optional[float] = None) -> TickReport:
        """
        Process every tempban that has expired by ``now``.

        If a previous tick is still running this one is skipped. A failure on
        one case is logged and the case is retried on the next tick; it never
        stops the rest of the batch.
        """
        if self._tick_lock.locked():
            logger.debug("[TEMPBAN] Previous tick still running, skipping")
            return TickReport(ran=False)

        async with self._tick_lock:
            if now is None:
                now = self._clock()

            report = TickReport()
            expired = await self._cases.get_expired_tempbans(now)
            report.expired = len(expired)

            for case in expired:
                try:
                    outcome = await self._expire(case)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    report.failed += 1
                    logger.error("[TEMPBAN] Failed to lift tempban case #%d: %s", case.id, exc)
                    continue

                if outcome == OUTCOME_UNBANNED:
                    report.unbanned += 1
                else:
                    report.skipped += 1

            if report.expired:
                logger.info(
                    "[TEMPBAN] Tick processed %d expired tempbans (%d unbanned, %d skipped, %d failed)",
                    report.expired, report.unbanned, report.skipped, report.failed,
                )
            return report

    async def _expire(self, case: Case) -> Optional[str]:
        if case.guild_id is None:
            logger.warning("[TEMPBAN] Case #%d has no guild, marking processed", case.id)
            await self._cases.mark_tempban_processed(case.id, OUTCOME_NO_GUILD)
            return OUTCOME_NO_GUILD

        gateway = await self._directory.resolve(case.guild_id)
        if gateway is None:
            # Left unprocessed so it is retried once the guild is reachable again
            logger.warning("[TEMPBAN] Guild %s for case #%d not found, skipping", case.guild_id, case.id)
            return None

        if not await gateway.is_banned(case.subject_id):
            logger.info("[TEMPBAN] User %s is no longer banned in %s (case #%d)", case.subject_id, case.guild_id, case.id)
            await self._cases.mark_tempban_processed(case.id, OUTCOME_NOT_BANNED)
            return OUTCOME_NOT_BANNED

        await gateway.unban(case.subject_id, UNBAN_REASON)
        unban_case_id = await self._cases.create_case(NewCase(
            case_type=CaseType.UNBAN,
            subject=case.subject,
            actor=self._actor(),
            reason=UNBAN_REASON,
            guild_id=case.guild_id,
        ))
        await self._cases.mark_tempban_processed(case.id, OUTCOME_UNBANNED, unban_case_id)

        logger.info("[TEMPBAN] Lifted tempban case #%d for %s (unban case #%d)", case.id, case.subject_id, unban_case_id)
        await publish_to_modlog(self._cases, self._modlog, unban_case_id)
        return OUTCOME_UNBANNED

    async def _run_loop(self, interval: float) -> None:
        logger.info("[TEMPBAN] Starting expiry polling (interval=%.1fs)", interval)
        try:
            while True:
                try:
                    await self.tick()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[TEMPBAN] Unexpected error during tick: %s", exc)
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("[TEMPBAN] Expiry polling cancelled")
            raise

    def start(self) -> None:
        """Start the polling task if it is not already running."""
        if self.is_running:
            logger.warning("[TEMPBAN] Expiry polling already running")
            return
        self._task = asyncio.create_task(self._run_loop(self._get_interval()), name="modledger-tempban-expiry")

    def stop(self) -> None:
        """Cancel the polling task without waiting for it."""
        if self._task and not self._task.done():
            self._task.cancel()

    async def shutdown(self) -> None:
        """Stop the polling task and wait for it to finish."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[TEMPBAN] Scheduler shutdown complete")
