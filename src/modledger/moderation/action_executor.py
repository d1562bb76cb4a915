"""
Shared action execution for auto-mod stages.

One invocation handles one incident. Whatever mix of ``delete``, ``warn``,
``timeout`` and ``kick`` is configured, the incident produces at most one
case: the first action that needs a case opens it and every later action in
the same invocation contributes to that same record.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

from modledger.database.case_repo import CaseRepo
from modledger.datatypes.action_datatypes import AutoModAction
from modledger.datatypes.case_datatypes import CaseType, NewCase
from modledger.datatypes.discord_datatypes import UserRef
from modledger.moderation.collaborators import ActorProvider, GuildGateway, ModlogSink, NotificationSink
from modledger.util.duration import parse_duration
from modledger.util.logger import get_logger

logger = get_logger("action_executor")


@dataclass(slots=True)
class _PendingCase:
    """The incident's case before it is written."""

    needed: bool = False
    duration_seconds: Optional[int] = None


async def publish_to_modlog(cases: CaseRepo, modlog: Optional[ModlogSink], case_id: int) -> None:
    """Forward a stored case to the mod log. A missing sink or failed post is logged, never raised."""
    if modlog is None:
        return
    case = await cases.get_case(case_id)
    if case is None:
        logger.warning("[MODLOG] Case #%d vanished before it could be published", case_id)
        return
    result = await modlog.publish(case)
    if not result.ok:
        logger.warning("[MODLOG] Failed to publish case #%d: %s", case_id, result.error)


class ActionExecutor:
    """
    Runs a configured action list against one subject and records the incident.

    Args:
        cases: Case ledger to write to.
        notifier: Direct message sink for ``warn`` notifications.
        modlog: Mod log sink, or None when no mod log is configured.
        actor: Returns the bot identity recorded as the case actor.
    """

    def __init__(
        self,
        cases: CaseRepo,
        notifier: NotificationSink,
        modlog: Optional[ModlogSink],
        actor: ActorProvider,
    ) -> None:
        self.cases = cases
        self.notifier = notifier
        self.modlog = modlog
        self.actor = actor

    async def execute(
        self,
        gateway: GuildGateway,
        subject: UserRef,
        actions: Sequence[AutoModAction],
        case_type: CaseType,
        reason: str,
        timeout_duration: str,
    ) -> Optional[int]:
        """
        Apply ``actions`` in order and return the incident's case id.

        Returns None when no action needed a case, e.g. a lone ``kick`` the
        bot was not allowed to perform. A failing action is logged and the
        remaining actions still run. Only the ledger write itself may raise.
        """
        pending = _PendingCase()

        for action in actions:
            try:
                await self._apply(gateway, subject, action, reason, timeout_duration, pending)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(
                    "[AUTOMOD] Action %s failed for user %s in guild %s: %s",
                    action.value, subject.user_id, gateway.guild_id, exc,
                )

        if not pending.needed:
            return None

        case_id = await self.cases.create_case(NewCase(
            case_type=case_type,
            subject=subject,
            actor=self.actor(),
            reason=reason,
            duration_seconds=pending.duration_seconds,
            guild_id=gateway.guild_id,
        ))

        logger.info(
            "[AUTOMOD] Case #%d (%s) for user %s: %s",
            case_id, case_type.value, subject.user_id, ", ".join(a.value for a in actions),
        )

        await publish_to_modlog(self.cases, self.modlog, case_id)
        return case_id

    async def _apply(
        self,
        gateway: GuildGateway,
        subject: UserRef,
        action: AutoModAction,
        reason: str,
        timeout_duration: str,
        pending: _PendingCase,
    ) -> None:
        match action:
            case AutoModAction.DELETE:
                # The triggering stage already removed the message
                pending.needed = True

            case AutoModAction.WARN:
                pending.needed = True
                result = await self.notifier.send_direct_message(subject.user_id, f"Warning: {reason}")
                if not result.ok:
                    # Users may close their DMs; the warning still stands on the case
                    logger.debug("[AUTOMOD] Could not DM warning to %s: %s", subject.user_id, result.error)

            case AutoModAction.TIMEOUT:
                seconds = parse_duration(timeout_duration)
                if not seconds:
                    logger.warning("[AUTOMOD] Invalid timeout duration %r, skipping timeout", timeout_duration)
                    return
                if not await gateway.can_timeout(subject.user_id):
                    logger.info("[AUTOMOD] Cannot timeout %s, skipping", subject.user_id)
                    return
                await gateway.apply_timeout(subject.user_id, seconds, reason)
                pending.needed = True
                pending.duration_seconds = seconds

            case AutoModAction.KICK:
                if not await gateway.can_kick(subject.user_id):
                    logger.info("[AUTOMOD] Cannot kick %s, skipping", subject.user_id)
                    return
                await gateway.kick(subject.user_id, reason)
                pending.needed = True
