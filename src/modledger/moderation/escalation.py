"""
Warning escalation.

After a warning is recorded, the engine counts the subject's active
(non-decayed) warnings and compares them with the configured thresholds.
Category rules are consulted before global rules, and within a rule set
only the highest threshold not exceeding the count fires.

Applying the chosen action always leaves a case behind, even when the bot
lacks the standing to carry it out: the reason then records the failure.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable, Optional

from modledger.configuration.moderation_settings import ModerationSettings, ThresholdRule
from modledger.database.case_repo import CaseRepo
from modledger.datatypes.action_datatypes import ThresholdAction, ThresholdActionType
from modledger.datatypes.case_datatypes import NewCase
from modledger.datatypes.discord_datatypes import UserID, UserRef
from modledger.moderation.action_executor import publish_to_modlog
from modledger.moderation.collaborators import ActorProvider, GuildGateway, ModlogSink, NotificationSink
from modledger.util.duration import format_duration, parse_duration
from modledger.util.keyed_lock import KeyedLock
from modledger.util.logger import get_logger

logger = get_logger("escalation")

REASON_PREFIX = "Auto-escalation: "

# Used when a timeout rule has no (valid) duration
DEFAULT_TIMEOUT_SECONDS = 600

_FAILURE_WORDS = {
    ThresholdActionType.TIMEOUT: "moderatable",
    ThresholdActionType.KICK: "kickable",
    ThresholdActionType.BAN: "bannable",
}


def select_rule(rules: Iterable[ThresholdRule], active_count: int) -> Optional[ThresholdRule]:
    """The rule with the highest ``count`` that is still ``<= active_count``."""
    best: Optional[ThresholdRule] = None
    for rule in rules:
        if rule.count <= active_count and (best is None or rule.count > best.count):
            best = rule
    return best


class WarningEscalationEngine:
    """
    Chooses and applies threshold actions for warned users.

    Args:
        cases: Case ledger holding the warnings and receiving escalation cases.
        notifier: Direct message sink for threshold notices.
        modlog: Mod log sink, or None when no mod log is configured.
        actor: Returns the bot identity recorded as the case actor.
        settings: Returns the current moderation settings.
    """

    def __init__(
        self,
        cases: CaseRepo,
        notifier: NotificationSink,
        modlog: Optional[ModlogSink],
        actor: ActorProvider,
        settings: Callable[[], ModerationSettings],
    ) -> None:
        self.cases = cases
        self.notifier = notifier
        self.modlog = modlog
        self.actor = actor
        self.settings = settings
        self._subject_locks: KeyedLock[UserID] = KeyedLock()

    async def check_thresholds(self, subject_id: UserID, category: Optional[str] = None) -> Optional[ThresholdAction]:
        """
        Pick the escalation a subject's warnings currently call for.

        With a known ``category`` that has thresholds, only warnings of that
        category are counted against its rules. If none of them fires the
        global rules are evaluated against all active warnings.
        """
        warnings = self.settings().warnings
        decay_days = warnings.decay_days

        if category:
            warning_category = warnings.categories.get(category)
            if warning_category is not None and warning_category.thresholds:
                category_warnings = await self.cases.get_active_warnings(subject_id, decay_days, category)
                count = len(category_warnings)
                rule = select_rule(warning_category.thresholds, count)
                if rule is not None:
                    return self._to_action(rule, f'Reached {count} warnings in category "{warning_category.name}"')

        count = len(await self.cases.get_active_warnings(subject_id, decay_days))
        rule = select_rule(warnings.global_thresholds, count)
        if rule is None:
            return None
        return self._to_action(rule, f"Reached {count} total warnings")

    @staticmethod
    def _to_action(rule: ThresholdRule, reason: str) -> ThresholdAction:
        return ThresholdAction(
            action=rule.action,
            duration_seconds=parse_duration(rule.duration) if rule.duration else None,
            reason=reason,
            threshold_count=rule.count,
        )

    async def apply_threshold_action(
        self,
        gateway: GuildGateway,
        subject: UserRef,
        threshold: ThresholdAction,
    ) -> int:
        """
        Carry out ``threshold`` on ``subject`` and return the resulting case id.

        A case is written whether or not the action succeeded. Only a ledger
        failure raises.
        """
        settings = self.settings()
        reason = REASON_PREFIX + threshold.reason
        action = threshold.action
        duration: Optional[int] = None

        if action is ThresholdActionType.TIMEOUT:
            duration = threshold.duration_seconds or DEFAULT_TIMEOUT_SECONDS

        failure = await self._perform(gateway, subject, action, reason, duration, settings)
        if failure:
            reason = f"{reason} (Failed: {failure})"
            logger.warning("[ESCALATION] %s on %s failed: %s", action.value, subject.user_id, failure)

        case_id = await self.cases.create_case(NewCase(
            case_type=action.case_type,
            subject=subject,
            actor=self.actor(),
            reason=reason,
            duration_seconds=duration,
            threshold_triggered=True,
            guild_id=gateway.guild_id,
        ))

        logger.info(
            "[ESCALATION] Case #%d: %s for user %s (threshold %d)",
            case_id, action.value, subject.user_id, threshold.threshold_count,
        )
        await publish_to_modlog(self.cases, self.modlog, case_id)
        return case_id

    async def _perform(
        self,
        gateway: GuildGateway,
        subject: UserRef,
        action: ThresholdActionType,
        reason: str,
        duration: Optional[int],
        settings: ModerationSettings,
    ) -> Optional[str]:
        """Run the membership change. Returns a failure description, or None on success."""
        try:
            if action is ThresholdActionType.TIMEOUT:
                allowed = await gateway.can_timeout(subject.user_id)
            elif action is ThresholdActionType.KICK:
                allowed = await gateway.can_kick(subject.user_id)
            else:
                allowed = await gateway.can_ban(subject.user_id)
            if not allowed:
                return f"user not {_FAILURE_WORDS[action]}"

            if action is ThresholdActionType.TIMEOUT:
                await gateway.apply_timeout(subject.user_id, duration, reason)
            elif action is ThresholdActionType.KICK:
                await gateway.kick(subject.user_id, reason)
            else:
                await gateway.ban(subject.user_id, reason, settings.delete_messages_on_ban)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return str(exc) or type(exc).__name__

        # Only a change that actually happened is reported to the user
        if settings.warnings.dm_on_threshold_action:
            await self._notify(gateway, subject, action, reason, duration)
        return None

    async def _notify(
        self,
        gateway: GuildGateway,
        subject: UserRef,
        action: ThresholdActionType,
        reason: str,
        duration: Optional[int],
    ) -> None:
        if action is ThresholdActionType.TIMEOUT:
            headline = f"You have been timed out in {gateway.guild_name} for {format_duration(duration or 0)}"
        elif action is ThresholdActionType.KICK:
            headline = f"You have been kicked from {gateway.guild_name}"
        else:
            headline = f"You have been banned from {gateway.guild_name}"

        result = await self.notifier.send_direct_message(subject.user_id, f"{headline}\nReason: {reason}")
        if not result.ok:
            logger.debug("[ESCALATION] Could not DM %s: %s", subject.user_id, result.error)

    async def escalate_after_warning(
        self,
        gateway: GuildGateway,
        subject: UserRef,
        category: Optional[str] = None,
    ) -> Optional[int]:
        """
        Hook for whoever records a ``warn`` case: evaluate thresholds and apply
        the result. Returns the escalation case id, or None if nothing fired.

        Calls for the same subject run one at a time so two concurrent
        warnings cannot both escalate on a stale count.
        """
        async with self._subject_locks.locked(subject.user_id):
            threshold = await self.check_thresholds(subject.user_id, category)
            if threshold is None:
                return None
            return await self.apply_threshold_action(gateway, subject, threshold)

