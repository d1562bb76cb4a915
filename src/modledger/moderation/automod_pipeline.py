"""
Auto-moderation pipeline for inbound guild messages.

Stages run in a fixed order and the first one that acts ends processing:

1. spam filter (near-duplicate bursts)
2. word filter (case-insensitive substring match)
3. invite filter (Discord invite links not on the allow list)

Each stage honours its own ``enabled`` toggle and exemption lists. When a
stage acts it removes the offending message(s) and hands the configured
actions to the shared ``ActionExecutor``, which records one case for the
incident.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from modledger.configuration.moderation_settings import FilterSettings, ModerationSettings
from modledger.datatypes.action_datatypes import AutoModAction, PipelineOutcome, PipelineStage
from modledger.datatypes.case_datatypes import CaseType
from modledger.datatypes.discord_datatypes import ChannelID, GuildID, MessageRef, RoleID, UserRef
from modledger.moderation.action_executor import ActionExecutor
from modledger.moderation.collaborators import GuildGateway, NotificationSink
from modledger.moderation.spam_detector import SpamCheckConfig, SpamDetector
from modledger.util.logger import get_logger

logger = get_logger("automod_pipeline")

# Messages shorter than this are never checked or tracked for spam
MIN_SPAM_CONTENT_LENGTH = 5

INVITE_PATTERN = re.compile(r"discord(?:\.gg|(?:app)?\.com/invite)/([a-zA-Z0-9-]+)", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """The parts of a Discord message the pipeline looks at."""

    guild_id: Optional[GuildID]
    channel_id: ChannelID
    message_ref: MessageRef
    author: UserRef
    content: str
    author_is_bot: bool = False
    role_ids: frozenset[RoleID] = field(default_factory=frozenset)


def find_filtered_word(content: str, words: List[str]) -> Optional[str]:
    """Return the first configured word contained in ``content``, ignoring case."""
    lowered = content.lower()
    for word in words:
        if word.lower() in lowered:
            return word
    return None


def find_invite_codes(content: str) -> List[str]:
    return INVITE_PATTERN.findall(content)


def removal_notice(guild_name: str, reason: str, actions: List[AutoModAction]) -> str:
    """Direct message telling the author why their message disappeared."""
    action_list = ", ".join(action.value for action in actions) or "none"
    return (
        f"**Message Removed** in {guild_name}\n"
        f"Reason: {reason}\n"
        f"Actions taken: {action_list}"
    )


class AutoModPipeline:
    """
    Runs the auto-mod stages for one message at a time.

    Args:
        detector: Spam window store shared by every message.
        executor: Applies configured actions and writes the incident case.
        notifier: Used for the "Message Removed" notice after filter hits.
        settings: Returns the current moderation settings; called per message
            so a configuration reload takes effect immediately.
    """

    def __init__(
        self,
        detector: SpamDetector,
        executor: ActionExecutor,
        notifier: NotificationSink,
        settings: Callable[[], ModerationSettings],
    ) -> None:
        self.detector = detector
        self.executor = executor
        self.notifier = notifier
        self.settings = settings

    async def process(self, message: InboundMessage, gateway: GuildGateway) -> PipelineOutcome:
        if message.guild_id is None or message.author_is_bot:
            return PipelineOutcome()

        settings = self.settings()

        outcome = await self._spam_stage(message, gateway, settings)
        if outcome.handled:
            return outcome

        outcome = await self._word_filter_stage(message, gateway, settings)
        if outcome.handled:
            return outcome

        return await self._invite_filter_stage(message, gateway, settings)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _spam_stage(
        self,
        message: InboundMessage,
        gateway: GuildGateway,
        settings: ModerationSettings,
    ) -> PipelineOutcome:
        spam = settings.spam_filter
        if not spam.enabled or spam.is_exempt(message.channel_id, message.role_ids):
            return PipelineOutcome()
        if len(message.content) < MIN_SPAM_CONTENT_LENGTH:
            return PipelineOutcome()

        config = SpamCheckConfig(
            similarity_threshold=spam.similarity_threshold,
            message_threshold=spam.message_threshold,
            time_window_seconds=spam.time_window_seconds,
        )
        guild_id, user_id = message.guild_id, message.author.user_id

        async with self.detector.locked(guild_id, user_id):
            result = self.detector.check(guild_id, user_id, message.content, config)
            if not result.is_spam:
                self.detector.track(guild_id, user_id, message.message_ref, message.content)
                return PipelineOutcome()

            deleted = await self._delete_all(gateway, [message.message_ref, *result.matched_refs])
            self.detector.clear(guild_id, user_id)

        logger.info(
            "[SPAM] User %s sent %d similar messages in guild %s",
            user_id, result.similar_count, guild_id,
        )
        case_id = await self.executor.execute(
            gateway,
            message.author,
            spam.actions,
            CaseType.AUTOMOD_SPAM,
            f"AutoMod: Spam detected ({result.similar_count} similar messages)",
            spam.timeout_duration,
        )
        return PipelineOutcome(PipelineStage.SPAM, case_id, deleted)

    async def _word_filter_stage(
        self,
        message: InboundMessage,
        gateway: GuildGateway,
        settings: ModerationSettings,
    ) -> PipelineOutcome:
        word_filter = settings.message_filter
        if not word_filter.enabled or word_filter.is_exempt(message.channel_id, message.role_ids):
            return PipelineOutcome()

        word = find_filtered_word(message.content, word_filter.words)
        if word is None:
            return PipelineOutcome()

        return await self._act_on_filter_hit(
            message,
            gateway,
            word_filter,
            PipelineStage.WORD_FILTER,
            CaseType.AUTOMOD_FILTER,
            f'AutoMod: Used filtered word "{word}"',
        )

    async def _invite_filter_stage(
        self,
        message: InboundMessage,
        gateway: GuildGateway,
        settings: ModerationSettings,
    ) -> PipelineOutcome:
        invite_filter = settings.invite_filter
        if not invite_filter.enabled or invite_filter.is_exempt(message.channel_id, message.role_ids):
            return PipelineOutcome()

        allowed = invite_filter.allowed_invites
        if not any(code not in allowed for code in find_invite_codes(message.content)):
            return PipelineOutcome()

        return await self._act_on_filter_hit(
            message,
            gateway,
            invite_filter,
            PipelineStage.INVITE_FILTER,
            CaseType.AUTOMOD_INVITE,
            "AutoMod: Posted unauthorized Discord invite",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _act_on_filter_hit(
        self,
        message: InboundMessage,
        gateway: GuildGateway,
        filter_settings: FilterSettings,
        stage: PipelineStage,
        case_type: CaseType,
        reason: str,
    ) -> PipelineOutcome:
        logger.info("[AUTOMOD] %s hit for user %s in guild %s", stage.value, message.author.user_id, message.guild_id)

        deleted = await self._delete_all(gateway, [message.message_ref])
        actions = filter_settings.actions
        case_id = await self.executor.execute(
            gateway,
            message.author,
            actions,
            case_type,
            reason,
            filter_settings.timeout_duration,
        )

        notice = await self.notifier.send_direct_message(
            message.author.user_id,
            removal_notice(gateway.guild_name, reason, actions),
        )
        if not notice.ok:
            logger.debug("[AUTOMOD] Could not DM removal notice to %s: %s", message.author.user_id, notice.error)

        return PipelineOutcome(stage, case_id, deleted)

    async def _delete_all(self, gateway: GuildGateway, refs: List[MessageRef]) -> List[MessageRef]:
        """Best-effort delete of each message; returns the ones actually removed."""
        deleted: List[MessageRef] = []
        for ref in dict.fromkeys(refs):
            result = await gateway.delete_message(ref)
            if result.ok:
                deleted.append(ref)
            else:
                logger.warning("[AUTOMOD] Failed to delete message %s: %s", ref.message_id, result.error)
        return deleted
