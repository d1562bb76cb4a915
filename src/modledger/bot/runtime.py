"""Wiring of the moderation components for a running bot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import discord

from modledger.configuration.app_configuration import app_config
from modledger.configuration.moderation_settings import ModerationSettings
from modledger.database.case_repo import CaseRepo
from modledger.datatypes.discord_datatypes import UserRef
from modledger.bot.discord_adapters import DiscordGuildDirectory, DiscordModlogSink, DiscordNotificationSink
from modledger.moderation.action_executor import ActionExecutor
from modledger.moderation.automod_pipeline import AutoModPipeline
from modledger.moderation.escalation import WarningEscalationEngine
from modledger.moderation.spam_detector import SpamDetector
from modledger.scheduler.tempban_scheduler import TempbanExpiryScheduler


@dataclass(slots=True)
class ModerationRuntime:
    """Long-lived moderation components shared by the cogs."""

    detector: SpamDetector
    executor: ActionExecutor
    pipeline: AutoModPipeline
    escalation: WarningEscalationEngine
    tempban_scheduler: TempbanExpiryScheduler
    directory: DiscordGuildDirectory


def build_runtime(
    bot: discord.Bot,
    cases: CaseRepo,
    settings: Callable[[], ModerationSettings] = lambda: app_config.moderation,
) -> ModerationRuntime:
    """Create the moderation components for ``bot`` on top of the case ledger."""

    def actor() -> UserRef:
        if bot.user is None:
            raise RuntimeError("Bot user is not available before login")
        return UserRef.from_user(bot.user)

    notifier = DiscordNotificationSink(bot)
    modlog = DiscordModlogSink(bot, lambda: settings().mod_log_channel_id)
    directory = DiscordGuildDirectory(bot)

    detector = SpamDetector(cleanup_interval=app_config.spam_cleanup_interval)
    executor = ActionExecutor(cases, notifier, modlog, actor)

    return ModerationRuntime(
        detector=detector,
        executor=executor,
        pipeline=AutoModPipeline(detector, executor, notifier, settings),
        escalation=WarningEscalationEngine(cases, notifier, modlog, actor, settings),
        tempban_scheduler=TempbanExpiryScheduler(
            cases,
            directory,
            modlog,
            actor,
            get_interval=lambda: settings().tempban_poll_interval,
        ),
        directory=directory,
    )
