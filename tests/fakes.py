"""Test doubles for the moderation collaborator interfaces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from modledger.configuration.moderation_settings import ModerationSettings
from modledger.datatypes.case_datatypes import Case
from modledger.datatypes.discord_datatypes import (
    ChannelID,
    DiscordUsername,
    GuildID,
    MessageID,
    MessageRef,
    UserID,
    UserRef,
)
from modledger.moderation.collaborators import DeliveryResult

BOT = UserRef(UserID(999), DiscordUsername("modledger#0001"))
OFFENDER = UserRef(UserID(42), DiscordUsername("offender#4242"))
GUILD_ID = GuildID(1000)
CHANNEL_ID = ChannelID(2000)


def bot_actor() -> UserRef:
    return BOT


def message_ref(message_id: int, channel_id: ChannelID = CHANNEL_ID) -> MessageRef:
    return MessageRef(channel_id, MessageID(message_id))


def settings_provider(data: dict):
    settings = ModerationSettings(data)
    return lambda: settings


class FakeClock:
    """Manually advanced clock; callable like ``time.time``."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeNotifier:
    fail: bool = False
    sent: List[Tuple[UserID, str]] = field(default_factory=list)

    async def send_direct_message(self, user_id: UserID, content: str) -> DeliveryResult:
        if self.fail:
            return DeliveryResult.failure("DMs disabled")
        self.sent.append((user_id, content))
        return DeliveryResult.success()


@dataclass
class FakeModlog:
    published: List[Case] = field(default_factory=list)

    async def publish(self, case: Case) -> DeliveryResult:
        self.published.append(case)
        return DeliveryResult.success()


class FakeGateway:
    """
    In-memory guild: records every mutation and answers capability checks
    from the ``allow_*`` flags.
    """

    def __init__(
        self,
        guild_id: GuildID = GUILD_ID,
        *,
        allow_timeout: bool = True,
        allow_kick: bool = True,
        allow_ban: bool = True,
        banned: Optional[Set[UserID]] = None,
    ) -> None:
        self._guild_id = guild_id
        self.allow_timeout = allow_timeout
        self.allow_kick = allow_kick
        self.allow_ban = allow_ban
        self.banned: Set[UserID] = set(banned or ())
        self.calls: List[tuple] = []
        self.deleted: List[MessageRef] = []
        self.missing_messages: Set[MessageRef] = set()
        self.fail_on: Dict[str, Exception] = {}

    @property
    def guild_id(self) -> GuildID:
        return self._guild_id

    @property
    def guild_name(self) -> str:
        return "Test Guild"

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_on:
            raise self.fail_on[name]

    async def can_timeout(self, subject_id: UserID) -> bool:
        self._maybe_fail("can_timeout")
        return self.allow_timeout

    async def can_kick(self, subject_id: UserID) -> bool:
        self._maybe_fail("can_kick")
        return self.allow_kick

    async def can_ban(self, subject_id: UserID) -> bool:
        self._maybe_fail("can_ban")
        return self.allow_ban

    async def apply_timeout(self, subject_id: UserID, seconds: int, reason: str) -> None:
        self._maybe_fail("timeout")
        self.calls.append(("timeout", subject_id, seconds, reason))

    async def kick(self, subject_id: UserID, reason: str) -> None:
        self._maybe_fail("kick")
        self.calls.append(("kick", subject_id, reason))

    async def ban(self, subject_id: UserID, reason: str, retention_days: int) -> None:
        self._maybe_fail("ban")
        self.banned.add(subject_id)
        self.calls.append(("ban", subject_id, reason, retention_days))

    async def unban(self, subject_id: UserID, reason: str) -> None:
        self._maybe_fail("unban")
        self.banned.discard(subject_id)
        self.calls.append(("unban", subject_id, reason))

    async def is_banned(self, subject_id: UserID) -> bool:
        return subject_id in self.banned

    async def delete_message(self, ref: MessageRef) -> DeliveryResult:
        if ref in self.missing_messages:
            return DeliveryResult.failure("unknown message")
        self.deleted.append(ref)
        return DeliveryResult.success()


class FakeDirectory:
    def __init__(self, *gateways: FakeGateway) -> None:
        self.gateways = {gateway.guild_id: gateway for gateway in gateways}

    async def resolve(self, guild_id: GuildID) -> Optional[FakeGateway]:
        return self.gateways.get(guild_id)
