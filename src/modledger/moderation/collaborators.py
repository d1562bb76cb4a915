"""
Interfaces the moderation core calls out to.

The core never touches the Discord client directly. Everything it needs
(sending DMs, posting to the mod log, checking whether the bot outranks a
member, mutating membership, deleting messages, resolving a guild) goes
through the protocols below. ``modledger.bot.discord_adapters`` implements
them over py-cord; tests implement them with fakes.

Best-effort calls return a ``DeliveryResult`` instead of raising, so every
caller decides visibly what to do with a failure. Membership mutations may
raise; callers wrap them in a per-action error boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from modledger.datatypes.case_datatypes import Case
from modledger.datatypes.discord_datatypes import GuildID, MessageRef, UserID, UserRef


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls) -> "DeliveryResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str | BaseException) -> "DeliveryResult":
        return cls(ok=False, error=str(error))


class NotificationSink(Protocol):
    async def send_direct_message(self, user_id: UserID, content: str) -> DeliveryResult: ...


class ModlogSink(Protocol):
    async def publish(self, case: Case) -> DeliveryResult: ...


class CapabilityOracle(Protocol):
    """Whether the bot currently has enough standing to act on a subject."""

    async def can_timeout(self, subject_id: UserID) -> bool: ...

    async def can_kick(self, subject_id: UserID) -> bool: ...

    async def can_ban(self, subject_id: UserID) -> bool: ...


class MemberActions(Protocol):
    async def apply_timeout(self, subject_id: UserID, seconds: int, reason: str) -> None: ...

    async def kick(self, subject_id: UserID, reason: str) -> None: ...

    async def ban(self, subject_id: UserID, reason: str, retention_days: int) -> None: ...

    async def unban(self, subject_id: UserID, reason: str) -> None: ...

    async def is_banned(self, subject_id: UserID) -> bool: ...


class MessageActions(Protocol):
    async def delete_message(self, ref: MessageRef) -> DeliveryResult: ...


class GuildGateway(CapabilityOracle, MemberActions, MessageActions, Protocol):
    """Everything the core can do inside one guild."""

    @property
    def guild_id(self) -> GuildID: ...

    @property
    def guild_name(self) -> str: ...


class GuildDirectory(Protocol):
    async def resolve(self, guild_id: GuildID) -> Optional[GuildGateway]: ...


# Returns the identity recorded as actor on automated cases (the bot user)
ActorProvider = Callable[[], UserRef]
