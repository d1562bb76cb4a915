"""
Case ledger record types.

A ``Case`` is one enforcement or utility action. It is immutable once written
except for its ``reason``, which only ``CaseRepo.update_reason`` may change.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from modledger.datatypes.discord_datatypes import DiscordUsername, GuildID, UserID, UserRef


class CaseType(Enum):
    """Every kind of entry the ledger can hold."""

    KICK = "kick"
    BAN = "ban"
    UNBAN = "unban"
    TIMEOUT = "timeout"
    WARN = "warn"
    TEMPBAN = "tempban"
    PURGE = "purge"
    LOCK = "lock"
    UNLOCK = "unlock"
    AUTOMOD_FILTER = "automod_filter"
    AUTOMOD_INVITE = "automod_invite"
    AUTOMOD_SPAM = "automod_spam"

    def __str__(self) -> str:
        return self.value


# Channel/message housekeeping rather than punishment of a user
UTILITY_CASE_TYPES = frozenset({CaseType.PURGE, CaseType.LOCK, CaseType.UNLOCK})

# Only these types may carry a duration
DURATION_CASE_TYPES = frozenset({CaseType.TIMEOUT, CaseType.TEMPBAN})

# Raised by the auto-mod pipeline; carries a duration when the incident applied a timeout
AUTOMOD_CASE_TYPES = frozenset({CaseType.AUTOMOD_FILTER, CaseType.AUTOMOD_INVITE, CaseType.AUTOMOD_SPAM})


@dataclass(slots=True)
class NewCase:
    """Fields supplied by a caller of ``CaseRepo.create_case``.

    ``id`` and ``created_at`` are assigned by the ledger. ``validate`` enforces
    which optional fields each case type may carry.
    """

    case_type: CaseType
    subject: UserRef
    actor: UserRef
    reason: str
    duration_seconds: Optional[int] = None
    category: Optional[str] = None
    expires_at: Optional[float] = None
    threshold_triggered: bool = False
    guild_id: Optional[GuildID] = None

    def validate(self) -> None:
        """Raise ``ValueError`` if optional fields are set on a type that cannot carry them."""
        if self.duration_seconds is not None and self.case_type not in DURATION_CASE_TYPES | AUTOMOD_CASE_TYPES:
            raise ValueError(f"{self.case_type} cases cannot carry a duration")
        if self.expires_at is not None and self.case_type is not CaseType.TEMPBAN:
            raise ValueError(f"{self.case_type} cases cannot carry an expiry")
        if self.category is not None and self.case_type is not CaseType.WARN:
            raise ValueError(f"{self.case_type} cases cannot carry a warning category")


@dataclass(frozen=True, slots=True)
class Case:
    """A stored ledger entry.

    Attributes:
        id: Ledger-assigned, creation-ordered identifier.
        case_type: What happened.
        subject_id / subject_tag: The user the action applies to.
        actor_id / actor_tag: The moderator, or the bot itself for automated cases.
        reason: Free text; the only mutable field.
        duration_seconds: Set for timeout and tempban cases, and for auto-mod
            cases whose incident applied a timeout.
        created_at: Unix seconds, assigned at insertion.
        category: Warning category, ``warn`` cases only.
        expires_at: Unix seconds at which a ``tempban`` lapses.
        threshold_triggered: True when the escalation engine produced the case.
        guild_id: Guild the case belongs to; required for tempban expiry.
    """

    id: int
    case_type: CaseType
    subject_id: UserID
    subject_tag: DiscordUsername
    actor_id: UserID
    actor_tag: DiscordUsername
    reason: str
    duration_seconds: Optional[int]
    created_at: float
    category: Optional[str] = None
    expires_at: Optional[float] = None
    threshold_triggered: bool = False
    guild_id: Optional[GuildID] = None

    @property
    def subject(self) -> UserRef:
        return UserRef(self.subject_id, self.subject_tag)

    @property
    def actor(self) -> UserRef:
        return UserRef(self.actor_id, self.actor_tag)


@dataclass(frozen=True, slots=True)
class CaseStats:
    """Ledger-wide counters for the statistics display."""

    total: int
    bans: int
    kicks: int
    warns: int
    timeouts: int
    last_24h: int

    def as_display_dict(self) -> dict[str, str]:
        return {
            "Total Cases": f"{self.total:,}",
            "Bans": f"{self.bans:,}",
            "Kicks": f"{self.kicks:,}",
            "Warnings": f"{self.warns:,}",
            "Timeouts": f"{self.timeouts:,}",
            "Cases (24h)": f"{self.last_24h:,}",
        }
