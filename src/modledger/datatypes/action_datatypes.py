"""
Action types used by the auto-moderation pipeline and the escalation engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from modledger.datatypes.case_datatypes import CaseType
from modledger.datatypes.discord_datatypes import MessageRef


class AutoModAction(Enum):
    """Actions an auto-mod filter may be configured to take."""

    DELETE = "delete"
    WARN = "warn"
    TIMEOUT = "timeout"
    KICK = "kick"

    def __str__(self) -> str:
        return self.value


class ThresholdActionType(Enum):
    """Actions a warning threshold may escalate to."""

    TIMEOUT = "timeout"
    KICK = "kick"
    BAN = "ban"

    def __str__(self) -> str:
        return self.value

    @property
    def case_type(self) -> CaseType:
        return CaseType(self.value)


class PipelineStage(Enum):
    """Which auto-mod stage handled a message."""

    SPAM = "spam"
    WORD_FILTER = "word_filter"
    INVITE_FILTER = "invite_filter"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ThresholdAction:
    """The escalation chosen for a subject who crossed a warning threshold.

    Attributes:
        action: Timeout, kick or ban.
        duration_seconds: Parsed rule duration, if the rule carried one.
        reason: Human-readable explanation, e.g. ``Reached 5 total warnings``.
        threshold_count: The ``count`` of the rule that fired.
    """

    action: ThresholdActionType
    duration_seconds: Optional[int]
    reason: str
    threshold_count: int


@dataclass(slots=True)
class PipelineOutcome:
    """What the auto-mod pipeline did with one message."""

    stage: PipelineStage = PipelineStage.NONE
    case_id: Optional[int] = None
    deleted_messages: List[MessageRef] = field(default_factory=list)

    @property
    def handled(self) -> bool:
        return self.stage is not PipelineStage.NONE
