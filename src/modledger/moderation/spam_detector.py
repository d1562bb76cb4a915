"""
Near-duplicate spam detection.

Each (guild, user) pair gets a window of recently observed messages. A new
message is compared against the window with a normalised Levenshtein
similarity, so ``"buy now!!!"`` and ``"Buy   now"`` count as the same text.

The windows live in process memory only: they start empty, grow as messages
are tracked, shrink on amortised cleanup or an explicit ``clear``, and are
lost on restart. Spam detection is best-effort, so that is acceptable.
"""

from __future__ import annotations

import re
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Tuple

from modledger.datatypes.discord_datatypes import GuildID, MessageRef, UserID
from modledger.util.keyed_lock import KeyedLock
from modledger.util.logger import get_logger

logger = get_logger("spam_detector")

_URL_PATTERN = re.compile(r"\S+://\S*")
_NON_ALNUM_PATTERN = re.compile(r"[^\w\s]|_")
_WHITESPACE_PATTERN = re.compile(r"\s+")

# Below this shorter/longer length ratio two texts are never considered similar
MIN_LENGTH_RATIO = 0.5

DEFAULT_CLEANUP_INTERVAL_SECONDS = 5 * 60


def normalize(text: str) -> str:
    """Lowercase, drop URLs and punctuation, and collapse whitespace."""
    text = text.lower()
    text = _URL_PATTERN.sub("", text)
    text = _NON_ALNUM_PATTERN.sub("", text)
    text = _WHITESPACE_PATTERN.sub(" ", text)
    return text.strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character insertions, deletions and substitutions turning ``a`` into ``b``."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    Similarity of two strings as a percentage in ``[0, 100]``.

    Identical strings score 100. If exactly one is empty, or the shorter is
    less than half the length of the longer, the score is 0 without running
    the edit-distance comparison.
    """
    if a == b:
        return 100.0

    longest = max(len(a), len(b))
    shortest = min(len(a), len(b))
    if shortest == 0:
        return 0.0
    if shortest / longest < MIN_LENGTH_RATIO:
        return 0.0

    score = (1 - levenshtein_distance(a, b) / longest) * 100
    return max(0.0, min(100.0, score))


@dataclass(frozen=True, slots=True)
class MessageObservation:
    raw_content: str
    normalized_content: str
    observed_at: float
    message_ref: MessageRef


@dataclass(slots=True)
class UserMessageWindow:
    observations: List[MessageObservation] = field(default_factory=list)
    last_cleanup_at: float = 0.0


@dataclass(frozen=True, slots=True)
class SpamCheckConfig:
    """
    Attributes:
        similarity_threshold: Minimum similarity (0-100) for two messages to match.
        message_threshold: Number of similar messages, including the new one, that counts as spam.
        time_window_seconds: How far back observations are considered.
    """

    similarity_threshold: float
    message_threshold: int
    time_window_seconds: float


@dataclass(frozen=True, slots=True)
class SpamCheckResult:
    is_spam: bool
    matched_refs: Tuple[MessageRef, ...] = ()
    similar_count: int = 0


NOT_SPAM = SpamCheckResult(is_spam=False)


@dataclass(frozen=True, slots=True)
class SpamCacheStats:
    guilds: int
    users: int
    messages: int


WindowKey = Tuple[GuildID, UserID]


class SpamDetector:
    """
    Owns the per-(guild, user) message windows.

    Windows for different keys are independent. Callers that interleave
    awaits between ``check``, ``clear`` and ``track`` for the same author
    should run the whole sequence inside ``locked(guild_id, user_id)``.

    Args:
        clock: Monotonic seconds source used for observation timestamps.
        cleanup_interval: Minimum seconds between prunes of a single window,
            and between sweeps that drop windows of authors who went quiet.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        self._clock = clock
        self._cleanup_interval = cleanup_interval
        self._windows: Dict[WindowKey, UserMessageWindow] = {}
        self._locks: KeyedLock[WindowKey] = KeyedLock()
        self._last_sweep_at = clock()

    @staticmethod
    def _key(guild_id: GuildID, user_id: UserID) -> WindowKey:
        return (GuildID(guild_id), UserID(user_id))

    @asynccontextmanager
    async def locked(self, guild_id: GuildID, user_id: UserID) -> AsyncIterator[None]:
        """Serialise work on one author's window for the duration of the block."""
        async with self._locks.locked(self._key(guild_id, user_id)):
            yield

    def track(self, guild_id: GuildID, user_id: UserID, message_ref: MessageRef, raw_content: str) -> None:
        """Append a message to the author's window, creating the window if needed."""
        key = self._key(guild_id, user_id)
        now = self._clock()
        window = self._windows.get(key)
        if window is None:
            window = self._windows[key] = UserMessageWindow(last_cleanup_at=now)

        window.observations.append(MessageObservation(
            raw_content=raw_content,
            normalized_content=normalize(raw_content),
            observed_at=now,
            message_ref=message_ref,
        ))

    def _sweep(self, now: float, time_window_seconds: float) -> None:
        for key in list(self._windows):
            window = self._windows[key]
            window.observations = [
                obs for obs in window.observations
                if now - obs.observed_at < time_window_seconds
            ]
            window.last_cleanup_at = now
            if not window.observations:
                del self._windows[key]
        self._last_sweep_at = now

    def check(
        self,
        guild_id: GuildID,
        user_id: UserID,
        candidate_text: str,
        config: SpamCheckConfig,
    ) -> SpamCheckResult:
        """
        Decide whether ``candidate_text`` completes a burst of similar messages.

        The candidate itself counts towards ``message_threshold``, so spam is
        flagged once ``message_threshold - 1`` recent observations match it.
        """
        key = self._key(guild_id, user_id)
        now = self._clock()

        if now - self._last_sweep_at > self._cleanup_interval:
            self._sweep(now, config.time_window_seconds)

        window = self._windows.get(key)
        if window is None:
            return NOT_SPAM

        if now - window.last_cleanup_at > self._cleanup_interval:
            window.observations = [
                obs for obs in window.observations
                if now - obs.observed_at < config.time_window_seconds
            ]
            window.last_cleanup_at = now
            if not window.observations:
                del self._windows[key]
                return NOT_SPAM

        recent = [
            obs for obs in window.observations
            if now - obs.observed_at < config.time_window_seconds
        ]

        required_matches = config.message_threshold - 1
        if len(recent) < required_matches:
            return NOT_SPAM

        normalized = normalize(candidate_text)
        matches = [
            obs for obs in recent
            if similarity(normalized, obs.normalized_content) >= config.similarity_threshold
        ]

        is_spam = len(matches) >= required_matches
        if is_spam:
            logger.debug(
                "[SPAM] %d similar messages from user %s in guild %s",
                len(matches) + 1, user_id, guild_id,
            )

        return SpamCheckResult(
            is_spam=is_spam,
            matched_refs=tuple(obs.message_ref for obs in matches),
            similar_count=len(matches) + 1,
        )

    def clear(self, guild_id: GuildID, user_id: UserID) -> None:
        """Forget an author's window so the same history cannot trigger again."""
        self._windows.pop(self._key(guild_id, user_id), None)

    def clear_guild(self, guild_id: GuildID) -> None:
        """Forget every window belonging to a guild."""
        guild_id = GuildID(guild_id)
        for key in [key for key in self._windows if key[0] == guild_id]:
            del self._windows[key]

    def get_stats(self) -> SpamCacheStats:
        return SpamCacheStats(
            guilds=len({guild_id for guild_id, _ in self._windows}),
            users=len(self._windows),
            messages=sum(len(window.observations) for window in self._windows.values()),
        )
