"""
Typed accessors over the ``moderation`` section of the YAML configuration.

Each helper wraps a plain mapping and exposes properties with defaults, in the
same way the rest of the configuration layer does. Malformed values fall back
to defaults; unknown action names are dropped with a warning so only the closed
action enums flow into the moderation core.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from modledger.datatypes.action_datatypes import AutoModAction, ThresholdActionType
from modledger.datatypes.discord_datatypes import ChannelID, RoleID
from modledger.util.logger import get_logger

logger = get_logger("moderation_settings")


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _parse_actions(raw: Any, default: List[AutoModAction]) -> List[AutoModAction]:
    if raw is None:
        return list(default)
    actions: List[AutoModAction] = []
    for item in _as_list(raw):
        try:
            actions.append(AutoModAction(str(item).lower()))
        except ValueError:
            logger.warning("[CONFIG] Ignoring unknown auto-mod action %r", item)
    return actions


def coerce_number(raw: Any, default, kind=float, key: str = "value"):
    """Coerce ``raw`` with ``kind``; missing or malformed values give ``default``."""
    if raw is None:
        return default
    if not isinstance(raw, bool):
        try:
            return kind(raw)
        except (TypeError, ValueError):
            pass
    logger.warning("[CONFIG] Ignoring non-numeric %s %r", key, raw)
    return default


def _parse_ids(raw: Any, id_type):
    ids = set()
    for item in _as_list(raw):
        try:
            ids.add(id_type(item))
        except ValueError:
            logger.warning("[CONFIG] Ignoring malformed %s %r", id_type.__name__, item)
    return frozenset(ids)


class FilterSettings:
    """Settings every auto-mod filter shares: toggle, actions, timeout and exemptions."""

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @property
    def enabled(self) -> bool:
        return bool(self.data.get("enabled", False))

    @property
    def actions(self) -> List[AutoModAction]:
        return _parse_actions(self.data.get("actions"), [AutoModAction.DELETE])

    @property
    def timeout_duration(self) -> str:
        return str(self.data.get("timeout_duration") or "10m")

    @property
    def exempt_roles(self) -> frozenset[RoleID]:
        return _parse_ids(self.data.get("exempt_roles"), RoleID)

    @property
    def exempt_channels(self) -> frozenset[ChannelID]:
        return _parse_ids(self.data.get("exempt_channels"), ChannelID)

    def is_exempt(self, channel_id: ChannelID, role_ids) -> bool:
        """True when the channel or any of the author's roles is on an exemption list."""
        if channel_id in self.exempt_channels:
            return True
        exempt_roles = self.exempt_roles
        return any(role_id in exempt_roles for role_id in role_ids)


class SpamFilterSettings(FilterSettings):
    @property
    def similarity_threshold(self) -> float:
        return coerce_number(self.data.get("similarity_threshold"), 85.0, float, "similarity_threshold")

    @property
    def message_threshold(self) -> int:
        return coerce_number(self.data.get("message_threshold"), 4, int, "message_threshold")

    @property
    def time_window_seconds(self) -> float:
        return coerce_number(self.data.get("time_window_seconds"), 10.0, float, "time_window_seconds")


class WordFilterSettings(FilterSettings):
    @property
    def words(self) -> List[str]:
        return [str(word) for word in _as_list(self.data.get("words")) if str(word).strip()]


class InviteFilterSettings(FilterSettings):
    @property
    def allowed_invites(self) -> frozenset[str]:
        return frozenset(str(code) for code in _as_list(self.data.get("allowed_invites")))


@dataclass(frozen=True, slots=True)
class ThresholdRule:
    """Escalate to ``action`` once a subject has ``count`` active warnings."""

    count: int
    action: ThresholdActionType
    duration: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["ThresholdRule"]:
        """Build a rule from config, returning None (and logging) for malformed entries."""
        entry = _as_dict(raw)
        try:
            count = int(entry["count"])
            action = ThresholdActionType(str(entry["action"]).lower())
        except (KeyError, TypeError, ValueError):
            logger.warning("[CONFIG] Ignoring malformed warning threshold %r", raw)
            return None
        duration = entry.get("duration")
        return cls(count=count, action=action, duration=str(duration) if duration else None)


def _parse_rules(raw: Any) -> List[ThresholdRule]:
    return [rule for rule in (ThresholdRule.from_dict(item) for item in _as_list(raw)) if rule is not None]


@dataclass(frozen=True, slots=True)
class WarningCategory:
    id: str
    name: str
    thresholds: tuple[ThresholdRule, ...]


class WarningSettings:
    """Escalation thresholds, decay and per-category rule sets."""

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    @property
    def global_thresholds(self) -> List[ThresholdRule]:
        return _parse_rules(self.data.get("global_thresholds"))

    @property
    def decay_days(self) -> int:
        """Days after which a warning stops counting; 0 when decay is disabled."""
        decay = _as_dict(self.data.get("decay"))
        if not decay.get("enabled", False):
            return 0
        return max(0, coerce_number(decay.get("days"), 0, int, "decay.days"))

    @property
    def categories(self) -> Dict[str, WarningCategory]:
        categories: Dict[str, WarningCategory] = {}
        for raw in _as_list(self.data.get("categories")):
            entry = _as_dict(raw)
            category_id = entry.get("id")
            if not category_id:
                logger.warning("[CONFIG] Ignoring warning category without an id: %r", raw)
                continue
            categories[str(category_id)] = WarningCategory(
                id=str(category_id),
                name=str(entry.get("name") or category_id),
                thresholds=tuple(_parse_rules(entry.get("thresholds"))),
            )
        return categories

    @property
    def dm_on_threshold_action(self) -> bool:
        return bool(self.data.get("dm_on_threshold_action", True))


class ModerationSettings:
    """Entry point for the whole ``moderation`` config section."""

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def as_dict(self) -> Dict[str, Any]:
        return self.data

    @property
    def mod_log_enabled(self) -> bool:
        return bool(_as_dict(self.data.get("mod_log")).get("enabled", True))

    @property
    def mod_log_channel_id(self) -> Optional[ChannelID]:
        raw = _as_dict(self.data.get("mod_log")).get("channel_id")
        if not raw or not self.mod_log_enabled:
            return None
        try:
            return ChannelID(raw)
        except ValueError:
            logger.warning("[CONFIG] Ignoring malformed mod_log.channel_id %r", raw)
            return None

    @property
    def delete_messages_on_ban(self) -> int:
        """Days of message history removed when a ban is issued, clamped to 0..7."""
        days = coerce_number(self.data.get("delete_messages_on_ban"), 1, int, "delete_messages_on_ban")
        return min(7, max(0, days))

    @property
    def spam_filter(self) -> SpamFilterSettings:
        return SpamFilterSettings(_as_dict(_as_dict(self.data.get("automod")).get("spam_filter")))

    @property
    def message_filter(self) -> WordFilterSettings:
        return WordFilterSettings(_as_dict(_as_dict(self.data.get("automod")).get("message_filter")))

    @property
    def invite_filter(self) -> InviteFilterSettings:
        return InviteFilterSettings(_as_dict(_as_dict(self.data.get("automod")).get("invite_filter")))

    @property
    def warnings(self) -> WarningSettings:
        return WarningSettings(_as_dict(self.data.get("warnings")))

    @property
    def tempban_poll_interval(self) -> float:
        raw = _as_dict(self.data.get("tempbans")).get("poll_interval_seconds")
        return coerce_number(raw, 60.0, float, "tempbans.poll_interval_seconds")
