import json
from pathlib import Path

import pytest
import yaml

from modledger.configuration.app_configuration import AppConfig
from modledger.configuration.moderation_settings import ModerationSettings, ThresholdRule
from modledger.datatypes.action_datatypes import AutoModAction, ThresholdActionType
from modledger.datatypes.discord_datatypes import ChannelID, RoleID


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_payload = {
        "database": {"path": str(config_path.parent / "ledger.db")},
        "spam_detector": {"cleanup_interval_seconds": 120},
        "moderation": {
            "mod_log": {"enabled": True, "channel_id": "555"},
            "delete_messages_on_ban": 3,
            "automod": {
                "spam_filter": {"enabled": True, "message_threshold": 6, "actions": ["delete", "timeout"]},
            },
            "tempbans": {"poll_interval_seconds": 30},
        },
    }
    config_path.write_text(yaml.safe_dump(config_payload), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.database_path == (config_path.parent / "ledger.db").resolve()
    assert config.spam_cleanup_interval == pytest.approx(120)

    moderation = config.moderation
    assert moderation.mod_log_channel_id == ChannelID(555)
    assert moderation.delete_messages_on_ban == 3
    assert moderation.tempban_poll_interval == pytest.approx(30)

    spam = moderation.spam_filter
    assert spam.enabled is True
    assert spam.message_threshold == 6
    assert spam.similarity_threshold == pytest.approx(85)
    assert spam.time_window_seconds == pytest.approx(10)
    assert spam.actions == [AutoModAction.DELETE, AutoModAction.TIMEOUT]


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.spam_cleanup_interval == pytest.approx(300)
    assert config.database_path.name == "app.db"

    moderation = config.moderation
    assert moderation.mod_log_channel_id is None
    assert moderation.spam_filter.enabled is False
    assert moderation.message_filter.actions == [AutoModAction.DELETE]
    assert moderation.message_filter.timeout_duration == "10m"
    assert moderation.warnings.decay_days == 0
    assert moderation.warnings.dm_on_threshold_action is True
    assert moderation.tempban_poll_interval == pytest.approx(60)


def test_app_config_non_mapping_yaml_is_ignored(config_path: Path) -> None:
    config_path.write_text(json.dumps(["not", "a", "mapping"]), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}


def test_unknown_actions_are_dropped() -> None:
    settings = ModerationSettings({
        "automod": {"message_filter": {"actions": ["delete", "explode", "KICK"]}},
    })
    assert settings.message_filter.actions == [AutoModAction.DELETE, AutoModAction.KICK]


def test_exemptions() -> None:
    settings = ModerationSettings({
        "automod": {
            "invite_filter": {"exempt_roles": [10, "bad"], "exempt_channels": ["20"]},
        },
    })
    invite = settings.invite_filter

    assert invite.exempt_roles == frozenset({RoleID(10)})
    assert invite.is_exempt(ChannelID(20), [])
    assert invite.is_exempt(ChannelID(21), [RoleID(10)])
    assert not invite.is_exempt(ChannelID(21), [RoleID(11)])


def test_warning_settings_parse_rules_and_categories() -> None:
    settings = ModerationSettings({
        "warnings": {
            "decay": {"enabled": True, "days": 7},
            "dm_on_threshold_action": False,
            "global_thresholds": [
                {"count": 3, "action": "timeout", "duration": "1h"},
                {"count": 5, "action": "kick"},
                {"count": "x", "action": "ban"},
                {"count": 9, "action": "explode"},
            ],
            "categories": [
                {"id": "spam", "name": "Spamming", "thresholds": [{"count": 2, "action": "ban"}]},
                {"name": "no id"},
            ],
        },
    }).warnings

    assert settings.global_thresholds == [
        ThresholdRule(3, ThresholdActionType.TIMEOUT, "1h"),
        ThresholdRule(5, ThresholdActionType.KICK, None),
    ]
    assert settings.decay_days == 7
    assert settings.dm_on_threshold_action is False
    assert list(settings.categories) == ["spam"]
    assert settings.categories["spam"].name == "Spamming"
    assert settings.categories["spam"].thresholds == (ThresholdRule(2, ThresholdActionType.BAN, None),)


def test_delete_messages_on_ban_is_clamped() -> None:
    assert ModerationSettings({"delete_messages_on_ban": 30}).delete_messages_on_ban == 7
    assert ModerationSettings({"delete_messages_on_ban": -1}).delete_messages_on_ban == 0


def test_decay_disabled_means_zero_days() -> None:
    settings = ModerationSettings({"warnings": {"decay": {"enabled": False, "days": 14}}})
    assert settings.warnings.decay_days == 0


def test_malformed_numbers_fall_back_to_defaults() -> None:
    settings = ModerationSettings({
        "automod": {
            "spam_filter": {"similarity_threshold": "high", "message_threshold": [3], "time_window_seconds": True},
        },
        "warnings": {"decay": {"enabled": True, "days": "a week"}},
        "tempbans": {"poll_interval_seconds": "often"},
        "delete_messages_on_ban": "all",
    })

    spam = settings.spam_filter
    assert spam.similarity_threshold == pytest.approx(85)
    assert spam.message_threshold == 4
    assert spam.time_window_seconds == pytest.approx(10)
    assert settings.warnings.decay_days == 0
    assert settings.tempban_poll_interval == pytest.approx(60)
    assert settings.delete_messages_on_ban == 1


def test_numeric_strings_are_accepted() -> None:
    spam = ModerationSettings({"automod": {"spam_filter": {"similarity_threshold": "90", "message_threshold": "5"}}}).spam_filter
    assert spam.similarity_threshold == pytest.approx(90)
    assert spam.message_threshold == 5
