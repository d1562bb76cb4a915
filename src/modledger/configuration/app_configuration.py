from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from modledger.configuration.moderation_settings import ModerationSettings, coerce_number
from modledger.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()
DEFAULT_DB_PATH = Path("./data/app.db")


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml``, exposes
    dictionary-like access helpers, and resolves moderation settings through
    :class:`ModerationSettings`. Uses fcntl file locks for safe concurrent
    access across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            logger.warning("[APP CONFIGURATION] Config %s is not a mapping; using defaults.", self.config_path)
            return {}
        return data

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns an empty dict when the file is missing or unreadable.
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the cached configuration mapping. Callers should not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def moderation(self) -> ModerationSettings:
        """Return the moderation settings wrapped in a ModerationSettings helper."""
        settings = self._data.get("moderation", {})
        if not isinstance(settings, dict):
            settings = {}
        return ModerationSettings(settings)

    @property
    def spam_cleanup_interval(self) -> float:
        """Seconds between opportunistic prunes of a user's spam window. Default 300."""
        spam_config = self._data.get("spam_detector", {})
        if isinstance(spam_config, dict):
            return coerce_number(
                spam_config.get("cleanup_interval_seconds"), 300.0, float, "spam_detector.cleanup_interval_seconds"
            )
        return 300.0

    @property
    def database_path(self) -> Path:
        db_config = self._data.get("database", {})
        if isinstance(db_config, dict) and db_config.get("path"):
            return Path(str(db_config["path"])).resolve()
        return DEFAULT_DB_PATH.resolve()


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
