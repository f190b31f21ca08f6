from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from aegis.configuration.automod_settings import AutomodSettings
from aegis.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()
DEFAULT_DATABASE_PATH = "./data/aegis.db"


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches the contents of ``./config/app_config.yml``, exposes
    dictionary-like access helpers, and resolves automod tunables through
    :class:`AutomodSettings`. Uses fcntl shared locks while reading.
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
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping. Callers should not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def automod(self) -> AutomodSettings:
        """Return the automod tunables wrapped in an AutomodSettings helper."""
        settings = self._data.get("automod", {})
        if not isinstance(settings, dict):
            settings = {}
        return AutomodSettings(settings)

    @property
    def database_path(self) -> Path:
        """Return the SQLite database file path (default ``./data/aegis.db``)."""
        database = self._data.get("database", {})
        value = database.get("path") if isinstance(database, dict) else None
        return Path(value or DEFAULT_DATABASE_PATH).resolve()


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
