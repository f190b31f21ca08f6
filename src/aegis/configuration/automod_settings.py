from typing import Any, Dict

from aegis.util.duration import MAX_TIMEOUT_MS


class AutomodSettings:
    """Typed accessors for the ``automod`` section of the app configuration.

    Missing keys fall back to the built-in defaults, so an absent or empty
    config file yields the stock behaviour.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return self.data

    @property
    def spam_threshold(self) -> int:
        return int(self.data.get("spam_threshold", 5))

    @property
    def spam_timeframe_ms(self) -> int:
        return int(self.data.get("spam_timeframe_ms", 3000))

    @property
    def spam_mute_duration_ms(self) -> int:
        return int(self.data.get("spam_mute_duration_ms", 5 * 60 * 1000))

    @property
    def config_cache_ttl_ms(self) -> int:
        return int(self.data.get("config_cache_ttl_ms", 5 * 60 * 1000))

    @property
    def escalation_default_mute(self) -> str:
        return str(self.data.get("escalation_default_mute") or "1h")

    @property
    def notice_ttl_ms(self) -> int:
        return int(self.data.get("notice_ttl_ms", 5000))

    @property
    def max_timeout_ms(self) -> int:
        return int(self.data.get("max_timeout_ms", MAX_TIMEOUT_MS))
