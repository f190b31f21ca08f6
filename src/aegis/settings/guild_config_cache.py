"""
Time-bounded cache of per-guild moderation settings.

Entries expire after a fixed TTL and are refetched lazily, synchronously, on
the next access; there is no background refresh and no eviction beyond TTL.
Settings writes do not invalidate the cache, so a change can take up to one
TTL to become visible.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Protocol

from aegis.datatypes.guild_config import GuildConfig
from aegis.util.logger import get_logger

logger = get_logger("guild_config_cache")

DEFAULT_TTL_MS = 5 * 60 * 1000


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class GuildConfigSource(Protocol):
    async def get_guild_config(self, guild_id: str) -> GuildConfig | None: ...


@dataclass(slots=True)
class CacheEntry:
    value: GuildConfig
    expires_at_ms: float


class GuildConfigCache:
    """
    TTL cache in front of the store's guild configuration.

    Args:
        store: Anything with ``get_guild_config(guild_id)``
        ttl_ms: Lifetime of an entry in milliseconds (default: 5 minutes)
        clock: Millisecond clock; monotonic by default
    """

    def __init__(
        self,
        store: GuildConfigSource,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self._store = store
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    async def get(self, guild_id: str) -> GuildConfig:
        """
        Return the guild's settings, fetching them on a miss or after expiry.

        A guild without stored settings gets an empty configuration.

        Raises:
            PersistenceError: If the fetch fails; nothing is cached in that case.
        """
        entry = self._entries.get(guild_id)
        now = self._clock()
        if entry is not None:
            if now < entry.expires_at_ms:
                return entry.value
            del self._entries[guild_id]
            logger.debug("[CONFIG CACHE] Expired guild %s", guild_id)

        config = await self._store.get_guild_config(guild_id)
        if config is None:
            config = GuildConfig.empty(guild_id)

        self._entries[guild_id] = CacheEntry(value=config, expires_at_ms=self._clock() + self._ttl_ms)
        logger.debug("[CONFIG CACHE] Loaded guild %s", guild_id)
        return config

    def stats(self) -> Dict[str, int]:
        """Return cache size and TTL."""
        return {
            "size": len(self._entries),
            "ttl_ms": self._ttl_ms,
        }
