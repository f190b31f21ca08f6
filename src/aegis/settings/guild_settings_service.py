"""
Store-backed guild settings operations.

Writes go straight to the store. The automod reads settings through
:class:`GuildConfigCache`, so a change becomes visible to it once the cached
entry expires.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Tuple

from aegis.database.store import Store
from aegis.datatypes.guild_config import (
    EscalationRule,
    GuildConfig,
    GuildConfigPatch,
    rule_from_dict,
)
from aegis.util.duration import MAX_TIMEOUT_MS, parse_duration
from aegis.util.errors import ParseError, ValidationError
from aegis.util.logger import get_logger

logger = get_logger("guild_settings_service")

ESCALATION_ACTIONS = ("mute", "kick", "ban")


def normalize_word(word: str) -> str:
    normalized = (word or "").strip().lower()
    if not normalized:
        raise ValidationError("The banned word cannot be empty.")
    return normalized


class GuildSettingsService:
    """
    Moderator-facing edits of a guild's log channel, auto role, banned words and escalation rules.

    Args:
        store: Persistence backend
        max_timeout_ms: Longest mute an escalation rule may configure
    """

    def __init__(self, store: Store, max_timeout_ms: int = MAX_TIMEOUT_MS) -> None:
        self._store = store
        self._max_timeout_ms = max_timeout_ms
        # Per-guild locks: each read-modify-write of a guild's settings runs alone
        self._per_guild_locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, guild_id: str) -> asyncio.Lock:
        if guild_id not in self._per_guild_locks:
            self._per_guild_locks[guild_id] = asyncio.Lock()
        return self._per_guild_locks[guild_id]

    async def _load(self, guild_id: str) -> GuildConfig:
        config = await self._store.get_guild_config(guild_id)
        return config if config is not None else GuildConfig.empty(guild_id)

    # ========== Log channel ==========

    async def set_log_channel(self, guild_id: str, channel_id: str) -> None:
        if not channel_id:
            raise ValidationError("A log channel is required.")
        async with self._lock_for(guild_id):
            await self._store.set_guild_config(guild_id, GuildConfigPatch(log_channel_id=channel_id))
        logger.info("[SETTINGS] Log channel of guild %s set to %s", guild_id, channel_id)

    # ========== Auto role ==========

    async def set_auto_role(self, guild_id: str, role_id: str | None) -> None:
        """Set the role given to members on join; None turns the auto role off."""
        if role_id is None:
            patch = GuildConfigPatch(cleared=frozenset({"auto_role_id"}))
        else:
            patch = GuildConfigPatch(auto_role_id=role_id)
        async with self._lock_for(guild_id):
            await self._store.set_guild_config(guild_id, patch)
        logger.info("[SETTINGS] Auto role of guild %s set to %s", guild_id, role_id)

    # ========== Banned words ==========

    async def add_banned_word(self, guild_id: str, word: str) -> str:
        """
        Add a word to the guild's banned list and return its stored (lower-case) form.

        Raises:
            ValidationError: If the word is empty or already banned.
        """
        normalized = normalize_word(word)
        async with self._lock_for(guild_id):
            config = await self._load(guild_id)
            if normalized in config.banned_words:
                raise ValidationError(f'"{normalized}" is already in the banned words list.')

            await self._store.set_guild_config(guild_id, GuildConfigPatch(banned_words=frozenset({normalized})))
        logger.info("[SETTINGS] Banned word added in guild %s", guild_id)
        return normalized

    async def remove_banned_word(self, guild_id: str, word: str) -> str:
        """
        Remove a word from the guild's banned list.

        Raises:
            ValidationError: If the word is empty or not banned.
        """
        normalized = normalize_word(word)
        async with self._lock_for(guild_id):
            config = await self._load(guild_id)
            if normalized not in config.banned_words:
                raise ValidationError(f'"{normalized}" is not in the banned words list.')

            await self._store.set_guild_config(
                guild_id,
                GuildConfigPatch(banned_words=config.banned_words - {normalized}),
                merge=False,
            )
        logger.info("[SETTINGS] Banned word removed in guild %s", guild_id)
        return normalized

    async def list_banned_words(self, guild_id: str) -> List[str]:
        config = await self._load(guild_id)
        return sorted(config.banned_words)

    # ========== Escalation rules ==========

    async def add_escalation_rule(
        self,
        guild_id: str,
        warning_count: int,
        action: str,
        duration: str | None = None,
    ) -> EscalationRule:
        """
        Register (or replace) the rule applied when a user reaches ``warning_count`` warnings.

        ``duration`` is only kept for mutes; a mute without one uses the
        configured default when it fires.

        Raises:
            ValidationError: Bad count, unknown action or a mute longer than allowed.
            ParseError: If the mute duration cannot be parsed.
        """
        if warning_count < 1:
            raise ValidationError("The warning count must be at least 1.")
        action = (action or "").strip().lower()
        if action not in ESCALATION_ACTIONS:
            raise ValidationError(f"Unknown escalation action: {action!r}. Use mute, kick or ban.")

        if action == "mute" and duration:
            try:
                duration_ms = parse_duration(duration)
            except ParseError as exc:
                raise ParseError(f"Invalid duration {duration!r}. Use a format like `10m`, `1h` or `7d`.") from exc
            if duration_ms > self._max_timeout_ms:
                raise ValidationError("The timeout duration cannot be longer than 28 days.")
        else:
            duration = None

        rule = rule_from_dict({"action": action, "duration": duration})
        async with self._lock_for(guild_id):
            await self._store.set_guild_config(guild_id, GuildConfigPatch(escalation_rules={warning_count: rule}))
        logger.info("[SETTINGS] Escalation rule at %d warnings set to %s in guild %s", warning_count, action, guild_id)
        return rule

    async def remove_escalation_rule(self, guild_id: str, warning_count: int) -> EscalationRule:
        """
        Remove the rule registered at ``warning_count``.

        Raises:
            ValidationError: If no rule is registered at that count.
        """
        async with self._lock_for(guild_id):
            config = await self._load(guild_id)
            if warning_count not in config.escalation_rules:
                raise ValidationError(f"No escalation rule is set for {warning_count} warnings.")

            remaining = {count: rule for count, rule in config.escalation_rules.items() if count != warning_count}
            await self._store.set_guild_config(guild_id, GuildConfigPatch(escalation_rules=remaining), merge=False)
        logger.info("[SETTINGS] Escalation rule at %d warnings removed in guild %s", warning_count, guild_id)
        return config.escalation_rules[warning_count]

    async def list_escalation_rules(self, guild_id: str) -> List[Tuple[int, EscalationRule]]:
        """Return ``(warning_count, rule)`` pairs ordered by count."""
        config = await self._load(guild_id)
        return sorted(config.escalation_rules.items())
