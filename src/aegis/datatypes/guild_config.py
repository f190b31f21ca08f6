"""
Per-guild moderation configuration.

Escalation rules are a tagged union over MuteRule, KickRule and BanRule so that
every dispatch over them can be written as an exhaustive ``match``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from aegis.util.errors import ValidationError


@dataclass(frozen=True, slots=True)
class MuteRule:
    """Time the member out; ``duration`` falls back to the configured default when None."""
    duration: str | None = None

    @property
    def action(self) -> str:
        return "mute"


@dataclass(frozen=True, slots=True)
class KickRule:
    @property
    def action(self) -> str:
        return "kick"


@dataclass(frozen=True, slots=True)
class BanRule:
    @property
    def action(self) -> str:
        return "ban"


EscalationRule = MuteRule | KickRule | BanRule


def rule_from_dict(payload: Mapping[str, Any]) -> EscalationRule:
    """Build a rule from its stored ``{"action": ..., "duration": ...}`` form.

    Raises:
        ValidationError: If the action is not one of mute, kick or ban.
    """
    action = str(payload.get("action", "")).strip().lower()
    if action == "mute":
        duration = payload.get("duration")
        return MuteRule(duration=str(duration) if duration else None)
    if action == "kick":
        return KickRule()
    if action == "ban":
        return BanRule()
    raise ValidationError(f"Unknown escalation action: {action!r}")


def rule_to_dict(rule: EscalationRule) -> Dict[str, Any]:
    """Return the stored form of a rule. Only mutes carry a duration."""
    match rule:
        case MuteRule(duration=duration):
            return {"action": "mute", "duration": duration}
        case KickRule():
            return {"action": "kick", "duration": None}
        case BanRule():
            return {"action": "ban", "duration": None}


@dataclass(frozen=True, slots=True)
class GuildConfig:
    """Moderation settings of one guild, as read from the store."""

    guild_id: str
    banned_words: frozenset[str] = frozenset()
    escalation_rules: Dict[int, EscalationRule] = field(default_factory=dict)
    log_channel_id: str | None = None
    auto_role_id: str | None = None
    verification_role_id: str | None = None

    @classmethod
    def empty(cls, guild_id: str) -> "GuildConfig":
        """Settings of a guild that has never configured anything."""
        return cls(guild_id=guild_id)


@dataclass(slots=True)
class GuildConfigPatch:
    """Partial update for :meth:`Store.set_guild_config`.

    Fields left as None are not touched. With ``merge=True`` banned words are
    added to the existing set and rules are merged by warning count; with
    ``merge=False`` the supplied collections replace the stored ones.
    Scalar settings named in ``cleared`` are reset to None.
    """
    banned_words: frozenset[str] | None = None
    escalation_rules: Dict[int, EscalationRule] | None = None
    log_channel_id: str | None = None
    auto_role_id: str | None = None
    verification_role_id: str | None = None
    cleared: frozenset[str] = frozenset()


# Scalar settings a patch may reset through ``GuildConfigPatch.cleared``
CLEARABLE_SETTINGS = frozenset({"log_channel_id", "auto_role_id", "verification_role_id"})
