"""
Action types and data structures for moderation records and log entries.

This module defines the ActionType enum, the append-only ModerationRecord and
the ModLogEntry payload handed to the notification sink.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ActionType(Enum):
    """Enumeration of recorded moderation actions."""

    WARN = "warn"
    AUTO_WARN = "auto-warn"
    MUTE = "mute"
    KICK = "kick"
    BAN = "ban"
    UNMUTE = "unmute"

    def __str__(self) -> str:
        return self.value


# Actions that count towards a user's effective warning total
WARNING_ACTIONS: frozenset[ActionType] = frozenset({ActionType.WARN, ActionType.AUTO_WARN})


@dataclass(slots=True)
class ModerationRecord:
    """A single entry of a guild's moderation log.

    Attributes:
        action: Type of action that was taken
        target_id: ID of the user the action was taken against
        moderator_id: ID of the moderator (or the bot) responsible
        reason: Reason for the action; the only field an edit may change
        duration: Duration label for mutes (e.g. "10m"), None otherwise
        timestamp: Assigned by the store at write time
        record_id: Store-assigned identifier, None until appended
        target_tag: Display tag of the target at the time of the action
        moderator_tag: Display tag of the moderator at the time of the action
        edited_at: Set when the reason was edited
        edited_by: Tag of the moderator who edited the reason
    """
    action: ActionType
    target_id: str
    moderator_id: str
    reason: str
    duration: str | None = None
    timestamp: datetime | None = None
    record_id: int | None = None
    target_tag: str | None = None
    moderator_tag: str | None = None
    edited_at: datetime | None = None
    edited_by: str | None = None


class LogColor(Enum):
    """Accent colours of log channel embeds, one per kind of event."""

    DARK_PURPLE = "dark_purple"
    DARK_RED = "dark_red"
    RED = "red"
    ORANGE = "orange"
    YELLOW = "yellow"
    GREEN = "green"
    BLURPLE = "blurple"


@dataclass(slots=True)
class ModLogEntry:
    """Payload for one log channel post."""
    action: str
    moderator_id: str
    target_id: str
    color: LogColor
    reason: str | None = None
    duration: str | None = None
