"""
Exception hierarchy for the automod layer.

Every error is scoped to the event that raised it; none of them is fatal to
the process. Callers decide whether an error is surfaced to the moderator,
turned into a partial-success warning, or only logged.
"""


class AegisError(Exception):
    """Base class for all automod errors."""


class ValidationError(AegisError):
    """Malformed input or a missing/invalid target. Raised before any side effect."""


class ParseError(ValidationError):
    """A duration string that does not match ``<positive int><s|m|h|d>``."""


class MissingPermissionError(AegisError):
    """The platform refused an action (role hierarchy or missing bot permission)."""


class PersistenceError(AegisError):
    """A store read or write failed."""


class NotificationError(AegisError):
    """A DM or log channel message could not be delivered."""


class NotFoundError(AegisError):
    """The addressed record does not exist."""
