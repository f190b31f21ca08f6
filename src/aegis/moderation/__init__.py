"""
Moderation core.

The automod pipeline (spam detector, content filter, escalation engine) runs
behind :class:`AutomodEngine`; manual actions go through
:class:`ModerationService`. Both reach Discord only through the ``Platform``
and ``NotificationSink`` protocols.
"""
