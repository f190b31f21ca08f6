"""
Aegis - Automated Discord Moderation

Aegis watches guild messages and acts on them without moderator involvement,
while keeping an append-only record of every moderation action.

Core Components:

- **Spam detection**: Counts messages per user in a short window and times out
  users who exceed the threshold
- **Content filter**: Deletes messages containing a guild's banned words and
  records an automatic warning
- **Escalation**: Applies the mute, kick or ban a guild registered for a given
  warning count
- **Moderation records**: Append-only history of warnings and actions, with
  editable reasons for manual warnings
- **Guild settings**: Per-server log channel, banned words and escalation rules,
  served to the automod through a TTL cache

Usage:
    from aegis.main import main
    main()
"""
