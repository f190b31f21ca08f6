"""SQLite connection, schema and the store used by the moderation core."""
