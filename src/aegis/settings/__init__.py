"""Guild settings: the TTL cache read by the automod and the settings service."""
