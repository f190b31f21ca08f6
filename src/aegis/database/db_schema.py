"""
Database schema initialization and version tracking.

Handles creation of tables, indexes and triggers. Moderation records are
append-only: a trigger aborts any DELETE and any UPDATE touching columns other
than the editable reason fields.
"""

import aiosqlite
from aegis.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Manages database schema creation.

    Provides methods to initialize the database schema, including tables,
    indexes, and triggers."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all database tables, indexes, and triggers if missing.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._create_triggers(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create all required database tables."""
        await db.execute("""
            CREATE TABLE IF NOT EXISTS guild_settings (
                guild_id TEXT PRIMARY KEY,
                log_channel_id TEXT,
                auto_role_id TEXT,
                verification_role_id TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS guild_banned_words (
                guild_id TEXT NOT NULL,
                word TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (guild_id, word),
                FOREIGN KEY (guild_id) REFERENCES guild_settings(guild_id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS guild_escalation_rules (
                guild_id TEXT NOT NULL,
                warning_count INTEGER NOT NULL CHECK (warning_count >= 1),
                action TEXT NOT NULL CHECK (action IN ('mute', 'kick', 'ban')),
                duration TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (guild_id, warning_count),
                FOREIGN KEY (guild_id) REFERENCES guild_settings(guild_id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id TEXT NOT NULL,
                action TEXT NOT NULL,
                target_id TEXT NOT NULL,
                target_tag TEXT,
                moderator_id TEXT NOT NULL,
                moderator_tag TEXT,
                reason TEXT NOT NULL,
                duration TEXT,
                timestamp TEXT NOT NULL,
                edited_at TEXT,
                edited_by TEXT
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        """Create indexes for the target/action lookups."""
        await db.execute("CREATE INDEX IF NOT EXISTS idx_banned_words_guild ON guild_banned_words(guild_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_escalation_rules_guild ON guild_escalation_rules(guild_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_moderation_records_target ON moderation_records(guild_id, target_id, id DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_moderation_records_action ON moderation_records(guild_id, target_id, action)")

    @staticmethod
    async def _create_triggers(db: aiosqlite.Connection) -> None:
        """Create timestamp and append-only triggers."""
        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_guild_settings_timestamp
            AFTER UPDATE ON guild_settings
            FOR EACH ROW
            BEGIN
                UPDATE guild_settings SET updated_at = CURRENT_TIMESTAMP
                WHERE guild_id = NEW.guild_id;
            END
        """)

        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS moderation_records_no_delete
            BEFORE DELETE ON moderation_records
            BEGIN
                SELECT RAISE(ABORT, 'moderation records are append-only');
            END
        """)

        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS moderation_records_immutable_columns
            BEFORE UPDATE OF action, target_id, moderator_id, timestamp, guild_id ON moderation_records
            BEGIN
                SELECT RAISE(ABORT, 'only the reason of a moderation record can be edited');
            END
        """)

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        """Record the schema version."""
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
