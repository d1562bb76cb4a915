"""
Database schema initialization.

Creates the case ledger tables and indexes and records the schema version.
"""

import aiosqlite
from modledger.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the tables and indexes the case ledger relies on."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Timestamps are unix seconds so range comparisons need no parsing
        await db.execute("""
            CREATE TABLE IF NOT EXISTS cases (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                user_id TEXT NOT NULL,
                user_tag TEXT NOT NULL,
                moderator_id TEXT NOT NULL,
                moderator_tag TEXT NOT NULL,
                reason TEXT NOT NULL DEFAULT '',
                duration INTEGER,
                created_at REAL NOT NULL,
                category TEXT,
                expires_at REAL,
                threshold_triggered INTEGER NOT NULL DEFAULT 0,
                guild_id TEXT
            )
        """)

        # Which tempban cases the expiry scheduler has already dealt with
        await db.execute("""
            CREATE TABLE IF NOT EXISTS tempban_expiries (
                case_id INTEGER PRIMARY KEY,
                processed_at REAL NOT NULL,
                outcome TEXT NOT NULL,
                unban_case_id INTEGER,
                FOREIGN KEY (case_id) REFERENCES cases(id)
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
        await db.execute("CREATE INDEX IF NOT EXISTS idx_cases_user_created ON cases(user_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_cases_type ON cases(type)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_cases_expires ON cases(expires_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_cases_user_type_created ON cases(user_id, type, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_cases_user_category ON cases(user_id, category)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
