# backend/asset_transforms/database/schema.py
"""
Database schema management for the transform tables.

Fresh databases get the tables straight from the DDL below; existing
deployments use the Alembic revision in backend/alembic/versions, which
creates the same tables.
"""

from typing import Any, Dict, List, Optional

import psycopg

from ..config import settings
from ..enums import LogEmoji, LoggerName, LogSource
from ..services.logger import get_service_logger
from .exceptions import SchemaOperationError

logger = get_service_logger(LoggerName.DATABASE, LogSource.DATABASE)

TRANSFORM_TABLES = ("asset_transforms", "asset_transform_index")

SCHEMA_STATEMENTS: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS asset_transforms (
        id SERIAL PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        handle VARCHAR(255) NOT NULL,
        mode VARCHAR(32) NOT NULL DEFAULT 'crop',
        position VARCHAR(32) NOT NULL DEFAULT 'center-center',
        width INTEGER,
        height INTEGER,
        format VARCHAR(16),
        quality INTEGER,
        interlace VARCHAR(16) NOT NULL DEFAULT 'none',
        dimension_change_time TIMESTAMPTZ,
        uid VARCHAR(36) NOT NULL,
        date_created TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        date_updated TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_asset_transforms_uid
        ON asset_transforms (uid)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_asset_transforms_handle
        ON asset_transforms (LOWER(handle))
    """,
    """
    CREATE TABLE IF NOT EXISTS asset_transform_index (
        id SERIAL PRIMARY KEY,
        asset_id INTEGER NOT NULL,
        volume_id INTEGER NOT NULL,
        filename VARCHAR(255),
        format VARCHAR(16),
        location VARCHAR(255) NOT NULL,
        file_exists BOOLEAN NOT NULL DEFAULT FALSE,
        in_progress BOOLEAN NOT NULL DEFAULT FALSE,
        error BOOLEAN NOT NULL DEFAULT FALSE,
        date_indexed TIMESTAMPTZ,
        date_created TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        date_updated TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_asset_transform_index_lookup
        ON asset_transform_index (volume_id, asset_id, location)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_asset_transform_index_pending
        ON asset_transform_index (file_exists, in_progress)
    """,
]


class SchemaManager:
    """Creates the transform tables and reports on their state."""

    def __init__(self, database_url: Optional[str] = None):
        """
        Initialize SchemaManager.

        Args:
            database_url: Database connection URL. Uses settings.database_url if None.
        """
        self.database_url = database_url or settings.database_url

    def ensure_schema(self) -> None:
        """
        Create the transform tables and indexes if they are missing.

        Raises:
            SchemaOperationError: If schema creation fails
        """
        try:
            with psycopg.connect(self.database_url) as conn:
                # Use autocommit for DDL statements
                conn.autocommit = True
                with conn.cursor() as cur:
                    for statement in SCHEMA_STATEMENTS:
                        cur.execute(statement.encode("utf-8"))

            logger.info("Transform schema is up to date", emoji=LogEmoji.DATABASE)

        except psycopg.Error as e:
            raise SchemaOperationError(
                f"Schema creation failed: {e}", operation="ensure_schema"
            ) from e

    def get_database_info(self) -> Dict[str, Any]:
        """
        Get schema state information for diagnostics.

        Returns:
            Dictionary with the existence of each transform table
        """
        try:
            with psycopg.connect(self.database_url) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        SELECT table_name
                        FROM information_schema.tables
                        WHERE table_schema = 'public' AND table_name = ANY(%s)
                        """,
                        (list(TRANSFORM_TABLES),),
                    )
                    existing = {row[0] for row in cur.fetchall()}

            return {
                "tables": {table: table in existing for table in TRANSFORM_TABLES},
                "is_fresh": not existing,
            }

        except psycopg.Error as e:
            raise SchemaOperationError(
                f"Database connection failed: {e}", operation="get_database_info"
            ) from e
