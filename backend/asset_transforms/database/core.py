# backend/asset_transforms/database/core.py

"""
Base database classes for composition-based architecture.

These classes provide connection management and common functionality
without mixin inheritance. Transform generation runs in request handlers
and queue workers alike, both synchronous, so only a sync core exists.
"""

import time
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from ..config import settings
from ..enums import LogEmoji, LoggerName, LogSource
from ..services.logger import get_service_logger
from ..utils.time_utils import utc_now

logger = get_service_logger(LoggerName.DATABASE, LogSource.DATABASE)


class SyncDatabaseCore:
    """
    Core sync database functionality for composition-based architecture.

    This class provides connection management and common database operations
    without mixin inheritance.
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        """Initialize the SyncDatabaseCore instance with empty connection pool."""
        self._database_url = database_url or settings.database_url
        self._pool: Optional[ConnectionPool] = None
        self._connection_attempts = 0
        self._failed_connections = 0
        self._last_health_check = None
        self._pool_created_at = None

    def initialize(self) -> None:
        """
        Initialize the sync connection pool.

        Creates and opens a ConnectionPool with configuration from settings.
        This method must be called before using any database operations.

        Raises:
            psycopg.Error: If connection pool initialization fails
        """
        try:
            self._pool = ConnectionPool(
                self._database_url,
                min_size=2,
                max_size=settings.db_pool_size,
                max_waiting=settings.db_max_overflow,
                timeout=settings.db_pool_timeout,
                kwargs={
                    "row_factory": dict_row,
                    "connect_timeout": 15,
                    "keepalives_idle": 300,
                    "keepalives_interval": 60,
                    "keepalives_count": 5,
                },
                open=False,
            )
            self._pool.open()
            self._pool_created_at = utc_now()
            self._connection_attempts = 0
            self._failed_connections = 0
            logger.info("Database pool initialized", emoji=LogEmoji.DATABASE)
        except (psycopg.Error, ConnectionError, OSError) as e:
            self._failed_connections += 1
            logger.error("Failed to initialize database pool", exception=e)
            raise

    def close(self) -> None:
        """
        Close the connection pool and cleanup resources.

        This should be called during process shutdown to ensure
        all database connections are properly closed.
        """
        if self._pool:
            self._pool.close()
            self._pool = None

    def check_pool_health(self) -> bool:
        """
        Check if the database connection pool is healthy.

        Returns:
            True if pool is healthy, False otherwise
        """
        if not self._pool:
            return False

        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
                    cur.fetchone()

            self._last_health_check = utc_now()
            return True
        except (psycopg.Error, OSError) as e:
            self._failed_connections += 1
            logger.warning(f"Database health check failed: {e}")
            return False

    def recover_connection_pool(self) -> bool:
        """
        Attempt to recover the connection pool after failures.

        Returns:
            True if recovery successful, False otherwise
        """
        logger.warning("Attempting database connection pool recovery...")

        if self._pool:
            try:
                self._pool.close()
            except (psycopg.Error, OSError) as e:
                logger.warning(f"Error closing old pool: {e}")

        # Wait briefly before re-initializing
        time.sleep(1)

        try:
            self.initialize()
        except (psycopg.Error, ConnectionError, OSError):
            return False

        if self.check_pool_health():
            logger.info("Database connection pool recovery successful")
            return True

        logger.error("Database connection pool recovery failed - health check failed")
        return False

    def get_pool_stats(self) -> Dict[str, Any]:
        """
        Get connection pool statistics.

        Returns:
            Dictionary with pool statistics
        """
        if not self._pool:
            return {"pool_initialized": False}

        return {
            "pool_initialized": True,
            "pool_created_at": self._pool_created_at,
            "connection_attempts": self._connection_attempts,
            "failed_connections": self._failed_connections,
            "last_health_check": self._last_health_check,
            "pool_size": getattr(self._pool, "size", 0),
            "pool_available": getattr(self._pool, "available", 0),
        }

    @contextmanager
    def get_connection(
        self, auto_recover: bool = True, max_retries: int = 2
    ) -> Generator[Any, None, None]:
        """
        Get a sync database connection wrapped in a transaction.

        The transaction commits when the block exits normally and rolls back
        when it raises. Only checking a connection out of the pool is retried;
        errors raised inside the block propagate unchanged.

        Args:
            auto_recover: Whether to attempt pool recovery on checkout failures
            max_retries: Maximum number of recovery attempts

        Yields:
            Connection: A sync database connection with dict_row factory

        Raises:
            RuntimeError: If the pool is not initialized
            psycopg.Error: If checkout fails after retries

        Usage:
            with db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT * FROM asset_transforms")
                    data = cur.fetchall()
        """
        if not self._pool:
            raise RuntimeError("Database pool not initialized")

        retries = 0
        while True:
            try:
                self._connection_attempts += 1
                conn = self._pool.getconn()
                break
            except (psycopg.OperationalError, OSError) as e:
                self._failed_connections += 1
                logger.warning(
                    f"Database connection failed "
                    f"(attempt {retries + 1}/{max_retries + 1}): {e}"
                )
                if retries >= max_retries:
                    logger.error(
                        f"Database connection failed after {max_retries + 1} attempts",
                        exception=e,
                    )
                    raise
                if auto_recover:
                    self.recover_connection_pool()
                else:
                    time.sleep(0.5)
                retries += 1

        try:
            with conn.transaction():
                yield conn
        finally:
            self._pool.putconn(conn)


# Composition-based database class for services
SyncDatabase = SyncDatabaseCore
