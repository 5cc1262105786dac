# backend/tests/database/test_database_core.py
"""
Tests for SyncDatabaseCore pool management.

The psycopg ConnectionPool is replaced by a MagicMock so checkout retries,
recovery and pool statistics can be driven without a server.
"""

from unittest.mock import MagicMock, patch

import psycopg
import pytest

from asset_transforms.database.core import SyncDatabaseCore


@pytest.fixture
def pool_class():
    with patch("asset_transforms.database.core.ConnectionPool") as pool_class, patch(
        "asset_transforms.database.core.time.sleep"
    ):
        pool_class.return_value = MagicMock()
        yield pool_class


@pytest.fixture
def db(pool_class):
    database = SyncDatabaseCore("postgresql://test/db")
    database.initialize()
    return database


@pytest.mark.unit
@pytest.mark.database
class TestPoolLifecycle:
    def test_initialize_opens_pool(self, db, pool_class):
        assert pool_class.call_args.args[0] == "postgresql://test/db"
        pool_class.return_value.open.assert_called_once_with()

    def test_stats_before_initialize(self):
        assert SyncDatabaseCore("postgresql://test/db").get_pool_stats() == {
            "pool_initialized": False
        }

    def test_stats_after_initialize(self, db):
        stats = db.get_pool_stats()

        assert stats["pool_initialized"] is True
        assert stats["pool_created_at"] is not None
        assert stats["failed_connections"] == 0

    def test_initialize_failure_is_counted_and_raised(self, pool_class):
        pool_class.return_value.open.side_effect = psycopg.OperationalError("refused")
        database = SyncDatabaseCore("postgresql://test/db")

        with pytest.raises(psycopg.OperationalError):
            database.initialize()

        assert database._failed_connections == 1

    def test_close_releases_pool(self, db, pool_class):
        db.close()

        pool_class.return_value.close.assert_called_once_with()
        assert db.get_pool_stats() == {"pool_initialized": False}

    def test_health_check(self, db):
        assert db.check_pool_health() is True
        assert db.get_pool_stats()["last_health_check"] is not None

    def test_health_check_without_pool(self):
        assert SyncDatabaseCore("postgresql://test/db").check_pool_health() is False


@pytest.mark.unit
@pytest.mark.database
class TestGetConnection:
    def test_requires_initialized_pool(self):
        database = SyncDatabaseCore("postgresql://test/db")

        with pytest.raises(RuntimeError, match="not initialized"):
            with database.get_connection():
                pass

    def test_connection_is_returned_to_pool(self, db, pool_class):
        pool = pool_class.return_value
        conn = pool.getconn.return_value

        with db.get_connection() as yielded:
            assert yielded is conn

        conn.transaction.assert_called_once_with()
        pool.putconn.assert_called_once_with(conn)

    def test_connection_is_returned_when_block_raises(self, db, pool_class):
        pool = pool_class.return_value

        with pytest.raises(ValueError):
            with db.get_connection():
                raise ValueError("boom")

        pool.putconn.assert_called_once_with(pool.getconn.return_value)

    def test_checkout_is_retried(self, db, pool_class):
        pool = pool_class.return_value
        conn = MagicMock()
        pool.getconn.side_effect = [psycopg.OperationalError("reset"), conn]

        with db.get_connection(auto_recover=False) as yielded:
            assert yielded is conn

        assert db.get_pool_stats()["failed_connections"] == 1

    def test_checkout_gives_up_after_retries(self, db, pool_class):
        pool_class.return_value.getconn.side_effect = psycopg.OperationalError("down")

        with pytest.raises(psycopg.OperationalError):
            with db.get_connection(auto_recover=False, max_retries=1):
                pass

        assert pool_class.return_value.getconn.call_count == 2
