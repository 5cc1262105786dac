# backend/tests/database/conftest.py
"""
Shared fixtures and configuration for database operations tests.

Provides a mocked SyncDatabase and row factories shaped like the dict rows
psycopg returns.
"""

from datetime import datetime, timezone
from typing import Any, Dict
from unittest.mock import Mock

import pytest


@pytest.fixture
def mock_sync_db():
    """
    Mock sync database connection for testing sync database operations.

    Returns:
        tuple: (db_mock, connection_mock, cursor_mock) for easy access in tests
    """
    db = Mock()
    conn = Mock()
    cursor = Mock()

    # Setup sync context managers
    db.get_connection.return_value.__enter__ = Mock(return_value=conn)
    db.get_connection.return_value.__exit__ = Mock(return_value=None)
    conn.cursor.return_value.__enter__ = Mock(return_value=cursor)
    conn.cursor.return_value.__exit__ = Mock(return_value=None)

    return db, conn, cursor


@pytest.fixture
def mock_current_time():
    """Mock current time for consistent testing."""
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# Test data factories
class RowFactory:
    """Factory for dict rows as returned by the psycopg dict_row factory."""

    @staticmethod
    def transform_index_row(**overrides) -> Dict[str, Any]:
        now = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
        defaults = {
            "id": 10,
            "asset_id": 1,
            "volume_id": 1,
            "filename": None,
            "format": None,
            "location": "_100x100_crop_center-center_none",
            "file_exists": False,
            "in_progress": False,
            "error": False,
            "date_indexed": now,
            "date_updated": now,
            "date_created": now,
        }
        defaults.update(overrides)
        return defaults

    @staticmethod
    def transform_row(**overrides) -> Dict[str, Any]:
        defaults = {
            "id": 3,
            "name": "Thumb",
            "handle": "thumb",
            "mode": "crop",
            "position": "center-center",
            "height": 150,
            "width": 200,
            "format": None,
            "quality": None,
            "interlace": "none",
            "dimension_change_time": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "uid": "5b3c4e1a-0d7f-4c1e-9f1b-2d8a6c0e9a11",
        }
        defaults.update(overrides)
        return defaults


@pytest.fixture
def rows():
    """Provide the row factory to tests."""
    return RowFactory

