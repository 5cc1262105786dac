# backend/tests/database/test_transform_index_operations.py
"""
Tests for SyncTransformIndexOperations against a mocked connection.

Covers query building (NULL-aware format matching, eager-load batches),
parameter order, row mapping and error wrapping.
"""

from unittest.mock import patch

import psycopg
import pytest

from asset_transforms.database.exceptions import TransformIndexOperationError
from asset_transforms.database.transform_index_operations import (
    SyncTransformIndexOperations,
    TransformIndexQueryBuilder,
)
from asset_transforms.models.transform_index_model import TransformIndex


def _sql(cursor, call_index: int = -1) -> str:
    return cursor.execute.call_args_list[call_index].args[0]


def _params(cursor, call_index: int = -1):
    return cursor.execute.call_args_list[call_index].args[1]


@pytest.fixture
def ops(mock_sync_db):
    db, _, _ = mock_sync_db
    return SyncTransformIndexOperations(db)


@pytest.mark.unit
@pytest.mark.database
class TestTransformIndexQueryBuilder:
    def test_format_condition_is_null_aware(self):
        assert TransformIndexQueryBuilder.build_format_condition(None) == (
            "format IS NULL",
            [],
        )
        assert TransformIndexQueryBuilder.build_format_condition("webp") == (
            "format = %s",
            ["webp"],
        )

    def test_find_query_for_auto_format(self):
        query = TransformIndexQueryBuilder.build_find_query(None)

        assert "format IS NULL" in query
        assert "LIMIT 1" in query

    def test_eager_load_query_combines_pairs(self):
        query, params = TransformIndexQueryBuilder.build_eager_load_query(
            [("_thumb", None), ("_hero", "webp")]
        )

        assert "asset_id = ANY(%s)" in query
        assert "(location = %s AND format IS NULL) OR (location = %s AND format = %s)" in query
        assert params == ["_thumb", "_hero", "webp"]


@pytest.mark.unit
@pytest.mark.database
class TestTransformIndexLookups:
    def test_find_with_format(self, ops, mock_sync_db, rows):
        _, _, cursor = mock_sync_db
        cursor.fetchone.return_value = rows.transform_index_row(format="png")

        index = ops.find_transform_index(1, 5, "_thumb", "png")

        assert isinstance(index, TransformIndex)
        assert index.format == "png"
        assert _params(cursor) == [1, 5, "_thumb", "png"]
        assert "format = %s" in _sql(cursor)

    def test_find_without_format(self, ops, mock_sync_db):
        _, _, cursor = mock_sync_db
        cursor.fetchone.return_value = None

        assert ops.find_transform_index(1, 5, "_thumb", None) is None
        assert _params(cursor) == [1, 5, "_thumb"]
        assert "format IS NULL" in _sql(cursor)

    def test_get_by_id_maps_row(self, ops, mock_sync_db, rows):
        _, _, cursor = mock_sync_db
        cursor.fetchone.return_value = rows.transform_index_row(id=42, file_exists=True)

        index = ops.get_transform_index_by_id(42)

        assert index.id == 42
        assert index.file_exists is True
        assert _params(cursor) == (42,)

    def test_eager_load_skips_empty_input(self, ops, mock_sync_db):
        db, _, _ = mock_sync_db

        assert ops.get_transform_indexes_for_assets([], [("_thumb", None)]) == []
        assert ops.get_transform_indexes_for_assets([1], []) == []
        db.get_connection.assert_not_called()

    def test_eager_load_params(self, ops, mock_sync_db, rows):
        _, _, cursor = mock_sync_db
        cursor.fetchall.return_value = [
            rows.transform_index_row(id=1, asset_id=1, location="_thumb"),
            rows.transform_index_row(id=2, asset_id=2, location="_thumb"),
        ]

        indexes = ops.get_transform_indexes_for_assets((1, 2), [("_thumb", None)])

        assert [index.id for index in indexes] == [1, 2]
        assert _params(cursor) == [[1, 2], "_thumb"]

    def test_reusable_lookup_params(self, ops, mock_sync_db):
        _, _, cursor = mock_sync_db
        cursor.fetchone.return_value = None

        ops.find_reusable_transform_index(5, ("_a", "_b"), "jpg", None)

        assert _params(cursor) == (5, ["_a", "_b"], "jpg", None)
        assert "file_exists = TRUE" in _sql(cursor)
        assert "IS DISTINCT FROM" in _sql(cursor)

    def test_pending_ids(self, ops, mock_sync_db):
        _, _, cursor = mock_sync_db
        cursor.fetchall.return_value = [{"id": 3}, {"id": 8}]

        assert ops.get_pending_transform_index_ids() == [3, 8]
        assert "error = FALSE" in cursor.execute.call_args.args[0]

    def test_rows_by_location(self, ops, mock_sync_db, rows):
        _, _, cursor = mock_sync_db
        cursor.fetchall.return_value = [rows.transform_index_row(location="_thumb")]

        indexes = ops.get_transform_indexes_by_location("_thumb")

        assert [index.location for index in indexes] == ["_thumb"]
        assert _params(cursor) == ("_thumb",)
        assert "WHERE location = %s" in _sql(cursor)

    def test_invalid_row_is_wrapped(self, ops, mock_sync_db, rows):
        _, _, cursor = mock_sync_db
        cursor.fetchone.return_value = rows.transform_index_row(location="")

        with pytest.raises(TransformIndexOperationError) as exc_info:
            ops.get_transform_index_by_id(10)

        assert exc_info.value.operation == "get_transform_index_by_id"

    def test_database_errors_are_wrapped(self, ops, mock_sync_db):
        _, _, cursor = mock_sync_db
        cursor.execute.side_effect = psycopg.OperationalError("connection lost")

        with pytest.raises(TransformIndexOperationError) as exc_info:
            ops.get_transform_indexes_by_asset_id(1)

        assert isinstance(exc_info.value.__cause__, psycopg.OperationalError)
        assert str(exc_info.value).startswith("get_transform_indexes_by_asset_id:")


@pytest.mark.unit
@pytest.mark.database
class TestTransformIndexWrites:
    def test_create_returns_stored_row(self, ops, mock_sync_db, rows, mock_current_time):
        _, _, cursor = mock_sync_db
        cursor.fetchone.return_value = rows.transform_index_row(id=77)
        index = TransformIndex(
            asset_id=1, volume_id=1, location="_thumb", date_indexed=mock_current_time
        )

        with patch(
            "asset_transforms.database.transform_index_operations.utc_now",
            return_value=mock_current_time,
        ):
            created = ops.create_transform_index(index)

        assert created.id == 77
        assert _params(cursor) == (
            1,
            1,
            None,
            None,
            "_thumb",
            False,
            False,
            False,
            mock_current_time,
            mock_current_time,
            mock_current_time,
        )

    def test_create_without_returned_row_raises(self, ops, mock_sync_db):
        _, _, cursor = mock_sync_db
        cursor.fetchone.return_value = None

        with pytest.raises(TransformIndexOperationError):
            ops.create_transform_index(
                TransformIndex(asset_id=1, volume_id=1, location="_thumb")
            )

    def test_update_bumps_date_updated(self, ops, mock_sync_db, mock_current_time):
        _, _, cursor = mock_sync_db
        cursor.rowcount = 1
        index = TransformIndex(id=9, asset_id=1, volume_id=1, location="_thumb")

        with patch(
            "asset_transforms.database.transform_index_operations.utc_now",
            return_value=mock_current_time,
        ):
            assert ops.update_transform_index(index) is True

        assert index.date_updated == mock_current_time
        assert _params(cursor)[-2:] == (mock_current_time, 9)

    def test_update_of_missing_row(self, ops, mock_sync_db):
        _, _, cursor = mock_sync_db
        cursor.rowcount = 0
        index = TransformIndex(id=9, asset_id=1, volume_id=1, location="_thumb")

        assert ops.update_transform_index(index) is False
        assert index.date_updated is None

    def test_update_without_id_raises(self, ops, mock_sync_db):
        db, _, _ = mock_sync_db

        with pytest.raises(TransformIndexOperationError):
            ops.update_transform_index(
                TransformIndex(asset_id=1, volume_id=1, location="_thumb")
            )
        db.get_connection.assert_not_called()


@pytest.mark.unit
@pytest.mark.database
class TestTransformIndexDeletes:
    def test_bulk_deletes_skip_empty_input(self, ops, mock_sync_db):
        db, _, _ = mock_sync_db

        assert ops.delete_transform_indexes_by_ids([]) == 0
        assert ops.delete_transform_indexes_by_asset_ids([]) == 0
        db.get_connection.assert_not_called()

    def test_delete_by_asset_ids_returns_rowcount(self, ops, mock_sync_db):
        _, _, cursor = mock_sync_db
        cursor.rowcount = 4

        assert ops.delete_transform_indexes_by_asset_ids((1, 2)) == 4
        assert _params(cursor) == ([1, 2],)
        assert "asset_id = ANY(%s)" in _sql(cursor)

    def test_delete_by_location(self, ops, mock_sync_db):
        _, _, cursor = mock_sync_db
        cursor.rowcount = 2

        assert ops.delete_transform_indexes_by_location("_thumb") == 2
        assert _params(cursor) == ("_thumb",)

    def test_delete_errors_are_wrapped(self, ops, mock_sync_db):
        _, _, cursor = mock_sync_db
        cursor.execute.side_effect = psycopg.errors.UndefinedTable("missing")

        with pytest.raises(TransformIndexOperationError):
            ops.delete_transform_index(1)
