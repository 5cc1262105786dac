# backend/asset_transforms/database/transform_index_operations.py
"""
Transform Index Operations - Database layer for cached renditions.

Responsibilities:
- Resolve-or-create lookups on asset_transform_index
- Batch lookups and deletes used by eager loading
- Reuse lookups for copying an existing rendition
- Cleanup by asset, location and id

Every statement runs in its own transaction; workers coordinate only
through the persisted in_progress flag and date_updated.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import psycopg

from ..models.transform_index_model import TransformIndex
from ..utils.time_utils import utc_now
from .core import SyncDatabase
from .exceptions import TransformIndexOperationError

# (location, format) pairs; format None matches rows without a format
LocationFormatPair = Tuple[str, Optional[str]]


class TransformIndexQueryBuilder:
    """Centralized query builder for transform index operations."""

    @staticmethod
    def get_base_select_fields():
        """Get standard fields for transform index queries."""
        return """
            id, asset_id, volume_id, filename, format, location, file_exists,
            in_progress, error, date_indexed, date_updated, date_created
        """

    @staticmethod
    def build_format_condition(transform_format: Optional[str]) -> Tuple[str, list]:
        """NULL-aware format match: auto-format rows are stored with a NULL format."""
        if transform_format is None:
            return "format IS NULL", []
        return "format = %s", [transform_format]

    @staticmethod
    def build_find_query(transform_format: Optional[str]) -> str:
        fields = TransformIndexQueryBuilder.get_base_select_fields()
        format_condition, _ = TransformIndexQueryBuilder.build_format_condition(
            transform_format
        )
        return f"""
            SELECT {fields}
            FROM asset_transform_index
            WHERE volume_id = %s AND asset_id = %s AND location = %s
            AND {format_condition}
            ORDER BY id ASC
            LIMIT 1
        """

    @staticmethod
    def build_eager_load_query(
        pairs: Sequence[LocationFormatPair],
    ) -> Tuple[str, list]:
        """Build one query matching any of the (location, format) pairs."""
        fields = TransformIndexQueryBuilder.get_base_select_fields()
        conditions = []
        params: list = []
        for location, transform_format in pairs:
            format_condition, format_params = (
                TransformIndexQueryBuilder.build_format_condition(transform_format)
            )
            conditions.append(f"(location = %s AND {format_condition})")
            params.append(location)
            params.extend(format_params)

        query = f"""
            SELECT {fields}
            FROM asset_transform_index
            WHERE asset_id = ANY(%s)
            AND ({" OR ".join(conditions)})
            ORDER BY id ASC
        """
        return query, params

    @staticmethod
    def build_insert_query():
        fields = TransformIndexQueryBuilder.get_base_select_fields()
        return f"""
            INSERT INTO asset_transform_index
            (asset_id, volume_id, filename, format, location, file_exists,
             in_progress, error, date_indexed, date_created, date_updated)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {fields}
        """

    @staticmethod
    def build_update_query():
        return """
            UPDATE asset_transform_index
            SET asset_id = %s, volume_id = %s, filename = %s, format = %s,
                location = %s, file_exists = %s, in_progress = %s, error = %s,
                date_indexed = %s, date_updated = %s
            WHERE id = %s
        """


def _index_values(index: TransformIndex) -> Tuple[Any, ...]:
    return (
        index.asset_id,
        index.volume_id,
        index.filename,
        index.format,
        index.location,
        index.file_exists,
        index.in_progress,
        index.error,
        index.date_indexed,
    )


class SyncTransformIndexOperations:
    """
    Synchronous database operations for the transform index.

    Thread Safety:
    - No shared state between method calls
    - Safe for concurrent access from request handlers and workers
    """

    def __init__(self, db: SyncDatabase) -> None:
        """Initialize with sync database instance."""
        self.db = db

    def _fetch_one(
        self, query: str, params: Sequence[Any], operation: str
    ) -> Optional[TransformIndex]:
        try:
            with self.db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
            return TransformIndex.model_validate(row) if row else None
        except (psycopg.Error, KeyError, ValueError) as e:
            raise TransformIndexOperationError(
                f"Failed to fetch transform index: {e}", operation=operation
            ) from e

    def _fetch_all(
        self, query: str, params: Sequence[Any], operation: str
    ) -> List[TransformIndex]:
        try:
            with self.db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    rows = cur.fetchall()
            return [TransformIndex.model_validate(row) for row in rows]
        except (psycopg.Error, KeyError, ValueError) as e:
            raise TransformIndexOperationError(
                f"Failed to fetch transform indexes: {e}", operation=operation
            ) from e

    def _execute(self, query: str, params: Sequence[Any], operation: str) -> int:
        try:
            with self.db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    return cur.rowcount
        except (psycopg.Error, KeyError, ValueError) as e:
            raise TransformIndexOperationError(
                f"Failed to modify transform indexes: {e}", operation=operation
            ) from e

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_transform_index(
        self,
        volume_id: int,
        asset_id: int,
        location: str,
        transform_format: Optional[str],
    ) -> Optional[TransformIndex]:
        """Find the row for an asset, location and format (NULL-aware)."""
        query = TransformIndexQueryBuilder.build_find_query(transform_format)
        params: List[Any] = [volume_id, asset_id, location]
        if transform_format is not None:
            params.append(transform_format)
        return self._fetch_one(query, params, "find_transform_index")

    def get_transform_index_by_id(self, index_id: int) -> Optional[TransformIndex]:
        fields = TransformIndexQueryBuilder.get_base_select_fields()
        query = f"SELECT {fields} FROM asset_transform_index WHERE id = %s"
        return self._fetch_one(query, (index_id,), "get_transform_index_by_id")

    def get_transform_index_by_asset_id_and_location(
        self, asset_id: int, location: str
    ) -> Optional[TransformIndex]:
        fields = TransformIndexQueryBuilder.get_base_select_fields()
        query = f"""
            SELECT {fields}
            FROM asset_transform_index
            WHERE asset_id = %s AND location = %s
            ORDER BY id ASC
            LIMIT 1
        """
        return self._fetch_one(
            query, (asset_id, location), "get_transform_index_by_asset_id_and_location"
        )

    def get_transform_indexes_for_assets(
        self, asset_ids: Sequence[int], pairs: Sequence[LocationFormatPair]
    ) -> List[TransformIndex]:
        """Batch lookup for eager loading: any asset, any (location, format) pair."""
        if not asset_ids or not pairs:
            return []
        query, pair_params = TransformIndexQueryBuilder.build_eager_load_query(pairs)
        params = [list(asset_ids), *pair_params]
        return self._fetch_all(query, params, "get_transform_indexes_for_assets")

    def find_reusable_transform_index(
        self,
        asset_id: int,
        locations: Sequence[str],
        transform_format: str,
        exclude_index_id: Optional[int],
    ) -> Optional[TransformIndex]:
        """Find another generated rendition of the asset that can be copied."""
        fields = TransformIndexQueryBuilder.get_base_select_fields()
        query = f"""
            SELECT {fields}
            FROM asset_transform_index
            WHERE asset_id = %s AND file_exists = TRUE
            AND location = ANY(%s) AND format = %s
            AND id IS DISTINCT FROM %s
            ORDER BY id ASC
            LIMIT 1
        """
        return self._fetch_one(
            query,
            (asset_id, list(locations), transform_format, exclude_index_id),
            "find_reusable_transform_index",
        )

    def get_pending_transform_index_ids(self) -> List[int]:
        """IDs of rows nobody has generated, claimed or failed yet."""
        query = """
            SELECT id FROM asset_transform_index
            WHERE file_exists = FALSE AND in_progress = FALSE AND error = FALSE
            ORDER BY id ASC
        """
        try:
            with self.db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query)
                    return [row["id"] for row in cur.fetchall()]
        except (psycopg.Error, KeyError, ValueError) as e:
            raise TransformIndexOperationError(
                f"Failed to fetch pending transform indexes: {e}",
                operation="get_pending_transform_index_ids",
            ) from e

    def get_transform_indexes_by_asset_id(self, asset_id: int) -> List[TransformIndex]:
        fields = TransformIndexQueryBuilder.get_base_select_fields()
        query = f"""
            SELECT {fields}
            FROM asset_transform_index
            WHERE asset_id = %s
            ORDER BY id ASC
        """
        return self._fetch_all(query, (asset_id,), "get_transform_indexes_by_asset_id")

    def get_transform_indexes_by_location(self, location: str) -> List[TransformIndex]:
        fields = TransformIndexQueryBuilder.get_base_select_fields()
        query = f"""
            SELECT {fields}
            FROM asset_transform_index
            WHERE location = %s
            ORDER BY id ASC
        """
        return self._fetch_all(query, (location,), "get_transform_indexes_by_location")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_transform_index(self, index: TransformIndex) -> TransformIndex:
        """Insert a row and return it with its id and timestamps."""
        current_time = utc_now()
        try:
            with self.db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        TransformIndexQueryBuilder.build_insert_query(),
                        (*_index_values(index), current_time, current_time),
                    )
                    row: Optional[Dict[str, Any]] = cur.fetchone()

            if not row:
                raise ValueError("INSERT returned no row")

            return TransformIndex.model_validate(row)

        except (psycopg.Error, KeyError, ValueError) as e:
            raise TransformIndexOperationError(
                f"Failed to create transform index: {e}",
                operation="create_transform_index",
            ) from e

    def update_transform_index(self, index: TransformIndex) -> bool:
        """Persist every stored field of an existing row and bump date_updated."""
        if index.id is None:
            raise TransformIndexOperationError(
                "Cannot update a transform index without an id",
                operation="update_transform_index",
            )
        current_time = utc_now()
        updated = self._execute(
            TransformIndexQueryBuilder.build_update_query(),
            (*_index_values(index), current_time, index.id),
            "update_transform_index",
        )
        if updated:
            index.date_updated = current_time
        return updated > 0

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    def delete_transform_index(self, index_id: int) -> int:
        return self._execute(
            "DELETE FROM asset_transform_index WHERE id = %s",
            (index_id,),
            "delete_transform_index",
        )

    def delete_transform_indexes_by_ids(self, index_ids: Sequence[int]) -> int:
        if not index_ids:
            return 0
        return self._execute(
            "DELETE FROM asset_transform_index WHERE id = ANY(%s)",
            (list(index_ids),),
            "delete_transform_indexes_by_ids",
        )

    def delete_transform_indexes_by_asset_ids(self, asset_ids: Sequence[int]) -> int:
        if not asset_ids:
            return 0
        return self._execute(
            "DELETE FROM asset_transform_index WHERE asset_id = ANY(%s)",
            (list(asset_ids),),
            "delete_transform_indexes_by_asset_ids",
        )

    def delete_transform_indexes_by_location(self, location: str) -> int:
        return self._execute(
            "DELETE FROM asset_transform_index WHERE location = %s",
            (location,),
            "delete_transform_indexes_by_location",
        )
