# backend/asset_transforms/database/transform_definition_operations.py
"""
Transform Definition Operations - Database layer for named transforms.

Responsibilities:
- Read the asset_transforms table for the definition snapshot
- Apply config store changes to a row in a single transaction
- id <-> uid lookups and deletes by uid
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import psycopg

from ..constants import DIMENSION_PROPERTIES
from ..models.transform_model import TransformDefinition
from ..utils.time_utils import utc_now
from .core import SyncDatabase
from .exceptions import TransformDefinitionOperationError


class TransformDefinitionQueryBuilder:
    """Centralized query builder for transform definition operations."""

    @staticmethod
    def get_base_select_fields():
        """Get standard fields for transform definition queries."""
        return """
            id, name, handle, mode, position, height, width, format, quality,
            interlace, dimension_change_time, uid
        """

    @staticmethod
    def build_all_transforms_query():
        fields = TransformDefinitionQueryBuilder.get_base_select_fields()
        return f"""
            SELECT {fields}
            FROM asset_transforms
            ORDER BY name ASC
        """

    @staticmethod
    def build_transform_by_uid_for_update_query():
        fields = TransformDefinitionQueryBuilder.get_base_select_fields()
        return f"""
            SELECT {fields}
            FROM asset_transforms
            WHERE uid = %s
            FOR UPDATE
        """

    @staticmethod
    def build_insert_query():
        fields = TransformDefinitionQueryBuilder.get_base_select_fields()
        return f"""
            INSERT INTO asset_transforms
            (name, handle, mode, position, width, height, quality, interlace,
             format, dimension_change_time, uid, date_created, date_updated)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {fields}
        """

    @staticmethod
    def build_update_query():
        fields = TransformDefinitionQueryBuilder.get_base_select_fields()
        return f"""
            UPDATE asset_transforms
            SET name = %s, handle = %s, mode = %s, position = %s, width = %s,
                height = %s, quality = %s, interlace = %s, format = %s,
                dimension_change_time = %s, date_updated = %s
            WHERE uid = %s
            RETURNING {fields}
        """


@dataclass
class AppliedTransformConfig:
    """Outcome of writing a config store entry to the asset_transforms table."""

    transform: TransformDefinition
    is_new: bool
    dimensions_changed: bool


def dimensions_changed(existing: Optional[Mapping[str, Any]], data: Mapping[str, Any]) -> bool:
    """
    Whether a config change affects the rendered output.

    New rows count as changed, so their (nonexistent) renditions are
    considered stale as well.
    """
    if existing is None:
        return True
    return any(existing.get(prop) != data.get(prop) for prop in DIMENSION_PROPERTIES)


class SyncTransformDefinitionOperations:
    """Synchronous database operations for transform definitions."""

    def __init__(self, db: SyncDatabase) -> None:
        """Initialize with sync database instance."""
        self.db = db

    def get_all_transforms(self) -> List[TransformDefinition]:
        """All transform definitions ordered by name."""
        try:
            with self.db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(TransformDefinitionQueryBuilder.build_all_transforms_query())
                    rows = cur.fetchall()
            return [TransformDefinition.model_validate(row) for row in rows]
        except (psycopg.Error, KeyError, ValueError) as e:
            raise TransformDefinitionOperationError(
                f"Failed to fetch transforms: {e}", operation="get_all_transforms"
            ) from e

    def get_id_by_uid(self, uid: str) -> Optional[int]:
        try:
            with self.db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT id FROM asset_transforms WHERE uid = %s", (uid,))
                    row = cur.fetchone()
            return row["id"] if row else None
        except (psycopg.Error, KeyError, ValueError) as e:
            raise TransformDefinitionOperationError(
                f"Failed to look up transform id: {e}", operation="get_id_by_uid"
            ) from e

    def get_uid_by_id(self, transform_id: int) -> Optional[str]:
        try:
            with self.db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "SELECT uid FROM asset_transforms WHERE id = %s", (transform_id,)
                    )
                    row = cur.fetchone()
            return row["uid"] if row else None
        except (psycopg.Error, KeyError, ValueError) as e:
            raise TransformDefinitionOperationError(
                f"Failed to look up transform uid: {e}", operation="get_uid_by_id"
            ) from e

    def apply_transform_config(
        self,
        uid: str,
        data: Mapping[str, Any],
        changed_at: Optional[datetime] = None,
    ) -> AppliedTransformConfig:
        """
        Insert or update the row for uid from a config store entry.

        The read, the change detection and the write share one transaction;
        any failure rolls all of it back. dimension_change_time is stamped
        with changed_at (default now) when a size-affecting property differs
        from the stored row.
        """
        current_time = utc_now()
        changed_at = changed_at or current_time
        try:
            with self.db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        TransformDefinitionQueryBuilder.build_transform_by_uid_for_update_query(),
                        (uid,),
                    )
                    existing: Optional[Dict[str, Any]] = cur.fetchone()

                    changed = dimensions_changed(existing, data)
                    dimension_change_time = (
                        changed_at
                        if changed
                        else existing.get("dimension_change_time")
                    )
                    values = (
                        data["name"],
                        data["handle"],
                        data["mode"],
                        data["position"],
                        data.get("width"),
                        data.get("height"),
                        data.get("quality"),
                        data["interlace"],
                        data.get("format"),
                        dimension_change_time,
                    )

                    if existing is None:
                        cur.execute(
                            TransformDefinitionQueryBuilder.build_insert_query(),
                            (*values, uid, current_time, current_time),
                        )
                    else:
                        cur.execute(
                            TransformDefinitionQueryBuilder.build_update_query(),
                            (*values, current_time, uid),
                        )
                    row = cur.fetchone()

            if not row:
                raise ValueError(f"Transform {uid} was not written")

            return AppliedTransformConfig(
                transform=TransformDefinition.model_validate(row),
                is_new=existing is None,
                dimensions_changed=changed,
            )

        except (psycopg.Error, KeyError, ValueError) as e:
            raise TransformDefinitionOperationError(
                f"Failed to apply transform config: {e}",
                operation="apply_transform_config",
            ) from e

    def delete_transform_by_uid(self, uid: str) -> bool:
        try:
            with self.db.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM asset_transforms WHERE uid = %s", (uid,))
                    return cur.rowcount > 0
        except (psycopg.Error, KeyError, ValueError) as e:
            raise TransformDefinitionOperationError(
                f"Failed to delete transform: {e}", operation="delete_transform_by_uid"
            ) from e
