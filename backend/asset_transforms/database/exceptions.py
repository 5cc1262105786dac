# backend/asset_transforms/database/exceptions.py
"""
Database operation exceptions.

Operations never log. They catch psycopg.Error, KeyError and ValueError and
raise one of these with the operation name, chained with `from e`; the
calling service logs and re-raises.

Example:
    except (psycopg.Error, KeyError, ValueError) as e:
        raise TransformIndexOperationError(
            "Failed to retrieve transform index",
            operation="get_transform_index_by_id",
        ) from e
"""

from typing import Any, Dict, Optional


class DatabaseOperationError(Exception):
    """
    Base exception for all database operation failures.

    Provides a clean interface for database errors without requiring
    logging dependencies in the database layer.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}

    def __str__(self):
        if self.operation:
            return f"{self.operation}: {super().__str__()}"
        return super().__str__()


class TransformDefinitionOperationError(DatabaseOperationError):
    """Transform definition-specific database operation errors."""

    pass


class TransformIndexOperationError(DatabaseOperationError):
    """Transform index-specific database operation errors."""

    pass


class SchemaOperationError(DatabaseOperationError):
    """Schema setup database operation errors."""

    pass
