"""
Database package for Asset Transforms

This package provides composition-based database operations for clean
architecture and type safety.

Usage:
    from asset_transforms.database import sync_db
    from asset_transforms.database.transform_index_operations import (
        SyncTransformIndexOperations,
    )

    sync_db.initialize()
    index_ops = SyncTransformIndexOperations(sync_db)
"""

# Composition-based database classes
from .core import SyncDatabase

# Create shared database instance
sync_db = SyncDatabase()

__all__ = ["SyncDatabase", "sync_db"]
