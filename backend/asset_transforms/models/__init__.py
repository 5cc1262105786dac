"""
Asset Transforms Pydantic Models Package

Pydantic models used for validation and for passing rows between the
database operations and the transform services.

Model Organization:
    - asset_model: The read-only view of an asset the transform services need
    - transform_model: Transform definitions and the transform input union
    - transform_index_model: Cached rendition rows

Usage Patterns:
    - Import from this package for all model needs:
      `from asset_transforms.models import TransformDefinition`
    - Database operations return model instances for type safety
"""

from .asset_model import Asset, FocalPoint
from .transform_index_model import TransformIndex
from .transform_model import (
    ByHandle,
    ByProperties,
    Extend,
    TransformDefinition,
    TransformInput,
)

__all__ = [
    "Asset",
    "FocalPoint",
    "TransformIndex",
    "TransformDefinition",
    "TransformInput",
    "ByHandle",
    "ByProperties",
    "Extend",
]
