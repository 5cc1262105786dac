# backend/asset_transforms/services/transform_pipeline/generators/__init__.py
"""
Transform Generation Components

- TransformGenerator: renders or reuses the rendition file of an index
"""

from .transform_generator import TransformGenerator, resolve_crop_anchor

__all__ = [
    "TransformGenerator",
    "resolve_crop_anchor",
]
