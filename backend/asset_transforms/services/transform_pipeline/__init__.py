# backend/asset_transforms/services/transform_pipeline/__init__.py
"""
Transform Pipeline Module

Index resolution, generation coordination, rendering and cleanup of asset
renditions.
"""

from .services import (
    AssetResolver,
    GenerationService,
    SourceService,
    TransformCleanupService,
    TransformIndexService,
)
from .generators import TransformGenerator, resolve_crop_anchor
from .transform_pipeline import TransformPipeline, create_transform_pipeline
from .utils import parse_srcset_size, resolve_srcset_size

__all__ = [
    "AssetResolver",
    "GenerationService",
    "SourceService",
    "TransformCleanupService",
    "TransformGenerator",
    "TransformIndexService",
    "TransformPipeline",
    "create_transform_pipeline",
    "parse_srcset_size",
    "resolve_crop_anchor",
    "resolve_srcset_size",
]
