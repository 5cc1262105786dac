# backend/asset_transforms/services/transform_pipeline/services/__init__.py
"""
Transform Pipeline Business Logic Services
"""

from .cleanup_service import TransformCleanupService
from .generation_service import AssetResolver, GenerationService
from .index_service import TransformIndexService
from .source_service import SourceService

__all__ = [
    "AssetResolver",
    "GenerationService",
    "SourceService",
    "TransformCleanupService",
    "TransformIndexService",
]
