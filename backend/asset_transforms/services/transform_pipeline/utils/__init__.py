# backend/asset_transforms/services/transform_pipeline/utils/__init__.py
"""
Transform Pipeline Utility Functions

- srcset size parsing and resolution for eager loading
"""

from .srcset import parse_srcset_size, resolve_srcset_size

__all__ = [
    "parse_srcset_size",
    "resolve_srcset_size",
]
