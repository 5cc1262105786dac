# backend/asset_transforms/exceptions.py
"""
Custom exceptions for Asset Transforms.

Centralized location for all custom exception classes to avoid
duplicating exception definitions across modules.
"""

from typing import Any, Dict, Optional

# Each exception type represents a distinct error domain with its own
# propagation rules (see the transform services for where each is raised)


class TransformError(Exception):
    """Base exception for all transform-specific errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.details = details or {}


class DefinitionNotFound(TransformError):
    """A transform handle, id or uid does not refer to a known definition."""

    pass


class IndexResolutionFailed(TransformError):
    """A transform input could not be normalized into a transform index."""

    pass


class GenerationFailed(TransformError):
    """Rendering or reusing a transform failed; recorded on the index row."""

    def __init__(
        self,
        message: str,
        index_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.index_id = index_id


class SourceUnavailable(TransformError):
    """The original asset bytes could not be downloaded or read."""

    pass


class UnsupportedFormat(TransformError):
    """The requested output format lacks codec support at runtime."""

    pass


class AssetOperationError(TransformError):
    """An asset cannot take part in the requested image operation."""

    pass


class VolumeError(TransformError):
    """A storage volume operation failed."""

    pass
