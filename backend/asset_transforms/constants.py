# backend/asset_transforms/constants.py
"""
Global Constants for Asset Transforms

Centralized location for application constants to avoid hardcoded values
throughout the codebase.
"""

import re
from typing import FrozenSet, Tuple

from .enums import InterlaceMode, TransformMode, TransformPosition

# =============================================================================
# TRANSFORM DEFINITIONS
# =============================================================================

# Config store path under which named transforms are published
CONFIG_PATH_IMAGE_TRANSFORMS = "imageTransforms"

DEFAULT_TRANSFORM_MODE = TransformMode.CROP.value
DEFAULT_TRANSFORM_POSITION = TransformPosition.CENTER_CENTER.value
DEFAULT_INTERLACE = InterlaceMode.NONE.value

# Crop anchors: vertical then horizontal, e.g. "top-left"
CROP_POSITION_PATTERN = re.compile(r"^(top|center|bottom)-(left|center|right)$")

# Properties an extended transform may override on its base
EXTENDABLE_TRANSFORM_PROPERTIES: Tuple[str, ...] = (
    "width",
    "height",
    "format",
    "mode",
    "position",
    "quality",
    "interlace",
)

# Identity properties cleared on every extended transform
EXTENDED_TRANSFORM_NULLABLES: Tuple[str, ...] = (
    "id",
    "name",
    "handle",
    "uid",
    "dimension_change_time",
)

# Changes to any of these bump dimension_change_time on a named transform
DIMENSION_PROPERTIES: Tuple[str, ...] = (
    "width",
    "height",
    "mode",
    "position",
    "quality",
    "interlace",
)

MAX_HANDLE_LENGTH = 255
MAX_NAME_LENGTH = 255
MIN_TRANSFORM_QUALITY = 1
MAX_TRANSFORM_QUALITY = 100

# =============================================================================
# IMAGE FORMATS
# =============================================================================

# Extensions browsers render natively; auto-detection keeps them as-is
WEB_SAFE_FORMATS: FrozenSet[str] = frozenset(
    {"jpg", "jpeg", "gif", "png", "svg", "webp"}
)

# Extensions the transform pipeline will try to load at all
MANIPULABLE_FORMATS: FrozenSet[str] = frozenset(
    {"jpg", "jpeg", "gif", "png", "webp", "avif", "bmp", "tif", "tiff", "svg"}
)

AUTO_FORMAT_TRANSPARENT = "png"
AUTO_FORMAT_OPAQUE = "jpg"

# =============================================================================
# GENERATION COORDINATION
# =============================================================================

DEFAULT_GENERATION_MAX_WAIT_ATTEMPTS = 100
DEFAULT_GENERATION_WAIT_INTERVAL_SECONDS = 1.0
DEFAULT_GENERATION_STALE_AFTER_SECONDS = 30

# =============================================================================
# TEMP FILES
# =============================================================================

# Separates the asset stem from the unique suffix of downloaded sources
TEMP_SOURCE_DELIMITER = ".delimiter."
