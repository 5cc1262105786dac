# backend/asset_transforms/services/transform_pipeline/utils/srcset.py
"""
srcset-style size descriptors ("100w", "1.5x") used by eager loading.
"""

import math
import re
from typing import Any, Dict, Optional, Tuple

from ....exceptions import IndexResolutionFailed
from ....models.transform_model import TransformDefinition

SRCSET_SIZE_PATTERN = re.compile(r"^(?P<value>\d+(?:\.\d+)?|\.\d+)(?P<unit>[wx])$", re.IGNORECASE)


def parse_srcset_size(size: Any) -> Optional[Tuple[float, str]]:
    """
    Split a srcset size into (value, unit).

    Returns None for anything that is not a srcset size, including plain
    transform handles.
    """
    if not isinstance(size, str):
        return None
    match = SRCSET_SIZE_PATTERN.match(size.strip())
    if not match:
        return None
    return float(match.group("value")), match.group("unit").lower()


def resolve_srcset_size(
    size: str,
    value: float,
    unit: str,
    reference: Optional[TransformDefinition],
) -> Dict[str, int]:
    """
    Turn a srcset size into width/height properties relative to a reference.

    'w' sizes take the value as the literal width; 'x' sizes multiply the
    reference width. The height is only derived when the reference has one.

    Raises:
        IndexResolutionFailed: If there is no reference or it has no width
    """
    if reference is None or not reference.width:
        raise IndexResolutionFailed(
            f"Can't eager-load transform '{size}' without a prior transform "
            "that specifies the base width",
            details={"size": size},
        )

    properties: Dict[str, int] = {}
    if unit == "w":
        properties["width"] = int(value)
    else:
        properties["width"] = math.ceil(reference.width * value)

    if reference.height:
        if unit == "w":
            properties["height"] = math.ceil(
                reference.height * properties["width"] / reference.width
            )
        else:
            properties["height"] = math.ceil(reference.height * value)

    return properties
