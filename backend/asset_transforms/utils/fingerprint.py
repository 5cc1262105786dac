# backend/asset_transforms/utils/fingerprint.py
"""
Transform folder names and fingerprints.

A transform's folder name doubles as the index row's location. Named
transforms live in "_<handle>"; ad-hoc transforms encode every property
that affects the output, so two definitions share a folder only when they
render identically.
"""

import re
from typing import Optional

from ..constants import DEFAULT_INTERLACE, DEFAULT_TRANSFORM_POSITION
from ..models.transform_model import TransformDefinition

AUTO_DIMENSION = "AUTO"

UNNAMED_LOCATION_PATTERN = re.compile(
    r"_(?P<width>\d+|AUTO)x(?P<height>\d+|AUTO)"
    r"_(?P<mode>[a-z]+)"
    r"(?:_(?P<position>[a-z\-]+))?"
    r"(?:_(?P<quality>\d+))?"
    r"(?:_(?P<interlace>[a-z]+))?",
    re.IGNORECASE,
)


def named_folder_name(handle: str) -> str:
    return f"_{handle}"


def unnamed_folder_name(transform: TransformDefinition) -> str:
    quality = f"_{transform.quality}" if transform.quality else ""
    return (
        f"_{transform.width or AUTO_DIMENSION}x{transform.height or AUTO_DIMENSION}"
        f"_{transform.mode}"
        f"_{transform.position}"
        f"{quality}"
        f"_{transform.interlace}"
    )


def folder_name(transform: TransformDefinition) -> str:
    """Location of a transform's renditions, relative to the asset folder."""
    if transform.is_named:
        return named_folder_name(transform.handle)
    return unnamed_folder_name(transform)


def fingerprint(transform: TransformDefinition) -> str:
    """Folder name plus ':<format>' when the transform fixes its output format."""
    location = folder_name(transform)
    if transform.format:
        return f"{location}:{transform.format}"
    return location


def index_fingerprint(asset_id: int, transform_fingerprint: str) -> str:
    """Key of an eager-loaded index: '<asset_id>:<fingerprint>'."""
    return f"{asset_id}:{transform_fingerprint}"


def parse_unnamed_location(location: str) -> Optional[TransformDefinition]:
    """
    Rebuild an ad-hoc transform from its folder name.

    Returns None for named locations. The whole location must match, so a
    handle that merely contains a size-like fragment stays a named location.
    """
    match = UNNAMED_LOCATION_PATTERN.fullmatch(location)
    if not match:
        return None

    width = match.group("width")
    height = match.group("height")
    quality = match.group("quality")

    return TransformDefinition(
        width=None if width.upper() == AUTO_DIMENSION else int(width),
        height=None if height.upper() == AUTO_DIMENSION else int(height),
        mode=match.group("mode"),
        position=match.group("position") or DEFAULT_TRANSFORM_POSITION,
        quality=int(quality) if quality else None,
        interlace=match.group("interlace") or DEFAULT_INTERLACE,
    )
