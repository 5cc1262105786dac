# backend/asset_transforms/utils/paths.py
"""
Rendition path helpers.

All paths are volume-relative and use '/' regardless of the host OS.
"""

from ..models.asset_model import Asset
from ..models.transform_index_model import TransformIndex


def transform_subfolder(asset: Asset, index: TransformIndex) -> str:
    """
    Folder of a rendition relative to the asset's folder.

    Renditions whose filename differs from the asset's (a changed format)
    get an asset-ID subfolder so they cannot collide with renditions of a
    same-stem asset in the same folder.
    """
    path = index.location
    if index.filename and index.filename != asset.filename:
        path = f"{path}/{asset.id}"
    return path


def transform_filename(asset: Asset, index: TransformIndex) -> str:
    return index.filename or asset.filename


def transform_subpath(asset: Asset, index: TransformIndex) -> str:
    return f"{transform_subfolder(asset, index)}/{transform_filename(asset, index)}"


def transform_uri(asset: Asset, index: TransformIndex) -> str:
    return transform_subpath(asset, index).replace("\\", "/")


def transform_volume_path(asset: Asset, index: TransformIndex) -> str:
    """Path of a rendition relative to the volume root."""
    return f"{asset.folder_path}{transform_subpath(asset, index)}"
