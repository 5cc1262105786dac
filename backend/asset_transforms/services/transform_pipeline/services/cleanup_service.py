# backend/asset_transforms/services/transform_pipeline/services/cleanup_service.py
"""
Transform Cleanup Service - Remove renditions and index rows of assets.

Called when an asset is deleted or replaced, and when a named transform is
deleted. File deletion is best-effort: failures are logged and never stop
the remaining cleanup.
"""

from pathlib import Path
from typing import List, Optional, Sequence

from ....config import Settings
from ....database.transform_index_operations import SyncTransformIndexOperations
from ....enums import LogEmoji, LoggerName, LogSource, TransformHook
from ....exceptions import VolumeError
from ....models.asset_model import Asset
from ....models.transform_index_model import TransformIndex
from ....utils.paths import transform_volume_path
from ....utils.temp_file_manager import remove_file_quietly
from ...logger import get_service_logger
from ...transform_events import TransformEvents, TransformImageEvent
from ...volume import Volume, VolumeResolver
from .generation_service import AssetResolver

logger = get_service_logger(LoggerName.TRANSFORM_CLEANUP, LogSource.STORAGE)


class TransformCleanupService:
    """Deletes what the transform system keeps for an asset or a transform folder."""

    def __init__(
        self,
        index_ops: SyncTransformIndexOperations,
        volume_resolver: VolumeResolver,
        settings: Settings,
        events: Optional[TransformEvents] = None,
        asset_resolver: Optional[AssetResolver] = None,
    ) -> None:
        self.index_ops = index_ops
        self.volume_resolver = volume_resolver
        self.settings = settings
        self.events = events or TransformEvents()
        self.asset_resolver = asset_resolver

    def delete_all_transform_data(self, asset: Asset) -> None:
        """Thumbnails, renditions, index rows and the cached source of an asset."""
        self.delete_resized_asset_version(asset)
        self.delete_created_transforms_for_asset(asset)
        self.delete_transform_index_data_by_asset_id(asset.id)

        cached_source = self.settings.asset_sources_path / f"{asset.id}.{asset.extension}"
        if cached_source.exists():
            remove_file_quietly(cached_source)

        logger.info(
            f"Deleted all transform data for asset {asset.id}", emoji=LogEmoji.CLEANUP
        )

    def delete_resized_asset_version(self, asset: Asset) -> int:
        """
        Delete control-panel thumbnails and image editor copies of an asset.

        Both live under "<dir>/<size>/<asset_id>.<ext>".

        Returns:
            Number of files removed
        """
        directories = [
            self.settings.asset_thumbs_path,
            self.settings.image_editor_sources_path / str(asset.id),
        ]

        removed = 0
        for directory in directories:
            if not directory.exists():
                continue
            for path in _resized_versions(directory, asset.id):
                if remove_file_quietly(path):
                    removed += 1
                else:
                    logger.warning(f"Unable to delete the asset thumbnail \"{path}\"")
        return removed

    def delete_created_transforms_for_asset(self, asset: Asset) -> None:
        """Delete every rendition file of the asset, with observers notified per file."""
        volume = self.volume_resolver(asset.volume_id)

        for index in self.index_ops.get_transform_indexes_by_asset_id(asset.id):
            self._delete_rendition(volume, asset, index)

    def delete_transform_data_by_location(self, location: str) -> int:
        """
        Delete the rendition files and index rows stored under one transform
        folder, e.g. "_thumb" once the named transform is gone.

        Returns:
            Number of index rows deleted
        """
        for index in self.index_ops.get_transform_indexes_by_location(location):
            asset = self.asset_resolver(index.asset_id) if self.asset_resolver else None
            if asset is None:
                logger.warning(
                    f"Unable to resolve asset {index.asset_id} of rendition {index.id}",
                    extra_context={"location": location},
                )
                continue
            self._delete_rendition(self.volume_resolver(asset.volume_id), asset, index)

        deleted = self.index_ops.delete_transform_indexes_by_location(location)
        logger.info(
            f"Deleted {deleted} renditions under {location}", emoji=LogEmoji.CLEANUP
        )
        return deleted

    def delete_transform_index_data_by_asset_id(self, asset_id: int) -> int:
        return self.index_ops.delete_transform_indexes_by_asset_ids([asset_id])

    def delete_transform_index_data_by_asset_ids(self, asset_ids: Sequence[int]) -> int:
        return self.index_ops.delete_transform_indexes_by_asset_ids(asset_ids)

    def delete_transform_index(self, index_id: int) -> int:
        return self.index_ops.delete_transform_index(index_id)

    def _delete_rendition(self, volume: Volume, asset: Asset, index: TransformIndex) -> None:
        event = TransformImageEvent(asset=asset, index=index)
        self.events.fire(TransformHook.BEFORE_DELETE_TRANSFORMS, event)

        path = transform_volume_path(asset, index)
        try:
            volume.delete_file(path)
        except VolumeError as e:
            logger.warning(
                f"Unable to delete rendition {path}",
                extra_context={"asset_id": asset.id, "error": str(e)},
            )

        self.events.fire(TransformHook.AFTER_DELETE_TRANSFORMS, event)


def _resized_versions(directory: Path, asset_id: int) -> List[Path]:
    return [
        path
        for path in directory.glob(f"[0-9]*/{asset_id}.[a-z]*")
        if path.is_file()
    ]
