# backend/asset_transforms/services/transform_pipeline/services/source_service.py
"""
Source Service - Local copies of asset sources for rendering.

Assets on local volumes are rendered straight from the volume. Remote
assets are downloaded once and kept under asset_sources_path as
"<asset_id>.<ext>", downscaled to max_cached_cloud_image_size. With that
setting at 0 the copies are queued and removed at the end of the request.
"""

import shutil
from pathlib import Path
from typing import Dict, List, Optional, Union

from ....config import Settings
from ....enums import LogEmoji, LoggerName, LogSource
from ....exceptions import SourceUnavailable, VolumeError
from ....models.asset_model import Asset
from ....utils.temp_file_manager import TempFileManager, remove_file_quietly
from ...image_backend import ImageBackend
from ...logger import get_service_logger
from ...volume import VolumeResolver

logger = get_service_logger(LoggerName.SOURCE_SERVICE, LogSource.STORAGE)

CACHED_SOURCE_QUALITY = 100


class SourceService:
    """
    Resolves the local file a rendition is rendered from.

    Transform sources are remembered per asset for the current request, so
    format detection and rendering share one download.
    """

    def __init__(
        self,
        image_backend: ImageBackend,
        volume_resolver: VolumeResolver,
        temp_files: TempFileManager,
        settings: Settings,
    ) -> None:
        self.image_backend = image_backend
        self.volume_resolver = volume_resolver
        self.temp_files = temp_files
        self.settings = settings
        self._transform_sources: Dict[int, Path] = {}
        self._sources_to_delete: List[Path] = []

    # ------------------------------------------------------------------
    # Transform sources
    # ------------------------------------------------------------------

    def get_transform_source(self, asset: Asset) -> Path:
        """The file to render from, fetching a local copy if none is known yet."""
        source = self._transform_sources.get(asset.id)
        if source is None:
            source = self.get_local_image_source(asset)
        return source

    def set_transform_source(self, asset: Asset, source: Union[str, Path]) -> None:
        self._transform_sources[asset.id] = Path(source)

    def get_image_transform_source_path(self, asset: Asset) -> Path:
        """Where the asset's source is read from: the volume file or the cached copy."""
        volume = self.volume_resolver(asset.volume_id)
        if volume.is_local:
            local_path = volume.local_path(asset.path)
            if local_path is None:
                raise SourceUnavailable(
                    f"The file \"{asset.filename}\" has no local path",
                    details={"asset_id": asset.id},
                )
            return local_path
        return self.settings.asset_sources_path / f"{asset.id}.{asset.extension}"

    def get_local_image_source(self, asset: Asset) -> Path:
        """
        Get a local file for the asset, downloading remote sources if needed.

        Raises:
            SourceUnavailable: If the download fails, is empty, or the file
                is missing afterwards
        """
        volume = self.volume_resolver(asset.volume_id)
        source_path = self.get_image_transform_source_path(asset)

        if not volume.is_local and not _is_non_empty_file(source_path):
            if source_path.is_file():
                remove_file_quietly(source_path)

            self.temp_files.cleanup_stale_downloads(asset.filename)
            temp_path = self.temp_files.create_download_path(asset.filename)

            try:
                volume.download_file(asset.path, temp_path)
            except VolumeError as e:
                remove_file_quietly(temp_path)
                raise SourceUnavailable(
                    f"Unable to download the source file for image \"{asset.filename}\"",
                    details={"asset_id": asset.id},
                ) from e

            if not _is_non_empty_file(temp_path):
                remove_file_quietly(temp_path)
                raise SourceUnavailable(
                    f"Tried to download the source file for image \"{asset.filename}\", "
                    "but it was 0 bytes long.",
                    details={"asset_id": asset.id},
                )

            logger.debug(
                f"Downloaded source of asset {asset.id}",
                extra_context={"temp_path": str(temp_path)},
                emoji=LogEmoji.DOWNLOAD,
            )

            self.store_local_source(temp_path, source_path)
            self.queue_source_for_deleting_if_necessary(source_path)
            remove_file_quietly(temp_path)

        if not source_path.is_file():
            raise SourceUnavailable(
                f"The file \"{asset.filename}\" does not exist.",
                details={"asset_id": asset.id, "path": str(source_path)},
            )

        self.set_transform_source(asset, source_path)
        return source_path

    def store_local_source(
        self, source: Union[str, Path], destination: Optional[Union[str, Path]] = None
    ) -> None:
        """
        Keep a local copy of a downloaded source.

        Manipulable images are downscaled to fit max_cached_cloud_image_size;
        everything else is copied as-is. Without a destination the source is
        processed in place.
        """
        source = Path(source)
        destination = Path(destination) if destination else source
        destination.parent.mkdir(parents=True, exist_ok=True)

        max_size = self.settings.max_cached_cloud_image_size
        extension = source.suffix.lstrip(".").lower()

        if max_size > 0 and self.image_backend.can_manipulate(extension):
            image = self.image_backend.load_image(source)
            image.set_quality(CACHED_SOURCE_QUALITY)
            image.scale_to_fit(max_size, max_size, False).save_as(destination)
        elif source != destination:
            shutil.copyfile(source, destination)

    # ------------------------------------------------------------------
    # Deferred deletion
    # ------------------------------------------------------------------

    def queue_source_for_deleting_if_necessary(self, source: Union[str, Path]) -> None:
        """Queue a source for deletion unless cached copies are kept."""
        if self.settings.max_cached_cloud_image_size > 0:
            return
        self._sources_to_delete.append(Path(source))

    def delete_queued_source_files(self) -> int:
        """
        Delete every queued source; run once the request is done.

        Returns:
            Number of files removed
        """
        queued = list(dict.fromkeys(self._sources_to_delete))
        self._sources_to_delete.clear()

        removed = 0
        for source in queued:
            if source.exists() and remove_file_quietly(source):
                removed += 1
            for asset_id, transform_source in list(self._transform_sources.items()):
                if transform_source == source:
                    del self._transform_sources[asset_id]

        if removed:
            logger.debug(f"Deleted {removed} queued source files", emoji=LogEmoji.CLEANUP)
        return removed

    @property
    def queued_sources(self) -> List[Path]:
        return list(self._sources_to_delete)


def _is_non_empty_file(path: Path) -> bool:
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False
