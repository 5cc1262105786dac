# backend/asset_transforms/services/transform_pipeline/generators/transform_generator.py
"""
Transform Generator Component

Produces the rendition file of a transform index:
- Resolves the transform from the index location
- Detects the output format for auto-format transforms
- Reuses an identical rendition of the same asset by copying it
- Otherwise renders the source with the image backend and writes the
  result to the asset's volume
"""

from pathlib import Path
from typing import Optional

from ....config import Settings
from ....constants import (
    AUTO_FORMAT_OPAQUE,
    AUTO_FORMAT_TRANSPARENT,
    CROP_POSITION_PATTERN,
    DEFAULT_TRANSFORM_POSITION,
    WEB_SAFE_FORMATS,
)
from ....enums import (
    AssetKind,
    LogEmoji,
    LoggerName,
    LogSource,
    TransformFormat,
    TransformHook,
    TransformMode,
)
from ....exceptions import (
    AssetOperationError,
    GenerationFailed,
    SourceUnavailable,
    UnsupportedFormat,
    VolumeError,
)
from ....models.asset_model import Asset
from ....models.transform_index_model import TransformIndex
from ....models.transform_model import TransformDefinition
from ....utils.fingerprint import (
    named_folder_name,
    parse_unnamed_location,
    unnamed_folder_name,
)
from ....utils.paths import transform_volume_path
from ....utils.temp_file_manager import TempFileManager, remove_file_quietly
from ....utils.time_utils import ensure_utc
from ...image_backend import CropAnchor, ImageBackend, ImageHandle
from ...logger import get_service_logger
from ...transform_definition_service import TransformDefinitionService
from ...transform_events import GenerateTransformEvent, TransformEvents
from ...volume import Volume, VolumeResolver
from ..services.index_service import TransformIndexService
from ..services.source_service import SourceService

logger = get_service_logger(LoggerName.TRANSFORM_GENERATOR, LogSource.PIPELINE)


def resolve_crop_anchor(asset: Asset, transform: TransformDefinition) -> CropAnchor:
    """
    Anchor for crop-mode transforms.

    The asset's focal point always wins; otherwise the transform position,
    falling back to center-center when it is not a vertical-horizontal pair.
    """
    if asset.has_focal_point:
        return asset.focal_point_anchor
    if transform.position and CROP_POSITION_PATTERN.match(transform.position):
        return transform.position
    return DEFAULT_TRANSFORM_POSITION


class TransformGenerator:
    """
    Component responsible for generating rendition files.

    Does not touch index state; the generation coordinator records the
    outcome on the index row.
    """

    def __init__(
        self,
        index_service: TransformIndexService,
        definition_service: TransformDefinitionService,
        source_service: SourceService,
        image_backend: ImageBackend,
        volume_resolver: VolumeResolver,
        temp_files: TempFileManager,
        settings: Settings,
        events: Optional[TransformEvents] = None,
    ):
        self.index_service = index_service
        self.definition_service = definition_service
        self.source_service = source_service
        self.image_backend = image_backend
        self.volume_resolver = volume_resolver
        self.temp_files = temp_files
        self.settings = settings
        self.events = events or TransformEvents()

    def resolve_index_transform(self, index: TransformIndex) -> TransformDefinition:
        """
        Rebuild the transform an index was created for.

        Ad-hoc locations carry every property; named locations are looked up
        by handle.

        Raises:
            DefinitionNotFound: If the named transform no longer exists
        """
        transform = parse_unnamed_location(index.location)
        if transform is None:
            transform = self.definition_service.normalize(index.location[1:])
        if transform is None:
            raise GenerationFailed(
                "There was a problem finding the transform.", index_id=index.id
            )
        return transform

    def generate_transform(self, index: TransformIndex, asset: Asset) -> bool:
        """
        Make sure the rendition file of an index exists.

        Returns:
            Whether the rendition now exists on the asset's volume
        """
        transform = self.resolve_index_transform(index)
        index.transform = transform

        volume = self.volume_resolver(asset.volume_id)
        index.detected_format = index.format or self.detect_auto_transform_format(asset)
        index.filename = f"{asset.stem}.{index.detected_format}"

        donor: Optional[TransformIndex] = None

        # Focal points make renditions asset-specific, so they are never shared
        if asset.extension == index.detected_format and not asset.has_focal_point:
            locations = [unnamed_folder_name(transform)]
            if transform.is_named:
                locations.append(named_folder_name(transform.handle))
            donor = self.index_service.find_reusable_transform_index(
                asset, locations, index.detected_format, index
            )

        if donor is not None:
            source_path = transform_volume_path(asset, donor)
            destination = transform_volume_path(asset, index)
            try:
                if volume.file_exists(destination):
                    return True
                volume.copy_file(source_path, destination)
            except VolumeError as e:
                raise GenerationFailed(
                    "There was a problem re-using an existing transform.",
                    index_id=index.id,
                    details={"source": source_path, "destination": destination},
                ) from e

            logger.debug(
                f"Reused rendition {donor.id} for index {index.id}",
                extra_context={"source": source_path, "destination": destination},
                emoji=LogEmoji.COPY,
            )
        else:
            self.create_transform_for_asset(asset, index)

        return volume.file_exists(transform_volume_path(asset, index))

    def detect_auto_transform_format(self, asset: Asset) -> str:
        """
        Pick the output format of an auto-format transform.

        Web-safe sources keep their format. Other images become png when
        they have transparency and jpg otherwise.

        Raises:
            AssetOperationError: If the asset is not an image
            SourceUnavailable: If the source cannot be downloaded
        """
        extension = asset.extension
        if extension in WEB_SAFE_FORMATS:
            return extension

        if asset.kind != AssetKind.IMAGE:
            raise AssetOperationError(
                "Tried to detect the appropriate image format for a non-image!",
                details={"asset_id": asset.id, "kind": asset.kind},
            )

        if not self.image_backend.supports_alpha_probe:
            return AUTO_FORMAT_OPAQUE

        volume = self.volume_resolver(asset.volume_id)
        temp_path = self.temp_files.create_download_path(asset.filename)

        try:
            volume.download_file(asset.path, temp_path)
            image = self.image_backend.load_image(temp_path)
        except VolumeError as e:
            remove_file_quietly(temp_path)
            raise SourceUnavailable(
                f"Unable to download \"{asset.filename}\" to detect its format",
                details={"asset_id": asset.id},
            ) from e
        except UnsupportedFormat:
            remove_file_quietly(temp_path)
            raise

        detected_format = (
            AUTO_FORMAT_TRANSPARENT if image.is_transparent() else AUTO_FORMAT_OPAQUE
        )

        if not volume.is_local:
            # Keep the download as the transform source for this request
            self.source_service.set_transform_source(asset, temp_path)
            self.source_service.queue_source_for_deleting_if_necessary(temp_path)
        else:
            remove_file_quietly(temp_path)

        return detected_format

    def create_transform_for_asset(self, asset: Asset, index: TransformIndex) -> None:
        """
        Render the rendition of an index and write it to the asset's volume.

        Raises:
            UnsupportedFormat: If the output format lacks codec support
            SourceUnavailable: If the source file cannot be obtained
        """
        if not self.image_backend.can_manipulate(asset.extension):
            return

        transform = index.transform or self.resolve_index_transform(index)
        index.transform = transform

        if index.detected_format is None:
            index.detected_format = index.format or self.detect_auto_transform_format(
                asset
            )

        self._ensure_codec_support(index.detected_format)

        volume = self.volume_resolver(asset.volume_id)
        transform_path = transform_volume_path(asset, index)

        if volume.file_exists(transform_path):
            if not self._is_outdated(volume, transform_path, transform):
                return
            self._delete_outdated_rendition(volume, transform_path)

        image_source = self.source_service.get_transform_source(asset)
        quality = transform.quality or self.settings.default_image_quality

        if asset.extension == "svg" and index.detected_format != "svg":
            svg_size = max(transform.width or 0, transform.height or 0) or None
            image = self.image_backend.load_image(
                image_source, rasterize=True, svg_size=svg_size
            )
        else:
            image = self.image_backend.load_image(image_source)

        image.set_quality(quality)

        # Image observers may need the index being rendered
        self.index_service.set_active_transform_index(index)

        self._apply_transform(image, asset, transform)
        image.set_interlace(transform.interlace)

        event = self.events.fire(
            TransformHook.GENERATE_TRANSFORM,
            GenerateTransformEvent(index=index, asset=asset, image=image),
        )

        if event.temp_path is not None:
            temp_path = Path(event.temp_path)
        else:
            temp_path = self.temp_files.create_render_path(index.detected_format)
            image.save_as(temp_path)

        try:
            with open(temp_path, "rb") as stream:
                volume.write_file_from_stream(transform_path, stream)
            logger.debug(
                f"Generated {transform_path}",
                extra_context={"index_id": index.id, "quality": quality},
                emoji=LogEmoji.TRANSFORM,
            )
        except VolumeError as e:
            logger.error(
                f"Failed to write rendition {transform_path}",
                exception=e,
                error_context={"index_id": index.id, "asset_id": asset.id},
            )
        finally:
            remove_file_quietly(temp_path)

        if not volume.is_local:
            self.source_service.queue_source_for_deleting_if_necessary(image_source)

    def _apply_transform(
        self, image: ImageHandle, asset: Asset, transform: TransformDefinition
    ) -> None:
        if transform.mode == TransformMode.FIT:
            image.scale_to_fit(transform.width, transform.height)
        elif transform.mode == TransformMode.STRETCH:
            image.resize(transform.width, transform.height)
        else:
            image.scale_and_crop(
                transform.width,
                transform.height,
                self.settings.upscale_images,
                resolve_crop_anchor(asset, transform),
            )

    def _ensure_codec_support(self, output_format: str) -> None:
        if output_format == TransformFormat.WEBP and not self.image_backend.supports_webp:
            raise UnsupportedFormat("The `webp` format is not supported on this server!")
        if output_format == TransformFormat.AVIF and not self.image_backend.supports_avif:
            raise UnsupportedFormat("The `avif` format is not supported on this server!")

    @staticmethod
    def _is_outdated(
        volume: Volume, transform_path: str, transform: TransformDefinition
    ) -> bool:
        """An existing rendition is outdated when the transform changed after it was written."""
        if transform.dimension_change_time is None:
            return False
        written_at = ensure_utc(volume.get_date_modified(transform_path))
        return ensure_utc(transform.dimension_change_time) > written_at

    @staticmethod
    def _delete_outdated_rendition(volume: Volume, transform_path: str) -> None:
        try:
            volume.delete_file(transform_path)
        except VolumeError as e:
            # It may have been removed while the timestamps were compared
            logger.debug(
                f"Could not delete outdated rendition {transform_path}: {e}",
                emoji=LogEmoji.CLEANUP,
            )
