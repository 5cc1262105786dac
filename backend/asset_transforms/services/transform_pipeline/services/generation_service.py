# backend/asset_transforms/services/transform_pipeline/services/generation_service.py
"""
Generation Service - Make sure a rendition exists, then hand out its URL.

Workers share nothing but the index row. A worker that finds a row
in_progress polls it until the other worker finishes, fails, or goes quiet
for generation_stale_after_seconds, in which case it takes the row over.
A worker that finds no file claims the row (in_progress=True), renders,
and records the outcome.
"""

from typing import TYPE_CHECKING, Callable, Dict, Optional

from ....config import Settings
from ....enums import LogEmoji, LoggerName, LogSource
from ....exceptions import (
    AssetOperationError,
    GenerationFailed,
    IndexResolutionFailed,
)
from ....models.asset_model import Asset
from ....models.transform_index_model import TransformIndex
from ....utils.paths import transform_uri
from ....utils.time_utils import seconds_since
from ....utils.wait_strategy import SleepWaitStrategy, WaitStrategy
from ...logger import get_service_logger
from ...volume import VolumeResolver
from .index_service import TransformIndexService

if TYPE_CHECKING:
    from ..generators.transform_generator import TransformGenerator

logger = get_service_logger(LoggerName.GENERATION_COORDINATOR, LogSource.PIPELINE)

AssetResolver = Callable[[int], Optional[Asset]]


class GenerationService:
    """
    Coordinates rendition generation across concurrent workers.

    Failures are recorded on the index row (error=True) so later callers
    fail fast; the row has to be deleted to retry.
    """

    def __init__(
        self,
        index_service: TransformIndexService,
        generator: "TransformGenerator",
        asset_resolver: AssetResolver,
        volume_resolver: VolumeResolver,
        settings: Settings,
        wait_strategy: Optional[WaitStrategy] = None,
    ) -> None:
        """
        Initialize with injected dependencies.

        Args:
            index_service: Index row storage
            generator: Produces rendition files
            asset_resolver: Maps an asset ID to its Asset
            volume_resolver: Maps a volume ID to its Volume
            settings: Wait limits and staleness threshold
            wait_strategy: How to wait on another worker (default: blocking sleep)
        """
        self.index_service = index_service
        self.generator = generator
        self.asset_resolver = asset_resolver
        self.volume_resolver = volume_resolver
        self.settings = settings
        self.wait_strategy = wait_strategy or SleepWaitStrategy()

    def ensure_transform_url_by_index_model(self, index: TransformIndex) -> str:
        """
        Generate the rendition unless it exists and return its URL.

        Raises:
            GenerationFailed: If this or another worker failed to generate it
        """
        if index.error:
            raise self._generation_failed(index)

        if index.in_progress:
            index = self._wait_for_other_worker(index)

        if not index.file_exists:
            self._generate(index)

        return self.get_url_for_transform_by_index_id(index.id)

    def get_url_for_transform_by_index_id(self, index_id: int) -> str:
        index = self.index_service.get_transform_index_model_by_id(index_id)
        if index is None:
            raise IndexResolutionFailed(
                f"No transform index exists with the ID '{index_id}'",
                details={"index_id": index_id},
            )
        asset = self._get_asset(index.asset_id)
        return self.get_url_for_transform_by_asset_and_index(asset, index)

    def get_url_for_transform_by_asset_and_index(
        self, asset: Asset, index: TransformIndex
    ) -> str:
        volume = self.volume_resolver(asset.volume_id)
        return volume.build_url(f"{asset.folder_path}{transform_uri(asset, index)}")

    def _wait_for_other_worker(self, index: TransformIndex) -> TransformIndex:
        """
        Poll an in-progress row until it is released, failed, or stale.

        Returns:
            The latest state of the row
        """
        latest: Dict[str, TransformIndex] = {"index": index}
        stale_after = self.settings.generation_stale_after_seconds

        def check() -> bool:
            current = self.index_service.get_transform_index_model_by_id(
                latest["index"].id
            )
            if current is None:
                raise GenerationFailed(
                    f"Transform index {latest['index'].id} was deleted while waiting.",
                    index_id=latest["index"].id,
                )
            latest["index"] = current

            if current.error:
                raise self._generation_failed(current)

            if not current.in_progress:
                return True

            if seconds_since(current.date_updated) < stale_after:
                return False

            logger.warning(
                f"Taking over stale transform index {current.id}",
                extra_context={"date_updated": str(current.date_updated)},
                emoji=LogEmoji.WARNING,
            )
            self.index_service.store_transform_index_data(current)
            return True

        logger.debug(
            f"Waiting for transform index {index.id} in progress elsewhere",
            emoji=LogEmoji.WAITING,
        )
        outcome = self.wait_strategy.wait(
            check,
            self.settings.generation_max_wait_attempts,
            self.settings.generation_wait_interval_seconds,
        )

        if not outcome.satisfied:
            logger.warning(
                f"Gave up waiting on transform index {index.id} after {outcome.attempts} attempts",
                emoji=LogEmoji.WARNING,
            )

        return latest["index"]

    def _generate(self, index: TransformIndex) -> None:
        index.in_progress = True
        self.index_service.store_transform_index_data(index)

        try:
            asset = self._get_asset(index.asset_id)
            generated = self.generator.generate_transform(index, asset)
        except Exception as e:
            index.in_progress = False
            index.file_exists = False
            index.error = True
            self.index_service.store_transform_index_data(index)
            logger.error(
                f"Failed to generate transform index {index.id}",
                exception=e,
                error_context={"index_id": index.id, "location": index.location},
            )
            raise self._generation_failed(index) from e

        index.in_progress = False
        index.file_exists = generated
        index.error = not generated
        self.index_service.store_transform_index_data(index)

        if generated:
            logger.debug(
                f"Transform index {index.id} generated",
                extra_context={"filename": index.filename},
                emoji=LogEmoji.SUCCESS,
            )
        else:
            logger.warning(
                f"Transform index {index.id} produced no file",
                extra_context={"location": index.location},
            )
            raise self._generation_failed(index)

    def _generation_failed(self, index: TransformIndex) -> GenerationFailed:
        return GenerationFailed(
            f"Failed to generate transform with id of {index.id}.", index_id=index.id
        )

    def _get_asset(self, asset_id: int) -> Asset:
        asset = self.asset_resolver(asset_id)
        if asset is None:
            raise AssetOperationError(
                f"No asset exists with the ID '{asset_id}'", details={"asset_id": asset_id}
            )
        return asset
