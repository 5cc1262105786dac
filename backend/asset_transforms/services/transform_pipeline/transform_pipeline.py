# backend/asset_transforms/services/transform_pipeline/transform_pipeline.py
"""
Main Transform Pipeline Class

Provides a unified interface to the transform system: resolving index rows,
generating renditions, eager loading, and cleanup, with every collaborator
injected. create_transform_pipeline() wires the default stack (psycopg
operations, Pillow backend, blocking wait strategy).

The pipeline keeps request-scoped state (eager-loaded rows, downloaded
sources). Call end_request() when a request is done.
"""

from typing import List, Optional, Sequence

from ...config import Settings
from ...config import settings as default_settings
from ...database import sync_db
from ...database.core import SyncDatabase
from ...database.exceptions import TransformIndexOperationError
from ...database.transform_definition_operations import SyncTransformDefinitionOperations
from ...database.transform_index_operations import SyncTransformIndexOperations
from ...enums import LogEmoji, LoggerName, LogSource, TransformHook
from ...exceptions import TransformError
from ...models.asset_model import Asset
from ...models.transform_index_model import TransformIndex
from ...models.transform_model import TransformInput
from ...utils.fingerprint import named_folder_name
from ...utils.temp_file_manager import TempFileManager
from ...utils.wait_strategy import WaitStrategy
from ..config_store import ConfigStore, InMemoryConfigStore
from ..image_backend import ImageBackend, PillowImageBackend
from ..logger import get_service_logger
from ..transform_definition_service import TransformDefinitionService
from ..transform_events import TransformDefinitionEvent, TransformEvents
from ..volume import VolumeResolver
from .generators import TransformGenerator
from .services import (
    AssetResolver,
    GenerationService,
    SourceService,
    TransformCleanupService,
    TransformIndexService,
)

logger = get_service_logger(LoggerName.TRANSFORM_PIPELINE, LogSource.PIPELINE)


class TransformPipeline:
    """
    Main transform pipeline providing unified access to all transform
    functionality with proper dependency injection.
    """

    def __init__(
        self,
        definition_service: TransformDefinitionService,
        index_service: TransformIndexService,
        source_service: SourceService,
        generator: TransformGenerator,
        generation_service: GenerationService,
        cleanup_service: TransformCleanupService,
        events: TransformEvents,
    ):
        self.definition_service = definition_service
        self.index_service = index_service
        self.source_service = source_service
        self.generator = generator
        self.generation_service = generation_service
        self.cleanup_service = cleanup_service
        self.events = events

        self.events.on(
            TransformHook.AFTER_DELETE_TRANSFORM, self._delete_named_transform_data
        )

    def get_transform_index(self, asset: Asset, transform: TransformInput) -> TransformIndex:
        return self.index_service.get_transform_index(asset, transform)

    def get_transform_url(self, asset: Asset, transform: TransformInput) -> str:
        """
        URL of an asset's rendition, generating it first if needed.

        Raises:
            DefinitionNotFound: If a handle does not name a transform
            IndexResolutionFailed: If the transform input is invalid
            GenerationFailed: If the rendition could not be generated
        """
        index = self.index_service.get_transform_index(asset, transform)
        return self.generation_service.ensure_transform_url_by_index_model(index)

    def eager_load_transforms(
        self, assets: Sequence[Asset], transforms: Sequence[TransformInput]
    ) -> None:
        self.index_service.eager_load_transforms(assets, transforms)

    def generate_pending_transforms(self) -> List[int]:
        """
        Generate every rendition that was indexed but never generated.

        Failures are recorded on their rows and do not stop the run.

        Returns:
            IDs of the indexes that were generated
        """
        generated: List[int] = []
        for index_id in self.index_service.get_pending_transform_index_ids():
            index = self.index_service.get_transform_index_model_by_id(index_id)
            if index is None or index.in_progress or index.file_exists or index.error:
                continue
            try:
                self.generation_service.ensure_transform_url_by_index_model(index)
                generated.append(index_id)
            except TransformError as e:
                logger.warning(
                    f"Pending transform index {index_id} failed",
                    extra_context={"error": str(e)},
                )

        if generated:
            logger.info(
                f"Generated {len(generated)} pending transforms", emoji=LogEmoji.TRANSFORM
            )
        return generated

    def delete_all_transform_data(self, asset: Asset) -> None:
        self.cleanup_service.delete_all_transform_data(asset)

    def end_request(self) -> None:
        """Drop request-scoped state and delete queued and expired temp files."""
        self.source_service.delete_queued_source_files()
        self.source_service.temp_files.cleanup_old_files()
        self.index_service.clear_eager_loaded()

    def _delete_named_transform_data(self, event: TransformDefinitionEvent) -> None:
        """Drop the renditions of a named transform once its definition is deleted."""
        if event.transform is None or not event.transform.handle:
            return

        location = named_folder_name(event.transform.handle)
        try:
            self.cleanup_service.delete_transform_data_by_location(location)
        except TransformIndexOperationError as e:
            logger.error(
                f"Failed to delete renditions of transform '{event.transform.handle}'",
                exception=e,
                error_context={"location": location},
            )


def create_transform_pipeline(
    asset_resolver: AssetResolver,
    volume_resolver: VolumeResolver,
    database: Optional[SyncDatabase] = None,
    config_store: Optional[ConfigStore] = None,
    image_backend: Optional[ImageBackend] = None,
    wait_strategy: Optional[WaitStrategy] = None,
    events: Optional[TransformEvents] = None,
    settings: Optional[Settings] = None,
) -> TransformPipeline:
    """
    Factory function to create a TransformPipeline with the default stack.

    Args:
        asset_resolver: Maps an asset ID to its Asset
        volume_resolver: Maps a volume ID to its Volume
        database: Sync database (defaults to the shared sync_db)
        config_store: Store named transforms are published to
        image_backend: Raster backend (defaults to Pillow)
        wait_strategy: How to wait on other workers (defaults to blocking sleep)
        events: Observer registry shared by all components
        settings: Settings (defaults to the module settings)

    Returns:
        Configured TransformPipeline instance
    """
    database = database or sync_db
    settings = settings or default_settings
    events = events or TransformEvents()
    image_backend = image_backend or PillowImageBackend()
    config_store = config_store or InMemoryConfigStore()
    settings.ensure_directories()

    definition_ops = SyncTransformDefinitionOperations(database)
    index_ops = SyncTransformIndexOperations(database)
    temp_files = TempFileManager(settings.temp_path)

    definition_service = TransformDefinitionService(
        definition_ops, config_store, index_ops=index_ops, events=events
    )
    index_service = TransformIndexService(index_ops, definition_service, volume_resolver)
    source_service = SourceService(image_backend, volume_resolver, temp_files, settings)
    generator = TransformGenerator(
        index_service,
        definition_service,
        source_service,
        image_backend,
        volume_resolver,
        temp_files,
        settings,
        events,
    )
    generation_service = GenerationService(
        index_service,
        generator,
        asset_resolver,
        volume_resolver,
        settings,
        wait_strategy,
    )
    cleanup_service = TransformCleanupService(
        index_ops, volume_resolver, settings, events, asset_resolver
    )

    logger.debug("Transform pipeline created", emoji=LogEmoji.SYSTEM)

    return TransformPipeline(
        definition_service=definition_service,
        index_service=index_service,
        source_service=source_service,
        generator=generator,
        generation_service=generation_service,
        cleanup_service=cleanup_service,
        events=events,
    )
