# backend/asset_transforms/services/transform_pipeline/services/index_service.py
"""
Transform Index Service - Resolve-or-create for rendition index rows.

An index row records the generation state of one rendition: (asset,
transform folder, format). Rows are looked up by fingerprint, validated
against the asset's modification time and the named transform's
dimension_change_time, and recreated when stale.

Eager loading resolves many asset x transform pairs with one query and keeps
the valid hits in a request-scoped map until clear_eager_loaded().
"""

from typing import Dict, List, Optional, Sequence, Tuple

from ....database.transform_index_operations import SyncTransformIndexOperations
from ....enums import LogEmoji, LoggerName, LogSource
from ....exceptions import IndexResolutionFailed, VolumeError
from ....models.asset_model import Asset
from ....models.transform_index_model import TransformIndex
from ....models.transform_model import TransformDefinition, TransformInput
from ....utils.fingerprint import fingerprint, folder_name, index_fingerprint
from ....utils.paths import transform_volume_path
from ....utils.time_utils import ensure_utc, utc_now
from ...logger import get_service_logger
from ...transform_definition_service import TransformDefinitionService
from ...volume import VolumeResolver
from ..utils.srcset import parse_srcset_size, resolve_srcset_size

logger = get_service_logger(LoggerName.TRANSFORM_INDEX, LogSource.PIPELINE)


class TransformIndexService:
    """
    Owner of the asset_transform_index rows.

    Holds the eager-load map and the active index for the current request;
    create one instance per request scope, or call clear_eager_loaded()
    between requests.
    """

    def __init__(
        self,
        index_ops: SyncTransformIndexOperations,
        definition_service: TransformDefinitionService,
        volume_resolver: VolumeResolver,
    ) -> None:
        """
        Initialize with injected dependencies.

        Args:
            index_ops: Database operations for asset_transform_index
            definition_service: Normalizes transform inputs
            volume_resolver: Maps a volume ID to its Volume
        """
        self.index_ops = index_ops
        self.definition_service = definition_service
        self.volume_resolver = volume_resolver
        self._eager_loaded: Dict[str, TransformIndex] = {}
        self._active_index: Optional[TransformIndex] = None

    # ------------------------------------------------------------------
    # Resolve-or-create
    # ------------------------------------------------------------------

    def get_transform_index(self, asset: Asset, transform: TransformInput) -> TransformIndex:
        """
        Get the index row for an asset and transform, creating it if needed.

        Raises:
            IndexResolutionFailed: If the transform input resolves to nothing
            DefinitionNotFound: If a handle does not name a transform
        """
        definition = self.definition_service.normalize(transform)
        if definition is None:
            raise IndexResolutionFailed("There was a problem finding the transform.")

        location = folder_name(definition)
        key = index_fingerprint(asset.id, fingerprint(definition))

        eager_hit = self._eager_loaded.get(key)
        if eager_hit is not None:
            return self._with_transform(eager_hit.model_copy(), definition)

        existing = self.index_ops.find_transform_index(
            asset.volume_id, asset.id, location, definition.format
        )

        if existing is not None:
            if self.validate_transform_index_result(existing, definition, asset):
                return self._with_transform(existing, definition)

            logger.debug(
                f"Replacing stale transform index {existing.id}",
                extra_context={"asset_id": asset.id, "location": location},
                emoji=LogEmoji.CLEANUP,
            )
            self.index_ops.delete_transform_index(existing.id)
            self._delete_rendition_file(asset, existing)

        index = TransformIndex(
            asset_id=asset.id,
            volume_id=asset.volume_id,
            format=definition.format,
            location=location,
            file_exists=False,
            in_progress=False,
            date_indexed=utc_now(),
        )
        return self._with_transform(self.store_transform_index_data(index), definition)

    def validate_transform_index_result(
        self, index: TransformIndex, transform: TransformDefinition, asset: Asset
    ) -> bool:
        """
        Whether an index row is still current for the asset and transform.

        A row is stale when it was indexed before the asset last changed, or
        before a named transform's output-affecting properties last changed.
        """
        if index.date_indexed is None:
            return False

        date_indexed = ensure_utc(index.date_indexed)
        if date_indexed < ensure_utc(asset.date_modified):
            return False

        if not transform.is_named:
            return True

        if transform.dimension_change_time is None:
            return True

        return date_indexed >= ensure_utc(transform.dimension_change_time)

    # ------------------------------------------------------------------
    # Eager loading
    # ------------------------------------------------------------------

    def eager_load_transforms(
        self, assets: Sequence[Asset], transforms: Sequence[TransformInput]
    ) -> None:
        """
        Resolve index rows for every asset x transform pair in one query.

        Transforms may include srcset sizes ("2x", "100w"), resolved against
        the nearest preceding full transform. Valid rows are kept for
        get_transform_index(); stale rows are deleted in one statement.
        Missing rows are left for get_transform_index() to create.

        Raises:
            IndexResolutionFailed: If a srcset size has no usable reference
        """
        if not assets or not transforms:
            return

        assets_by_id = {asset.id: asset for asset in assets}
        transforms_by_fingerprint: Dict[str, TransformDefinition] = {}
        pairs: List[Tuple[str, Optional[str]]] = []
        reference: Optional[TransformDefinition] = None

        for transform in transforms:
            srcset_size = parse_srcset_size(transform)
            if srcset_size is not None:
                value, unit = srcset_size
                transform = resolve_srcset_size(transform, value, unit, reference)

            definition = self.definition_service.normalize(transform)
            if definition is None:
                continue

            transform_fingerprint = fingerprint(definition)
            if transform_fingerprint not in transforms_by_fingerprint:
                pairs.append((folder_name(definition), definition.format))
            transforms_by_fingerprint[transform_fingerprint] = definition

            if srcset_size is None:
                reference = definition

        if not pairs:
            return

        results = self.index_ops.get_transform_indexes_for_assets(
            list(assets_by_id.keys()), pairs
        )

        invalid_ids: List[int] = []
        for result in results:
            definition = transforms_by_fingerprint.get(result.fingerprint)
            asset = assets_by_id.get(result.asset_id)
            if definition is None or asset is None:
                continue

            if self.validate_transform_index_result(result, definition, asset):
                key = index_fingerprint(result.asset_id, result.fingerprint)
                self._eager_loaded[key] = result
            else:
                invalid_ids.append(result.id)

        if invalid_ids:
            self.index_ops.delete_transform_indexes_by_ids(invalid_ids)

        logger.debug(
            f"Eager-loaded {len(results) - len(invalid_ids)} transform indexes",
            extra_context={
                "assets": len(assets_by_id),
                "transforms": len(pairs),
                "invalid": len(invalid_ids),
            },
            emoji=LogEmoji.CACHE,
        )

    def clear_eager_loaded(self) -> None:
        """Forget eager-loaded rows and the active index."""
        self._eager_loaded.clear()
        self._active_index = None

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def store_transform_index_data(self, index: TransformIndex) -> TransformIndex:
        """Insert a new row or update an existing one; returns the stored index."""
        if index.id is None:
            stored = self.index_ops.create_transform_index(index)
            index.id = stored.id
            index.date_created = stored.date_created
            index.date_updated = stored.date_updated
            return index

        self.index_ops.update_transform_index(index)
        return index

    def get_transform_index_model_by_id(self, index_id: int) -> Optional[TransformIndex]:
        return self.index_ops.get_transform_index_by_id(index_id)

    def get_transform_index_model_by_asset_id_and_handle(
        self, asset_id: int, handle: str
    ) -> Optional[TransformIndex]:
        return self.index_ops.get_transform_index_by_asset_id_and_location(
            asset_id, f"_{handle}"
        )

    def find_reusable_transform_index(
        self, asset: Asset, locations: Sequence[str], transform_format: str, index: TransformIndex
    ) -> Optional[TransformIndex]:
        """Another generated rendition of the asset in one of the locations."""
        return self.index_ops.find_reusable_transform_index(
            asset.id, locations, transform_format, index.id
        )

    def get_pending_transform_index_ids(self) -> List[int]:
        return self.index_ops.get_pending_transform_index_ids()

    def get_all_created_transforms_for_asset(self, asset: Asset) -> List[TransformIndex]:
        return self.index_ops.get_transform_indexes_by_asset_id(asset.id)

    # ------------------------------------------------------------------
    # Active index
    # ------------------------------------------------------------------

    def get_active_transform_index(self) -> Optional[TransformIndex]:
        """The index currently being generated, for image observers."""
        return self._active_index

    def set_active_transform_index(self, index: Optional[TransformIndex]) -> None:
        self._active_index = index

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _with_transform(
        index: TransformIndex, transform: TransformDefinition
    ) -> TransformIndex:
        index.transform = transform
        return index

    def _delete_rendition_file(self, asset: Asset, index: TransformIndex) -> None:
        path = transform_volume_path(asset, index)
        try:
            self.volume_resolver(asset.volume_id).delete_file(path)
        except VolumeError as e:
            logger.warning(
                f"Could not delete stale rendition {path}",
                extra_context={"asset_id": asset.id, "error": str(e)},
            )
