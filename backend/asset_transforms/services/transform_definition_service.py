# backend/asset_transforms/services/transform_definition_service.py
"""
Transform Definition Service - Named transforms and transform inputs.

Responsibilities:
- Serve named transforms from a snapshot of the asset_transforms table
- Publish saves and deletes to the config store
- Apply config store changes to the database, invalidating renditions of
  named transforms whose output changed
- Normalize every accepted transform input into a TransformDefinition

Saves and deletes never touch the database directly: they go through the
config store, whose listeners (handle_changed_transform and
handle_deleted_transform) write the rows. Replaying the config store
therefore rebuilds the table.
"""

import re
import threading
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

from ..constants import (
    CONFIG_PATH_IMAGE_TRANSFORMS,
    CROP_POSITION_PATTERN,
    EXTENDABLE_TRANSFORM_PROPERTIES,
    EXTENDED_TRANSFORM_NULLABLES,
)
from ..database.exceptions import TransformDefinitionOperationError
from ..database.transform_definition_operations import SyncTransformDefinitionOperations
from ..database.transform_index_operations import SyncTransformIndexOperations
from ..enums import LogEmoji, LoggerName, LogSource, TransformFormat, TransformHook
from ..exceptions import DefinitionNotFound, IndexResolutionFailed
from ..models.transform_model import (
    ByHandle,
    ByProperties,
    Extend,
    TransformDefinition,
    TransformInput,
)
from ..utils.fingerprint import named_folder_name
from .config_store import ConfigEvent, ConfigStore
from .logger import get_service_logger
from .transform_events import TransformDefinitionEvent, TransformEvents

logger = get_service_logger(LoggerName.TRANSFORM_DEFINITIONS, LogSource.CONFIG)

HANDLE_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")
RESERVED_HANDLES = frozenset({"id", "datecreated", "dateupdated", "uid", "title"})
TRANSFORM_FORMATS = frozenset(transform_format.value for transform_format in TransformFormat)


class TransformDefinitionCache:
    """
    Lazily built snapshot of all transform definitions.

    Lookups by handle and uid are case-insensitive. The snapshot is rebuilt
    on first access after invalidate().
    """

    def __init__(self, loader: Callable[[], List[TransformDefinition]]):
        self._loader = loader
        self._lock = threading.RLock()
        self._transforms: Optional[List[TransformDefinition]] = None
        self._by_handle: Dict[str, TransformDefinition] = {}
        self._by_id: Dict[int, TransformDefinition] = {}
        self._by_uid: Dict[str, TransformDefinition] = {}

    def _ensure_loaded(self) -> List[TransformDefinition]:
        with self._lock:
            if self._transforms is None:
                self.reload()
            return self._transforms

    def reload(self) -> None:
        """Rebuild the snapshot immediately."""
        with self._lock:
            transforms = list(self._loader())
            self._by_handle = {
                t.handle.lower(): t for t in transforms if t.handle is not None
            }
            self._by_id = {t.id: t for t in transforms if t.id is not None}
            self._by_uid = {t.uid.lower(): t for t in transforms if t.uid is not None}
            self._transforms = transforms

    def invalidate(self) -> None:
        """Drop the snapshot; the next lookup reloads it."""
        with self._lock:
            self._transforms = None

    def get_all(self) -> List[TransformDefinition]:
        return list(self._ensure_loaded())

    def get_by_handle(self, handle: str) -> Optional[TransformDefinition]:
        with self._lock:
            self._ensure_loaded()
            return self._by_handle.get(handle.lower())

    def get_by_id(self, transform_id: int) -> Optional[TransformDefinition]:
        with self._lock:
            self._ensure_loaded()
            return self._by_id.get(transform_id)

    def get_by_uid(self, uid: str) -> Optional[TransformDefinition]:
        with self._lock:
            self._ensure_loaded()
            return self._by_uid.get(uid.lower())


def transform_config_data(transform: TransformDefinition) -> Dict[str, Any]:
    """The full parameter set published to the config store for a named transform."""
    return {
        "format": transform.format,
        "handle": transform.handle,
        "height": transform.height or None,
        "interlace": transform.interlace,
        "mode": transform.mode,
        "name": transform.name,
        "position": transform.position,
        "quality": transform.quality or None,
        "width": transform.width or None,
    }


class TransformDefinitionService:
    """
    Store of named transform definitions.

    Subscribes its config handlers on construction, so every config store
    change (including a replay) is applied to the database.
    """

    def __init__(
        self,
        definition_ops: SyncTransformDefinitionOperations,
        config_store: ConfigStore,
        index_ops: Optional[SyncTransformIndexOperations] = None,
        events: Optional[TransformEvents] = None,
        attach: bool = True,
    ) -> None:
        """
        Initialize with injected dependencies.

        Args:
            definition_ops: Database operations for asset_transforms
            config_store: Config store named transforms are published to
            index_ops: Index operations, used to drop renditions of changed
                named transforms
            events: Observer registry for definition hooks
            attach: Subscribe the config handlers immediately
        """
        self.definition_ops = definition_ops
        self.config_store = config_store
        self.index_ops = index_ops
        self.events = events or TransformEvents()
        self.cache = TransformDefinitionCache(self.definition_ops.get_all_transforms)
        self._attached = False

        if attach:
            self.attach()

    def attach(self) -> None:
        """Subscribe the change and delete handlers to the config store."""
        if self._attached:
            return
        self.config_store.on_change(
            CONFIG_PATH_IMAGE_TRANSFORMS, self.handle_changed_transform
        )
        self.config_store.on_remove(
            CONFIG_PATH_IMAGE_TRANSFORMS, self.handle_deleted_transform
        )
        self._attached = True

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_all_transforms(self) -> List[TransformDefinition]:
        return self.cache.get_all()

    def get_transform_by_handle(self, handle: str) -> Optional[TransformDefinition]:
        return self.cache.get_by_handle(handle)

    def get_transform_by_id(self, transform_id: int) -> Optional[TransformDefinition]:
        return self.cache.get_by_id(transform_id)

    def get_transform_by_uid(self, uid: str) -> Optional[TransformDefinition]:
        return self.cache.get_by_uid(uid)

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def validate_transform(self, transform: TransformDefinition) -> Dict[str, List[str]]:
        """
        Validate a named transform before saving.

        Returns:
            Attribute name -> error messages; empty when valid
        """
        errors: Dict[str, List[str]] = {}

        def add_error(attribute: str, message: str) -> None:
            errors.setdefault(attribute, []).append(message)

        if not transform.name:
            add_error("name", "Name cannot be blank.")
        if not transform.handle:
            add_error("handle", "Handle cannot be blank.")
        elif not HANDLE_PATTERN.match(transform.handle):
            add_error("handle", f"'{transform.handle}' is not a valid handle.")
        elif transform.handle.lower() in RESERVED_HANDLES:
            add_error("handle", f"'{transform.handle}' is a reserved word.")

        if not transform.width and not transform.height:
            add_error("width", "Either width or height must be set.")
        if not CROP_POSITION_PATTERN.match(transform.position or ""):
            add_error("position", f"'{transform.position}' is not a valid position.")
        if transform.format is not None and transform.format not in TRANSFORM_FORMATS:
            add_error("format", f"'{transform.format}' is not a valid format.")

        for other in self.get_all_transforms():
            if _same_transform(other, transform):
                continue
            if transform.handle and other.handle and other.handle.lower() == transform.handle.lower():
                add_error("handle", f"Handle '{transform.handle}' has already been taken.")
            if transform.name and other.name and other.name.lower() == transform.name.lower():
                add_error("name", f"Name '{transform.name}' has already been taken.")

        return errors

    def save_transform(
        self, transform: TransformDefinition, run_validation: bool = True
    ) -> bool:
        """
        Publish a named transform to the config store.

        The config store listener writes the row. New transforms get a uid
        here and their id once the row exists.

        Returns:
            False if validation failed, True otherwise
        """
        is_new = transform.id is None

        self.events.fire(
            TransformHook.BEFORE_SAVE_TRANSFORM,
            TransformDefinitionEvent(transform=transform, is_new=is_new),
        )

        if run_validation:
            errors = self.validate_transform(transform)
            if errors:
                logger.info(
                    "Transform not saved due to validation error",
                    extra_context={"handle": transform.handle, "errors": errors},
                )
                return False

        if is_new:
            transform.uid = str(uuid.uuid4())
        elif not transform.uid:
            uid = self.definition_ops.get_uid_by_id(transform.id)
            if uid is None:
                raise DefinitionNotFound(
                    f"No transform exists with the ID '{transform.id}'",
                    details={"id": transform.id},
                )
            transform.uid = uid

        config_path = f"{CONFIG_PATH_IMAGE_TRANSFORMS}.{transform.uid}"
        self.config_store.set(
            config_path,
            transform_config_data(transform),
            f"Saving transform '{transform.handle}'",
        )

        if is_new:
            transform.id = self.definition_ops.get_id_by_uid(transform.uid)

        logger.info(
            f"Saved transform '{transform.handle}'",
            extra_context={"uid": transform.uid, "is_new": is_new},
            emoji=LogEmoji.CREATE if is_new else LogEmoji.UPDATE,
        )
        return True

    def handle_changed_transform(self, event: ConfigEvent) -> None:
        """
        Apply a config store change to the asset_transforms table.

        When the output-affecting properties changed, dimension_change_time
        is stamped and the named transform's index rows are dropped.
        """
        uid = event.token
        data = event.new_value or {}

        try:
            applied = self.definition_ops.apply_transform_config(uid, data)
        except TransformDefinitionOperationError as e:
            logger.error(
                f"Failed to apply config for transform {uid}",
                exception=e,
                error_context={"uid": uid},
            )
            raise

        if applied.dimensions_changed and self.index_ops is not None:
            deleted = self.index_ops.delete_transform_indexes_by_location(
                named_folder_name(applied.transform.handle)
            )
            if deleted:
                logger.info(
                    f"Dropped {deleted} renditions of changed transform '{applied.transform.handle}'",
                    emoji=LogEmoji.CLEANUP,
                )

        self.cache.invalidate()

        self.events.fire(
            TransformHook.AFTER_SAVE_TRANSFORM,
            TransformDefinitionEvent(
                transform=self.get_transform_by_id(applied.transform.id)
                or applied.transform,
                is_new=applied.is_new,
            ),
        )

    # ------------------------------------------------------------------
    # Deleting
    # ------------------------------------------------------------------

    def delete_transform_by_id(self, transform_id: int) -> bool:
        transform = self.get_transform_by_id(transform_id)
        if transform is None:
            return False
        return self.delete_transform(transform)

    def delete_transform(self, transform: TransformDefinition) -> bool:
        """Remove a named transform from the config store."""
        self.events.fire(
            TransformHook.BEFORE_DELETE_TRANSFORM,
            TransformDefinitionEvent(transform=transform),
        )
        self.config_store.remove(
            f"{CONFIG_PATH_IMAGE_TRANSFORMS}.{transform.uid}",
            f"Delete transform '{transform.handle}'",
        )
        return True

    def handle_deleted_transform(self, event: ConfigEvent) -> None:
        """Delete the row of a transform removed from the config store."""
        uid = event.token
        transform = self.get_transform_by_uid(uid)
        if transform is None:
            return

        self.events.fire(
            TransformHook.BEFORE_APPLY_TRANSFORM_DELETE,
            TransformDefinitionEvent(transform=transform),
        )

        try:
            self.definition_ops.delete_transform_by_uid(uid)
        except TransformDefinitionOperationError as e:
            logger.error(
                f"Failed to delete transform {uid}",
                exception=e,
                error_context={"uid": uid},
            )
            raise

        self.cache.invalidate()

        self.events.fire(
            TransformHook.AFTER_DELETE_TRANSFORM,
            TransformDefinitionEvent(transform=transform),
        )
        logger.info(f"Deleted transform '{transform.handle}'", emoji=LogEmoji.DELETE)

    # ------------------------------------------------------------------
    # Transform inputs
    # ------------------------------------------------------------------

    def normalize(self, transform: TransformInput) -> Optional[TransformDefinition]:
        """
        Resolve any accepted transform input to a definition.

        Raises:
            DefinitionNotFound: If a handle does not name a transform
            IndexResolutionFailed: If properties do not form a valid transform
        """
        if transform is None:
            return None

        if isinstance(transform, TransformDefinition):
            return transform

        if isinstance(transform, Extend):
            base = self.normalize(transform.base)
            if base is None:
                raise IndexResolutionFailed("Cannot extend an empty transform")
            return self.extend_transform(base, transform.overrides)

        if isinstance(transform, ByProperties):
            return self._from_properties(transform.properties)

        if isinstance(transform, ByHandle):
            return self._by_handle(transform.handle)

        if isinstance(transform, str):
            return self._by_handle(transform) if transform else None

        if isinstance(transform, Mapping):
            return self._from_properties(transform)

        raise IndexResolutionFailed(
            f"Unsupported transform input of type {type(transform).__name__}"
        )

    def extend_transform(
        self, transform: TransformDefinition, overrides: Mapping[str, Any]
    ) -> TransformDefinition:
        """
        Copy a transform with whitelisted properties overridden.

        The copy is always an ad-hoc transform: identity properties are
        cleared. Without overrides the base is returned unchanged.
        """
        if not overrides:
            return transform

        data = transform.model_dump()
        for prop, value in overrides.items():
            if prop in EXTENDABLE_TRANSFORM_PROPERTIES:
                data[prop] = value
        for prop in EXTENDED_TRANSFORM_NULLABLES:
            data[prop] = None

        try:
            return TransformDefinition.model_validate(data)
        except ValidationError as e:
            raise IndexResolutionFailed(
                f"Invalid transform overrides: {e}", details={"overrides": dict(overrides)}
            ) from e

    def _by_handle(self, handle: str) -> TransformDefinition:
        transform = self.get_transform_by_handle(handle)
        if transform is None:
            raise DefinitionNotFound(
                f"Invalid transform handle: {handle}", details={"handle": handle}
            )
        return transform

    def _from_properties(
        self, properties: Mapping[str, Any]
    ) -> Optional[TransformDefinition]:
        if not properties:
            return None

        properties = dict(properties)
        if "transform" in properties:
            base = self.normalize(properties.pop("transform"))
            if base is None:
                raise IndexResolutionFailed("Cannot extend an empty transform")
            return self.extend_transform(base, properties)

        try:
            return TransformDefinition.model_validate(properties)
        except ValidationError as e:
            raise IndexResolutionFailed(
                f"Invalid transform properties: {e}",
                details={"properties": properties},
            ) from e


def _same_transform(a: TransformDefinition, b: TransformDefinition) -> bool:
    if a.uid and b.uid:
        return a.uid.lower() == b.uid.lower()
    return a.id is not None and a.id == b.id
