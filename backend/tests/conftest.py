#!/usr/bin/env python3
# backend/tests/conftest.py
"""
Pytest configuration and shared fixtures for Asset Transforms tests.

Services are wired against dict-backed stand-ins for the psycopg operations
classes, a LocalVolume under tmp_path and real Pillow images, so the unit and
integration suites run without a database.
"""

import itertools
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest
from PIL import Image

from asset_transforms.config import Settings
from asset_transforms.database.exceptions import TransformIndexOperationError
from asset_transforms.database.transform_definition_operations import (
    AppliedTransformConfig,
    dimensions_changed,
)
from asset_transforms.models.asset_model import Asset, FocalPoint
from asset_transforms.models.transform_index_model import TransformIndex
from asset_transforms.models.transform_model import TransformDefinition
from asset_transforms.services.config_store import InMemoryConfigStore
from asset_transforms.services.image_backend import PillowImageBackend
from asset_transforms.services.transform_definition_service import (
    TransformDefinitionService,
)
from asset_transforms.services.transform_events import TransformEvents
from asset_transforms.services.transform_pipeline import (
    GenerationService,
    SourceService,
    TransformCleanupService,
    TransformGenerator,
    TransformIndexService,
    TransformPipeline,
)
from asset_transforms.services.volume import LocalVolume
from asset_transforms.utils.temp_file_manager import TempFileManager
from asset_transforms.utils.time_utils import utc_now
from asset_transforms.utils.wait_strategy import SleepWaitStrategy

# =============================================================================
# IN-MEMORY OPERATIONS
# =============================================================================


class InMemoryTransformIndexOperations:
    """Dict-backed stand-in for SyncTransformIndexOperations."""

    def __init__(self) -> None:
        self.rows: Dict[int, TransformIndex] = {}
        self.lookups = 0
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @staticmethod
    def _persisted(index: TransformIndex) -> TransformIndex:
        return index.model_copy(update={"transform": None, "detected_format": None})

    def _select(self, predicate) -> List[TransformIndex]:
        with self._lock:
            return [
                row.model_copy()
                for _, row in sorted(self.rows.items())
                if predicate(row)
            ]

    def find_transform_index(
        self,
        volume_id: int,
        asset_id: int,
        location: str,
        transform_format: Optional[str],
    ) -> Optional[TransformIndex]:
        self.lookups += 1
        matches = self._select(
            lambda row: row.volume_id == volume_id
            and row.asset_id == asset_id
            and row.location == location
            and row.format == transform_format
        )
        return matches[0] if matches else None

    def get_transform_index_by_id(self, index_id: int) -> Optional[TransformIndex]:
        matches = self._select(lambda row: row.id == index_id)
        return matches[0] if matches else None

    def get_transform_index_by_asset_id_and_location(
        self, asset_id: int, location: str
    ) -> Optional[TransformIndex]:
        matches = self._select(
            lambda row: row.asset_id == asset_id and row.location == location
        )
        return matches[0] if matches else None

    def get_transform_indexes_for_assets(
        self, asset_ids: Sequence[int], pairs: Sequence[Tuple[str, Optional[str]]]
    ) -> List[TransformIndex]:
        self.lookups += 1
        if not asset_ids or not pairs:
            return []
        wanted = set(pairs)
        return self._select(
            lambda row: row.asset_id in asset_ids
            and (row.location, row.format) in wanted
        )

    def find_reusable_transform_index(
        self,
        asset_id: int,
        locations: Sequence[str],
        transform_format: str,
        exclude_index_id: Optional[int],
    ) -> Optional[TransformIndex]:
        matches = self._select(
            lambda row: row.asset_id == asset_id
            and row.file_exists
            and row.location in locations
            and row.format == transform_format
            and row.id != exclude_index_id
        )
        return matches[0] if matches else None

    def get_pending_transform_index_ids(self) -> List[int]:
        return [
            row.id
            for row in self._select(
                lambda row: not row.file_exists and not row.in_progress and not row.error
            )
        ]

    def get_transform_indexes_by_asset_id(self, asset_id: int) -> List[TransformIndex]:
        return self._select(lambda row: row.asset_id == asset_id)

    def get_transform_indexes_by_location(self, location: str) -> List[TransformIndex]:
        return self._select(lambda row: row.location == location)

    def create_transform_index(self, index: TransformIndex) -> TransformIndex:
        current_time = utc_now()
        with self._lock:
            stored = self._persisted(index)
            stored.id = next(self._ids)
            stored.date_created = current_time
            stored.date_updated = current_time
            self.rows[stored.id] = stored
            return stored.model_copy()

    def update_transform_index(self, index: TransformIndex) -> bool:
        if index.id is None:
            raise TransformIndexOperationError(
                "Cannot update a transform index without an id",
                operation="update_transform_index",
            )
        current_time = utc_now()
        with self._lock:
            existing = self.rows.get(index.id)
            if existing is None:
                return False
            stored = self._persisted(index)
            stored.date_created = existing.date_created
            stored.date_updated = current_time
            self.rows[index.id] = stored
        index.date_updated = current_time
        return True

    def _delete_where(self, predicate) -> int:
        with self._lock:
            doomed = [row_id for row_id, row in self.rows.items() if predicate(row)]
            for row_id in doomed:
                del self.rows[row_id]
            return len(doomed)

    def delete_transform_index(self, index_id: int) -> int:
        return self._delete_where(lambda row: row.id == index_id)

    def delete_transform_indexes_by_ids(self, index_ids: Sequence[int]) -> int:
        return self._delete_where(lambda row: row.id in index_ids)

    def delete_transform_indexes_by_asset_ids(self, asset_ids: Sequence[int]) -> int:
        return self._delete_where(lambda row: row.asset_id in asset_ids)

    def delete_transform_indexes_by_location(self, location: str) -> int:
        return self._delete_where(lambda row: row.location == location)


class InMemoryTransformDefinitionOperations:
    """Dict-backed stand-in for SyncTransformDefinitionOperations, keyed by uid."""

    CONFIG_KEYS = (
        "name",
        "handle",
        "mode",
        "position",
        "width",
        "height",
        "quality",
        "interlace",
        "format",
    )

    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.loads = 0
        self._ids = itertools.count(1)

    def get_all_transforms(self) -> List[TransformDefinition]:
        self.loads += 1
        rows = sorted(self.rows.values(), key=lambda row: row["name"])
        return [TransformDefinition.model_validate(row) for row in rows]

    def get_id_by_uid(self, uid: str) -> Optional[int]:
        row = self.rows.get(uid)
        return row["id"] if row else None

    def get_uid_by_id(self, transform_id: int) -> Optional[str]:
        for row in self.rows.values():
            if row["id"] == transform_id:
                return row["uid"]
        return None

    def apply_transform_config(
        self, uid: str, data: Dict[str, Any], changed_at=None
    ) -> AppliedTransformConfig:
        existing = self.rows.get(uid)
        changed = dimensions_changed(existing, data)

        row = dict(existing) if existing else {
            "id": next(self._ids),
            "uid": uid,
            "dimension_change_time": None,
        }
        row.update({key: data.get(key) for key in self.CONFIG_KEYS})
        if changed:
            row["dimension_change_time"] = changed_at or utc_now()
        self.rows[uid] = row

        return AppliedTransformConfig(
            transform=TransformDefinition.model_validate(row),
            is_new=existing is None,
            dimensions_changed=changed,
        )

    def delete_transform_by_uid(self, uid: str) -> bool:
        return self.rows.pop(uid, None) is not None


# =============================================================================
# TEST IMAGES
# =============================================================================


def create_test_image(
    path: Path,
    size: Tuple[int, int] = (800, 600),
    mode: str = "RGB",
    color: Any = (200, 80, 40),
) -> Path:
    """Write a solid-color image; the format follows the file extension."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color).save(path)
    return path


# =============================================================================
# SETTINGS & STORAGE
# =============================================================================


@pytest.fixture
def test_settings(tmp_path):
    """Settings rooted in a temporary data directory with fast polling."""
    settings = Settings(
        data_directory=str(tmp_path / "data"),
        generation_max_wait_attempts=5,
        generation_wait_interval_seconds=0.01,
        generation_stale_after_seconds=30,
    )
    settings.ensure_directories()
    return settings


@pytest.fixture
def volume(tmp_path):
    """Local volume serving files from a temporary directory."""
    return LocalVolume(tmp_path / "volume", base_url="https://cdn.example.test/")


@pytest.fixture
def volume_resolver(volume):
    return lambda volume_id: volume


@pytest.fixture
def asset_registry() -> Dict[int, Asset]:
    return {}


@pytest.fixture
def asset_resolver(asset_registry):
    return asset_registry.get


@pytest.fixture
def make_asset(volume, asset_registry):
    """
    Factory creating an asset (and, for images, its file on the volume).

    Assets are registered with asset_resolver and modified an hour ago.
    """
    ids = itertools.count(1)

    def _make_asset(
        filename: str = "photo.jpg",
        size: Tuple[int, int] = (800, 600),
        mode: str = "RGB",
        color: Any = (200, 80, 40),
        folder_path: str = "uploads/",
        kind: str = "image",
        focal_point: Optional[Tuple[float, float]] = None,
        write_file: bool = True,
        volume_id: int = 1,
        asset_id: Optional[int] = None,
    ) -> Asset:
        asset = Asset(
            id=asset_id if asset_id is not None else next(ids),
            volume_id=volume_id,
            filename=filename,
            folder_path=folder_path,
            kind=kind,
            date_modified=utc_now() - timedelta(hours=1),
            focal_point=FocalPoint(x=focal_point[0], y=focal_point[1])
            if focal_point
            else None,
        )
        if write_file:
            create_test_image(volume.root / asset.path, size, mode, color)
        asset_registry[asset.id] = asset
        return asset

    return _make_asset


@pytest.fixture
def temp_files(test_settings):
    return TempFileManager(test_settings.temp_path)


@pytest.fixture
def no_wait():
    """Wait strategy that never sleeps."""
    return SleepWaitStrategy(sleeper=lambda seconds: None)


# =============================================================================
# OPERATIONS & SERVICES
# =============================================================================


@pytest.fixture
def index_ops():
    return InMemoryTransformIndexOperations()


@pytest.fixture
def definition_ops():
    return InMemoryTransformDefinitionOperations()


@pytest.fixture
def config_store():
    return InMemoryConfigStore()


@pytest.fixture
def events():
    return TransformEvents()


@pytest.fixture
def image_backend():
    return PillowImageBackend()


@pytest.fixture
def definition_service(definition_ops, config_store, index_ops, events):
    return TransformDefinitionService(
        definition_ops, config_store, index_ops=index_ops, events=events
    )


@pytest.fixture
def save_named_transform(definition_service):
    """Factory saving a named transform through the config store."""

    def _save(handle: str = "thumb", **properties) -> TransformDefinition:
        data = {"name": handle.title(), "handle": handle, "width": 200, "height": 150}
        data.update(properties)
        transform = TransformDefinition(**data)
        assert definition_service.save_transform(transform)
        return definition_service.get_transform_by_handle(handle)

    return _save


@pytest.fixture
def index_service(index_ops, definition_service, volume_resolver):
    return TransformIndexService(index_ops, definition_service, volume_resolver)


@pytest.fixture
def source_service(image_backend, volume_resolver, temp_files, test_settings):
    return SourceService(image_backend, volume_resolver, temp_files, test_settings)


@pytest.fixture
def generator(
    index_service,
    definition_service,
    source_service,
    image_backend,
    volume_resolver,
    temp_files,
    test_settings,
    events,
):
    return TransformGenerator(
        index_service,
        definition_service,
        source_service,
        image_backend,
        volume_resolver,
        temp_files,
        test_settings,
        events,
    )


@pytest.fixture
def generation_service(
    index_service, generator, asset_resolver, volume_resolver, test_settings, no_wait
):
    return GenerationService(
        index_service,
        generator,
        asset_resolver,
        volume_resolver,
        test_settings,
        no_wait,
    )


@pytest.fixture
def cleanup_service(index_ops, volume_resolver, test_settings, events, asset_resolver):
    return TransformCleanupService(
        index_ops, volume_resolver, test_settings, events, asset_resolver
    )


@pytest.fixture
def pipeline(
    definition_service,
    index_service,
    source_service,
    generator,
    generation_service,
    cleanup_service,
    events,
):
    """Fully wired pipeline over the in-memory operations."""
    return TransformPipeline(
        definition_service=definition_service,
        index_service=index_service,
        source_service=source_service,
        generator=generator,
        generation_service=generation_service,
        cleanup_service=cleanup_service,
        events=events,
    )
