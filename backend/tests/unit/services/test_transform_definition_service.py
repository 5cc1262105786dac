#!/usr/bin/env python3
"""
Unit tests for TransformDefinitionService.

Tests the named transform store and transform input normalization:
- Validation rules for named transforms
- Saving and deleting through the config store listeners
- Rendition invalidation when a named transform's output changes
- Normalizing handles, property maps and extended transforms
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from asset_transforms.constants import CONFIG_PATH_IMAGE_TRANSFORMS
from asset_transforms.database.exceptions import TransformDefinitionOperationError
from asset_transforms.enums import TransformHook
from asset_transforms.exceptions import DefinitionNotFound, IndexResolutionFailed
from asset_transforms.models.transform_index_model import TransformIndex
from asset_transforms.models.transform_model import (
    ByHandle,
    ByProperties,
    Extend,
    TransformDefinition,
)
from asset_transforms.services.config_store import ConfigEvent, InMemoryConfigStore
from asset_transforms.services.transform_pipeline import resolve_crop_anchor
from asset_transforms.services.transform_definition_service import (
    TransformDefinitionService,
)
from asset_transforms.utils.time_utils import utc_now


def _index_row(index_ops, location, asset_id=1):
    return index_ops.create_transform_index(
        TransformIndex(
            asset_id=asset_id, volume_id=1, location=location, date_indexed=utc_now()
        )
    )


@pytest.mark.unit
@pytest.mark.transform
class TestValidateTransform:
    """Validation of named transforms before saving."""

    def test_valid_transform_has_no_errors(self, definition_service):
        transform = TransformDefinition(name="Thumb", handle="thumb", width=200)

        assert definition_service.validate_transform(transform) == {}

    def test_name_and_handle_are_required(self, definition_service):
        errors = definition_service.validate_transform(TransformDefinition(width=200))

        assert "name" in errors
        assert "handle" in errors

    @pytest.mark.parametrize("handle", ["1thumb", "thumb-small", "_thumb", "thumb small"])
    def test_invalid_handles(self, definition_service, handle):
        transform = TransformDefinition(name="Thumb", handle=handle, width=200)

        assert "handle" in definition_service.validate_transform(transform)

    @pytest.mark.parametrize("handle", ["title", "ID", "dateCreated", "uid"])
    def test_reserved_handles(self, definition_service, handle):
        transform = TransformDefinition(name="Thumb", handle=handle, width=200)

        errors = definition_service.validate_transform(transform)

        assert any("reserved" in message for message in errors["handle"])

    def test_width_or_height_required(self, definition_service):
        transform = TransformDefinition(name="Thumb", handle="thumb")

        assert "width" in definition_service.validate_transform(transform)

    def test_invalid_position_and_format(self, definition_service):
        transform = TransformDefinition(
            name="Thumb", handle="thumb", width=200, position="middle", format="tiff"
        )

        errors = definition_service.validate_transform(transform)

        assert "position" in errors
        assert "format" in errors

    @pytest.mark.parametrize(
        "position, valid",
        [("top-left", True), ("center-right", True), ("left-top", False), ("top", False)],
    )
    def test_positions_match_crop_anchors(
        self, definition_service, make_asset, position, valid
    ):
        transform = TransformDefinition(
            name="Thumb", handle="thumb", width=200, position=position
        )
        asset = make_asset(write_file=False)

        errors = definition_service.validate_transform(transform)

        assert ("position" not in errors) is valid
        assert (resolve_crop_anchor(asset, transform) == position) is valid

    def test_handle_and_name_must_be_unique(self, definition_service, save_named_transform):
        save_named_transform("thumb")
        duplicate = TransformDefinition(name="THUMB", handle="Thumb", width=50)

        errors = definition_service.validate_transform(duplicate)

        assert "handle" in errors
        assert "name" in errors

    def test_existing_transform_does_not_conflict_with_itself(
        self, definition_service, save_named_transform
    ):
        saved = save_named_transform("thumb")
        saved.width = 400

        assert definition_service.validate_transform(saved) == {}


@pytest.mark.unit
@pytest.mark.transform
class TestSaveTransform:
    """Saving named transforms through the config store."""

    def test_new_transform_is_published_and_applied(
        self, definition_service, definition_ops, config_store
    ):
        transform = TransformDefinition(
            name="Hero", handle="hero", width=1200, height=600, quality=80
        )

        assert definition_service.save_transform(transform) is True

        assert transform.id is not None
        assert len(transform.uid) == 36
        published = config_store.get(f"{CONFIG_PATH_IMAGE_TRANSFORMS}.{transform.uid}")
        assert published["handle"] == "hero"
        assert published["width"] == 1200
        assert published["mode"] == "crop"
        assert definition_ops.rows[transform.uid]["quality"] == 80

        stored = definition_service.get_transform_by_handle("HERO")
        assert stored.id == transform.id
        assert stored.dimension_change_time is not None

    def test_invalid_transform_is_not_published(self, definition_service, config_store):
        transform = TransformDefinition(name="Broken", handle="1broken", width=10)

        assert definition_service.save_transform(transform) is False
        assert transform.uid is None
        assert definition_service.get_all_transforms() == []

    def test_validation_can_be_skipped(self, definition_service):
        transform = TransformDefinition(name="Odd", handle="odd")

        assert definition_service.save_transform(transform, run_validation=False)
        assert definition_service.get_transform_by_handle("odd") is not None

    def test_save_events_fire_in_order(self, definition_service, events):
        fired = []
        events.on(
            TransformHook.BEFORE_SAVE_TRANSFORM,
            lambda event: fired.append(("before", event.is_new)),
        )
        events.on(
            TransformHook.AFTER_SAVE_TRANSFORM,
            lambda event: fired.append(("after", event.is_new, event.transform.handle)),
        )

        definition_service.save_transform(
            TransformDefinition(name="Thumb", handle="thumb", width=200)
        )

        assert fired == [("before", True), ("after", True, "thumb")]

    def test_dimension_change_drops_named_renditions(
        self, definition_service, definition_ops, save_named_transform, index_ops
    ):
        saved = save_named_transform("thumb")
        first_change_time = utc_now() - timedelta(days=1)
        definition_ops.rows[saved.uid]["dimension_change_time"] = first_change_time
        _index_row(index_ops, "_thumb", asset_id=1)
        _index_row(index_ops, "_thumb", asset_id=2)
        kept = _index_row(index_ops, "_hero")

        saved.width = 300
        assert definition_service.save_transform(saved)

        assert [row.id for row in index_ops.rows.values()] == [kept.id]
        updated = definition_service.get_transform_by_handle("thumb")
        assert updated.width == 300
        assert updated.dimension_change_time > first_change_time

    def test_renaming_keeps_renditions(
        self, definition_service, save_named_transform, index_ops
    ):
        saved = save_named_transform("thumb")
        _index_row(index_ops, "_thumb")

        saved.name = "Small Thumb"
        assert definition_service.save_transform(saved)

        assert len(index_ops.rows) == 1
        updated = definition_service.get_transform_by_handle("thumb")
        assert updated.name == "Small Thumb"
        assert updated.dimension_change_time == saved.dimension_change_time

    def test_existing_transform_without_uid_is_looked_up(
        self, definition_service, save_named_transform
    ):
        saved = save_named_transform("thumb")
        edited = TransformDefinition(id=saved.id, name="Thumb", handle="thumb", width=120)

        assert definition_service.save_transform(edited)

        assert edited.uid == saved.uid
        assert definition_service.get_transform_by_id(saved.id).width == 120

    def test_unknown_id_raises(self, definition_service):
        ghost = TransformDefinition(id=999, name="Ghost", handle="ghost", width=10)

        with pytest.raises(DefinitionNotFound):
            definition_service.save_transform(ghost)

    def test_snapshot_is_reused_until_invalidated(
        self, definition_service, definition_ops, save_named_transform
    ):
        save_named_transform("thumb")
        loads = definition_ops.loads

        definition_service.get_transform_by_handle("thumb")
        definition_service.get_all_transforms()
        assert definition_ops.loads == loads

        save_named_transform("hero")
        assert definition_service.get_transform_by_handle("hero") is not None
        assert definition_ops.loads == loads + 1

    def test_replay_rebuilds_definitions(self, definition_ops):
        store = InMemoryConfigStore(
            {
                f"{CONFIG_PATH_IMAGE_TRANSFORMS}.0b9e7d52-5d7f-4a38-9d40-b2e3c5f5a001": {
                    "name": "Banner",
                    "handle": "banner",
                    "mode": "fit",
                    "position": "center-center",
                    "width": 1600,
                    "height": None,
                    "quality": None,
                    "interlace": "none",
                    "format": "webp",
                }
            }
        )
        service = TransformDefinitionService(definition_ops, store)

        store.replay()

        banner = service.get_transform_by_uid("0B9E7D52-5D7F-4A38-9D40-B2E3C5F5A001")
        assert banner.handle == "banner"
        assert banner.mode == "fit"
        assert banner.format == "webp"

    def test_failed_apply_is_raised(self):
        definition_ops = Mock()
        definition_ops.apply_transform_config.side_effect = (
            TransformDefinitionOperationError("boom", operation="apply_transform_config")
        )
        service = TransformDefinitionService(definition_ops, InMemoryConfigStore())
        event = ConfigEvent(
            f"{CONFIG_PATH_IMAGE_TRANSFORMS}.u1", "u1", None, {"handle": "thumb"}
        )

        with pytest.raises(TransformDefinitionOperationError):
            service.handle_changed_transform(event)


@pytest.mark.unit
@pytest.mark.transform
class TestDeleteTransform:
    """Deleting named transforms through the config store."""

    def test_delete_removes_entry_and_row(
        self, definition_service, definition_ops, config_store, save_named_transform, events
    ):
        saved = save_named_transform("thumb")
        fired = []
        for hook in (
            TransformHook.BEFORE_DELETE_TRANSFORM,
            TransformHook.BEFORE_APPLY_TRANSFORM_DELETE,
            TransformHook.AFTER_DELETE_TRANSFORM,
        ):
            events.on(hook, lambda event, hook=hook: fired.append(hook))

        assert definition_service.delete_transform_by_id(saved.id) is True

        assert config_store.get(f"{CONFIG_PATH_IMAGE_TRANSFORMS}.{saved.uid}") is None
        assert saved.uid not in definition_ops.rows
        assert definition_service.get_transform_by_handle("thumb") is None
        assert fired == [
            TransformHook.BEFORE_DELETE_TRANSFORM,
            TransformHook.BEFORE_APPLY_TRANSFORM_DELETE,
            TransformHook.AFTER_DELETE_TRANSFORM,
        ]

    def test_delete_unknown_id_returns_false(self, definition_service):
        assert definition_service.delete_transform_by_id(404) is False

    def test_unknown_uid_delete_event_is_ignored(self, definition_service, definition_ops):
        event = ConfigEvent(f"{CONFIG_PATH_IMAGE_TRANSFORMS}.nope", "nope", {}, None)

        definition_service.handle_deleted_transform(event)

        assert definition_ops.rows == {}


@pytest.mark.unit
@pytest.mark.transform
class TestNormalize:
    """Normalizing every accepted transform input."""

    @pytest.fixture
    def thumb(self, save_named_transform):
        return save_named_transform("thumb", width=200, height=150, quality=70)

    def test_empty_inputs_normalize_to_none(self, definition_service):
        assert definition_service.normalize(None) is None
        assert definition_service.normalize("") is None
        assert definition_service.normalize({}) is None

    def test_definitions_pass_through(self, definition_service):
        transform = TransformDefinition(width=10)

        assert definition_service.normalize(transform) is transform

    def test_handles(self, definition_service, thumb):
        assert definition_service.normalize("thumb").id == thumb.id
        assert definition_service.normalize(ByHandle("THUMB")).id == thumb.id

    def test_unknown_handle_raises(self, definition_service):
        with pytest.raises(DefinitionNotFound, match="Invalid transform handle"):
            definition_service.normalize("missing")

    def test_property_maps(self, definition_service):
        from_dict = definition_service.normalize({"width": 300, "mode": "FIT"})
        from_properties = definition_service.normalize(
            ByProperties({"width": 300, "mode": "fit"})
        )

        assert from_dict == from_properties
        assert from_dict.mode == "fit"
        assert not from_dict.is_named

    def test_invalid_properties_raise(self, definition_service):
        with pytest.raises(IndexResolutionFailed):
            definition_service.normalize({"width": -5})

    def test_extend_overrides_whitelisted_properties(self, definition_service, thumb):
        extended = definition_service.normalize(
            Extend(ByHandle("thumb"), {"width": 400, "format": "png", "handle": "other"})
        )

        assert extended.width == 400
        assert extended.height == 150
        assert extended.quality == 70
        assert extended.format == "png"
        assert extended.handle is None
        assert extended.uid is None
        assert extended.id is None
        assert extended.dimension_change_time is None
        assert not extended.is_named

    def test_transform_key_extends(self, definition_service, thumb):
        extended = definition_service.normalize({"transform": "thumb", "height": 90})

        assert extended.width == 200
        assert extended.height == 90
        assert not extended.is_named

    def test_extend_without_overrides_returns_base(self, definition_service, thumb):
        assert definition_service.normalize(Extend("thumb")).id == thumb.id

    def test_extending_nothing_raises(self, definition_service):
        with pytest.raises(IndexResolutionFailed):
            definition_service.normalize(Extend(None, {"width": 10}))

    def test_unsupported_input_raises(self, definition_service):
        with pytest.raises(IndexResolutionFailed):
            definition_service.normalize(42)
