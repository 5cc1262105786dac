# backend/asset_transforms/models/transform_model.py
"""
Transform definition models.

TransformDefinition is the persisted (or ad-hoc) description of a rendition.
The remaining classes make up the tagged union of every input the transform
services accept; TransformDefinitionService.normalize() is the one place that
turns any of them into a TransformDefinition.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import (
    DEFAULT_INTERLACE,
    DEFAULT_TRANSFORM_MODE,
    DEFAULT_TRANSFORM_POSITION,
    MAX_HANDLE_LENGTH,
    MAX_NAME_LENGTH,
    MAX_TRANSFORM_QUALITY,
    MIN_TRANSFORM_QUALITY,
)
from ..enums import InterlaceMode, TransformMode


class TransformDefinition(BaseModel):
    """A set of image transformation parameters, optionally named by a handle"""

    id: Optional[int] = Field(None, description="Local surrogate key")
    name: Optional[str] = Field(None, max_length=MAX_NAME_LENGTH)
    handle: Optional[str] = Field(
        None,
        max_length=MAX_HANDLE_LENGTH,
        description="Unique handle; a definition with a handle is a named transform",
    )
    width: Optional[int] = Field(None, ge=1, description="Target width in pixels")
    height: Optional[int] = Field(None, ge=1, description="Target height in pixels")
    mode: TransformMode = Field(
        default=DEFAULT_TRANSFORM_MODE,
        description="How the source maps onto the target box",
    )
    position: str = Field(
        default=DEFAULT_TRANSFORM_POSITION,
        description="Crop anchor as vertical-horizontal, e.g. 'top-left'",
    )
    quality: Optional[int] = Field(
        None, ge=MIN_TRANSFORM_QUALITY, le=MAX_TRANSFORM_QUALITY
    )
    format: Optional[str] = Field(
        None, description="Output format; None lets the pipeline detect one"
    )
    interlace: InterlaceMode = Field(default=DEFAULT_INTERLACE)
    dimension_change_time: Optional[datetime] = Field(
        None, description="Last time a size-affecting property changed"
    )
    uid: Optional[str] = Field(None, description="Stable identity across environments")

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @field_validator("width", "height", "quality", mode="before")
    @classmethod
    def validate_optional_dimension(cls, v):
        """Zero, empty and 'AUTO' all mean 'not set'"""
        if v in (None, "", 0, "0") or (isinstance(v, str) and v.upper() == "AUTO"):
            return None
        return v

    @field_validator("mode", "interlace", "position", mode="before")
    @classmethod
    def validate_lowercase(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator("format", mode="before")
    @classmethod
    def validate_format(cls, v):
        if v in (None, ""):
            return None
        if isinstance(v, str):
            return v.lower()
        return v

    @property
    def is_named(self) -> bool:
        """True when the definition is a named (handle-bearing) transform"""
        return bool(self.handle)


# =============================================================================
# TRANSFORM INPUTS
# =============================================================================


@dataclass(frozen=True)
class ByHandle:
    """Refer to a saved transform by its handle"""

    handle: str


@dataclass(frozen=True)
class ByProperties:
    """
    Ad-hoc transform built from a property mapping.

    A mapping containing a 'transform' key is treated as an Extend of that
    base with the remaining keys as overrides.
    """

    properties: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Extend:
    """Override whitelisted properties of another transform input"""

    base: "TransformInput"
    overrides: Mapping[str, Any] = field(default_factory=dict)


# Plain strings are handles and plain mappings are ByProperties
TransformInput = Union[
    TransformDefinition, ByHandle, ByProperties, Extend, str, Mapping[str, Any], None
]
