# backend/asset_transforms/models/asset_model.py
from datetime import datetime
from pathlib import PurePosixPath
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import AssetKind


class FocalPoint(BaseModel):
    """Relative focal point of an image, both axes in the 0..1 range"""

    x: float = Field(..., ge=0, le=1, description="Horizontal position")
    y: float = Field(..., ge=0, le=1, description="Vertical position")


class Asset(BaseModel):
    """
    The slice of an asset the transform system needs.

    Assets are owned by the caller's asset service; transform services only
    read them.
    """

    id: int = Field(..., description="Asset ID")
    volume_id: int = Field(..., description="ID of the volume holding the file")
    filename: str = Field(..., min_length=1, description="Filename including extension")
    folder_path: str = Field(
        default="",
        description="Folder path inside the volume, empty or ending with '/'",
    )
    kind: AssetKind = Field(default=AssetKind.IMAGE, description="Asset kind")
    date_modified: datetime = Field(..., description="When the file last changed")
    focal_point: Optional[FocalPoint] = Field(
        None, description="Focal point used as the crop anchor"
    )

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @field_validator("folder_path")
    @classmethod
    def validate_folder_path(cls, v: str) -> str:
        """Folder paths are volume-relative and end with a slash"""
        v = v.replace("\\", "/").lstrip("/")
        if v and not v.endswith("/"):
            v += "/"
        return v

    @property
    def extension(self) -> str:
        return PurePosixPath(self.filename).suffix.lstrip(".").lower()

    @property
    def stem(self) -> str:
        return PurePosixPath(self.filename).stem

    @property
    def path(self) -> str:
        """Path of the file relative to its volume root"""
        return f"{self.folder_path}{self.filename}"

    @property
    def has_focal_point(self) -> bool:
        return self.focal_point is not None

    @property
    def focal_point_anchor(self) -> Optional[Dict[str, float]]:
        if self.focal_point is None:
            return None
        return {"x": self.focal_point.x, "y": self.focal_point.y}
