# backend/asset_transforms/models/transform_index_model.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .transform_model import TransformDefinition


class TransformIndex(BaseModel):
    """
    One cached rendition of an asset for a transform location and format.

    detected_format and transform are filled in while generating and are
    never persisted.
    """

    id: Optional[int] = Field(None, description="Row ID, None until stored")
    asset_id: int = Field(..., description="ID of the source asset")
    volume_id: int = Field(..., description="ID of the volume holding the rendition")
    format: Optional[str] = Field(
        None, description="Requested format, None for auto-detected formats"
    )
    location: str = Field(..., min_length=2, description="Transform folder name")
    filename: Optional[str] = Field(
        None, description="Rendition filename, set once the format is known"
    )
    file_exists: bool = Field(default=False)
    in_progress: bool = Field(default=False)
    error: bool = Field(default=False)
    date_indexed: Optional[datetime] = Field(
        None, description="When the row was (re)created; drives validity checks"
    )
    date_updated: Optional[datetime] = None
    date_created: Optional[datetime] = None

    # Generation-time attributes
    detected_format: Optional[str] = Field(default=None, exclude=True)
    transform: Optional[TransformDefinition] = Field(default=None, exclude=True)

    model_config = ConfigDict(from_attributes=True)

    @property
    def fingerprint(self) -> str:
        """location[:format], matching the fingerprint of the transform it caches"""
        if self.format:
            return f"{self.location}:{self.format}"
        return self.location
