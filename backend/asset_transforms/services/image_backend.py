# backend/asset_transforms/services/image_backend.py
"""
Raster image backend.

The transform generator drives images through the ImageBackend/ImageHandle
protocols. PillowImageBackend is the default implementation; operations on
a PillowImage return the handle so calls can be chained.
"""

import math
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Protocol, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError, features

from ..constants import MANIPULABLE_FORMATS
from ..enums import InterlaceMode, LogEmoji, LoggerName, LogSource
from ..exceptions import UnsupportedFormat
from .logger import get_service_logger

logger = get_service_logger(LoggerName.IMAGE_BACKEND, LogSource.PIPELINE)

# A named "vertical-horizontal" position or a relative focal point
CropAnchor = Union[str, Dict[str, float]]

# File extension -> Pillow save format
PILLOW_SAVE_FORMATS: Dict[str, str] = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "gif": "GIF",
    "webp": "WEBP",
    "avif": "AVIF",
    "bmp": "BMP",
    "tif": "TIFF",
    "tiff": "TIFF",
}

# Formats that cannot store an alpha channel
OPAQUE_SAVE_FORMATS: FrozenSet[str] = frozenset({"JPEG", "BMP"})

DEFAULT_BACKGROUND = (255, 255, 255)


class ImageHandle(Protocol):
    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def scale_to_fit(
        self, width: Optional[int], height: Optional[int], scale_if_smaller: bool = True
    ) -> "ImageHandle": ...

    def resize(self, width: Optional[int], height: Optional[int]) -> "ImageHandle": ...

    def scale_and_crop(
        self,
        width: Optional[int],
        height: Optional[int],
        scale_if_smaller: bool = True,
        position: CropAnchor = "center-center",
    ) -> "ImageHandle": ...

    def set_quality(self, quality: int) -> "ImageHandle": ...

    def set_interlace(self, interlace: str) -> "ImageHandle": ...

    def save_as(self, path: Union[str, Path]) -> None: ...

    def is_transparent(self) -> bool: ...


class ImageBackend(Protocol):
    @property
    def supports_webp(self) -> bool: ...

    @property
    def supports_avif(self) -> bool: ...

    @property
    def supports_alpha_probe(self) -> bool: ...

    @property
    def supported_formats(self) -> FrozenSet[str]: ...

    def can_manipulate(self, extension: str) -> bool: ...

    def load_image(
        self,
        path: Union[str, Path],
        rasterize: bool = False,
        svg_size: Optional[int] = None,
    ) -> ImageHandle: ...


# =============================================================================
# GEOMETRY
# =============================================================================


def normalize_dimensions(
    width: Optional[int],
    height: Optional[int],
    source_width: int,
    source_height: int,
) -> Tuple[int, int]:
    """
    Fill in a missing target dimension from the source aspect ratio.

    With neither dimension set the source size is returned.
    """
    if not width and not height:
        return source_width, source_height
    if not width:
        return max(1, round(height * source_width / source_height)), height
    if not height:
        return width, max(1, round(width * source_height / source_width))
    return width, height


def calculate_crop_box(
    scaled_width: int,
    scaled_height: int,
    target_width: int,
    target_height: int,
    position: CropAnchor,
) -> Tuple[int, int, int, int]:
    """
    Crop box (left, upper, right, lower) for a scaled image.

    A focal point centers the box on that point, clamped to the image.
    A named position aligns the box to the matching edges.
    """
    if isinstance(position, dict):
        center_x = scaled_width * position["x"]
        center_y = scaled_height * position["y"]
        left = max(0, math.floor(center_x - target_width / 2))
        upper = max(0, math.floor(center_y - target_height / 2))
        left = min(left, max(0, scaled_width - target_width))
        upper = min(upper, max(0, scaled_height - target_height))
    else:
        vertical, _, horizontal = position.partition("-")

        if horizontal == "left":
            left = 0
        elif horizontal == "right":
            left = scaled_width - target_width
        else:
            left = (scaled_width - target_width) // 2

        if vertical == "top":
            upper = 0
        elif vertical == "bottom":
            upper = scaled_height - target_height
        else:
            upper = (scaled_height - target_height) // 2

        left = max(0, left)
        upper = max(0, upper)

    return (
        left,
        upper,
        min(scaled_width, left + target_width),
        min(scaled_height, upper + target_height),
    )


# =============================================================================
# PILLOW IMPLEMENTATION
# =============================================================================


class PillowImage:
    """A loaded raster image with the transform operations applied in place."""

    def __init__(self, image: Image.Image, source_format: Optional[str] = None):
        self._image = image
        self.source_format = source_format
        self.quality: Optional[int] = None
        self.interlace: str = InterlaceMode.NONE.value

    @property
    def image(self) -> Image.Image:
        return self._image

    @property
    def width(self) -> int:
        return self._image.width

    @property
    def height(self) -> int:
        return self._image.height

    def scale_to_fit(
        self, width: Optional[int], height: Optional[int], scale_if_smaller: bool = True
    ) -> "PillowImage":
        target_width, target_height = normalize_dimensions(
            width, height, self.width, self.height
        )
        if (
            scale_if_smaller
            or self.width > target_width
            or self.height > target_height
        ):
            factor = max(self.width / target_width, self.height / target_height)
            self._resample(
                max(1, round(self.width / factor)), max(1, round(self.height / factor))
            )
        return self

    def resize(self, width: Optional[int], height: Optional[int]) -> "PillowImage":
        target_width, target_height = normalize_dimensions(
            width, height, self.width, self.height
        )
        self._resample(target_width, target_height)
        return self

    def scale_and_crop(
        self,
        width: Optional[int],
        height: Optional[int],
        scale_if_smaller: bool = True,
        position: CropAnchor = "center-center",
    ) -> "PillowImage":
        target_width, target_height = normalize_dimensions(
            width, height, self.width, self.height
        )

        if scale_if_smaller or (
            self.width > target_width and self.height > target_height
        ):
            factor = max(target_width / self.width, target_height / self.height)
            self._resample(
                max(1, round(self.width * factor)), max(1, round(self.height * factor))
            )
        else:
            # Never enlarge: crop what fits of the target box
            target_width = min(target_width, self.width)
            target_height = min(target_height, self.height)

        box = calculate_crop_box(
            self.width, self.height, target_width, target_height, position
        )
        self._image = self._image.crop(box)
        return self

    def set_quality(self, quality: int) -> "PillowImage":
        self.quality = max(1, min(100, int(quality)))
        return self

    def set_interlace(self, interlace: str) -> "PillowImage":
        self.interlace = interlace or InterlaceMode.NONE.value
        return self

    def is_transparent(self) -> bool:
        """True when any pixel is not fully opaque."""
        image = self._image
        if image.mode == "P":
            if "transparency" not in image.info:
                return False
            image = image.convert("RGBA")
        if "A" not in image.getbands():
            return False
        min_alpha, _ = image.getchannel("A").getextrema()
        return min_alpha < 255

    def save_as(self, path: Union[str, Path]) -> None:
        path = Path(path)
        extension = path.suffix.lstrip(".").lower()
        save_format = PILLOW_SAVE_FORMATS.get(extension)
        if save_format is None:
            raise UnsupportedFormat(
                f"Cannot save images as '{extension}'", details={"path": str(path)}
            )

        image = self._prepare_for_format(save_format)
        options = self._save_options(save_format)

        path.parent.mkdir(parents=True, exist_ok=True)
        image.save(path, save_format, **options)

        logger.debug(
            f"Saved {image.width}x{image.height} {save_format} to {path.name}",
            emoji=LogEmoji.IMAGE,
        )

    def _resample(self, width: int, height: int) -> None:
        if (width, height) == self._image.size:
            return
        if self._image.mode == "P":
            self._image = self._image.convert("RGBA")
        self._image = self._image.resize((width, height), Image.Resampling.LANCZOS)

    def _prepare_for_format(self, save_format: str) -> Image.Image:
        image = self._image
        if save_format in OPAQUE_SAVE_FORMATS:
            if image.mode in ("RGBA", "LA", "P"):
                rgba = image.convert("RGBA")
                background = Image.new("RGB", rgba.size, DEFAULT_BACKGROUND)
                background.paste(rgba, mask=rgba.getchannel("A"))
                return background
            if image.mode not in ("RGB", "L"):
                return image.convert("RGB")
        return image

    def _save_options(self, save_format: str) -> Dict[str, object]:
        interlaced = self.interlace != InterlaceMode.NONE.value
        options: Dict[str, object] = {}
        if save_format == "JPEG":
            options.update(optimize=True, progressive=interlaced)
            if self.quality is not None:
                options["quality"] = self.quality
        elif save_format in ("WEBP", "AVIF"):
            if self.quality is not None:
                options["quality"] = self.quality
        elif save_format == "PNG":
            options["optimize"] = True
        elif save_format == "GIF":
            options["interlace"] = interlaced
        return options


class PillowImageBackend:
    """Pillow-backed image loading and capability reporting."""

    def __init__(self) -> None:
        registered = {
            extension.lstrip(".").lower()
            for extension, save_format in Image.registered_extensions().items()
            if save_format in Image.OPEN
        }
        self._supported_formats = frozenset(registered & MANIPULABLE_FORMATS)

    @property
    def supports_webp(self) -> bool:
        return bool(features.check("webp"))

    @property
    def supports_avif(self) -> bool:
        return bool(features.check("avif"))

    @property
    def supports_alpha_probe(self) -> bool:
        return True

    @property
    def supported_formats(self) -> FrozenSet[str]:
        return self._supported_formats

    def can_manipulate(self, extension: str) -> bool:
        return extension.lower() in self._supported_formats

    def load_image(
        self,
        path: Union[str, Path],
        rasterize: bool = False,
        svg_size: Optional[int] = None,
    ) -> PillowImage:
        """
        Load an image, applying its EXIF orientation.

        Raises:
            UnsupportedFormat: If the file is vector data or cannot be decoded
        """
        path = Path(path)
        if path.suffix.lower() == ".svg":
            raise UnsupportedFormat(
                "SVG sources cannot be rasterized by the Pillow backend",
                details={"path": str(path), "svg_size": svg_size},
            )

        try:
            with Image.open(path) as source:
                source.load()
                image = ImageOps.exif_transpose(source)
                source_format = source.format
        except (UnidentifiedImageError, OSError) as e:
            raise UnsupportedFormat(
                f"Unable to load image {path.name}: {e}", details={"path": str(path)}
            ) from e

        return PillowImage(image, source_format)
