# backend/asset_transforms/services/volume.py
"""
Storage volumes.

Renditions are written next to their asset on the asset's volume. The
transform services only need the small capability surface in the Volume
protocol; LocalVolume implements it on a directory of the local filesystem.
"""

import shutil
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Protocol, Union

from ..enums import LogEmoji, LoggerName, LogSource
from ..exceptions import VolumeError
from ..utils.time_utils import from_timestamp
from .logger import get_service_logger

logger = get_service_logger(LoggerName.VOLUME, LogSource.STORAGE)

COPY_CHUNK_SIZE = 1024 * 1024


class Volume(Protocol):
    """Capabilities the transform services need from a storage volume."""

    @property
    def is_local(self) -> bool:
        """True when files can be read straight from local_path()."""
        ...

    def file_exists(self, path: str) -> bool: ...

    def get_date_modified(self, path: str) -> datetime: ...

    def copy_file(self, source: str, destination: str) -> None: ...

    def delete_file(self, path: str) -> None: ...

    def write_file_from_stream(self, path: str, stream: BinaryIO) -> None: ...

    def download_file(self, path: str, local_destination: Union[str, Path]) -> None: ...

    def local_path(self, path: str) -> Optional[Path]: ...

    def build_url(self, path: str) -> str: ...


# Maps a volume ID to its volume
VolumeResolver = Callable[[int], Volume]


class LocalVolume:
    """A volume stored in a directory on the local filesystem."""

    def __init__(self, root: Union[str, Path], base_url: str = "/"):
        self.root = Path(root)
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def is_local(self) -> bool:
        return True

    def _resolve(self, path: str) -> Path:
        relative = path.replace("\\", "/").lstrip("/")
        resolved = (self.root / relative).resolve()
        if not resolved.is_relative_to(self.root.resolve()):
            raise VolumeError(
                f"Path escapes the volume root: {path}", details={"path": path}
            )
        return resolved

    def file_exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def get_date_modified(self, path: str) -> datetime:
        try:
            return from_timestamp(self._resolve(path).stat().st_mtime)
        except OSError as e:
            raise VolumeError(f"Unable to stat {path}: {e}", details={"path": path}) from e

    def copy_file(self, source: str, destination: str) -> None:
        source_path = self._resolve(source)
        destination_path = self._resolve(destination)
        try:
            destination_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source_path, destination_path)
        except OSError as e:
            raise VolumeError(
                f"Unable to copy {source} to {destination}: {e}",
                details={"source": source, "destination": destination},
            ) from e
        logger.debug(f"Copied {source} to {destination}", emoji=LogEmoji.COPY)

    def delete_file(self, path: str) -> None:
        """Delete a file; a missing file is not an error."""
        try:
            self._resolve(path).unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise VolumeError(f"Unable to delete {path}: {e}", details={"path": path}) from e

    def write_file_from_stream(self, path: str, stream: BinaryIO) -> None:
        destination_path = self._resolve(path)
        try:
            destination_path.parent.mkdir(parents=True, exist_ok=True)
            with open(destination_path, "wb") as destination:
                shutil.copyfileobj(stream, destination, COPY_CHUNK_SIZE)
        except OSError as e:
            raise VolumeError(f"Unable to write {path}: {e}", details={"path": path}) from e

    def download_file(self, path: str, local_destination: Union[str, Path]) -> None:
        source_path = self._resolve(path)
        destination = Path(local_destination)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source_path, destination)
        except OSError as e:
            raise VolumeError(
                f"Unable to download {path}: {e}", details={"path": path}
            ) from e

    def local_path(self, path: str) -> Optional[Path]:
        return self._resolve(path)

    def build_url(self, path: str) -> str:
        return f"{self.base_url}{path.lstrip('/')}"
