# backend/asset_transforms/utils/temp_file_manager.py
"""
Temporary File Management Utilities

Provides centralized management of the temporary files used by the transform
pipeline: downloaded sources of remote assets and renders waiting to be
written to their volume.
"""

import time
import uuid
from pathlib import Path
from typing import List, Optional, Union

from ..constants import TEMP_SOURCE_DELIMITER
from ..enums import LogEmoji, LoggerName, LogSource
from ..services.logger import get_service_logger

logger = get_service_logger(LoggerName.UTILITY, LogSource.STORAGE)


class TempFileManager:
    """
    Manager for temporary file operations with cleanup helpers.

    Handles creation and cleanup of temporary files used for source
    downloads and in-flight renders.
    """

    def __init__(self, base_temp_dir: Union[str, Path], max_age_hours: int = 2):
        """
        Initialize temporary file manager.

        Args:
            base_temp_dir: Base directory for temporary files
            max_age_hours: Maximum age of files before cleanup (default: 2 hours)
        """
        self.base_temp_dir = Path(base_temp_dir)
        self.max_age_hours = max_age_hours

        self.render_dir = self.base_temp_dir / "renders"
        self.download_dir = self.base_temp_dir / "downloads"

        self.ensure_directories_exist()

    def create_render_path(self, extension: str) -> Path:
        """
        Create a unique file path for a render before it is written to a volume.

        Args:
            extension: File extension without the leading dot

        Returns:
            Unique file path inside the render directory
        """
        return self.render_dir / f"transform_{uuid.uuid4().hex}.{extension}"

    def create_download_path(self, filename: str) -> Path:
        """
        Create a unique file path for a downloaded copy of an asset source.

        The asset stem is kept as a prefix so stale downloads of the same asset
        can be found again by cleanup_stale_downloads().

        Args:
            filename: Original asset filename

        Returns:
            Unique file path inside the download directory
        """
        stem, extension = _split_filename(filename)
        unique = uuid.uuid4().hex
        name = f"{stem}{TEMP_SOURCE_DELIMITER}{unique}"
        if extension:
            name = f"{name}.{extension}"
        return self.download_dir / name

    def cleanup_stale_downloads(self, filename: str) -> int:
        """
        Remove earlier downloads of the same asset source.

        Args:
            filename: Original asset filename

        Returns:
            Number of files removed
        """
        stem, extension = _split_filename(filename)
        pattern = f"{stem}{TEMP_SOURCE_DELIMITER}*"
        if extension:
            pattern = f"{pattern}.{extension}"

        cleaned_count = 0
        for file_path in self.download_dir.glob(pattern):
            if remove_file_quietly(file_path):
                cleaned_count += 1

        if cleaned_count > 0:
            logger.debug(
                f"Removed {cleaned_count} stale downloads of {filename}",
                emoji=LogEmoji.CLEANUP,
            )

        return cleaned_count

    def cleanup_old_files(self, max_age_hours: Optional[int] = None) -> int:
        """
        Clean up temporary files older than the specified age.

        Args:
            max_age_hours: Maximum age in hours (defaults to instance max_age_hours)

        Returns:
            Number of files cleaned up
        """
        if max_age_hours is None:
            max_age_hours = self.max_age_hours

        cutoff_time = time.time() - (max_age_hours * 3600)
        cleaned_count = 0

        for directory in self._managed_directories():
            if not directory.exists():
                continue
            for file_path in directory.iterdir():
                if not file_path.is_file():
                    continue
                try:
                    if file_path.stat().st_mtime < cutoff_time:
                        file_path.unlink()
                        cleaned_count += 1
                        logger.debug(f"Cleaned up old temporary file: {file_path}")
                except OSError as e:
                    logger.warning(
                        f"Failed to clean up temporary file {file_path}: {e}"
                    )

        if cleaned_count > 0:
            logger.info(
                f"Cleaned up {cleaned_count} old temporary files (older than {max_age_hours} hours)",
                emoji=LogEmoji.CLEANUP,
            )

        return cleaned_count

    def ensure_directories_exist(self) -> None:
        """Ensure all temporary directories exist."""
        for directory in self._managed_directories():
            directory.mkdir(parents=True, exist_ok=True)

    def _managed_directories(self) -> List[Path]:
        return [self.render_dir, self.download_dir]


def _split_filename(filename: str):
    path = Path(filename)
    return path.stem, path.suffix.lstrip(".")


def remove_file_quietly(file_path: Union[str, Path]) -> bool:
    """
    Delete a file, logging instead of raising on failure.

    Returns:
        True if the file was removed
    """
    try:
        Path(file_path).unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {file_path}: {e}")
        return False
