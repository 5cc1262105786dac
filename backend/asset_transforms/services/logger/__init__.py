"""
Centralized Logger Service Module.

A unified logging interface built on loguru.

Features:
- Type-safe enum-based logging methods
- Console and rotating file sinks
- Structured context bound to every record

Usage:
    from asset_transforms.services.logger import get_service_logger
    from asset_transforms.enums import LogSource, LoggerName

    logger = get_service_logger(LoggerName.TRANSFORM_PIPELINE, LogSource.PIPELINE)
    logger.info("Transform generated", extra_context={"index_id": 12})
"""

# Re-export commonly used enums for convenience
from ...enums import LogEmoji, LoggerName, LogLevel, LogSource
from .logger_service import configure_logging, get_service_logger

__all__ = [
    "configure_logging",
    "get_service_logger",
    # Enums
    "LogLevel",
    "LogSource",
    "LoggerName",
    "LogEmoji",
]
