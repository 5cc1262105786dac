"""
Centralized Logger Service for Asset Transforms.

This service provides a unified logging interface on top of loguru:
- Console output with emoji support
- Optional file logging with rotation and retention
- Structured context bound to every record (source, logger name, context)

Architecture:
- Type-safe enum-based configuration
- One loguru logger shared by every service logger
- Emoji priority system for consistent visual scanning
"""

import sys
from typing import Any, Dict, Optional

from loguru import logger

from ...enums import LogEmoji, LoggerName, LogLevel, LogSource
from .constants import (
    CONSOLE_LOG_FORMAT,
    FILE_LOG_COMPRESSION,
    FILE_LOG_FORMAT,
    FILE_LOG_RETENTION,
    FILE_LOG_ROTATION,
)

_configured_sink_ids: list[int] = []


def configure_logging(
    level: LogLevel = LogLevel.INFO,
    log_file: Optional[str] = None,
    colorize: Optional[bool] = None,
) -> None:
    """
    Install the console sink (and the optional rotating file sink).

    Safe to call more than once: sinks installed by a previous call are
    replaced, sinks added elsewhere are left alone.

    Args:
        level: Minimum level written by the sinks
        log_file: Path of the rotating log file, None disables file logging
        colorize: Force ANSI colors on or off (auto-detected when None)
    """
    # loguru ships with a default stderr sink at id 0
    try:
        logger.remove(0)
    except ValueError:
        pass

    while _configured_sink_ids:
        logger.remove(_configured_sink_ids.pop())

    level_name = level.value if isinstance(level, LogLevel) else str(level).upper()

    # Records logged straight through loguru still need the format fields
    logger.configure(
        extra={"source": LogSource.SYSTEM.value, "logger_name": "root", "context": {}}
    )

    _configured_sink_ids.append(
        logger.add(
            sys.stderr,
            level=level_name,
            format=CONSOLE_LOG_FORMAT,
            colorize=colorize,
            backtrace=False,
            diagnose=False,
        )
    )

    if log_file:
        _configured_sink_ids.append(
            logger.add(
                log_file,
                level=level_name,
                format=FILE_LOG_FORMAT,
                rotation=FILE_LOG_ROTATION,
                retention=FILE_LOG_RETENTION,
                compression=FILE_LOG_COMPRESSION,
                enqueue=True,
            )
        )


def _format_message(emoji: LogEmoji, message: str) -> str:
    """Prefix the message with its emoji unless it already carries one."""
    emoji_text = emoji.value if isinstance(emoji, LogEmoji) else str(emoji)
    if message.startswith(emoji_text):
        return message
    return f"{emoji_text} {message}"


def _log(
    level: LogLevel,
    message: str,
    source: LogSource,
    logger_name: LoggerName,
    emoji: LogEmoji,
    context: Optional[Dict[str, Any]] = None,
    exception: Optional[BaseException] = None,
) -> None:
    bound = logger.bind(
        source=source.value,
        logger_name=logger_name.value,
        context=context or {},
    )
    # depth=2 reports the caller of the ServiceLogger method
    bound.opt(depth=2, exception=exception).log(
        level.value, _format_message(emoji, message)
    )


def get_service_logger(
    logger_name: LoggerName,
    source: LogSource = LogSource.SYSTEM,
    default_emoji: Optional[LogEmoji] = None,
):
    """
    Factory function to create a pre-configured logger for a specific service.

    Returns a logger with simplified methods that automatically include
    the correct source and logger_name parameters.

    Emoji priority system (highest to lowest):
    1. Direct: Emoji passed directly to log method call
    2. Instance-set: Default emoji set when creating the service logger
    3. Fallback: Default emoji based on log level (ERROR, WARNING, INFO, DEBUG)

    Args:
        logger_name: The logger name enum to use for all calls
        source: The log source enum to use for all calls (defaults to SYSTEM)
        default_emoji: Instance-level default emoji that overrides level-based fallbacks

    Returns:
        ServiceLogger instance with error, warning, info, debug methods

    Example:
        from ...services.logger import get_service_logger
        from ...enums import LogEmoji, LoggerName

        # Basic usage - uses fallback emojis (ERROR, WARNING, INFO, DEBUG)
        logger = get_service_logger(LoggerName.TRANSFORM_PIPELINE)
        logger.error("Something went wrong")  # Uses LogEmoji.ERROR (fallback)

        # Instance-level emoji - overrides fallbacks for all levels
        image_logger = get_service_logger(LoggerName.IMAGE_BACKEND, default_emoji=LogEmoji.IMAGE)
        image_logger.info("Backend ready")   # Uses LogEmoji.IMAGE (instance-set)

        # Direct emoji - highest priority, overrides both instance and fallback
        image_logger.error("Decode failure", emoji=LogEmoji.FAILED)  # Uses LogEmoji.FAILED
    """

    def _resolve_emoji(
        method_emoji: Optional[LogEmoji], fallback_emoji: LogEmoji
    ) -> LogEmoji:
        """
        Resolve emoji using three-tier priority system:
        1. Direct (method_emoji) - highest priority
        2. Instance-set (default_emoji) - medium priority
        3. Fallback (fallback_emoji) - lowest priority
        """
        if method_emoji is not None:
            return method_emoji  # Direct priority
        if default_emoji is not None:
            return default_emoji  # Instance-set priority
        return fallback_emoji  # Fallback priority

    class ServiceLogger:
        name = logger_name

        @staticmethod
        def error(
            message: str,
            exception: Optional[BaseException] = None,
            error_context: Optional[Dict[str, Any]] = None,
            emoji: Optional[LogEmoji] = None,
            **kwargs,
        ):
            """Log an error with emoji priority system."""
            context = dict(error_context or {})
            if exception is not None:
                context.setdefault("error_type", type(exception).__name__)
                context.setdefault("error", str(exception))
            _log(
                LogLevel.ERROR,
                message,
                source,
                logger_name,
                _resolve_emoji(emoji, LogEmoji.ERROR),
                context=context,
                exception=exception,
            )

        @staticmethod
        def warning(
            message: str,
            extra_context: Optional[Dict[str, Any]] = None,
            emoji: Optional[LogEmoji] = None,
            **kwargs,
        ):
            """Log a warning with emoji priority system."""
            _log(
                LogLevel.WARNING,
                message,
                source,
                logger_name,
                _resolve_emoji(emoji, LogEmoji.WARNING),
                context=extra_context,
            )

        @staticmethod
        def info(
            message: str,
            extra_context: Optional[Dict[str, Any]] = None,
            emoji: Optional[LogEmoji] = None,
            **kwargs,
        ):
            """Log an info message with emoji priority system."""
            _log(
                LogLevel.INFO,
                message,
                source,
                logger_name,
                _resolve_emoji(emoji, LogEmoji.INFO),
                context=extra_context,
            )

        @staticmethod
        def debug(
            message: str,
            extra_context: Optional[Dict[str, Any]] = None,
            emoji: Optional[LogEmoji] = None,
            **kwargs,
        ):
            """Log a debug message with emoji priority system."""
            _log(
                LogLevel.DEBUG,
                message,
                source,
                logger_name,
                _resolve_emoji(emoji, LogEmoji.DEBUG),
                context=extra_context,
            )

    return ServiceLogger()
