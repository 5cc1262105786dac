# backend/asset_transforms/enums.py
"""
Application Enums - Centralized enum definitions.

Both constants.py and the models import from here, which keeps the two free
of circular dependencies.
"""

from enum import Enum


# =============================================================================
# TRANSFORM SYSTEM
# =============================================================================


class TransformMode(str, Enum):
    """How a transform maps the source onto the target box."""

    CROP = "crop"
    FIT = "fit"
    STRETCH = "stretch"


class TransformPosition(str, Enum):
    """Crop anchors, expressed as vertical-horizontal."""

    TOP_LEFT = "top-left"
    TOP_CENTER = "top-center"
    TOP_RIGHT = "top-right"
    CENTER_LEFT = "center-left"
    CENTER_CENTER = "center-center"
    CENTER_RIGHT = "center-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_CENTER = "bottom-center"
    BOTTOM_RIGHT = "bottom-right"


class InterlaceMode(str, Enum):
    """Interlace settings understood by the image backend."""

    NONE = "none"
    LINE = "line"
    PLANE = "plane"
    PARTITION = "partition"


class TransformFormat(str, Enum):
    """Output formats a transform may request explicitly."""

    JPG = "jpg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"
    AVIF = "avif"


class AssetKind(str, Enum):
    """Asset kinds relevant to transform generation."""

    IMAGE = "image"
    VIDEO = "video"
    PDF = "pdf"
    UNKNOWN = "unknown"


class TransformHook(str, Enum):
    """Observer registration points exposed by the transform services."""

    BEFORE_SAVE_TRANSFORM = "before_save_transform"
    AFTER_SAVE_TRANSFORM = "after_save_transform"
    BEFORE_DELETE_TRANSFORM = "before_delete_transform"
    BEFORE_APPLY_TRANSFORM_DELETE = "before_apply_transform_delete"
    AFTER_DELETE_TRANSFORM = "after_delete_transform"
    GENERATE_TRANSFORM = "generate_transform"
    BEFORE_DELETE_TRANSFORMS = "before_delete_transforms"
    AFTER_DELETE_TRANSFORMS = "after_delete_transforms"


class WaitResult(str, Enum):
    """Outcome of waiting on another worker's in-progress transform."""

    SATISFIED = "satisfied"
    EXHAUSTED = "exhausted"


# =============================================================================
# LOGGING SYSTEM
# =============================================================================


class LogLevel(str, Enum):
    """Log level constants for centralized logging system."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogSource(str, Enum):
    """Log source constants for identifying log origins."""

    SYSTEM = "system"
    DATABASE = "database"
    PIPELINE = "pipeline"
    STORAGE = "storage"
    CONFIG = "config"


class LogEmoji(str, Enum):
    """Type-safe emoji constants for log messages."""

    # Status emojis
    SUCCESS = "✅"
    COMPLETED = "✅"
    PENDING = "⏳"
    FAILED = "❌"
    ERROR = "❌"
    WARNING = "⚠️"
    INFO = "ℹ️"
    DEBUG = "🐞"
    CRITICAL = "☠️"

    # Work emojis
    PROCESSING = "🔄"
    WAITING = "⏳"

    # Image emojis
    IMAGE = "🖼️"
    TRANSFORM = "🎨"

    # System emojis
    SYSTEM = "⚙️"
    CLEANUP = "🧹"
    CACHE = "🗄️"

    # Database emojis
    DATABASE = "🗄️"
    STORAGE = "💾"

    # Action emojis
    CREATE = "➕"
    UPDATE = "✏️"
    DELETE = "🗑️"
    COPY = "📋"
    DOWNLOAD = "📥"
    SEARCH = "🔍"


class LoggerName(str, Enum):
    """Logger name constants for categorizing log entries."""

    # Pipeline loggers
    TRANSFORM_PIPELINE = "transform_pipeline"
    TRANSFORM_GENERATOR = "transform_generator"
    GENERATION_COORDINATOR = "generation_coordinator"
    TRANSFORM_INDEX = "transform_index"
    TRANSFORM_CLEANUP = "transform_cleanup"

    # Service loggers
    TRANSFORM_DEFINITIONS = "transform_definitions"
    SOURCE_SERVICE = "source_service"
    IMAGE_BACKEND = "image_backend"
    CONFIG_STORE = "config_store"
    VOLUME = "volume"

    # Infrastructure loggers
    DATABASE = "database"
    SYSTEM = "system"
    UTILITY = "utility"
