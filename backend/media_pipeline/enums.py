# backend/media_pipeline/enums.py
"""
Application Enums - Centralized enum definitions.

All enums live here so constants, models and services can import them
without circular dependencies.
"""

from enum import Enum


# =============================================================================
# MEDIA CLASSIFICATION
# =============================================================================


class MediaKind(str, Enum):
    """Kind of uploaded original. Must be: image, video."""

    IMAGE = "image"
    VIDEO = "video"


class ImageFormat(str, Enum):
    """Encoded image formats produced by the image ladder and transform cache."""

    JPG = "jpg"
    WEBP = "webp"
    HEIF = "heif"
    AVIF = "avif"
    PNG = "png"


class RenditionRole(str, Enum):
    """Role of a planned rendition within an asset's ladder."""

    BLUR_PLACEHOLDER = "blur_placeholder"
    IMAGE_RUNG = "image_rung"
    HLS = "hls"
    POSTER = "poster"
    DOWNLOAD = "download"
    ORIGINAL_DOWNLOAD = "original_download"


# =============================================================================
# ASSET LIFECYCLE
# =============================================================================


class AssetStatus(str, Enum):
    """Asset processing states. Must be: pending, processing, ready, failed."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class PipelineEvent(str, Enum):
    """Events that drive the asset state machine."""

    START_PROCESSING = "start_processing"
    COMPLETE = "complete"
    FAIL = "fail"
    REPROCESS = "reprocess"


class TranscodeJobStatus(str, Enum):
    """External transcode job states."""

    SUBMITTED = "submitted"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELED = "canceled"


class TranscodeMode(str, Enum):
    """Where video renditions are encoded."""

    LOCAL = "local"
    MANAGED = "managed"


class NotifyOutcome(str, Enum):
    """Terminal outcome reported to the notification sink."""

    SUCCESS = "success"
    FAILED = "failed"


class TriggerDisposition(str, Enum):
    """What the trigger entrypoint did with an object-created event."""

    PROCESSED = "processed"
    SUBMITTED = "submitted"
    IGNORED_DERIVATIVE = "ignored_derivative"
    IGNORED_MALFORMED_KEY = "ignored_malformed_key"
    IGNORED_UNSUPPORTED_TYPE = "ignored_unsupported_type"
    IGNORED_DUPLICATE = "ignored_duplicate"
    FAILED = "failed"


# =============================================================================
# LOGGING
# =============================================================================


class LogLevel(str, Enum):
    """Log level constants for the logging system."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogSource(str, Enum):
    """Log source constants for identifying log origins."""

    API = "api"
    SYSTEM = "system"
    PIPELINE = "pipeline"
    STORAGE = "storage"
    WORKER = "worker"


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
    CANCELED = "🚫"
    SKIPPED = "⏭️"

    # Work emojis
    PROCESSING = "🔄"
    JOB = "🔄"

    # Media emojis
    VIDEO = "🎥"
    IMAGE = "🖼️"
    THUMBNAIL = "🖼️"

    # System emojis
    STARTUP = "🚀"
    CACHE = "🗄️"
    STORAGE = "💾"
    NOTIFICATION = "🔔"
    SEARCH = "🔍"
    FACTORY = "🏭"


class LoggerName(str, Enum):
    """Logger name constants for categorizing log entries."""

    # API loggers
    REQUEST_LOGGER = "request_logger"

    # Pipeline loggers
    MEDIA_PIPELINE = "media_pipeline"
    IMAGE_PIPELINE = "image_pipeline"
    VIDEO_PIPELINE = "video_pipeline"
    TRANSFORM_CACHE = "transform_cache"
    RENDITION_PLANNER = "rendition_planner"

    # Collaborator loggers
    STORAGE = "storage"
    METADATA = "metadata"
    TRANSCODE = "transcode"
    NOTIFICATION = "notification"

    SYSTEM = "system"
