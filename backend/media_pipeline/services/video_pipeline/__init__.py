# backend/media_pipeline/services/video_pipeline/__init__.py
"""
Video Pipeline Module

Local FFmpeg video derivative generation: poster, HLS ladder, master
playlist and downloads.
"""

from ...config import Settings
from ...enums import LogEmoji, LoggerName, LogSource
from ..logger import get_service_logger
from ..storage.blob_store import BlobStore
from .ffmpeg_utils import (
    build_download_command,
    build_hls_command,
    build_poster_command,
    check_ffmpeg_available,
    even_fit_dimensions,
    execute_ffmpeg_command,
    inspect_video,
    poster_seek_seconds,
)
from .hls_utils import build_master_playlist, hls_content_type, sort_by_bitrate
from .video_derivative_generator import (
    VideoDerivativeGenerator,
    attachment_disposition,
    original_download_filename,
    persist_original_download,
)

logger = get_service_logger(LoggerName.VIDEO_PIPELINE, LogSource.SYSTEM)


def create_video_generator(
    blob_store: BlobStore, settings: Settings
) -> VideoDerivativeGenerator:
    """
    Factory function to create a local video derivative generator.

    Args:
        blob_store: Storage collaborator derivatives are written to
        settings: Immutable pipeline settings

    Returns:
        VideoDerivativeGenerator with all dependencies injected
    """
    available, detail = check_ffmpeg_available(settings.ffmpeg_binary)
    if available:
        logger.info(f"Using {detail}", emoji=LogEmoji.VIDEO)
    else:
        logger.warning(f"FFmpeg unavailable, local video renditions will fail: {detail}")
    return VideoDerivativeGenerator(blob_store=blob_store, settings=settings)


__all__ = [
    # Factory
    "create_video_generator",
    # Generator
    "VideoDerivativeGenerator",
    "attachment_disposition",
    "original_download_filename",
    "persist_original_download",
    # FFmpeg utils
    "build_download_command",
    "build_hls_command",
    "build_poster_command",
    "check_ffmpeg_available",
    "even_fit_dimensions",
    "execute_ffmpeg_command",
    "inspect_video",
    "poster_seek_seconds",
    # HLS utils
    "build_master_playlist",
    "hls_content_type",
    "sort_by_bitrate",
]
