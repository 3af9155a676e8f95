# backend/media_pipeline/services/pipeline/__init__.py
"""
Media Pipeline Module

Orchestration of upload triggers, the asset state machine and the
generators behind them.

Usage:
    pipeline = create_media_pipeline(get_settings())
    pipeline.on_object_created("media-uploads", "projects/p1/media/m1/photo.jpg", 1024)
"""

from typing import Optional

from ...config import Settings, get_settings
from ...enums import LogEmoji, LoggerName, LogSource, TranscodeMode
from ..image_pipeline import create_image_generator
from ..image_pipeline.utils.format_capabilities import (
    FormatCapabilities,
    detect_format_capabilities,
)
from ..logger import get_service_logger
from ..notification.notification_service import NotificationSink, create_notification_sink
from ..storage.blob_store import BlobStore
from ..storage.metadata_store import DynamoMetadataStore, MetadataStore
from ..storage.s3_blob_store import S3BlobStore
from ..transcode.mediaconvert_service import MediaConvertJobService
from ..transcode.transcode_service import TranscodeJobService
from ..transform_cache import create_transform_cache
from ..video_pipeline import create_video_generator
from .cover_policy import select_cover_candidate
from .pipeline_orchestrator import (
    PipelineOrchestrator,
    build_image_manifest,
    build_video_manifest,
)
from .state_machine import TRANSITIONS, can_transition, is_terminal, transition

logger = get_service_logger(LoggerName.MEDIA_PIPELINE, LogSource.SYSTEM)


def create_media_pipeline(
    settings: Optional[Settings] = None,
    blob_store: Optional[BlobStore] = None,
    metadata_store: Optional[MetadataStore] = None,
    transcode_service: Optional[TranscodeJobService] = None,
    notification_sink: Optional[NotificationSink] = None,
    capabilities: Optional[FormatCapabilities] = None,
) -> PipelineOrchestrator:
    """
    Factory function to create a fully wired media pipeline.

    Collaborators not supplied are built from settings: S3 blob store,
    DynamoDB metadata store, MediaConvert in managed mode and SNS or
    log-only notifications.

    Args:
        settings: Pipeline settings (process-wide settings if omitted)
        blob_store: Storage collaborator
        metadata_store: Asset record store
        transcode_service: Managed transcode service
        notification_sink: Terminal outcome sink
        capabilities: Detected encoder support

    Returns:
        PipelineOrchestrator with all dependencies injected
    """
    settings = settings or get_settings()
    blob_store = blob_store or S3BlobStore(settings)
    metadata_store = metadata_store or DynamoMetadataStore(settings)
    capabilities = capabilities or detect_format_capabilities()

    video_generator = None
    if settings.transcode_mode == TranscodeMode.MANAGED:
        transcode_service = transcode_service or MediaConvertJobService(settings)
    else:
        video_generator = create_video_generator(blob_store, settings)

    pipeline = PipelineOrchestrator(
        settings=settings,
        blob_store=blob_store,
        metadata_store=metadata_store,
        image_generator=create_image_generator(blob_store, settings, capabilities),
        video_generator=video_generator,
        transform_cache=create_transform_cache(blob_store, settings, capabilities),
        transcode_service=transcode_service,
        notification_sink=notification_sink or create_notification_sink(settings),
    )

    logger.info(
        f"Media pipeline created (transcode={settings.transcode_mode.value}, {capabilities})",
        emoji=LogEmoji.FACTORY,
    )
    return pipeline


__all__ = [
    # Factory
    "create_media_pipeline",
    # Orchestrator
    "PipelineOrchestrator",
    "build_image_manifest",
    "build_video_manifest",
    # Policy
    "select_cover_candidate",
    # State machine
    "TRANSITIONS",
    "can_transition",
    "is_terminal",
    "transition",
]
