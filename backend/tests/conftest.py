#!/usr/bin/env python3
# backend/tests/conftest.py
"""
Pytest configuration and shared fixtures for media pipeline tests.
"""

import io
import itertools
from typing import Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from PIL import Image, ImageDraw

from media_pipeline.config import Settings
from media_pipeline.enums import (
    ImageFormat,
    NotifyOutcome,
    TranscodeJobStatus,
    TranscodeMode,
)
from media_pipeline.models.asset_models import AssetId
from media_pipeline.models.result_models import TranscodeStatusReport
from media_pipeline.services.image_pipeline.generators.image_derivative_generator import (
    ImageDerivativeGenerator,
)
from media_pipeline.services.image_pipeline.utils.format_capabilities import (
    FormatCapabilities,
)
from media_pipeline.services.notification.notification_service import NotificationSink
from media_pipeline.services.pipeline.pipeline_orchestrator import PipelineOrchestrator
from media_pipeline.services.storage.blob_store import InMemoryBlobStore
from media_pipeline.services.storage.metadata_store import InMemoryMetadataStore
from media_pipeline.services.transcode.transcode_service import TranscodeJobService
from media_pipeline.services.transform_cache.transform_cache import TransformCache
from media_pipeline.services.video_pipeline.video_derivative_generator import (
    VideoDerivativeGenerator,
)

CDN = "https://cdn.example.com"


# ============================================================================
# IMAGE HELPERS
# ============================================================================


def make_image_bytes(
    size: Tuple[int, int],
    fmt: str = "JPEG",
    color: str = "red",
    exif_orientation: Optional[int] = None,
) -> bytes:
    """Encode a two-tone test image of the given size."""
    img = Image.new("RGB", size, color=color)
    draw = ImageDraw.Draw(img)
    w, h = size
    draw.rectangle([w // 4, h // 4, (3 * w) // 4, (3 * h) // 4], fill="blue")

    buffer = io.BytesIO()
    save_kwargs = {}
    if exif_orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = exif_orientation
        save_kwargs["exif"] = exif.tobytes()
    img.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


# ============================================================================
# FAKE COLLABORATORS
# ============================================================================


class RecordingNotificationSink(NotificationSink):
    """Collects notifications; optionally fails every call."""

    def __init__(self, fail: bool = False):
        self.calls: List[Tuple[AssetId, NotifyOutcome, Optional[str]]] = []
        self.fail = fail

    def notify(self, asset_id, outcome, detail=None):
        self.calls.append((asset_id, outcome, detail))
        if self.fail:
            raise RuntimeError("sink unavailable")


class FakeTranscodeService(TranscodeJobService):
    """Records submissions and reports a configurable status."""

    def __init__(self):
        self.submissions: List[Dict] = []
        self.status = TranscodeJobStatus.RUNNING
        self.error_message: Optional[str] = None
        self.outputs: Dict[str, Dict[str, Tuple[int, int]]] = {}
        self._ids = itertools.count(1)

    def submit(self, input_key, specs, output_prefix, user_metadata):
        job_id = f"job-{next(self._ids)}"
        self.submissions.append(
            {
                "job_id": job_id,
                "input_key": input_key,
                "specs": specs,
                "output_prefix": output_prefix,
                "user_metadata": user_metadata,
            }
        )
        return job_id

    def get_status(self, job_id):
        return TranscodeStatusReport(
            job_id=job_id,
            status=self.status,
            error_message=self.error_message,
            outputs=self.outputs,
        )


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        environment="test",
        media_bucket="test-bucket",
        public_base_url=CDN,
        image_workers=2,
        video_workers=2,
        transform_cache_workers=1,
    )


@pytest.fixture
def managed_settings():
    return Settings(
        _env_file=None,
        environment="test",
        media_bucket="test-bucket",
        public_base_url=CDN,
        transcode_mode=TranscodeMode.MANAGED,
        mediaconvert_role_arn="arn:aws:iam::123456789012:role/MediaConvert",
    )


@pytest.fixture
def capabilities():
    """Encoders every Pillow wheel ships; heif/avif resolve to jpg."""
    return FormatCapabilities(frozenset({ImageFormat.JPG, ImageFormat.PNG, ImageFormat.WEBP}))


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def metadata_store():
    return InMemoryMetadataStore()


@pytest.fixture
def notification_sink():
    return RecordingNotificationSink()


@pytest.fixture
def transcode_service():
    return FakeTranscodeService()


@pytest.fixture
def image_generator(blob_store, settings, capabilities):
    return ImageDerivativeGenerator(blob_store, settings, capabilities)


@pytest.fixture
def transform_cache(blob_store, settings, capabilities):
    cache = TransformCache(blob_store, settings, capabilities)
    yield cache
    cache.shutdown()


@pytest.fixture
def mock_video_generator():
    return MagicMock(spec=VideoDerivativeGenerator)


@pytest.fixture
def pipeline(
    settings,
    blob_store,
    metadata_store,
    image_generator,
    mock_video_generator,
    transform_cache,
    notification_sink,
):
    """Local-mode orchestrator with a mocked video generator."""
    return PipelineOrchestrator(
        settings=settings,
        blob_store=blob_store,
        metadata_store=metadata_store,
        image_generator=image_generator,
        video_generator=mock_video_generator,
        transform_cache=transform_cache,
        notification_sink=notification_sink,
    )


@pytest.fixture
def managed_pipeline(
    managed_settings,
    blob_store,
    metadata_store,
    capabilities,
    transcode_service,
    notification_sink,
):
    return PipelineOrchestrator(
        settings=managed_settings,
        blob_store=blob_store,
        metadata_store=metadata_store,
        image_generator=ImageDerivativeGenerator(blob_store, managed_settings, capabilities),
        transcode_service=transcode_service,
        notification_sink=notification_sink,
    )


@pytest.fixture
def sample_jpeg():
    """Landscape 2400×1600 JPEG."""
    return make_image_bytes((2400, 1600))


@pytest.fixture
def small_jpeg():
    """200×200 JPEG, smaller than every ladder rung."""
    return make_image_bytes((200, 200))


@pytest.fixture
def make_image():
    """Factory fixture wrapping make_image_bytes."""
    return make_image_bytes


@pytest.fixture
def failing_notification_sink():
    """Sink whose every notify call raises."""
    return RecordingNotificationSink(fail=True)
