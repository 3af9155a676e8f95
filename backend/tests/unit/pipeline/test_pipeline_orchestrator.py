#!/usr/bin/env python3
"""
Unit tests for PipelineOrchestrator.

Tests cover:
- Trigger filtering (derivative, malformed, unsupported, duplicate)
- Image and local video processing through the state machine
- Manifest write ordering and failure handling
- Managed transcode submission, completion and polling
- Reprocessing
"""

import threading
from unittest.mock import patch

import pytest

from media_pipeline.config import Settings
from media_pipeline.enums import (
    AssetStatus,
    MediaKind,
    NotifyOutcome,
    TranscodeJobStatus,
    TranscodeMode,
    TriggerDisposition,
)
from media_pipeline.exceptions import (
    AssetNotFoundError,
    ConfigurationError,
    InvalidStateTransitionError,
    SourceUnreadableError,
)
from media_pipeline.models.asset_models import AssetId, HlsManifest, Rendition
from media_pipeline.models.result_models import VideoGenerationResult
from media_pipeline.services.pipeline.pipeline_orchestrator import PipelineOrchestrator

BUCKET = "test-bucket"
IMAGE_KEY = "projects/p1/media/m1/photo.jpg"
VIDEO_KEY = "projects/p1/media/v1/clip.mp4"
IMAGE_ID = AssetId(project_id="p1", media_id="m1")
VIDEO_ID = AssetId(project_id="p1", media_id="v1")
CDN = "https://cdn.example.com"


def _video_result():
    prefix = f"{CDN}/projects/p1/media/v1"
    return VideoGenerationResult(
        success=True,
        width=1920,
        height=1080,
        duration_seconds=10.0,
        poster=Rendition(label="poster", width=300, height=168, format="jpg", url=f"{prefix}/thumb.jpg"),
        hls=HlsManifest(
            master=f"{prefix}/hls/master.m3u8",
            renditions=[
                Rendition(label="480p", width=640, height=360, format="hls", url=f"{prefix}/hls/480p/480p.m3u8", bitrate=1000000),
            ],
        ),
        downloads=[Rendition(label="1080p", width=1920, height=1080, format="mp4", url=f"{prefix}/downloads/1080p.mp4")],
    )


@pytest.fixture
def seeded_image(blob_store, sample_jpeg):
    blob_store.put(IMAGE_KEY, sample_jpeg, content_type="image/jpeg")
    return IMAGE_KEY


@pytest.fixture
def seeded_video(blob_store):
    blob_store.put(VIDEO_KEY, b"mp4-bytes", content_type="video/mp4")
    return VIDEO_KEY


@pytest.mark.unit
@pytest.mark.pipeline
class TestTriggerFiltering:
    """Test suite for events that must not start processing."""

    @pytest.mark.parametrize(
        "key",
        [
            "projects/p1/media/m1/thumb.jpg",
            "projects/p1/media/m1/640w.webp",
            "projects/p1/media/v1/hls/720p/seg_0003.m4s",
            "proxy-cache/0123abcd_w500_q80.webp",
        ],
    )
    def test_derivative_keys_ignored(self, pipeline, metadata_store, key):
        result = pipeline.on_object_created(BUCKET, key)

        assert result.disposition == TriggerDisposition.IGNORED_DERIVATIVE
        assert result.ignored
        assert len(metadata_store) == 0

    def test_malformed_key_ignored(self, pipeline, metadata_store):
        result = pipeline.on_object_created(BUCKET, "uploads/photo.jpg")

        assert result.disposition == TriggerDisposition.IGNORED_MALFORMED_KEY
        assert len(metadata_store) == 0

    def test_unsupported_type_ignored(self, pipeline, metadata_store, notification_sink):
        result = pipeline.on_object_created(BUCKET, "projects/p1/media/d1/report.pdf")

        assert result.disposition == TriggerDisposition.IGNORED_UNSUPPORTED_TYPE
        assert len(metadata_store) == 0
        assert notification_sink.calls == []

    def test_encoded_key_is_decoded(self, pipeline, blob_store, sample_jpeg):
        blob_store.put("projects/p1/media/m1/my photo.jpg", sample_jpeg, "image/jpeg")

        result = pipeline.on_object_created(BUCKET, "projects/p1/media/m1/my+photo.jpg")

        assert result.disposition == TriggerDisposition.PROCESSED
        assert result.key == "projects/p1/media/m1/my photo.jpg"


@pytest.mark.unit
@pytest.mark.pipeline
class TestImageProcessing:
    """Test suite for image originals."""

    def test_image_becomes_ready(self, pipeline, metadata_store, notification_sink, seeded_image):
        result = pipeline.on_object_created(BUCKET, seeded_image, 1024)

        assert result.disposition == TriggerDisposition.PROCESSED
        asset = metadata_store.get(IMAGE_ID)
        assert asset.status == AssetStatus.READY
        assert asset.kind == MediaKind.IMAGE
        assert asset.size_bytes == 1024
        assert (asset.width, asset.height) == (2400, 1600)
        assert asset.visual_digest and asset.content_digest
        assert asset.processed_at is not None
        labels = [r.label for r in asset.manifest.ladder]
        assert labels == ["blur_placeholder", "320w", "640w", "960w", "1280w", "1920w"]
        assert all("jpg" in r.formats for r in asset.manifest.ladder)
        assert asset.manifest.blur_placeholder == asset.manifest.ladder[0]
        assert asset.manifest.cover.label == "640w"
        assert asset.manifest.thumbnail == f"{CDN}/projects/p1/media/m1/thumb.jpg"
        assert notification_sink.calls == [(IMAGE_ID, NotifyOutcome.SUCCESS, None)]

    def test_manifest_written_before_ready(self, pipeline, metadata_store, seeded_image):
        writes = []
        original_update = metadata_store.update

        def recording_update(asset_id, fields):
            writes.append(dict(fields))
            return original_update(asset_id, fields)

        with patch.object(metadata_store, "update", side_effect=recording_update):
            pipeline.on_object_created(BUCKET, seeded_image)

        manifest_write = next(i for i, w in enumerate(writes) if w.get("manifest") is not None)
        ready_write = next(i for i, w in enumerate(writes) if w.get("status") == AssetStatus.READY)
        assert manifest_write < ready_write
        assert "status" not in writes[manifest_write]
        assert "manifest" not in writes[ready_write]

    def test_status_report_exposes_manifest_only_when_ready(self, pipeline, seeded_image):
        pipeline.on_object_created(BUCKET, seeded_image)

        report = pipeline.get_asset_status(IMAGE_ID)

        assert report.asset_id == "p1/m1"
        assert report.status == AssetStatus.READY
        assert report.manifest is not None
        assert report.error is None

    def test_corrupt_image_fails(self, pipeline, blob_store, metadata_store, notification_sink):
        blob_store.put(IMAGE_KEY, b"not a jpeg at all", "image/jpeg")

        result = pipeline.on_object_created(BUCKET, IMAGE_KEY)

        assert result.disposition == TriggerDisposition.FAILED
        asset = metadata_store.get(IMAGE_ID)
        assert asset.status == AssetStatus.FAILED
        assert asset.manifest is None
        assert "Cannot decode" in asset.error
        assert notification_sink.calls[0][1] == NotifyOutcome.FAILED

        report = pipeline.get_asset_status(IMAGE_ID)
        assert report.manifest is None
        assert report.error == asset.error

    def test_missing_original_fails(self, pipeline, metadata_store):
        result = pipeline.on_object_created(BUCKET, IMAGE_KEY)

        assert result.disposition == TriggerDisposition.FAILED
        assert metadata_store.get(IMAGE_ID).error == f"Original not found: {IMAGE_KEY}"

    def test_notification_failure_does_not_affect_state(
        self,
        settings,
        blob_store,
        metadata_store,
        image_generator,
        mock_video_generator,
        failing_notification_sink,
        seeded_image,
    ):
        sink = failing_notification_sink
        orchestrator = PipelineOrchestrator(
            settings=settings,
            blob_store=blob_store,
            metadata_store=metadata_store,
            image_generator=image_generator,
            video_generator=mock_video_generator,
            notification_sink=sink,
        )

        result = orchestrator.on_object_created(BUCKET, seeded_image)

        assert result.disposition == TriggerDisposition.PROCESSED
        assert metadata_store.get(IMAGE_ID).status == AssetStatus.READY
        assert len(sink.calls) == 1


@pytest.mark.unit
@pytest.mark.pipeline
class TestIdempotence:
    """Test suite for duplicate triggers."""

    def test_repeat_trigger_after_ready_is_ignored(self, pipeline, notification_sink, seeded_image):
        pipeline.on_object_created(BUCKET, seeded_image)
        second = pipeline.on_object_created(BUCKET, seeded_image)

        assert second.disposition == TriggerDisposition.IGNORED_DUPLICATE
        assert second.status == AssetStatus.READY.value
        assert len(notification_sink.calls) == 1

    def test_repeat_trigger_after_failure_is_ignored(self, pipeline, blob_store, metadata_store):
        blob_store.put(IMAGE_KEY, b"garbage", "image/jpeg")
        pipeline.on_object_created(BUCKET, IMAGE_KEY)

        second = pipeline.on_object_created(BUCKET, IMAGE_KEY)

        assert second.disposition == TriggerDisposition.IGNORED_DUPLICATE
        assert metadata_store.get(IMAGE_ID).status == AssetStatus.FAILED

    def test_concurrent_trigger_while_processing_is_ignored(
        self, pipeline, image_generator, seeded_image
    ):
        started = threading.Event()
        release = threading.Event()
        real_generate = image_generator.generate
        results = {}

        def slow_generate(data, prefix):
            started.set()
            release.wait(timeout=10)
            return real_generate(data, prefix)

        with patch.object(image_generator, "generate", side_effect=slow_generate):
            worker = threading.Thread(
                target=lambda: results.setdefault(
                    "first", pipeline.on_object_created(BUCKET, seeded_image)
                )
            )
            worker.start()
            assert started.wait(timeout=10)

            second = pipeline.on_object_created(BUCKET, seeded_image)
            release.set()
            worker.join(timeout=30)
            assert image_generator.generate.call_count == 1

        assert second.disposition == TriggerDisposition.IGNORED_DUPLICATE
        assert results["first"].disposition == TriggerDisposition.PROCESSED


@pytest.mark.unit
@pytest.mark.pipeline
@pytest.mark.video
class TestLocalVideoProcessing:
    """Test suite for video originals in local transcode mode."""

    def test_video_becomes_ready(
        self, pipeline, metadata_store, mock_video_generator, seeded_video
    ):
        mock_video_generator.generate.return_value = _video_result()

        result = pipeline.on_object_created(BUCKET, seeded_video)

        assert result.disposition == TriggerDisposition.PROCESSED
        mock_video_generator.generate.assert_called_once_with(
            b"mp4-bytes", "projects/p1/media/v1", "mp4"
        )
        manifest = metadata_store.get(VIDEO_ID).manifest
        assert manifest.poster == f"{CDN}/projects/p1/media/v1/thumb.jpg"
        assert manifest.thumbnail == manifest.poster
        assert manifest.hls.master.endswith("/hls/master.m3u8")
        assert manifest.cover.label == "poster"

    def test_corrupt_video_fails_without_manifest(
        self, pipeline, metadata_store, mock_video_generator, notification_sink, seeded_video
    ):
        mock_video_generator.generate.side_effect = SourceUnreadableError(
            "Source has no decodable video stream"
        )

        result = pipeline.on_object_created(BUCKET, seeded_video)

        asset = metadata_store.get(VIDEO_ID)
        assert result.disposition == TriggerDisposition.FAILED
        assert asset.status == AssetStatus.FAILED
        assert asset.error == "Source has no decodable video stream"
        assert asset.manifest is None
        assert notification_sink.calls == [
            (VIDEO_ID, NotifyOutcome.FAILED, "Source has no decodable video stream")
        ]

    def test_unsuccessful_generation_fails(
        self, pipeline, metadata_store, mock_video_generator, seeded_video
    ):
        mock_video_generator.generate.return_value = VideoGenerationResult(
            success=False, error="No HLS rendition or download could be produced"
        )

        pipeline.on_object_created(BUCKET, seeded_video)

        assert metadata_store.get(VIDEO_ID).error == "No HLS rendition or download could be produced"


@pytest.mark.unit
@pytest.mark.pipeline
class TestReprocess:
    """Test suite for explicit reprocessing."""

    def test_reprocess_ready_asset(self, pipeline, metadata_store, notification_sink, seeded_image):
        pipeline.on_object_created(BUCKET, seeded_image)

        result = pipeline.reprocess(IMAGE_ID)

        assert result.disposition == TriggerDisposition.PROCESSED
        assert metadata_store.get(IMAGE_ID).status == AssetStatus.READY
        assert len(notification_sink.calls) == 2

    def test_record_has_no_manifest_while_reprocessing(
        self, pipeline, metadata_store, image_generator, seeded_image
    ):
        pipeline.on_object_created(BUCKET, seeded_image)
        seen = []
        original_generate = image_generator.generate

        def observing_generate(data, prefix):
            asset = metadata_store.get(IMAGE_ID)
            seen.append((asset.status, asset.manifest))
            return original_generate(data, prefix)

        with patch.object(image_generator, "generate", side_effect=observing_generate):
            pipeline.reprocess(IMAGE_ID)

        assert seen == [(AssetStatus.PROCESSING, None)]
        asset = metadata_store.get(IMAGE_ID)
        assert asset.status == AssetStatus.READY
        assert len(asset.manifest.ladder) == 6

    def test_reprocess_failed_asset_after_fix(self, pipeline, blob_store, metadata_store, sample_jpeg):
        blob_store.put(IMAGE_KEY, b"garbage", "image/jpeg")
        pipeline.on_object_created(BUCKET, IMAGE_KEY)
        blob_store.put(IMAGE_KEY, sample_jpeg, "image/jpeg")

        pipeline.reprocess(IMAGE_ID)

        asset = metadata_store.get(IMAGE_ID)
        assert asset.status == AssetStatus.READY
        assert asset.error is None
        assert asset.manifest is not None

    def test_reprocess_in_flight_asset_is_rejected(self, managed_pipeline, seeded_video):
        managed_pipeline.on_object_created(BUCKET, seeded_video)

        with pytest.raises(InvalidStateTransitionError):
            managed_pipeline.reprocess(VIDEO_ID)

    def test_reprocess_unknown_asset(self, pipeline):
        with pytest.raises(AssetNotFoundError):
            pipeline.reprocess(AssetId(project_id="p1", media_id="nope"))


@pytest.mark.unit
@pytest.mark.pipeline
@pytest.mark.video
class TestManagedTranscode:
    """Test suite for managed transcode mode."""

    def test_video_submits_job(self, managed_pipeline, metadata_store, transcode_service, seeded_video):
        result = managed_pipeline.on_object_created(BUCKET, seeded_video)

        assert result.disposition == TriggerDisposition.SUBMITTED
        submission = transcode_service.submissions[0]
        assert submission["input_key"] == VIDEO_KEY
        assert submission["output_prefix"] == "projects/p1/media/v1"
        assert submission["user_metadata"] == {
            "projectId": "p1",
            "mediaId": "v1",
            "bucket": "test-bucket",
        }
        asset = metadata_store.get(VIDEO_ID)
        assert asset.status == AssetStatus.PROCESSING
        assert asset.processing_job.job_id == "job-1"
        assert managed_pipeline.get_asset_status(VIDEO_ID).manifest is None

    def test_images_still_processed_locally(self, managed_pipeline, transcode_service, seeded_image):
        result = managed_pipeline.on_object_created(BUCKET, seeded_image)

        assert result.disposition == TriggerDisposition.PROCESSED
        assert transcode_service.submissions == []

    def test_completion_builds_manifest(
        self, managed_pipeline, metadata_store, blob_store, notification_sink, seeded_video
    ):
        managed_pipeline.on_object_created(BUCKET, seeded_video)

        result = managed_pipeline.on_transcode_complete(
            "job-1", "COMPLETE", user_metadata={"projectId": "p1", "mediaId": "v1"}
        )

        assert result.disposition == TriggerDisposition.PROCESSED
        asset = metadata_store.get(VIDEO_ID)
        assert asset.status == AssetStatus.READY
        assert asset.processing_job is None
        manifest = asset.manifest
        base = f"{CDN}/projects/p1/media/v1"
        assert manifest.hls.master == f"{base}/hls/master.m3u8"
        assert [r.url for r in manifest.hls.renditions] == [
            f"{base}/hls/master_480p.m3u8",
            f"{base}/hls/master_720p.m3u8",
            f"{base}/hls/master_1080p.m3u8",
        ]
        assert manifest.poster == f"{base}/poster.0000000.jpg"
        assert [d.label for d in manifest.downloads] == ["1080p", "original"]
        assert blob_store.get("projects/p1/media/v1/downloads/original.mp4") == b"mp4-bytes"
        assert notification_sink.calls == [(VIDEO_ID, NotifyOutcome.SUCCESS, None)]
        # Sizes the job did not report stay unknown rather than echoing the box
        assert all(r.width is None and r.height is None for r in manifest.hls.renditions)

    def test_landscape_job_uses_square_boxes_and_reported_sizes(
        self, managed_pipeline, metadata_store, transcode_service, seeded_video
    ):
        managed_pipeline.on_object_created(BUCKET, seeded_video)

        boxes = {
            (s.role.value, s.label): (s.width, s.height)
            for s in transcode_service.submissions[0]["specs"]
        }
        assert boxes[("hls", "480p")] == (640, 640)
        assert boxes[("hls", "1080p")] == (1280, 1280)
        assert boxes[("download", "1080p")] == (1920, 1920)
        assert boxes[("poster", "poster")] == (300, 300)

        outputs = {
            "hls": {"480p": (640, 360), "720p": (960, 540), "1080p": (1280, 720)},
            "downloads": {"1080p": (1920, 1080)},
        }
        managed_pipeline.on_transcode_complete(
            "job-1", "COMPLETE", None, {"projectId": "p1", "mediaId": "v1"}, outputs
        )

        manifest = metadata_store.get(VIDEO_ID).manifest
        assert [(r.label, r.width, r.height) for r in manifest.hls.renditions] == [
            ("480p", 640, 360),
            ("720p", 960, 540),
            ("1080p", 1280, 720),
        ]
        assert (manifest.downloads[0].width, manifest.downloads[0].height) == (1920, 1080)

    @pytest.mark.parametrize(
        "status,message,expected_error",
        [
            ("ERROR", "Invalid input codec", "Invalid input codec"),
            ("CANCELED", None, "Job CANCELED"),
            (TranscodeJobStatus.ERROR, None, "Job ERROR"),
        ],
    )
    def test_job_failure_marks_asset_failed(
        self, managed_pipeline, metadata_store, seeded_video, status, message, expected_error
    ):
        managed_pipeline.on_object_created(BUCKET, seeded_video)

        result = managed_pipeline.on_transcode_complete(
            "job-1", status, message, {"projectId": "p1", "mediaId": "v1"}
        )

        asset = metadata_store.get(VIDEO_ID)
        assert result.disposition == TriggerDisposition.FAILED
        assert asset.status == AssetStatus.FAILED
        assert asset.error == expected_error
        assert asset.manifest is None

    def test_late_completion_is_ignored(self, managed_pipeline, metadata_store, seeded_video):
        managed_pipeline.on_object_created(BUCKET, seeded_video)
        metadata = {"projectId": "p1", "mediaId": "v1"}
        managed_pipeline.on_transcode_complete("job-1", "COMPLETE", user_metadata=metadata)

        late = managed_pipeline.on_transcode_complete("job-1", "ERROR", "late", metadata)

        assert late.disposition == TriggerDisposition.IGNORED_DUPLICATE
        assert metadata_store.get(VIDEO_ID).status == AssetStatus.READY

    def test_mismatched_job_is_ignored(self, managed_pipeline, metadata_store, seeded_video):
        managed_pipeline.on_object_created(BUCKET, seeded_video)

        result = managed_pipeline.on_transcode_complete(
            "job-other", "COMPLETE", user_metadata={"projectId": "p1", "mediaId": "v1"}
        )

        assert result.disposition == TriggerDisposition.IGNORED_DUPLICATE
        assert metadata_store.get(VIDEO_ID).status == AssetStatus.PROCESSING

    def test_progress_status_is_noop(self, managed_pipeline, metadata_store, seeded_video):
        managed_pipeline.on_object_created(BUCKET, seeded_video)

        result = managed_pipeline.on_transcode_complete(
            "job-1", "PROGRESSING", user_metadata={"projectId": "p1", "mediaId": "v1"}
        )

        assert result.disposition == TriggerDisposition.SUBMITTED
        assert metadata_store.get(VIDEO_ID).status == AssetStatus.PROCESSING

    def test_missing_metadata_raises(self, managed_pipeline):
        with pytest.raises(ValueError):
            managed_pipeline.on_transcode_complete("job-1", "COMPLETE", user_metadata={})

    def test_poll_running_then_complete(
        self, managed_pipeline, metadata_store, transcode_service, seeded_video
    ):
        managed_pipeline.on_object_created(BUCKET, seeded_video)

        transcode_service.status = TranscodeJobStatus.RUNNING
        running = managed_pipeline.poll_transcode_job(VIDEO_ID)
        assert running.disposition == TriggerDisposition.SUBMITTED
        assert metadata_store.get(VIDEO_ID).processing_job.status == TranscodeJobStatus.RUNNING

        transcode_service.status = TranscodeJobStatus.COMPLETE
        transcode_service.outputs = {"hls": {"1080p": (1280, 720)}}
        done = managed_pipeline.poll_transcode_job(VIDEO_ID)
        assert done.disposition == TriggerDisposition.PROCESSED
        assert metadata_store.get(VIDEO_ID).status == AssetStatus.READY
        renditions = metadata_store.get(VIDEO_ID).manifest.hls.renditions
        assert (renditions[-1].width, renditions[-1].height) == (1280, 720)

    def test_poll_without_job_raises(self, managed_pipeline, seeded_image):
        managed_pipeline.on_object_created(BUCKET, seeded_image)

        with pytest.raises(AssetNotFoundError):
            managed_pipeline.poll_transcode_job(IMAGE_ID)


@pytest.mark.unit
@pytest.mark.pipeline
class TestConstruction:
    """Test suite for collaborator validation."""

    def test_local_mode_requires_video_generator(self, settings, blob_store, metadata_store, image_generator):
        with pytest.raises(ConfigurationError):
            PipelineOrchestrator(settings, blob_store, metadata_store, image_generator)

    def test_managed_mode_requires_transcode_service(self, blob_store, metadata_store, image_generator):
        managed = Settings(_env_file=None, transcode_mode=TranscodeMode.MANAGED)

        with pytest.raises(ConfigurationError):
            PipelineOrchestrator(managed, blob_store, metadata_store, image_generator)

    def test_transform_requires_cache(self, settings, blob_store, metadata_store, image_generator, mock_video_generator):
        orchestrator = PipelineOrchestrator(
            settings, blob_store, metadata_store, image_generator, mock_video_generator
        )

        with pytest.raises(ConfigurationError):
            orchestrator.resolve_transform(IMAGE_KEY, 500)
