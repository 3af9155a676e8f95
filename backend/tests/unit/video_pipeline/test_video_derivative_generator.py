#!/usr/bin/env python3
"""
Unit tests for VideoDerivativeGenerator.

ffprobe and FFmpeg are patched at the generator module; the fake FFmpeg
writes the files a real run would leave behind so uploads see real paths.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from media_pipeline.exceptions import SourceUnreadableError
from media_pipeline.services.video_pipeline.video_derivative_generator import (
    VideoDerivativeGenerator,
    attachment_disposition,
    original_download_filename,
    persist_original_download,
)

PREFIX = "projects/p1/media/v1"
MODULE = "media_pipeline.services.video_pipeline.video_derivative_generator"


class FakeFfmpeg:
    """Stands in for execute_ffmpeg_command; fails commands whose output matches."""

    def __init__(self, fail_outputs=()):
        self.fail_outputs = tuple(fail_outputs)
        self.commands = []

    def __call__(self, cmd, timeout=300, capture_output=True):
        self.commands.append(cmd)
        output = cmd[-1]
        if any(marker in output for marker in self.fail_outputs):
            return False, "FFmpeg failed with code 1: encoder error"

        if output.endswith(".m3u8"):
            out_dir = Path(output).parent
            (out_dir / "init.mp4").write_bytes(b"init")
            (out_dir / "seg_0000.m4s").write_bytes(b"seg0")
            (out_dir / "seg_0001.m4s").write_bytes(b"seg1")
            Path(output).write_text("#EXTM3U\n#EXT-X-ENDLIST\n")
        else:
            Path(output).write_bytes(b"encoded")
        return True, ""


@pytest.fixture
def video_generator(blob_store, settings):
    return VideoDerivativeGenerator(blob_store, settings)


@pytest.fixture
def landscape_source():
    info = {"width": 1920, "height": 1080, "duration": 12.0}
    with patch(f"{MODULE}.inspect_video", return_value=info) as mock_inspect:
        yield mock_inspect


@pytest.mark.unit
@pytest.mark.video
class TestVideoDerivativeGenerator:
    """Test suite for VideoDerivativeGenerator.generate()."""

    # ============================================================================
    # SUCCESS PATH
    # ============================================================================

    def test_full_generation(self, video_generator, blob_store, landscape_source):
        fake = FakeFfmpeg()
        with patch(f"{MODULE}.execute_ffmpeg_command", side_effect=fake):
            result = video_generator.generate(b"mp4-bytes", PREFIX, "mp4")

        assert result.success is True
        assert (result.width, result.height, result.duration_seconds) == (1920, 1080, 12.0)
        assert [r.label for r in result.hls.renditions] == ["480p", "720p", "1080p"]
        assert [(r.width, r.height) for r in result.hls.renditions] == [
            (640, 360),
            (960, 540),
            (1280, 720),
        ]
        assert result.hls.master == f"https://cdn.example.com/{PREFIX}/hls/master.m3u8"
        assert [d.label for d in result.downloads] == ["1080p", "original"]
        assert result.poster.url == f"https://cdn.example.com/{PREFIX}/thumb.jpg"
        assert result.failures == []

    def test_hls_blobs_and_content_types(self, video_generator, blob_store, landscape_source):
        with patch(f"{MODULE}.execute_ffmpeg_command", side_effect=FakeFfmpeg()):
            video_generator.generate(b"mp4-bytes", PREFIX, "mp4")

        keys = blob_store.list(f"{PREFIX}/hls/720p/")
        assert keys == [
            f"{PREFIX}/hls/720p/720p.m3u8",
            f"{PREFIX}/hls/720p/init.mp4",
            f"{PREFIX}/hls/720p/seg_0000.m4s",
            f"{PREFIX}/hls/720p/seg_0001.m4s",
        ]
        assert blob_store.get_blob(keys[0]).content_type == "application/vnd.apple.mpegurl"
        assert blob_store.get_blob(keys[2]).content_type == "video/iso.segment"

    def test_master_playlist_lists_variants_ascending(
        self, video_generator, blob_store, landscape_source
    ):
        with patch(f"{MODULE}.execute_ffmpeg_command", side_effect=FakeFfmpeg()):
            video_generator.generate(b"mp4-bytes", PREFIX, "mp4")

        master = blob_store.get(f"{PREFIX}/hls/master.m3u8").decode("utf-8")
        uris = [line for line in master.split("\n") if line.endswith(".m3u8")]
        assert uris == ["480p/480p.m3u8", "720p/720p.m3u8", "1080p/1080p.m3u8"]
        assert "RESOLUTION=1280x720" in master

    def test_downloads_are_attachments(self, video_generator, blob_store, landscape_source):
        with patch(f"{MODULE}.execute_ffmpeg_command", side_effect=FakeFfmpeg()):
            video_generator.generate(b"mov-bytes", PREFIX, "mov")

        encoded = blob_store.get_blob(f"{PREFIX}/downloads/1080p.mp4")
        original = blob_store.get_blob(f"{PREFIX}/downloads/original.mov")
        assert encoded.content_disposition == 'attachment; filename="1080p.mp4"'
        assert original.content_type == "video/quicktime"
        assert original.data == b"mov-bytes"

    def test_short_clip_poster_seeks_to_first_frame(self, video_generator, blob_store):
        fake = FakeFfmpeg()
        info = {"width": 720, "height": 1280, "duration": 0.5}
        with patch(f"{MODULE}.inspect_video", return_value=info):
            with patch(f"{MODULE}.execute_ffmpeg_command", side_effect=fake):
                result = video_generator.generate(b"mp4-bytes", PREFIX, "mp4")

        poster_cmd = next(c for c in fake.commands if c[-1].endswith("thumb.jpg"))
        assert poster_cmd[poster_cmd.index("-ss") + 1] == "0.000"
        # Portrait source keeps portrait boxes and is never upscaled
        assert [(r.width, r.height) for r in result.hls.renditions] == [
            (360, 640),
            (540, 960),
            (720, 1280),
        ]

    # ============================================================================
    # FAILURE PATHS
    # ============================================================================

    def test_single_hls_failure_is_partial(self, video_generator, blob_store, landscape_source):
        fake = FakeFfmpeg(fail_outputs=["720p.m3u8"])
        with patch(f"{MODULE}.execute_ffmpeg_command", side_effect=fake):
            result = video_generator.generate(b"mp4-bytes", PREFIX, "mp4")

        assert result.success is True
        assert [r.label for r in result.hls.renditions] == ["480p", "1080p"]
        assert len(result.failures) == 1
        assert result.failures[0].startswith("720p.hls:")
        master = blob_store.get(f"{PREFIX}/hls/master.m3u8").decode("utf-8")
        assert "720p/720p.m3u8" not in master

    def test_everything_failing_is_not_success(self, video_generator, landscape_source):
        fake = FakeFfmpeg(fail_outputs=[".m3u8", ".mp4", ".jpg"])
        with patch(f"{MODULE}.execute_ffmpeg_command", side_effect=fake):
            result = video_generator.generate(b"mp4-bytes", PREFIX, "mp4")

        assert result.success is False
        assert result.hls is None
        assert result.error == "No HLS rendition or download could be produced"

    def test_download_only_still_succeeds(self, video_generator, landscape_source):
        fake = FakeFfmpeg(fail_outputs=[".m3u8"])
        with patch(f"{MODULE}.execute_ffmpeg_command", side_effect=fake):
            result = video_generator.generate(b"mp4-bytes", PREFIX, "mp4")

        assert result.success is True
        assert result.hls is None
        assert result.downloads[0].label == "1080p"

    def test_corrupt_source_raises(self, video_generator):
        with patch(
            f"{MODULE}.inspect_video",
            side_effect=SourceUnreadableError("Source has no decodable video stream"),
        ):
            with pytest.raises(SourceUnreadableError):
                video_generator.generate(b"not-a-video", PREFIX, "mp4")

    def test_empty_source_raises(self, video_generator):
        with pytest.raises(SourceUnreadableError):
            video_generator.generate(b"", PREFIX, "mp4")

    def test_work_directory_is_removed(self, video_generator, landscape_source):
        fake = FakeFfmpeg()
        with patch(f"{MODULE}.execute_ffmpeg_command", side_effect=fake):
            video_generator.generate(b"mp4-bytes", PREFIX, "mp4")

        source_path = fake.commands[0][fake.commands[0].index("-i") + 1]
        assert not os.path.exists(os.path.dirname(source_path))


@pytest.mark.unit
@pytest.mark.video
class TestOriginalDownload:
    """Test suite for the verbatim original copy."""

    def test_filename_and_disposition(self):
        assert original_download_filename(".MOV") == "original.mov"
        assert original_download_filename("") == "original"
        assert attachment_disposition("a.mp4") == 'attachment; filename="a.mp4"'

    def test_persist_original_download(self, blob_store, settings):
        rendition = persist_original_download(blob_store, settings, b"raw", PREFIX, "webm")

        assert rendition.label == "original"
        assert rendition.format == "webm"
        assert rendition.url == f"https://cdn.example.com/{PREFIX}/downloads/original.webm"
        assert blob_store.get_blob(f"{PREFIX}/downloads/original.webm").content_type == "video/webm"
