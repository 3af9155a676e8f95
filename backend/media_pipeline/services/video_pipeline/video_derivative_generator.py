# backend/media_pipeline/services/video_pipeline/video_derivative_generator.py
"""
Video Derivative Generator Component

Produces the local-mode video derivatives of one original: poster frame,
adaptive HLS ladder with its master playlist, a progressive 1080p download
and a verbatim copy of the original. Every rendition is attempted; a
failed rendition is logged and left out of the result.
"""

import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Tuple

from ...config import Settings
from ...constants import (
    DOWNLOADS_DIRECTORY,
    HLS_DIRECTORY,
    HLS_MASTER_FILENAME,
    HLS_PLAYLIST_MIME,
    IMAGE_MIME_TYPES,
    MP4_MIME,
    THUMBNAIL_FILENAME,
    VIDEO_MIME_TYPES,
    DEFAULT_CONTENT_TYPE,
)
from ...enums import ImageFormat, LogEmoji, LoggerName, LogSource, MediaKind, RenditionRole
from ...exceptions import PartialRenditionFailure, SourceUnreadableError
from ...models.asset_models import HlsManifest, Rendition
from ...models.rendition_models import RenditionSpec
from ...models.result_models import VideoGenerationResult
from ...utils.key_utils import join_key
from ..logger import get_service_logger
from ..rendition_planner import RenditionPlanner, specs_for_role
from ..storage.blob_store import BlobStore
from .ffmpeg_utils import (
    build_download_command,
    build_hls_command,
    build_poster_command,
    even_fit_dimensions,
    execute_ffmpeg_command,
    inspect_video,
    poster_seek_seconds,
)
from .hls_utils import build_master_playlist, hls_content_type, sort_by_bitrate

logger = get_service_logger(LoggerName.VIDEO_PIPELINE, LogSource.PIPELINE)


def attachment_disposition(filename: str) -> str:
    return f'attachment; filename="{filename}"'


def original_download_filename(extension: str) -> str:
    """'original' plus the source extension, e.g. original.mov"""
    ext = extension.lower().lstrip(".")
    return f"original.{ext}" if ext else "original"


def persist_original_download(
    blob_store: BlobStore,
    settings: Settings,
    original: bytes,
    media_prefix: str,
    extension: str,
) -> Rendition:
    """
    Store the verbatim original under downloads/.

    Shared by the local generator and the managed completion path, where the
    external job only produces encoded outputs.
    """
    filename = original_download_filename(extension)
    key = join_key(media_prefix, DOWNLOADS_DIRECTORY, filename)
    blob_store.put(
        key,
        original,
        content_type=VIDEO_MIME_TYPES.get(extension.lower().lstrip("."), DEFAULT_CONTENT_TYPE),
        cache_control=settings.cache_control,
        content_disposition=attachment_disposition(filename),
    )
    return Rendition(
        label="original",
        format=extension.lower().lstrip(".") or "bin",
        url=settings.build_public_url(key),
    )


class VideoDerivativeGenerator:
    """
    Component responsible for local FFmpeg video derivative generation.

    Optimized for:
    - A single local copy of the original shared by all encodes
    - Parallel HLS rendition encodes with independent failures
    - Master playlist written once, after every rendition attempt finished
    """

    def __init__(
        self,
        blob_store: BlobStore,
        settings: Settings,
        planner: Optional[RenditionPlanner] = None,
    ):
        """
        Initialize video derivative generator.

        Args:
            blob_store: Storage collaborator derivatives are written to
            settings: Immutable pipeline settings
            planner: Rendition planner
        """
        self.blob_store = blob_store
        self.settings = settings
        self.planner = planner or RenditionPlanner(settings.preferred_modern_format)
        self.ffmpeg = settings.ffmpeg_binary
        self.timeout = settings.ffmpeg_timeout_seconds
        self.max_workers = settings.video_workers

    def generate(
        self, original: bytes, media_prefix: str, extension: str
    ) -> VideoGenerationResult:
        """
        Generate every local-mode derivative for one video original.

        Args:
            original: Original video bytes
            media_prefix: Key prefix owned by this asset
            extension: Source file extension (without dot)

        Returns:
            VideoGenerationResult; success is False when neither an HLS
            rendition nor the encoded download could be produced

        Raises:
            SourceUnreadableError: If the source has no decodable video stream
        """
        if not original:
            raise SourceUnreadableError("Empty video original")

        with tempfile.TemporaryDirectory(prefix="media-video-") as work_dir:
            input_path = os.path.join(work_dir, f"source.{extension.lstrip('.') or 'bin'}")
            with open(input_path, "wb") as f:
                f.write(original)

            info = inspect_video(input_path, self.settings.ffprobe_binary)
            width, height, duration = info["width"], info["height"], info["duration"]

            logger.info(
                f"Generating video derivatives for {media_prefix} ({width}x{height})",
                emoji=LogEmoji.VIDEO,
            )

            plan = self.planner.plan(MediaKind.VIDEO, width, height)
            failures: List[str] = []

            poster = None
            for spec in specs_for_role(plan, RenditionRole.POSTER):
                poster = self._generate_poster(
                    input_path, work_dir, spec, (width, height), duration, media_prefix, failures
                )

            hls = self._generate_hls(
                input_path,
                work_dir,
                specs_for_role(plan, RenditionRole.HLS),
                (width, height),
                media_prefix,
                failures,
            )

            downloads: List[Rendition] = []
            for spec in specs_for_role(plan, RenditionRole.DOWNLOAD):
                download = self._generate_download(
                    input_path, work_dir, spec, (width, height), media_prefix, failures
                )
                if download is not None:
                    downloads.append(download)
            encoded_download = bool(downloads)

            for spec in specs_for_role(plan, RenditionRole.ORIGINAL_DOWNLOAD):
                try:
                    downloads.append(
                        persist_original_download(
                            self.blob_store, self.settings, original, media_prefix, extension
                        )
                    )
                except Exception as e:
                    failures.append(str(PartialRenditionFailure(spec.label, extension, str(e))))
                    logger.error("Original download copy failed", exception=e)

        if hls is None and not encoded_download:
            return VideoGenerationResult(
                success=False,
                width=width,
                height=height,
                duration_seconds=duration,
                failures=failures,
                error="No HLS rendition or download could be produced",
            )

        logger.info(
            f"Generated video derivatives for {media_prefix} "
            f"({len(hls.renditions) if hls else 0} HLS renditions, "
            f"{len(failures)} partial failures)",
            emoji=LogEmoji.SUCCESS,
        )

        return VideoGenerationResult(
            success=True,
            width=width,
            height=height,
            duration_seconds=duration,
            poster=poster,
            hls=hls,
            downloads=downloads,
            failures=failures,
        )

    def _upload_file(
        self,
        path: str,
        key: str,
        content_type: str,
        content_disposition: Optional[str] = None,
    ) -> str:
        with open(path, "rb") as f:
            data = f.read()
        self.blob_store.put(
            key,
            data,
            content_type=content_type,
            cache_control=self.settings.cache_control,
            content_disposition=content_disposition,
        )
        return self.settings.build_public_url(key)

    def _generate_poster(
        self,
        input_path: str,
        work_dir: str,
        spec: RenditionSpec,
        source: Tuple[int, int],
        duration: Optional[float],
        media_prefix: str,
        failures: List[str],
    ) -> Optional[Rendition]:
        size = even_fit_dimensions(source, spec.box)
        output_path = os.path.join(work_dir, THUMBNAIL_FILENAME)
        cmd = build_poster_command(
            input_path, output_path, size, poster_seek_seconds(duration), self.ffmpeg
        )
        success, message = execute_ffmpeg_command(cmd, timeout=self.timeout)
        if not success or not os.path.exists(output_path):
            failures.append(str(PartialRenditionFailure(spec.label, ImageFormat.JPG.value, message)))
            return None
        try:
            url = self._upload_file(
                output_path,
                join_key(media_prefix, THUMBNAIL_FILENAME),
                IMAGE_MIME_TYPES[ImageFormat.JPG],
            )
        except Exception as e:
            failures.append(str(PartialRenditionFailure(spec.label, ImageFormat.JPG.value, str(e))))
            logger.error("Poster upload failed", exception=e)
            return None
        return Rendition(
            label=spec.label, width=size[0], height=size[1], format=ImageFormat.JPG.value, url=url
        )

    def _generate_hls(
        self,
        input_path: str,
        work_dir: str,
        specs: List[RenditionSpec],
        source: Tuple[int, int],
        media_prefix: str,
        failures: List[str],
    ) -> Optional[HlsManifest]:
        if not specs:
            return None

        results: List[Optional[Tuple[Rendition, dict]]] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(
                    self._generate_hls_rendition, input_path, work_dir, spec, source, media_prefix
                )
                for spec in specs
            ]
            for spec, future in zip(specs, futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    failure = PartialRenditionFailure(spec.label, "hls", str(e))
                    failures.append(str(failure))
                    logger.error(f"HLS rendition {spec.label} failed", exception=e)
                    results.append(None)

        succeeded = [result for result in results if result is not None]
        if not succeeded:
            return None

        master_text = build_master_playlist([entry for _, entry in succeeded])
        master_key = join_key(media_prefix, HLS_DIRECTORY, HLS_MASTER_FILENAME)
        try:
            self.blob_store.put(
                master_key,
                master_text.encode("utf-8"),
                content_type=HLS_PLAYLIST_MIME,
                cache_control=self.settings.cache_control,
            )
        except Exception as e:
            failures.append(str(PartialRenditionFailure("master", "hls", str(e))))
            logger.error("Master playlist upload failed", exception=e)
            return None

        return HlsManifest(
            master=self.settings.build_public_url(master_key),
            renditions=sort_by_bitrate([rendition for rendition, _ in succeeded]),
        )

    def _generate_hls_rendition(
        self,
        input_path: str,
        work_dir: str,
        spec: RenditionSpec,
        source: Tuple[int, int],
        media_prefix: str,
    ) -> Tuple[Rendition, dict]:
        """
        Encode and upload one HLS rendition.

        Raises:
            PartialRenditionFailure: If encoding or upload fails
        """
        size = even_fit_dimensions(source, spec.box)
        output_dir = os.path.join(work_dir, HLS_DIRECTORY, spec.label)
        os.makedirs(output_dir, exist_ok=True)

        cmd = build_hls_command(input_path, output_dir, spec, size, self.ffmpeg)
        success, message = execute_ffmpeg_command(cmd, timeout=self.timeout)
        playlist_name = f"{spec.label}.m3u8"
        if not success or not os.path.exists(os.path.join(output_dir, playlist_name)):
            raise PartialRenditionFailure(spec.label, "hls", message)

        for path in sorted(Path(output_dir).iterdir()):
            self._upload_file(
                str(path),
                join_key(media_prefix, HLS_DIRECTORY, spec.label, path.name),
                hls_content_type(path.name),
            )

        playlist_key = join_key(media_prefix, HLS_DIRECTORY, spec.label, playlist_name)
        rendition = Rendition(
            label=spec.label,
            width=size[0],
            height=size[1],
            format="hls",
            url=self.settings.build_public_url(playlist_key),
            bitrate=spec.bitrate_bps,
        )
        entry = {
            "label": spec.label,
            "width": size[0],
            "height": size[1],
            "bandwidth": spec.maxrate_bps,
            "average_bandwidth": spec.bitrate_bps,
        }
        logger.debug(f"HLS rendition {spec.label} uploaded ({size[0]}x{size[1]})")
        return rendition, entry

    def _generate_download(
        self,
        input_path: str,
        work_dir: str,
        spec: RenditionSpec,
        source: Tuple[int, int],
        media_prefix: str,
        failures: List[str],
    ) -> Optional[Rendition]:
        size = even_fit_dimensions(source, spec.box)
        filename = f"{spec.label}.mp4"
        output_dir = os.path.join(work_dir, DOWNLOADS_DIRECTORY)
        os.makedirs(output_dir, exist_ok=True)
        output_path = os.path.join(output_dir, filename)

        cmd = build_download_command(input_path, output_path, spec, size, self.ffmpeg)
        success, message = execute_ffmpeg_command(cmd, timeout=self.timeout)
        if not success or not os.path.exists(output_path):
            failures.append(str(PartialRenditionFailure(spec.label, "mp4", message)))
            return None
        try:
            url = self._upload_file(
                output_path,
                join_key(media_prefix, DOWNLOADS_DIRECTORY, filename),
                MP4_MIME,
                content_disposition=attachment_disposition(filename),
            )
        except Exception as e:
            failures.append(str(PartialRenditionFailure(spec.label, "mp4", str(e))))
            logger.error("Download upload failed", exception=e)
            return None
        return Rendition(
            label=spec.label,
            width=size[0],
            height=size[1],
            format="mp4",
            url=url,
            bitrate=spec.bitrate_bps,
        )
