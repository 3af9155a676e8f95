# backend/media_pipeline/services/pipeline/pipeline_orchestrator.py
"""
Media Pipeline Orchestrator Service

Entry point for every upload event. Filters triggers, drives the asset
state machine and coordinates the image generator, the video generator or
managed transcode job, the metadata store and the notification sink.
"""

import threading
from typing import Any, Dict, Optional, Set

from ...config import Settings
from ...enums import (
    AssetStatus,
    LogEmoji,
    LoggerName,
    LogSource,
    MediaKind,
    NotifyOutcome,
    PipelineEvent,
    RenditionRole,
    TranscodeMode,
    TriggerDisposition,
)
from ...exceptions import (
    AssetNotFoundError,
    BlobNotFoundError,
    ConfigurationError,
    SourceUnreadableError,
)
from ...models.asset_models import (
    AssetId,
    AssetManifest,
    AssetStatusReport,
    HlsManifest,
    MediaAsset,
    ProcessingJob,
    Rendition,
)
from ...models.result_models import (
    ImageGenerationResult,
    OutputDimensions,
    TransformResult,
    TriggerResult,
    VideoGenerationResult,
)
from ...utils.key_utils import (
    OriginalKey,
    classify_extension,
    decode_event_key,
    is_derivative_key,
    media_prefix,
    parse_original_key,
)
from ...utils.time_utils import utc_now
from ..image_pipeline.generators.image_derivative_generator import ImageDerivativeGenerator
from ..logger import get_service_logger
from ..notification.notification_service import LoggingNotificationSink, NotificationSink
from ..rendition_planner import RenditionPlanner, specs_for_role
from ..storage.blob_store import BlobStore
from ..storage.metadata_store import MetadataStore
from ..transcode.transcode_service import (
    TranscodeJobService,
    managed_job_specs,
    managed_output_keys,
)
from ..transform_cache.transform_cache import TransformCache
from ..video_pipeline.video_derivative_generator import (
    VideoDerivativeGenerator,
    persist_original_download,
)
from .cover_policy import select_cover_candidate
from .state_machine import transition

logger = get_service_logger(LoggerName.MEDIA_PIPELINE, LogSource.PIPELINE)

TERMINAL_JOB_FAILURES = ("ERROR", "CANCELED")


def build_image_manifest(result: ImageGenerationResult) -> AssetManifest:
    """The ladder lists the blur placeholder first, then the rungs smallest first."""
    ladder = list(result.ladder)
    if result.blur_placeholder is not None:
        ladder.insert(0, result.blur_placeholder)
    return AssetManifest(
        width=result.width,
        height=result.height,
        visual_digest=result.visual_digest,
        content_digest=result.content_digest,
        thumbnail=result.thumbnail.url if result.thumbnail else None,
        blur_placeholder=result.blur_placeholder,
        ladder=ladder,
        cover=select_cover_candidate(result.ladder),
    )


def build_video_manifest(result: VideoGenerationResult) -> AssetManifest:
    poster_url = result.poster.url if result.poster else None
    return AssetManifest(
        width=result.width,
        height=result.height,
        thumbnail=poster_url,
        poster=poster_url,
        hls=result.hls,
        downloads=result.downloads,
        cover=select_cover_candidate([result.poster]) if result.poster else None,
    )


def _status_name(status: Any) -> str:
    return str(getattr(status, "value", status) or "").upper()


class PipelineOrchestrator:
    """
    Coordinates derivative generation for uploaded originals.

    Responsibilities:
    - Ignore derivative, malformed, unsupported and duplicate triggers
    - Move assets through pending -> processing -> ready | failed
    - Write the manifest before the ready status, as two separate writes
    - Report every terminal outcome to the notification sink
    """

    def __init__(
        self,
        settings: Settings,
        blob_store: BlobStore,
        metadata_store: MetadataStore,
        image_generator: ImageDerivativeGenerator,
        video_generator: Optional[VideoDerivativeGenerator] = None,
        transform_cache: Optional[TransformCache] = None,
        transcode_service: Optional[TranscodeJobService] = None,
        notification_sink: Optional[NotificationSink] = None,
        planner: Optional[RenditionPlanner] = None,
    ):
        """
        Initialize orchestrator with injected collaborators.

        Args:
            settings: Immutable pipeline settings
            blob_store: Original and derivative storage
            metadata_store: Asset record store
            image_generator: Image derivative generator
            video_generator: Local video generator (local transcode mode)
            transform_cache: On-demand transform service
            transcode_service: Managed transcode service (managed transcode mode)
            notification_sink: Terminal outcome sink (log-only if omitted)
            planner: Rendition planner
        """
        if settings.transcode_mode == TranscodeMode.MANAGED and transcode_service is None:
            raise ConfigurationError("Managed transcode mode requires a transcode service")
        if settings.transcode_mode == TranscodeMode.LOCAL and video_generator is None:
            raise ConfigurationError("Local transcode mode requires a video generator")

        self.settings = settings
        self.blob_store = blob_store
        self.metadata_store = metadata_store
        self.image_generator = image_generator
        self.video_generator = video_generator
        self.transform_cache = transform_cache
        self.transcode_service = transcode_service
        self.notification_sink = notification_sink or LoggingNotificationSink()
        self.planner = planner or RenditionPlanner(settings.preferred_modern_format)

        # Assets with a run in this process; guards against concurrent duplicate triggers
        self._active: Set[AssetId] = set()
        self._active_lock = threading.Lock()

    # =========================================================================
    # TRIGGER ENTRYPOINT
    # =========================================================================

    def on_object_created(
        self, bucket: Optional[str], key: str, size: Optional[int] = None
    ) -> TriggerResult:
        """
        Handle one object-created notification.

        Args:
            bucket: Source bucket name
            key: Object key, possibly URL-encoded
            size: Object size in bytes

        Returns:
            TriggerResult describing what was done with the event
        """
        key = decode_event_key(key)

        if is_derivative_key(key, self.settings.transform_cache_prefix):
            logger.debug(f"Ignoring derivative key {key}", emoji=LogEmoji.SKIPPED)
            return TriggerResult(TriggerDisposition.IGNORED_DERIVATIVE, key)

        original = parse_original_key(key)
        if original is None:
            logger.info(f"Ignoring key outside media layout: {key}", emoji=LogEmoji.SKIPPED)
            return TriggerResult(TriggerDisposition.IGNORED_MALFORMED_KEY, key)

        kind = classify_extension(original.extension)
        if kind is None:
            logger.info(
                f"Ignoring unsupported file type '{original.extension}': {key}",
                emoji=LogEmoji.SKIPPED,
            )
            return TriggerResult(
                TriggerDisposition.IGNORED_UNSUPPORTED_TYPE, key, str(original.asset_id)
            )

        if bucket and bucket != self.settings.media_bucket:
            logger.debug(f"Trigger bucket {bucket} differs from configured media bucket")

        asset_id = original.asset_id
        if not self._claim(asset_id):
            return self._duplicate(key, asset_id, AssetStatus.PROCESSING)

        try:
            existing = self.metadata_store.get(asset_id)
            if existing is not None and existing.status != AssetStatus.PENDING:
                return self._duplicate(key, asset_id, existing.status)

            if existing is None:
                self.metadata_store.put(
                    MediaAsset(
                        asset_id=asset_id,
                        original_key=key,
                        kind=kind,
                        size_bytes=size,
                        uploaded_at=utc_now(),
                    )
                )

            self._set_status(asset_id, AssetStatus.PENDING, PipelineEvent.START_PROCESSING)
            logger.info(
                f"Processing {kind.value} {asset_id} ({size or 'unknown'} bytes)",
                emoji=LogEmoji.PROCESSING,
            )
            return self._process(original, kind)
        finally:
            self._release(asset_id)

    def reprocess(self, asset_id: AssetId) -> TriggerResult:
        """
        Regenerate derivatives for a ready or failed asset.

        The previous manifest is cleared as the asset re-enters processing;
        derivative keys are stable, so the new run overwrites them in place.

        Raises:
            AssetNotFoundError: No record for the asset
            InvalidStateTransitionError: Asset is pending or processing
        """
        asset = self._require_asset(asset_id)
        transition(asset.status, PipelineEvent.REPROCESS)

        original = parse_original_key(asset.original_key)
        if original is None:
            raise AssetNotFoundError(f"Asset {asset_id} has no valid original key")

        if not self._claim(asset_id):
            return self._duplicate(asset.original_key, asset_id, AssetStatus.PROCESSING)
        try:
            self._set_status(asset_id, asset.status, PipelineEvent.REPROCESS)
            logger.info(f"Reprocessing {asset_id}", emoji=LogEmoji.PROCESSING)
            return self._process(original, asset.kind)
        finally:
            self._release(asset_id)

    # =========================================================================
    # MANAGED TRANSCODE COMPLETION
    # =========================================================================

    def on_transcode_complete(
        self,
        job_id: str,
        status: Any,
        error_message: Optional[str] = None,
        user_metadata: Optional[Dict[str, str]] = None,
        outputs: Optional[OutputDimensions] = None,
    ) -> TriggerResult:
        """
        Re-enter the pipeline when a managed job reports its outcome.

        COMPLETE writes the manifest and marks the asset ready; ERROR and
        CANCELED mark it failed; any other status is a no-op. Rendition sizes
        come from the job's reported outputs; unreported ones stay unknown.

        Raises:
            ValueError: Job metadata carries no project/media ids
            AssetNotFoundError: No record for the asset
        """
        metadata = user_metadata or {}
        project_id, media_id = metadata.get("projectId"), metadata.get("mediaId")
        if not project_id or not media_id:
            raise ValueError("Missing projectId or mediaId in job metadata")

        asset_id = AssetId(project_id=project_id, media_id=media_id)
        asset = self._require_asset(asset_id)
        status_name = _status_name(status)

        if asset.status != AssetStatus.PROCESSING or (
            asset.processing_job is not None and asset.processing_job.job_id != job_id
        ):
            logger.info(
                f"Ignoring {status_name} for job {job_id}: asset {asset_id} is {asset.status.value}",
                emoji=LogEmoji.SKIPPED,
            )
            return self._duplicate(asset.original_key, asset_id, asset.status)

        if status_name == "COMPLETE":
            manifest = self._build_managed_manifest(asset, outputs or {})
            self._complete(asset_id, manifest, {})
            return TriggerResult(
                TriggerDisposition.PROCESSED, asset.original_key, str(asset_id), AssetStatus.READY.value
            )

        if status_name in TERMINAL_JOB_FAILURES:
            message = error_message or f"Job {status_name}"
            self._fail(asset_id, message)
            return TriggerResult(
                TriggerDisposition.FAILED,
                asset.original_key,
                str(asset_id),
                AssetStatus.FAILED.value,
                message,
            )

        logger.debug(f"Job {job_id} is {status_name}; nothing to do")
        return TriggerResult(
            TriggerDisposition.SUBMITTED, asset.original_key, str(asset_id), asset.status.value
        )

    def poll_transcode_job(self, asset_id: AssetId) -> TriggerResult:
        """
        Perform one status check of the asset's managed job.

        Raises:
            AssetNotFoundError: No record, or no job in flight for the asset
        """
        asset = self._require_asset(asset_id)
        if asset.status != AssetStatus.PROCESSING or asset.processing_job is None:
            raise AssetNotFoundError(f"Asset {asset_id} has no transcode job in flight")
        if self.transcode_service is None:
            raise ConfigurationError("No transcode service configured")

        job = asset.processing_job
        report = self.transcode_service.get_status(job.job_id)
        if report.status != job.status and not report.is_terminal:
            self.metadata_store.update(
                asset_id, {"processing_job": job.model_copy(update={"status": report.status})}
            )

        return self.on_transcode_complete(
            job.job_id,
            report.status,
            report.error_message,
            {"projectId": asset_id.project_id, "mediaId": asset_id.media_id},
            report.outputs,
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_asset_status(self, asset_id: AssetId) -> AssetStatusReport:
        """
        Current status of an asset. The manifest is exposed only when ready.

        Raises:
            AssetNotFoundError: No record for the asset
        """
        asset = self._require_asset(asset_id)
        return AssetStatusReport(
            asset_id=str(asset_id),
            status=asset.status,
            manifest=asset.manifest if asset.status == AssetStatus.READY else None,
            error=asset.error if asset.status == AssetStatus.FAILED else None,
        )

    def resolve_transform(
        self,
        source_key: str,
        width: Optional[Any] = None,
        quality: Optional[Any] = None,
        fmt: Optional[Any] = None,
    ) -> TransformResult:
        if self.transform_cache is None:
            raise ConfigurationError("No transform cache configured")
        return self.transform_cache.resolve(source_key, width, quality, fmt)

    # =========================================================================
    # PROCESSING
    # =========================================================================

    def _process(self, original: OriginalKey, kind: MediaKind) -> TriggerResult:
        asset_id = original.asset_id
        try:
            if kind == MediaKind.VIDEO and self.settings.transcode_mode == TranscodeMode.MANAGED:
                return self._submit_managed(original)

            data = self._load_original(original.key)
            if kind == MediaKind.IMAGE:
                image_result = self.image_generator.generate(data, original.media_prefix)
                if not image_result.success:
                    return self._failed_result(original, image_result.error)
                self._complete(
                    asset_id,
                    build_image_manifest(image_result),
                    {
                        "width": image_result.width,
                        "height": image_result.height,
                        "visual_digest": image_result.visual_digest,
                        "content_digest": image_result.content_digest,
                    },
                )
                self._log_partial_failures(asset_id, image_result.failures)
            else:
                video_result = self.video_generator.generate(
                    data, original.media_prefix, original.extension
                )
                if not video_result.success:
                    return self._failed_result(original, video_result.error)
                self._complete(
                    asset_id,
                    build_video_manifest(video_result),
                    {"width": video_result.width, "height": video_result.height},
                )
                self._log_partial_failures(asset_id, video_result.failures)

        except Exception as e:
            logger.error(f"Processing failed for {asset_id}", exception=e)
            return self._failed_result(original, str(e))

        return TriggerResult(
            TriggerDisposition.PROCESSED, original.key, str(asset_id), AssetStatus.READY.value
        )

    def _submit_managed(self, original: OriginalKey) -> TriggerResult:
        asset_id = original.asset_id
        specs = managed_job_specs(self.planner.plan(MediaKind.VIDEO))
        job_id = self.transcode_service.submit(
            original.key,
            specs,
            original.media_prefix,
            {
                "projectId": asset_id.project_id,
                "mediaId": asset_id.media_id,
                "bucket": self.settings.media_bucket,
            },
        )
        self.metadata_store.update(
            asset_id,
            {
                "processing_job": ProcessingJob(
                    job_id=job_id, asset_id=asset_id, submitted_at=utc_now()
                )
            },
        )
        logger.info(f"Submitted transcode job {job_id} for {asset_id}", emoji=LogEmoji.JOB)
        return TriggerResult(
            TriggerDisposition.SUBMITTED, original.key, str(asset_id), AssetStatus.PROCESSING.value
        )

    def _build_managed_manifest(
        self, asset: MediaAsset, outputs: OutputDimensions
    ) -> AssetManifest:
        """Manifest for a completed managed job from its output keys and reported sizes."""
        prefix = media_prefix(asset.asset_id)
        specs = self.planner.plan(MediaKind.VIDEO)
        keys = managed_output_keys(prefix, specs)
        url = self.settings.build_public_url
        hls_sizes = outputs.get("hls", {})
        download_sizes = outputs.get("downloads", {})

        hls_renditions = []
        for spec in specs_for_role(specs, RenditionRole.HLS):
            width, height = hls_sizes.get(spec.label, (None, None))
            hls_renditions.append(
                Rendition(
                    label=spec.label,
                    width=width,
                    height=height,
                    format="hls",
                    url=url(keys["hls"][spec.label]),
                    bitrate=spec.bitrate_bps,
                )
            )

        downloads = []
        for spec in specs_for_role(specs, RenditionRole.DOWNLOAD):
            width, height = download_sizes.get(spec.label, (None, None))
            downloads.append(
                Rendition(
                    label=spec.label,
                    width=width,
                    height=height,
                    format="mp4",
                    url=url(keys["downloads"][spec.label]),
                    bitrate=spec.bitrate_bps,
                )
            )

        original = parse_original_key(asset.original_key)
        try:
            downloads.append(
                persist_original_download(
                    self.blob_store,
                    self.settings,
                    self.blob_store.get(asset.original_key),
                    prefix,
                    original.extension if original else "",
                )
            )
        except Exception as e:
            logger.warning(f"Original download copy failed for {asset.asset_id}: {e}")

        poster_url = url(keys["poster"])
        poster = Rendition(label="poster", format="jpg", url=poster_url)
        return AssetManifest(
            thumbnail=poster_url,
            poster=poster_url,
            hls=HlsManifest(
                master=url(keys["master"]),
                renditions=sorted(hls_renditions, key=lambda r: r.bitrate or 0),
            ),
            downloads=downloads,
            cover=poster,
        )

    def _load_original(self, key: str) -> bytes:
        try:
            return self.blob_store.get(key)
        except BlobNotFoundError as e:
            raise SourceUnreadableError(f"Original not found: {key}") from e

    # =========================================================================
    # STATE WRITES
    # =========================================================================

    def _set_status(self, asset_id: AssetId, current: AssetStatus, event: PipelineEvent) -> None:
        new_status = transition(current, event)
        self.metadata_store.update(
            asset_id,
            {"status": new_status, "error": None, "manifest": None, "processing_job": None},
        )

    def _complete(
        self, asset_id: AssetId, manifest: AssetManifest, fields: Dict[str, Any]
    ) -> None:
        """Manifest write, then the ready write. Never combined."""
        new_status = transition(AssetStatus.PROCESSING, PipelineEvent.COMPLETE)
        self.metadata_store.update(asset_id, {"manifest": manifest, **fields})
        self.metadata_store.update(
            asset_id,
            {
                "status": new_status,
                "error": None,
                "processing_job": None,
                "processed_at": utc_now(),
            },
        )
        logger.info(f"Asset {asset_id} ready", emoji=LogEmoji.SUCCESS)
        self._notify(asset_id, NotifyOutcome.SUCCESS)

    def _fail(self, asset_id: AssetId, message: str) -> None:
        new_status = transition(AssetStatus.PROCESSING, PipelineEvent.FAIL)
        self.metadata_store.update(
            asset_id,
            {
                "status": new_status,
                "error": message,
                "manifest": None,
                "processing_job": None,
                "processed_at": utc_now(),
            },
        )
        logger.warning(f"Asset {asset_id} failed: {message}")
        self._notify(asset_id, NotifyOutcome.FAILED, message)

    def _failed_result(self, original: OriginalKey, message: Optional[str]) -> TriggerResult:
        message = message or "Processing failed"
        self._fail(original.asset_id, message)
        return TriggerResult(
            TriggerDisposition.FAILED,
            original.key,
            str(original.asset_id),
            AssetStatus.FAILED.value,
            message,
        )

    def _notify(
        self, asset_id: AssetId, outcome: NotifyOutcome, detail: Optional[str] = None
    ) -> None:
        try:
            self.notification_sink.notify(asset_id, outcome, detail)
        except Exception as e:
            logger.warning(f"Notification failed for {asset_id}: {e}")

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _require_asset(self, asset_id: AssetId) -> MediaAsset:
        asset = self.metadata_store.get(asset_id)
        if asset is None:
            raise AssetNotFoundError(f"Asset {asset_id} not found")
        return asset

    def _claim(self, asset_id: AssetId) -> bool:
        with self._active_lock:
            if asset_id in self._active:
                return False
            self._active.add(asset_id)
            return True

    def _release(self, asset_id: AssetId) -> None:
        with self._active_lock:
            self._active.discard(asset_id)

    def _duplicate(self, key: str, asset_id: AssetId, status: AssetStatus) -> TriggerResult:
        logger.info(
            f"Ignoring duplicate trigger for {asset_id} ({status.value})", emoji=LogEmoji.SKIPPED
        )
        return TriggerResult(
            TriggerDisposition.IGNORED_DUPLICATE,
            key,
            str(asset_id),
            status.value,
            f"Asset already {status.value}",
        )

    def _log_partial_failures(self, asset_id: AssetId, failures) -> None:
        for failure in failures:
            logger.warning(f"{asset_id}: partial rendition failure {failure}")
