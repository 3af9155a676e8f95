# backend/media_pipeline/services/image_pipeline/generators/image_derivative_generator.py
"""
Image Derivative Generator Component

Produces every derivative of one image original: thumbnail, blur
placeholder, visual/content digests and the resolution × format ladder.
Each derivative is persisted before it is added to the result, so the
manifest built from the result never points at a missing blob.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from PIL import Image

from ....config import Settings
from ....constants import (
    BLUR_PLACEHOLDER_FILENAME,
    FORMAT_PREFERENCE,
    IMAGE_MIME_TYPES,
    THUMBNAIL_FILENAME,
    THUMBNAIL_QUALITY,
    THUMBNAIL_SIZE,
)
from ....enums import ImageFormat, LogEmoji, LoggerName, LogSource, MediaKind, RenditionRole
from ....exceptions import PartialRenditionFailure
from ....models.asset_models import Rendition
from ....models.rendition_models import RenditionSpec
from ....models.result_models import ImageGenerationResult
from ....utils.key_utils import join_key
from ...logger import get_service_logger
from ...rendition_planner import RenditionPlanner, specs_for_role
from ...storage.blob_store import BlobStore
from ..utils.format_capabilities import FORMAT_TABLE, FormatCapabilities
from ..utils.image_utils import (
    avif_quality,
    compute_content_digest,
    compute_visual_digest,
    decode_image,
    encode_image,
    resize_inside,
    webp_quality,
)

logger = get_service_logger(LoggerName.IMAGE_PIPELINE, LogSource.PIPELINE)


def format_quality(fmt: ImageFormat, quality: int) -> int:
    """Per-format quality derived from the rung's JPEG quality."""
    if fmt == ImageFormat.WEBP:
        return webp_quality(quality)
    if fmt == ImageFormat.AVIF:
        return avif_quality(quality)
    return quality


def best_format(formats: Dict[str, str]) -> Optional[ImageFormat]:
    """Most preferred format actually produced (heif/avif > webp > jpg)."""
    for fmt in FORMAT_PREFERENCE:
        if fmt.value in formats:
            return fmt
    return None


class ImageDerivativeGenerator:
    """
    Component responsible for generating all image derivatives.

    Optimized for:
    - One decode and one EXIF rotation per original
    - Parallel ladder rungs with independent per-format failures
    - Capability-table format fallback evaluated once per process
    """

    def __init__(
        self,
        blob_store: BlobStore,
        settings: Settings,
        capabilities: FormatCapabilities,
        planner: Optional[RenditionPlanner] = None,
    ):
        """
        Initialize image derivative generator.

        Args:
            blob_store: Storage collaborator derivatives are written to
            settings: Immutable pipeline settings
            capabilities: Result of the startup encoder check
            planner: Rendition planner (defaults to the configured modern format)
        """
        self.blob_store = blob_store
        self.settings = settings
        self.capabilities = capabilities
        self.planner = planner or RenditionPlanner(settings.preferred_modern_format)
        self.max_workers = settings.image_workers

        logger.debug(
            f"ImageDerivativeGenerator initialized (workers={self.max_workers}, {capabilities})"
        )

    def generate(self, original: bytes, media_prefix: str) -> ImageGenerationResult:
        """
        Generate every derivative for one image original.

        Args:
            original: Original image bytes
            media_prefix: Key prefix owned by this asset

        Returns:
            ImageGenerationResult; success is False only when no ladder rung
            could be produced

        Raises:
            SourceUnreadableError: If the original cannot be decoded at all
        """
        img = decode_image(original)
        width, height = img.size
        failures: List[str] = []

        logger.info(
            f"Generating image derivatives for {media_prefix} ({width}x{height})",
            emoji=LogEmoji.IMAGE,
        )

        visual_digest, content_digest = self._compute_digests(img, len(original), failures)
        thumbnail = self._generate_thumbnail(img, media_prefix, failures)

        plan = self.planner.plan(MediaKind.IMAGE, width, height)
        blur_placeholder = None
        for spec in specs_for_role(plan, RenditionRole.BLUR_PLACEHOLDER):
            blur_placeholder = self._generate_blur_placeholder(img, spec, media_prefix, failures)

        ladder = self._generate_ladder(
            img, specs_for_role(plan, RenditionRole.IMAGE_RUNG), media_prefix, failures
        )

        if not ladder:
            return ImageGenerationResult(
                success=False,
                width=width,
                height=height,
                failures=failures,
                error="No ladder rendition could be produced",
            )

        logger.info(
            f"Generated {len(ladder)} ladder rungs for {media_prefix} "
            f"({len(failures)} partial failures)",
            emoji=LogEmoji.SUCCESS,
        )

        return ImageGenerationResult(
            success=True,
            width=width,
            height=height,
            thumbnail=thumbnail,
            blur_placeholder=blur_placeholder,
            visual_digest=visual_digest,
            content_digest=content_digest,
            ladder=ladder,
            failures=failures,
        )

    def _compute_digests(
        self, img: Image.Image, source_bytes: int, failures: List[str]
    ) -> Tuple[Optional[str], Optional[str]]:
        if source_bytes > self.settings.max_digest_source_bytes:
            logger.debug(f"Skipping digests for {source_bytes} byte original")
            return None, None

        visual_digest = content_digest = None
        try:
            visual_digest = compute_visual_digest(img)
        except Exception as e:
            failures.append(f"visual_digest: {e}")
            logger.warning(f"Visual digest failed: {e}")
        try:
            content_digest = compute_content_digest(img)
        except Exception as e:
            failures.append(f"content_digest: {e}")
            logger.warning(f"Content digest failed: {e}")
        return visual_digest, content_digest

    def _persist(self, key: str, data: bytes, fmt: ImageFormat) -> str:
        self.blob_store.put(
            key,
            data,
            content_type=IMAGE_MIME_TYPES[fmt],
            cache_control=self.settings.cache_control,
        )
        return self.settings.build_public_url(key)

    def _generate_thumbnail(
        self, img: Image.Image, media_prefix: str, failures: List[str]
    ) -> Optional[Rendition]:
        try:
            thumb = resize_inside(img, THUMBNAIL_SIZE)
            data = encode_image(thumb, ImageFormat.JPG, THUMBNAIL_QUALITY)
            url = self._persist(join_key(media_prefix, THUMBNAIL_FILENAME), data, ImageFormat.JPG)
            return Rendition(
                label="thumbnail",
                width=thumb.width,
                height=thumb.height,
                format=ImageFormat.JPG.value,
                url=url,
                formats={ImageFormat.JPG.value: url},
            )
        except Exception as e:
            failure = PartialRenditionFailure("thumbnail", ImageFormat.JPG.value, str(e))
            failures.append(str(failure))
            logger.error("Thumbnail generation failed", exception=e)
            return None

    def _generate_blur_placeholder(
        self, img: Image.Image, spec: RenditionSpec, media_prefix: str, failures: List[str]
    ) -> Optional[Rendition]:
        try:
            blurred = resize_inside(img, spec.box)
            data = encode_image(blurred, ImageFormat.JPG, spec.quality)
            url = self._persist(
                join_key(media_prefix, BLUR_PLACEHOLDER_FILENAME), data, ImageFormat.JPG
            )
            return Rendition(
                label=spec.label,
                width=blurred.width,
                height=blurred.height,
                format=ImageFormat.JPG.value,
                url=url,
                formats={ImageFormat.JPG.value: url},
            )
        except Exception as e:
            failure = PartialRenditionFailure(spec.label, ImageFormat.JPG.value, str(e))
            failures.append(str(failure))
            logger.error("Blur placeholder generation failed", exception=e)
            return None

    def _generate_ladder(
        self,
        img: Image.Image,
        specs: List[RenditionSpec],
        media_prefix: str,
        failures: List[str],
    ) -> List[Rendition]:
        results: List[Tuple[Optional[Rendition], List[str]]] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self._generate_rung, img, spec, media_prefix)
                for spec in specs
            ]
            # Collected in plan order; rung completion order is irrelevant
            for spec, future in zip(specs, futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    failure = PartialRenditionFailure(spec.label, "*", str(e))
                    results.append((None, [str(failure)]))
                    logger.error(f"Rung {spec.label} failed", exception=e)

        ladder = []
        for rendition, rung_failures in results:
            failures.extend(rung_failures)
            if rendition is not None:
                ladder.append(rendition)
        return ladder

    def _generate_rung(
        self, img: Image.Image, spec: RenditionSpec, media_prefix: str
    ) -> Tuple[Optional[Rendition], List[str]]:
        """
        Encode one rung in every requested format.

        Each (rung, format) pair fails independently. A format without an
        encoder resolves to its fallback; the fallback is skipped when this
        rung already produced it.

        Returns:
            (Rendition or None when no format succeeded, failure messages)
        """
        resized = resize_inside(img, spec.box)
        formats: Dict[str, str] = {}
        rung_failures: List[str] = []

        for requested in spec.formats:
            try:
                target = self.capabilities.resolve(requested)
            except ValueError as e:
                rung_failures.append(str(PartialRenditionFailure(spec.label, requested.value, str(e))))
                continue

            if target != requested:
                logger.debug(
                    f"{requested.value} unavailable for {spec.label}, using {target.value}"
                )

            attempt: Optional[ImageFormat] = target
            while attempt is not None and attempt.value not in formats:
                try:
                    data = encode_image(resized, attempt, format_quality(attempt, spec.quality))
                    key = join_key(media_prefix, f"{spec.label}.{FORMAT_TABLE[attempt].extension}")
                    formats[attempt.value] = self._persist(key, data, attempt)
                    break
                except Exception as e:
                    failure = PartialRenditionFailure(spec.label, attempt.value, str(e))
                    rung_failures.append(str(failure))
                    logger.warning(f"Encoding failed: {failure}")
                    attempt = FORMAT_TABLE[attempt].fallback

        best = best_format(formats)
        if best is None:
            return None, rung_failures

        return (
            Rendition(
                label=spec.label,
                width=resized.width,
                height=resized.height,
                format=best.value,
                url=formats[best.value],
                formats=formats,
            ),
            rung_failures,
        )
