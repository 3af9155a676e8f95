# backend/media_pipeline/services/transform_cache/transform_cache.py
"""
Transform Cache - on-demand resized image variants.

Serves `/img/{key}?w=&q=&f=` requests. Results are keyed deterministically
and persisted under the cache prefix. A miss returns the freshly encoded
bytes immediately and writes the cache entry in the background; concurrent
misses for the same key may both encode, and the last write wins with
identical content.
"""

import asyncio
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from functools import partial
from typing import Any, Optional, Set

from ...config import Settings
from ...constants import IMAGE_MIME_TYPES
from ...enums import ImageFormat, LogEmoji, LoggerName, LogSource
from ...exceptions import (
    BlobNotFoundError,
    SourceUnreadableError,
    StorageError,
    TransformNotFoundError,
    TransformProcessingError,
)
from ...models.result_models import TransformResult
from ..image_pipeline.utils.format_capabilities import FormatCapabilities
from ..image_pipeline.utils.image_utils import (
    avif_quality,
    decode_image,
    encode_image,
    resize_to_width,
)
from ..logger import get_service_logger
from ..storage.blob_store import BlobStore
from .cache_utils import TransformRequest, build_cache_key, normalize_request

logger = get_service_logger(LoggerName.TRANSFORM_CACHE, LogSource.PIPELINE)


def transform_quality(fmt: ImageFormat, quality: int) -> int:
    """webp, jpg and png use q as given; avif uses max(50, q - 20)."""
    if fmt == ImageFormat.AVIF:
        return avif_quality(quality)
    return quality


class TransformCache:
    """
    On-demand transform service with a write-behind blob cache.

    Stateless between requests apart from the in-flight write set.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        settings: Settings,
        capabilities: FormatCapabilities,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.blob_store = blob_store
        self.settings = settings
        self.capabilities = capabilities
        self.prefix = settings.transform_cache_prefix
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.transform_cache_workers,
            thread_name_prefix="transform-cache",
        )
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    def resolve(
        self,
        source_key: str,
        width: Optional[Any] = None,
        quality: Optional[Any] = None,
        fmt: Optional[Any] = None,
    ) -> TransformResult:
        """
        Return transformed bytes for one request, from cache when present.

        Args:
            source_key: Key of the source image
            width: Max output width (default 1280)
            quality: Encoder quality 1..100 (default 80)
            fmt: webp, avif, jpg/jpeg or png (default and fallback webp)

        Returns:
            TransformResult with body, content type and cache status

        Raises:
            InvalidTransformRequestError: Parameters out of range
            TransformNotFoundError: Source does not exist
            TransformProcessingError: Any other failure
        """
        request = normalize_request(
            source_key, width, quality, fmt, max_width=self.settings.transform_max_width
        )
        try:
            target = self.capabilities.resolve(request.format)
        except ValueError as e:
            raise TransformProcessingError(str(e)) from e

        cache_key = build_cache_key(
            self.prefix, request.source_key, request.width, request.quality, target
        )
        content_type = IMAGE_MIME_TYPES[target]

        cached = self._read_cache(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit: {cache_key}", emoji=LogEmoji.CACHE)
            return TransformResult(
                body=cached,
                content_type=content_type,
                cache_key=cache_key,
                cache_hit=True,
                cache_control=self.settings.cache_control,
            )

        logger.debug(f"Cache miss: {cache_key}", emoji=LogEmoji.SKIPPED)
        body = self._render(request, target)
        self._schedule_write(cache_key, body, content_type)

        logger.info(
            f"Transformed {request.source_key} -> {len(body)} bytes "
            f"({request.width}w, q{request.quality}, {target.value})",
            emoji=LogEmoji.IMAGE,
        )
        return TransformResult(
            body=body,
            content_type=content_type,
            cache_key=cache_key,
            cache_hit=False,
            cache_control=self.settings.cache_control,
        )

    async def resolve_async(
        self,
        source_key: str,
        width: Optional[Any] = None,
        quality: Optional[Any] = None,
        fmt: Optional[Any] = None,
    ) -> TransformResult:
        """Run resolve in the default executor so the event loop stays free."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(self.resolve, source_key, width, quality, fmt)
        )

    def _read_cache(self, cache_key: str) -> Optional[bytes]:
        try:
            return self.blob_store.get(cache_key)
        except BlobNotFoundError:
            return None
        except StorageError as e:
            logger.warning(f"Cache read failed for {cache_key}, rendering instead: {e}")
            return None

    def _render(self, request: TransformRequest, target: ImageFormat) -> bytes:
        try:
            original = self.blob_store.get(request.source_key)
        except BlobNotFoundError as e:
            raise TransformNotFoundError(f"Image not found: {request.source_key}") from e
        except StorageError as e:
            raise TransformProcessingError(str(e)) from e

        try:
            img = decode_image(original)
            resized = resize_to_width(img, request.width)
            return encode_image(resized, target, transform_quality(target, request.quality))
        except SourceUnreadableError as e:
            raise TransformProcessingError(str(e)) from e
        except Exception as e:
            raise TransformProcessingError(f"Encoding {target.value} failed: {e}") from e

    def _schedule_write(self, cache_key: str, body: bytes, content_type: str) -> None:
        future = self._executor.submit(self._write_cache, cache_key, body, content_type)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)

    def _discard_pending(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _write_cache(self, cache_key: str, body: bytes, content_type: str) -> None:
        try:
            self.blob_store.put(
                cache_key,
                body,
                content_type=content_type,
                cache_control=self.settings.cache_control,
            )
            logger.debug(f"Cached: {cache_key}", emoji=LogEmoji.CACHE)
        except Exception as e:
            logger.warning(f"Cache write failed for {cache_key}: {e}")

    def wait_for_pending_writes(self, timeout: Optional[float] = None) -> bool:
        """
        Block until in-flight cache writes finish.

        Returns:
            True if every write completed within the timeout
        """
        with self._pending_lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_writes: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_writes)
