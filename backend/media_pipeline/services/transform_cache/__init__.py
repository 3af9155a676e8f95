# backend/media_pipeline/services/transform_cache/__init__.py
"""
Transform Cache Module

On-demand image resizing behind a deterministic, write-behind blob cache.
"""

from typing import Optional

from ...config import Settings
from ..image_pipeline.utils.format_capabilities import (
    FormatCapabilities,
    detect_format_capabilities,
)
from ..storage.blob_store import BlobStore
from .cache_utils import (
    TransformRequest,
    build_cache_key,
    normalize_format,
    normalize_request,
    parse_transform_path,
)
from .transform_cache import TransformCache, transform_quality


def create_transform_cache(
    blob_store: BlobStore,
    settings: Settings,
    capabilities: Optional[FormatCapabilities] = None,
) -> TransformCache:
    """Factory function to create a transform cache with its write executor."""
    return TransformCache(
        blob_store=blob_store,
        settings=settings,
        capabilities=capabilities or detect_format_capabilities(),
    )


__all__ = [
    "create_transform_cache",
    "TransformCache",
    "TransformRequest",
    "build_cache_key",
    "normalize_format",
    "normalize_request",
    "parse_transform_path",
    "transform_quality",
]
