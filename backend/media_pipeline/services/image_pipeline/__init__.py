# backend/media_pipeline/services/image_pipeline/__init__.py
"""
Image Pipeline Module

Image derivative generation: thumbnail, blur placeholder, digests and the
resolution × format ladder.
"""

from typing import Optional

from ...config import Settings
from ..storage.blob_store import BlobStore
from .generators import ImageDerivativeGenerator, best_format, format_quality
from .utils import (
    FORMAT_TABLE,
    FormatCapabilities,
    FormatCapability,
    compute_content_digest,
    compute_visual_digest,
    decode_image,
    detect_format_capabilities,
    encode_image,
    resize_inside,
)


def create_image_generator(
    blob_store: BlobStore,
    settings: Settings,
    capabilities: Optional[FormatCapabilities] = None,
) -> ImageDerivativeGenerator:
    """
    Factory function to create an image derivative generator.

    Args:
        blob_store: Storage collaborator derivatives are written to
        settings: Immutable pipeline settings
        capabilities: Detected encoder support (detected once per process if omitted)

    Returns:
        ImageDerivativeGenerator with all dependencies injected
    """
    return ImageDerivativeGenerator(
        blob_store=blob_store,
        settings=settings,
        capabilities=capabilities or detect_format_capabilities(),
    )


__all__ = [
    # Factory
    "create_image_generator",
    # Generators
    "ImageDerivativeGenerator",
    "best_format",
    "format_quality",
    # Utils
    "FORMAT_TABLE",
    "FormatCapabilities",
    "FormatCapability",
    "compute_content_digest",
    "compute_visual_digest",
    "decode_image",
    "detect_format_capabilities",
    "encode_image",
    "resize_inside",
]
