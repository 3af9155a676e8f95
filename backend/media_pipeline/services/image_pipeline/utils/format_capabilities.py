# backend/media_pipeline/services/image_pipeline/utils/format_capabilities.py
"""
Format Capability Table

Declarative mapping of output format -> Pillow encoder, content type and
fallback target. The runtime is checked once per process by encoding a 1×1
image in every format; encoders that fail are resolved through their
fallback chain instead of being retried per request.
"""

import io
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, FrozenSet, Optional

from PIL import Image
from pillow_heif import register_heif_opener

from ....enums import ImageFormat, LogEmoji, LoggerName, LogSource
from ...logger import get_service_logger

logger = get_service_logger(LoggerName.IMAGE_PIPELINE, LogSource.PIPELINE)

register_heif_opener()


@dataclass(frozen=True)
class FormatCapability:
    """How one output format is encoded and what replaces it when unavailable."""

    format: ImageFormat
    pillow_format: str
    mime_type: str
    extension: str
    fallback: Optional[ImageFormat] = None


FORMAT_TABLE: Dict[ImageFormat, FormatCapability] = {
    ImageFormat.JPG: FormatCapability(ImageFormat.JPG, "JPEG", "image/jpeg", "jpg"),
    ImageFormat.PNG: FormatCapability(ImageFormat.PNG, "PNG", "image/png", "png"),
    ImageFormat.WEBP: FormatCapability(
        ImageFormat.WEBP, "WEBP", "image/webp", "webp", fallback=ImageFormat.JPG
    ),
    ImageFormat.HEIF: FormatCapability(
        ImageFormat.HEIF, "HEIF", "image/heif", "heif", fallback=ImageFormat.JPG
    ),
    ImageFormat.AVIF: FormatCapability(
        ImageFormat.AVIF, "AVIF", "image/avif", "avif", fallback=ImageFormat.JPG
    ),
}


def _can_encode(capability: FormatCapability) -> bool:
    try:
        Image.new("RGB", (1, 1)).save(io.BytesIO(), format=capability.pillow_format)
        return True
    except (KeyError, OSError, ValueError) as e:
        logger.warning(
            f"Encoder unavailable for {capability.format.value}: {e}",
            emoji=LogEmoji.SEARCH,
        )
        return False


class FormatCapabilities:
    """Result of the startup capability check."""

    def __init__(self, supported: FrozenSet[ImageFormat]):
        self.supported = supported

    def is_supported(self, fmt: ImageFormat) -> bool:
        return fmt in self.supported

    def resolve(self, fmt: ImageFormat) -> ImageFormat:
        """
        Follow the fallback chain until a supported encoder is found.

        Raises:
            ValueError: If neither the format nor any fallback can be encoded
        """
        current: Optional[ImageFormat] = fmt
        while current is not None:
            if current in self.supported:
                return current
            current = FORMAT_TABLE[current].fallback
        raise ValueError(f"No encoder available for {fmt.value}")

    def __repr__(self) -> str:
        names = ", ".join(sorted(f.value for f in self.supported))
        return f"FormatCapabilities({names})"


@lru_cache()
def detect_format_capabilities() -> FormatCapabilities:
    """Try every encoder once per process."""
    supported = frozenset(
        fmt for fmt, capability in FORMAT_TABLE.items() if _can_encode(capability)
    )
    logger.info(
        f"Image encoders available: {', '.join(sorted(f.value for f in supported))}",
        emoji=LogEmoji.STARTUP,
    )
    return FormatCapabilities(supported)
