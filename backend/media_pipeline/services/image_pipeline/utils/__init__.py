from .format_capabilities import (
    FORMAT_TABLE,
    FormatCapabilities,
    FormatCapability,
    detect_format_capabilities,
)
from .image_utils import (
    avif_quality,
    compute_content_digest,
    compute_visual_digest,
    decode_image,
    encode_image,
    fit_dimensions,
    resize_inside,
    resize_to_width,
    webp_quality,
)

__all__ = [
    "FORMAT_TABLE",
    "FormatCapabilities",
    "FormatCapability",
    "detect_format_capabilities",
    "avif_quality",
    "compute_content_digest",
    "compute_visual_digest",
    "decode_image",
    "encode_image",
    "fit_dimensions",
    "resize_inside",
    "resize_to_width",
    "webp_quality",
]
