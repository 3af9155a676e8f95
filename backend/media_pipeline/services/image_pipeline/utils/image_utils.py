# backend/media_pipeline/services/image_pipeline/utils/image_utils.py
"""
Image Utilities

Pure Pillow helpers shared by the derivative generator and the transform
cache: decode with auto-rotation, inside-fit resizing that never upscales,
per-format encoding and the two image digests.
"""

import hashlib
import io
from typing import Tuple

import blurhash
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from ....constants import (
    AVIF_MIN_QUALITY,
    AVIF_QUALITY_OFFSET,
    CONTENT_DIGEST_LENGTH,
    CONTENT_DIGEST_SAMPLE_SIZE,
    VISUAL_DIGEST_COMPONENTS,
    VISUAL_DIGEST_SAMPLE_SIZE,
    WEBP_MIN_QUALITY,
    WEBP_QUALITY_OFFSET,
)
from ....enums import ImageFormat
from ....exceptions import SourceUnreadableError
from .format_capabilities import FORMAT_TABLE


def decode_image(data: bytes) -> Image.Image:
    """
    Decode image bytes and apply EXIF orientation.

    Args:
        data: Encoded image bytes

    Returns:
        Fully loaded, upright Pillow image

    Raises:
        SourceUnreadableError: If the bytes cannot be decoded
    """
    if not data:
        raise SourceUnreadableError("Source image is empty")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise SourceUnreadableError(f"Cannot decode source image: {e}") from e


def resize_inside(img: Image.Image, box: Tuple[int, int]) -> Image.Image:
    """Fit inside box preserving aspect ratio; smaller sources are returned at their size."""
    target = fit_dimensions(img.size, box)
    if target == img.size:
        return img.copy()
    return img.resize(target, Image.Resampling.LANCZOS)


def resize_to_width(img: Image.Image, width: int) -> Image.Image:
    """Downscale to width only when the source is wider."""
    if img.width <= width:
        return img
    height = max(1, round(img.height * width / img.width))
    return img.resize((width, height), Image.Resampling.LANCZOS)


def fit_dimensions(
    source: Tuple[int, int], box: Tuple[int, int]
) -> Tuple[int, int]:
    """Dimensions resize_inside would produce, without touching pixels."""
    src_w, src_h = source
    box_w, box_h = box
    scale = min(box_w / src_w, box_h / src_h, 1.0)
    return (max(1, round(src_w * scale)), max(1, round(src_h * scale)))


def _prepare_mode(img: Image.Image, fmt: ImageFormat) -> Image.Image:
    if fmt == ImageFormat.JPG:
        return img if img.mode in ("RGB", "L") else img.convert("RGB")
    if img.mode in ("RGB", "RGBA", "L"):
        return img
    has_alpha = img.mode in ("LA", "PA") or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")


def webp_quality(quality: int) -> int:
    return max(WEBP_MIN_QUALITY, quality - WEBP_QUALITY_OFFSET)


def avif_quality(quality: int) -> int:
    return max(AVIF_MIN_QUALITY, quality - AVIF_QUALITY_OFFSET)


def encode_image(img: Image.Image, fmt: ImageFormat, quality: int) -> bytes:
    """
    Encode an image in one output format.

    Quality is passed through as given; ladder and cache callers apply
    their own per-format quality rules first.
    """
    capability = FORMAT_TABLE[fmt]
    prepared = _prepare_mode(img, fmt)
    save_kwargs = {}

    if fmt == ImageFormat.JPG:
        save_kwargs = {"quality": quality, "optimize": True, "progressive": True}
    elif fmt == ImageFormat.PNG:
        save_kwargs = {"optimize": True}
    else:
        save_kwargs = {"quality": quality}

    buffer = io.BytesIO()
    prepared.save(buffer, format=capability.pillow_format, **save_kwargs)
    return buffer.getvalue()


def compute_visual_digest(img: Image.Image) -> str:
    """BlurHash of a 32×32 inside downsample of the decoded original."""
    sample = img.convert("RGB")
    sample.thumbnail(VISUAL_DIGEST_SAMPLE_SIZE, Image.Resampling.BILINEAR)
    components_x, components_y = VISUAL_DIGEST_COMPONENTS
    pixels = np.asarray(sample, dtype=np.uint8).tolist()
    return blurhash.encode(pixels, components_x, components_y)


def compute_content_digest(img: Image.Image) -> str:
    """Near-duplicate hash over an 8×8 greyscale fill downsample. Not an integrity hash."""
    sample = img.resize(CONTENT_DIGEST_SAMPLE_SIZE, Image.Resampling.BILINEAR).convert("L")
    return hashlib.sha256(sample.tobytes()).hexdigest()[:CONTENT_DIGEST_LENGTH]
