# backend/media_pipeline/services/transform_cache/cache_utils.py
"""
Transform request normalization and cache key derivation.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import parse_qs, unquote, urlsplit

from ...constants import (
    TRANSFORM_DEFAULT_FORMAT,
    TRANSFORM_DEFAULT_QUALITY,
    TRANSFORM_DEFAULT_WIDTH,
    TRANSFORM_PATH_PREFIX,
)
from ...enums import ImageFormat
from ...exceptions import InvalidTransformRequestError

# Output formats the proxy encodes; anything else falls back to the default
TRANSFORM_FORMATS = (ImageFormat.WEBP, ImageFormat.AVIF, ImageFormat.JPG, ImageFormat.PNG)

FORMAT_ALIASES = {"jpeg": ImageFormat.JPG.value}

CACHE_KEY_HASH_LENGTH = 32
MAX_QUALITY = 100


@dataclass(frozen=True)
class TransformRequest:
    """Normalized transform parameters. Equal requests share one cache key."""

    source_key: str
    width: int
    quality: int
    format: ImageFormat


def normalize_format(value: Optional[Any]) -> ImageFormat:
    """Lower-case, map jpeg to jpg, and default unknown values to webp."""
    if value is None:
        return TRANSFORM_DEFAULT_FORMAT
    raw = str(getattr(value, "value", value)).strip().lower()
    raw = FORMAT_ALIASES.get(raw, raw)
    for fmt in TRANSFORM_FORMATS:
        if fmt.value == raw:
            return fmt
    return TRANSFORM_DEFAULT_FORMAT


def _coerce_int(name: str, value: Optional[Any], default: int, upper: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(str(value).strip())
    except ValueError as e:
        raise InvalidTransformRequestError(f"{name} must be an integer, got '{value}'") from e
    if number < 1 or number > upper:
        raise InvalidTransformRequestError(f"{name} must be between 1 and {upper}, got {number}")
    return number


def normalize_request(
    source_key: str,
    width: Optional[Any] = None,
    quality: Optional[Any] = None,
    fmt: Optional[Any] = None,
    max_width: int = 4096,
) -> TransformRequest:
    """
    Normalize raw transform parameters.

    Raises:
        InvalidTransformRequestError: Empty key, or width/quality not an
            integer in range
    """
    key = (source_key or "").strip().lstrip("/")
    if not key:
        raise InvalidTransformRequestError("Source key is required")
    return TransformRequest(
        source_key=key,
        width=_coerce_int("w", width, TRANSFORM_DEFAULT_WIDTH, max_width),
        quality=_coerce_int("q", quality, TRANSFORM_DEFAULT_QUALITY, MAX_QUALITY),
        format=normalize_format(fmt),
    )


def build_cache_key(
    prefix: str, source_key: str, width: int, quality: int, fmt: ImageFormat
) -> str:
    """
    Deterministic cache key for one normalized request.

    The hash covers every parameter so distinct sources never collide after
    path flattening.
    """
    digest = hashlib.sha256(
        f"{source_key}|{width}|{quality}|{fmt.value}".encode("utf-8")
    ).hexdigest()[:CACHE_KEY_HASH_LENGTH]
    return f"{prefix}{digest}_w{width}_q{quality}.{fmt.value}"


def parse_transform_path(
    path: str, query: Optional[Mapping[str, Any]] = None, max_width: int = 4096
) -> TransformRequest:
    """
    Parse '/img/{key}?w=&q=&f=' into a normalized request.

    Args:
        path: Request path, optionally carrying its own query string
        query: Already-parsed query parameters; take precedence over the path's

    Raises:
        InvalidTransformRequestError: If the path is not under /img/ or
            parameters are invalid
    """
    parts = urlsplit(path)
    if not parts.path.startswith(TRANSFORM_PATH_PREFIX):
        raise InvalidTransformRequestError(f"Not a transform path: {path}")

    params = {k: v[0] for k, v in parse_qs(parts.query).items() if v}
    if query:
        params.update({k: v for k, v in query.items() if v is not None})

    return normalize_request(
        unquote(parts.path[len(TRANSFORM_PATH_PREFIX):]),
        params.get("w"),
        params.get("q"),
        params.get("f"),
        max_width=max_width,
    )
