# backend/media_pipeline/utils/key_utils.py
"""
Storage key helpers.

Pure functions for parsing original keys, recognising derivative output and
building the per-asset key layout. No I/O.
"""

import posixpath
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote_plus

from ..constants import (
    DERIVATIVE_KEY_MARKERS,
    EXTENSION_KIND,
    MEDIA_SEGMENT,
    MIN_ORIGINAL_KEY_PARTS,
    PROJECTS_SEGMENT,
)
from ..enums import MediaKind
from ..models.asset_models import AssetId

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9._\-]+$")


@dataclass(frozen=True)
class OriginalKey:
    """Parsed projects/{projectId}/media/{mediaId}/{filename} key."""

    key: str
    asset_id: AssetId
    filename: str
    extension: str

    @property
    def media_prefix(self) -> str:
        return media_prefix(self.asset_id)


def decode_event_key(raw_key: str) -> str:
    """Object-created events carry URL-encoded keys ('+' for spaces)."""
    return unquote_plus(raw_key or "")


def is_derivative_key(key: str, cache_prefix: str = "proxy-cache/") -> bool:
    """True when a key is pipeline output rather than an uploaded original."""
    if cache_prefix and key.startswith(cache_prefix):
        return True
    return any(marker in key for marker in DERIVATIVE_KEY_MARKERS)


def get_extension(filename: str) -> str:
    """Lower-cased extension without the dot, '' when absent."""
    _, ext = posixpath.splitext(filename)
    return ext[1:].lower()


def classify_extension(extension: str) -> Optional[MediaKind]:
    return EXTENSION_KIND.get(extension.lower().lstrip("."))


def parse_original_key(key: str) -> Optional[OriginalKey]:
    """
    Parse an original upload key.

    Args:
        key: Decoded storage key

    Returns:
        OriginalKey, or None when the key is outside the project/media layout
    """
    parts = key.split("/")
    if len(parts) < MIN_ORIGINAL_KEY_PARTS:
        return None
    if parts[0] != PROJECTS_SEGMENT or parts[2] != MEDIA_SEGMENT:
        return None

    project_id, media_id = parts[1], parts[3]
    filename = "/".join(parts[4:])
    if not (_SEGMENT_RE.match(project_id) and _SEGMENT_RE.match(media_id)):
        return None
    if not filename or filename.endswith("/"):
        return None

    return OriginalKey(
        key=key,
        asset_id=AssetId(project_id=project_id, media_id=media_id),
        filename=filename,
        extension=get_extension(filename),
    )


def media_prefix(asset_id: AssetId) -> str:
    """Key prefix owned exclusively by one asset's pipeline run."""
    return f"{PROJECTS_SEGMENT}/{asset_id.project_id}/{MEDIA_SEGMENT}/{asset_id.media_id}"


def join_key(*parts: str) -> str:
    return "/".join(part.strip("/") for part in parts if part)
