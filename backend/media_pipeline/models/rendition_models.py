# backend/media_pipeline/models/rendition_models.py
"""
Plan entries produced by the rendition planner. Derived, never persisted.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..enums import ImageFormat, RenditionRole


@dataclass(frozen=True)
class RenditionSpec:
    """One planned rendition: target box, quality and encoding parameters."""

    label: str
    role: RenditionRole
    width: Optional[int] = None
    height: Optional[int] = None
    quality: Optional[int] = None
    formats: Tuple[ImageFormat, ...] = field(default_factory=tuple)
    bitrate_kbps: Optional[int] = None
    maxrate_kbps: Optional[int] = None
    bufsize_kbps: Optional[int] = None

    @property
    def box(self) -> Tuple[int, int]:
        return (self.width or 0, self.height or 0)

    @property
    def bitrate_bps(self) -> Optional[int]:
        return self.bitrate_kbps * 1000 if self.bitrate_kbps else None

    @property
    def maxrate_bps(self) -> Optional[int]:
        return self.maxrate_kbps * 1000 if self.maxrate_kbps else None
