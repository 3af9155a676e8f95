# backend/media_pipeline/models/result_models.py
"""
Typed result models for generator, cache and trigger operations.

These replace loose result dictionaries with attributes the orchestrator
and routers can rely on.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..enums import TranscodeJobStatus, TriggerDisposition
from .asset_models import HlsManifest, Rendition

# group ("hls" | "downloads") -> label -> (width, height) of a managed job output
OutputDimensions = Dict[str, Dict[str, Tuple[int, int]]]


@dataclass
class ImageGenerationResult:
    """Result from image derivative generation."""

    success: bool
    width: Optional[int] = None
    height: Optional[int] = None
    thumbnail: Optional[Rendition] = None
    blur_placeholder: Optional[Rendition] = None
    visual_digest: Optional[str] = None
    content_digest: Optional[str] = None
    ladder: List[Rendition] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class VideoGenerationResult:
    """Result from local video derivative generation."""

    success: bool
    width: Optional[int] = None
    height: Optional[int] = None
    duration_seconds: Optional[float] = None
    poster: Optional[Rendition] = None
    hls: Optional[HlsManifest] = None
    downloads: List[Rendition] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class TransformResult:
    """Bytes served for one on-demand transform request."""

    body: bytes
    content_type: str
    cache_key: str
    cache_hit: bool
    cache_control: str

    @property
    def cache_header(self) -> str:
        return "Hit" if self.cache_hit else "Miss"


@dataclass
class TriggerResult:
    """Outcome of one object-created trigger."""

    disposition: TriggerDisposition
    key: str
    asset_id: Optional[str] = None
    status: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ignored(self) -> bool:
        return self.disposition.value.startswith("ignored")


@dataclass
class TranscodeStatusReport:
    """Status snapshot of an external transcode job."""

    job_id: str
    status: TranscodeJobStatus
    error_message: Optional[str] = None
    outputs: OutputDimensions = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            TranscodeJobStatus.COMPLETE,
            TranscodeJobStatus.ERROR,
            TranscodeJobStatus.CANCELED,
        )
