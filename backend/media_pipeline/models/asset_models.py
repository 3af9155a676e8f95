# backend/media_pipeline/models/asset_models.py
"""
Asset record and manifest models persisted through the metadata store.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import AssetStatus, MediaKind, TranscodeJobStatus


class AssetId(BaseModel):
    """Composite asset identity; an asset never moves between projects."""

    project_id: str
    media_id: str
    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.project_id}/{self.media_id}"

    @classmethod
    def parse(cls, value: str) -> "AssetId":
        """Parse the '{project}/{media}' string form."""
        project_id, sep, media_id = value.partition("/")
        if not sep or not project_id or not media_id or "/" in media_id:
            raise ValueError(f"Invalid asset id '{value}'")
        return cls(project_id=project_id, media_id=media_id)


class Rendition(BaseModel):
    """One concrete derived artifact. Immutable once written."""

    label: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: str
    url: str
    bitrate: Optional[int] = Field(default=None, description="Bits per second")
    formats: Dict[str, str] = Field(
        default_factory=dict, description="Format -> url for image ladder entries"
    )
    model_config = ConfigDict(frozen=True)


class HlsManifest(BaseModel):
    """Master playlist plus the renditions it references, ascending bitrate."""

    master: str
    renditions: List[Rendition]


class AssetManifest(BaseModel):
    """Everything produced for one asset; written before status flips to ready."""

    width: Optional[int] = None
    height: Optional[int] = None
    visual_digest: Optional[str] = None
    content_digest: Optional[str] = None
    thumbnail: Optional[str] = None
    blur_placeholder: Optional[Rendition] = None
    ladder: List[Rendition] = Field(default_factory=list)
    hls: Optional[HlsManifest] = None
    downloads: List[Rendition] = Field(default_factory=list)
    poster: Optional[str] = None
    cover: Optional[Rendition] = None

    def is_empty(self) -> bool:
        """A manifest with no ladder, stream or download is not servable."""
        return not self.ladder and self.hls is None and not self.downloads


class ProcessingJob(BaseModel):
    """External transcode job handle, kept only while the asset is processing."""

    job_id: str
    status: TranscodeJobStatus = TranscodeJobStatus.SUBMITTED
    asset_id: AssetId
    submitted_at: datetime


class MediaAsset(BaseModel):
    """Metadata record for one uploaded original."""

    asset_id: AssetId
    original_key: str
    kind: MediaKind
    status: AssetStatus = AssetStatus.PENDING
    size_bytes: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    visual_digest: Optional[str] = None
    content_digest: Optional[str] = None
    manifest: Optional[AssetManifest] = None
    error: Optional[str] = None
    processing_job: Optional[ProcessingJob] = None
    uploaded_at: datetime
    processed_at: Optional[datetime] = None


class AssetStatusReport(BaseModel):
    """Response model for status queries"""

    asset_id: str
    status: AssetStatus
    manifest: Optional[AssetManifest] = None
    error: Optional[str] = None
