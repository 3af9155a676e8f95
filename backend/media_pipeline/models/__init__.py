from .asset_models import (
    AssetId,
    AssetManifest,
    AssetStatusReport,
    HlsManifest,
    MediaAsset,
    ProcessingJob,
    Rendition,
)
from .rendition_models import RenditionSpec
from .result_models import (
    ImageGenerationResult,
    TranscodeStatusReport,
    TransformResult,
    TriggerResult,
    VideoGenerationResult,
)

__all__ = [
    "AssetId",
    "AssetManifest",
    "AssetStatusReport",
    "HlsManifest",
    "MediaAsset",
    "ProcessingJob",
    "Rendition",
    "RenditionSpec",
    "ImageGenerationResult",
    "VideoGenerationResult",
    "TransformResult",
    "TriggerResult",
    "TranscodeStatusReport",
]
