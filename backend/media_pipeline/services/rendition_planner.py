# backend/media_pipeline/services/rendition_planner.py
"""
Rendition Planner - ladder definitions for images and videos.

Pure and deterministic: the plan depends only on media kind, source
dimensions and the configured modern image format. Generation is
responsible for clipping each target to the source bounds.
"""

from typing import List, Optional

from ..constants import (
    BLUR_PLACEHOLDER_LABEL,
    BLUR_PLACEHOLDER_QUALITY,
    BLUR_PLACEHOLDER_SIZE,
    DOWNLOAD_BITRATE,
    DOWNLOAD_LABEL,
    DOWNLOAD_SIZE,
    IMAGE_LADDER_RUNGS,
    ORIGINAL_DOWNLOAD_LABEL,
    POSTER_LABEL,
    POSTER_SIZE,
    VIDEO_HLS_RUNGS,
)
from ..enums import ImageFormat, MediaKind, RenditionRole
from ..models.rendition_models import RenditionSpec


def is_landscape(width: Optional[int], height: Optional[int]) -> bool:
    """Unknown dimensions plan in portrait orientation."""
    return bool(width and height and width > height)


def plan_image(
    modern_format: ImageFormat = ImageFormat.HEIF,
) -> List[RenditionSpec]:
    """Blur placeholder followed by the fixed resolution ladder, smallest first."""
    plan = [
        RenditionSpec(
            label=BLUR_PLACEHOLDER_LABEL,
            role=RenditionRole.BLUR_PLACEHOLDER,
            width=BLUR_PLACEHOLDER_SIZE[0],
            height=BLUR_PLACEHOLDER_SIZE[1],
            quality=BLUR_PLACEHOLDER_QUALITY,
            formats=(ImageFormat.JPG,),
        )
    ]
    formats = (ImageFormat.JPG, ImageFormat.WEBP, modern_format)
    for label, edge, quality in IMAGE_LADDER_RUNGS:
        plan.append(
            RenditionSpec(
                label=label,
                role=RenditionRole.IMAGE_RUNG,
                width=edge,
                height=edge,
                quality=quality,
                formats=formats,
            )
        )
    return plan


def plan_video(
    width: Optional[int] = None, height: Optional[int] = None
) -> List[RenditionSpec]:
    """HLS rungs in ascending bitrate, then poster, 1080p download and original."""
    landscape = is_landscape(width, height)
    plan = []

    for rung in VIDEO_HLS_RUNGS:
        box_w, box_h = rung["width"], rung["height"]
        if landscape:
            box_w, box_h = box_h, box_w
        plan.append(
            RenditionSpec(
                label=rung["label"],
                role=RenditionRole.HLS,
                width=box_w,
                height=box_h,
                bitrate_kbps=rung["bitrate"],
                maxrate_kbps=rung["maxrate"],
                bufsize_kbps=rung["bufsize"],
            )
        )

    plan.append(
        RenditionSpec(
            label=POSTER_LABEL,
            role=RenditionRole.POSTER,
            width=POSTER_SIZE[0],
            height=POSTER_SIZE[1],
            formats=(ImageFormat.JPG,),
        )
    )

    download_w, download_h = DOWNLOAD_SIZE
    if landscape:
        download_w, download_h = download_h, download_w
    plan.append(
        RenditionSpec(
            label=DOWNLOAD_LABEL,
            role=RenditionRole.DOWNLOAD,
            width=download_w,
            height=download_h,
            bitrate_kbps=DOWNLOAD_BITRATE,
        )
    )
    plan.append(
        RenditionSpec(label=ORIGINAL_DOWNLOAD_LABEL, role=RenditionRole.ORIGINAL_DOWNLOAD)
    )
    return plan


def plan(
    kind: MediaKind,
    width: Optional[int] = None,
    height: Optional[int] = None,
    modern_format: ImageFormat = ImageFormat.HEIF,
) -> List[RenditionSpec]:
    """
    Return the ordered rendition plan for one asset.

    Args:
        kind: Media kind of the original
        width: Source width if known
        height: Source height if known
        modern_format: heif or avif, requested alongside jpg and webp

    Returns:
        List of RenditionSpec; identical inputs always yield an identical list
    """
    if kind == MediaKind.IMAGE:
        return plan_image(modern_format)
    if kind == MediaKind.VIDEO:
        return plan_video(width, height)
    raise ValueError(f"Unsupported media kind: {kind}")


def specs_for_role(specs: List[RenditionSpec], role: RenditionRole) -> List[RenditionSpec]:
    return [spec for spec in specs if spec.role == role]


class RenditionPlanner:
    """Planner bound to the configured modern image format."""

    def __init__(self, modern_format: ImageFormat = ImageFormat.HEIF):
        self.modern_format = modern_format

    def plan(
        self, kind: MediaKind, width: Optional[int] = None, height: Optional[int] = None
    ) -> List[RenditionSpec]:
        return plan(kind, width, height, self.modern_format)
