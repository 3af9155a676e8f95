# backend/media_pipeline/routers/image_proxy_routers.py
"""
On-demand image transform HTTP endpoint.

Role: Serve resized image variants
Responsibilities: Query parameter passthrough, cache headers, error mapping
Interactions: Delegates to TransformCache through the pipeline orchestrator
"""

from typing import Optional

from fastapi import APIRouter, Query, Response

from ..dependencies import PipelineDep
from ..utils.router_helpers import handle_exceptions

router = APIRouter(tags=["images"])


@router.get("/img/{key:path}")
@handle_exceptions("transform image")
async def transform_image(
    key: str,
    pipeline: PipelineDep,
    w: Optional[str] = Query(default=None, description="Max width in pixels"),
    q: Optional[str] = Query(default=None, description="Quality 1-100"),
    f: Optional[str] = Query(default=None, description="webp, avif, jpg or png"),
) -> Response:
    """
    Resized image bytes, served from the transform cache when present.

    Responds with `X-Cache: Hit` or `Miss`; parameters are validated by the
    cache (400 out of range, 404 unknown source).
    """
    if pipeline.transform_cache is None:
        return Response(status_code=503)
    result = await pipeline.transform_cache.resolve_async(key, w, q, f)
    return Response(
        content=result.body,
        media_type=result.content_type,
        headers={"Cache-Control": result.cache_control, "X-Cache": result.cache_header},
    )
