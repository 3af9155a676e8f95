# backend/media_pipeline/routers/media_routers.py
"""
Asset status and lifecycle HTTP endpoints.

Role: Asset status queries and explicit lifecycle actions
Responsibilities: Status reports, reprocessing, managed job polling
Interactions: Uses PipelineOrchestrator for all state access
"""

from typing import Any, Dict

from fastapi import APIRouter

from ..dependencies import AssetIdDep, PipelineDep
from ..models.asset_models import AssetStatusReport
from ..utils.router_helpers import ResponseFormatter, handle_exceptions, run_blocking

router = APIRouter(prefix="/media", tags=["media"])


def _trigger_payload(result) -> Dict[str, Any]:
    return {
        "disposition": result.disposition.value,
        "asset_id": result.asset_id,
        "status": result.status,
        "reason": result.reason,
    }


@router.get("/{project_id}/{media_id}", response_model=AssetStatusReport)
@handle_exceptions("get asset status")
async def get_asset_status(asset_id: AssetIdDep, pipeline: PipelineDep) -> AssetStatusReport:
    """Current status; the manifest is included only once the asset is ready."""
    return pipeline.get_asset_status(asset_id)


@router.post("/{project_id}/{media_id}/reprocess", response_model=Dict[str, Any])
@handle_exceptions("reprocess asset")
async def reprocess_asset(asset_id: AssetIdDep, pipeline: PipelineDep) -> Dict[str, Any]:
    """Regenerate derivatives of a ready or failed asset (409 otherwise)."""
    result = await run_blocking(pipeline.reprocess, asset_id)
    return ResponseFormatter.success(
        message=f"Asset {asset_id} reprocessed", data=_trigger_payload(result)
    )


@router.post("/{project_id}/{media_id}/poll", response_model=Dict[str, Any])
@handle_exceptions("poll transcode job")
async def poll_transcode_job(asset_id: AssetIdDep, pipeline: PipelineDep) -> Dict[str, Any]:
    """One status check of the asset's managed transcode job."""
    result = await run_blocking(pipeline.poll_transcode_job, asset_id)
    return ResponseFormatter.success(
        message=f"Transcode job polled for {asset_id}", data=_trigger_payload(result)
    )
