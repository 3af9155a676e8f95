# backend/media_pipeline/dependencies.py
"""
FastAPI dependency injection for the media pipeline.

The orchestrator is built once per application and stored on app.state.
"""

from typing import Annotated

from fastapi import Depends, Request

from .models.asset_models import AssetId
from .services.pipeline.pipeline_orchestrator import PipelineOrchestrator


def get_pipeline(request: Request) -> PipelineOrchestrator:
    return request.app.state.pipeline


def get_asset_id(project_id: str, media_id: str) -> AssetId:
    return AssetId(project_id=project_id, media_id=media_id)


PipelineDep = Annotated[PipelineOrchestrator, Depends(get_pipeline)]
AssetIdDep = Annotated[AssetId, Depends(get_asset_id)]
