# backend/media_pipeline/routers/event_routers.py
"""
Storage and transcode event HTTP endpoints.

Role: Entry points for upload and job-completion notifications
Responsibilities: Event unpacking, per-record dispatch
Interactions: Uses PipelineOrchestrator trigger and completion handlers
"""

from typing import Any, Dict

from fastapi import APIRouter, Body

from ..dependencies import PipelineDep
from ..services.transcode.mediaconvert_service import parse_completion_event
from ..utils.event_utils import extract_object_created_records
from ..utils.router_helpers import ResponseFormatter, handle_exceptions, run_blocking
from .media_routers import _trigger_payload

router = APIRouter(prefix="/events", tags=["events"])


@router.post("/object-created", response_model=Dict[str, Any])
@handle_exceptions("handle object-created event")
async def object_created(
    pipeline: PipelineDep, event: Dict[str, Any] = Body(...)
) -> Dict[str, Any]:
    """
    Process every object in an S3 or EventBridge object-created event.

    Records are handled sequentially; ignored keys are reported, not rejected.
    """
    records = extract_object_created_records(event)
    if not records:
        raise ValueError("Event contains no object records")

    results = []
    for record in records:
        result = await run_blocking(
            pipeline.on_object_created, record.bucket, record.key, record.size
        )
        results.append({"key": result.key, **_trigger_payload(result)})

    return ResponseFormatter.success(
        message=f"Handled {len(results)} object record(s)", data=results
    )


@router.post("/transcode-complete", response_model=Dict[str, Any])
@handle_exceptions("handle transcode completion")
async def transcode_complete(
    pipeline: PipelineDep, event: Dict[str, Any] = Body(...)
) -> Dict[str, Any]:
    """Apply a MediaConvert job state change to its asset."""
    completion = parse_completion_event(event)
    result = await run_blocking(
        pipeline.on_transcode_complete,
        completion.job_id,
        completion.status,
        completion.error_message,
        completion.user_metadata,
        completion.outputs,
    )
    return ResponseFormatter.success(
        message=f"Job {completion.job_id} {completion.status}", data=_trigger_payload(result)
    )
