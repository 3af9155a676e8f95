# backend/media_pipeline/utils/router_helpers.py
"""
Router helper utilities: standardized exception mapping and a helper for
running blocking pipeline calls off the event loop.
"""

import asyncio
from functools import partial, wraps
from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException

from ..enums import LoggerName, LogSource
from ..exceptions import (
    AssetNotFoundError,
    InvalidStateTransitionError,
    MediaPipelineError,
    TransformError,
)
from ..services.logger import get_service_logger

logger = get_service_logger(LoggerName.REQUEST_LOGGER, LogSource.API)


def status_code_for(error: Exception) -> int:
    """HTTP status for a pipeline exception."""
    if isinstance(error, TransformError):
        return error.status_code
    if isinstance(error, AssetNotFoundError):
        return 404
    if isinstance(error, InvalidStateTransitionError):
        return 409
    if isinstance(error, ValueError):
        return 400
    return 500


def handle_exceptions(operation_name: str):
    """
    Decorator for standardized exception handling in router endpoints.

    Pipeline errors map to their HTTP status with the error message as
    detail; anything unexpected becomes a 500 with a generic message.

    Usage:
        @handle_exceptions("get asset status")
        async def get_status():
            ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except (MediaPipelineError, ValueError) as e:
                status_code = status_code_for(e)
                if status_code >= 500:
                    logger.error(f"Error {operation_name}", exception=e)
                else:
                    logger.info(f"Rejected {operation_name}: {e}")
                raise HTTPException(status_code=status_code, detail=str(e))
            except Exception as e:
                logger.error(f"Error {operation_name}", exception=e)
                raise HTTPException(status_code=500, detail=f"Failed to {operation_name}")

        return wrapper

    return decorator


async def run_blocking(func: Callable, *args, **kwargs) -> Any:
    """Run a blocking pipeline call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


class ResponseFormatter:
    """
    Helper class for creating standardized API responses.
    """

    @staticmethod
    def success(message: str, data: Optional[Any] = None, **kwargs) -> Dict[str, Any]:
        response: Dict[str, Any] = {"success": True, "message": message}
        if data is not None:
            response["data"] = data
        response.update(kwargs)
        return response
