# Shared response helpers for the HTTP routers
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException

from gradecut.schemas.response_schemas import APIResponse
from gradecut.services.prediction_service import InsufficientSampleError

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def success_response(data: Any, message: str = "success") -> APIResponse:
    return APIResponse(code=200, message=message, data=data, timestamp=utc_timestamp())


def to_http_exception(error: Exception, action: str) -> HTTPException:
    """Map a service error to its HTTP status"""
    if isinstance(error, InsufficientSampleError):
        logger.warning(f"{action} failed: {error}")
        return HTTPException(status_code=422, detail=f"{action} failed: {str(error)}")
    if isinstance(error, ValueError):
        logger.warning(f"{action} failed: {error}")
        return HTTPException(status_code=400, detail=f"{action} failed: {str(error)}")
    logger.error(f"{action} failed: {error}", exc_info=True)
    return HTTPException(status_code=500, detail=f"{action} failed: {str(error)}")
