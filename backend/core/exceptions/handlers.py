from datetime import datetime, timezone
from uuid import uuid4
from typing import Any, Dict, Optional
from fastapi import Request
from fastapi.responses import JSONResponse
import logging

from core.config import settings
from .api_exceptions import APIException

logger = logging.getLogger(__name__)


def format_error_response(
    message: str,
    status_code: int = 500,
    error_code: Optional[str] = None,
    correlation_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Error body shared by both services; `service` tells the caller which side failed"""
    body = {
        "success": False,
        "service": settings.SERVICE_NAME,
        "message": message,
        "error_code": error_code or f"ERR_{status_code}",
        "correlation_id": correlation_id or str(uuid4()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        body["details"] = details
    return body


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(
            message=exc.message,
            status_code=exc.status_code,
            error_code=exc.error_code,
            correlation_id=exc.correlation_id,
            details=exc.details,
        )
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    content = format_error_response(
        message="An unexpected error occurred",
        status_code=500,
        error_code="INTERNAL_ERROR"
    )
    logger.error(f"Unexpected error on {request.url.path} [{content['correlation_id']}]: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content=content)
