import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from tripdesk.core import BaseError


logger = logging.getLogger(__name__)


async def base_error_handler(request: Request, exc: BaseError):
    """Render domain errors as ``{"error", "details"}``.

    Provider outages (5xx) are logged as warnings; rule rejections such as
    ``batch_full`` or ``trip_not_bookable`` only at info.
    """
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s %s", request.method, request.url.path, exc.message, exc.details)
    elif "rule" in exc.details:
        logger.info("%s %s rejected by rule %s", request.method, request.url.path, exc.details["rule"])
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "details": {}})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Flatten pydantic errors to ``field`` / ``message`` / ``type`` triples"""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={"error": "Validation error", "details": {"errors": errors}},
    )
