#!/usr/bin/env python3
"""
Error handlers for the web application.
"""

import logging
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

from core.exceptions import (
    ServiceException,
    TransactionNotFound,
    MatchNotFound,
    UserNotFound,
    InvalidTopUpAmount,
    GatewaySignatureInvalid,
    GatewayUnreachable,
    ConcurrentUpdateConflict,
)

logger = logging.getLogger(__name__)

NOT_FOUND = (TransactionNotFound, MatchNotFound, UserNotFound)
BAD_REQUEST = (InvalidTopUpAmount, GatewaySignatureInvalid)


def _status_for(exc: ServiceException) -> int:
    if isinstance(exc, NOT_FOUND):
        return 404
    if isinstance(exc, BAD_REQUEST):
        return 400
    if isinstance(exc, ConcurrentUpdateConflict):
        return 409
    if isinstance(exc, GatewayUnreachable):
        return 502
    return 500


async def service_exception_handler(
    request: Request,
    exc: ServiceException
) -> JSONResponse:
    """
    Handle service layer exceptions.
    """
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"Service error in {request.url.path}: {exc}", exc_info=True)
    else:
        logger.warning(f"{exc.__class__.__name__} in {request.url.path}: {exc}")

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": str(exc),
            "type": exc.__class__.__name__
        }
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """
    Handle FastAPI HTTP exceptions with consistent format.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "type": "HTTPException"
        }
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.
    """
    logger.error(f"Unexpected error in {request.url.path}: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "type": exc.__class__.__name__
        }
    )
