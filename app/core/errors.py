"""
Error envelope and exception handlers.

Every failure leaves the API as {"success": false, "message": ..., "requestId": ...}.
Store failures keep the PostgREST error payload, which is only exposed outside production.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class StoreError(Exception):
    """A query against the relational store failed."""

    def __init__(self, message: str, error: Optional[APIError] = None, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.error = error
        if error is not None and getattr(error, "code", None) == UNIQUE_VIOLATION:
            status_code = status.HTTP_409_CONFLICT
        self.status_code = status_code

    @property
    def code(self) -> Optional[str]:
        return getattr(self.error, "code", None) if self.error is not None else None

    def payload(self) -> Dict[str, Any]:
        if self.error is None:
            return {}
        return {
            "message": getattr(self.error, "message", None) or str(self.error),
            "code": getattr(self.error, "code", None),
            "details": getattr(self.error, "details", None),
            "hint": getattr(self.error, "hint", None),
        }


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or "unknown"


def error_body(request: Request, message: str, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "message": message, "requestId": get_request_id(request), **extra}


def register_error_handlers(app: FastAPI) -> None:
    """Register the global error handlers on the FastAPI app."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(request, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("[%s] Validation error on %s: %s", get_request_id(request), request.url.path, exc.errors())
        errors = [
            {
                "field": ".".join(str(loc) for loc in e["loc"]),
                "message": e["msg"],
                "type": e["type"],
            }
            for e in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(request, "Invalid request data", errors=errors),
        )

    @app.exception_handler(StoreError)
    async def store_exception_handler(request: Request, exc: StoreError):
        logger.error("[%s] Store error: %s %s", get_request_id(request), exc.message, exc.payload())
        message = exc.message
        if exc.status_code >= 500 and settings.is_production:
            message = "Internal Server Error"
        extra: Dict[str, Any] = {}
        if not settings.is_production:
            if exc.code:
                extra["code"] = exc.code
            if exc.error is not None:
                extra["error"] = exc.payload()
        return JSONResponse(status_code=exc.status_code, content=error_body(request, message, **extra))


def unhandled_error_response(request_id: str, exc: Exception) -> JSONResponse:
    """500 envelope for an exception no handler claimed; detail only outside production."""
    logger.error("[%s] Unhandled exception: %s", request_id, exc, exc_info=exc)
    message = "Internal Server Error" if settings.is_production else str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": message, "requestId": request_id},
    )
