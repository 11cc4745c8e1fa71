"""
Global Error Handlers for SwingSense
Every error leaves the API as {"error": CODE, "detail": ..., "path": ...}.
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from exceptions import SwingSenseException
from config.settings import get_settings

logger = logging.getLogger(__name__)


def _error_body(code: str, detail, request: Request, **extra) -> dict:
    return {"error": code, "detail": detail, "path": str(request.url.path), **extra}


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app"""
    settings = get_settings()

    @app.exception_handler(SwingSenseException)
    async def swingsense_exception_handler(
        request: Request,
        exc: SwingSenseException
    ) -> JSONResponse:
        log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            log_level,
            f"{exc.code}: {exc.message}",
            extra={
                "code": exc.code,
                "status_code": exc.status_code,
                "path": str(request.url.path),
                "method": request.method,
            }
        )
        body = exc.to_dict()
        body["path"] = str(request.url.path)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException
    ) -> JSONResponse:
        logger.warning(
            f"HTTP error: {exc.status_code} - {exc.detail}",
            extra={"status_code": exc.status_code, "path": str(request.url.path)}
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("HTTP_ERROR", exc.detail, request)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """Pydantic request validation failures"""
        formatted_errors = [
            {
                "field": ".".join(str(loc) for loc in error.get("loc", [])),
                "message": error.get("msg", "Validation error"),
                "type": error.get("type", "unknown")
            }
            for error in exc.errors()
        ]

        logger.warning(
            f"Validation error on {request.url.path}",
            extra={"path": str(request.url.path), "errors": formatted_errors}
        )
        return JSONResponse(
            status_code=422,
            content=_error_body(
                "VALIDATION_ERROR",
                "Request validation failed",
                request,
                validation_errors=formatted_errors
            )
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        logger.error(
            f"Unhandled exception: {type(exc).__name__} - {exc}",
            exc_info=True,
            extra={"path": str(request.url.path), "method": request.method}
        )

        content = _error_body(
            "INTERNAL_SERVER_ERROR",
            str(exc) if settings.DEBUG else "An unexpected error occurred",
            request
        )
        if settings.DEBUG:
            content["traceback"] = traceback.format_exc()
        return JSONResponse(status_code=500, content=content)
