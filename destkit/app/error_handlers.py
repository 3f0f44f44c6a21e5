"""
Error Handlers: global exception handlers for the destkit API.

    - DestinationError -> its status and to_dict()
    - RequestValidationError -> 400 with field-level details
    - Exception (catch-all) -> 500, never leaks internal details
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from destkit.errors import DestinationError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_destination_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_destination_error_handler(app: FastAPI) -> None:
    @app.exception_handler(DestinationError)
    async def destination_error_handler(request: Request, exc: DestinationError):
        logger.warning(
            f"{exc.kind}: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(status_code=exc.status, content={"error": exc.to_dict()})


def _register_validation_error_handler(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all: never leaks internal details."""
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "InternalError",
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "status": 500,
                },
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "error": {
            "type": "RequestValidationError",
            "code": "INVALID_REQUEST",
            "message": "Invalid request data",
            "status": 400,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }
