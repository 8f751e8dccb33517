"""
Error Handlers — global exception handlers rendering the response envelope.

- KnownError → its own kind and status
- RequestValidationError → invalid_argument, 400
- SQLAlchemyError → transient_failure, 503 (never retried server-side)
- Exception (catch-all) → internal_error, 500, no internal details
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from tradepost.models.failure import ApiResponse, FailureKind, KnownError, TransientFailure

logger = logging.getLogger(__name__)


def envelope_response(status_code: int, response: ApiResponse[Any]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(mode="json", by_alias=True),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(KnownError)
    async def known_error_handler(request: Request, exc: KnownError) -> JSONResponse:
        level = logging.WARNING if exc.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s on %s: %s",
            exc.kind.value,
            request.url.path,
            exc.message,
        )
        return envelope_response(exc.status_code, exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        logger.info("Validation error on %s: %s", request.url.path, details)
        return envelope_response(
            status.HTTP_400_BAD_REQUEST,
            ApiResponse.failure(FailureKind.INVALID_ARGUMENT, "Invalid request data.", details),
        )

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Storage failure on %s", request.url.path, exc_info=exc)
        failure = TransientFailure(
            "A temporary storage problem occurred. Please retry.",
            detail=type(exc).__name__,
        )
        return envelope_response(failure.status_code, failure.to_response())

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception on %s", request.url.path, exc_info=exc)
        return envelope_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ApiResponse.failure(FailureKind.INTERNAL_ERROR, "An unexpected error occurred."),
        )
