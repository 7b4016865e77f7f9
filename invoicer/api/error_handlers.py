"""Error Handlers — map billing errors and request validation onto the REST envelope.

Invariants:
    - InvoicerError -> its http_status with to_response() as the body
    - RequestValidationError -> 400 VALIDATION_ERROR with one entry per bad field
    - Anything else -> 500 INTERNAL_ERROR; the exception text stays in the logs

Design Decisions:
    - Rule rejections (not found, bad request, conflict) log at WARNING with the
      entity ids from the error context; storage failures log at ERROR
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from invoicer.core.errors import ErrorSeverity, InvoicerError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvoicerError, handle_invoicer_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)


async def handle_invoicer_error(request: Request, exc: InvoicerError) -> JSONResponse:
    context = exc.context
    logger.log(
        logging.ERROR if exc.http_status >= 500 else logging.WARNING,
        f"{request.method} {request.url.path} rejected: {exc.message}",
        extra={
            "error_code": exc.code,
            "path": request.url.path,
            "session_id": context.session_id,
            "invoice_id": context.invoice_id,
            "payment_id": context.payment_id,
        },
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def handle_validation_error(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"Invalid request to {request.url.path}: "
        f"{', '.join(d['field'] for d in details)}",
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request data",
                "category": "validation",
                "severity": ErrorSeverity.ERROR.value,
                "details": details,
            },
        },
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
        extra={"path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "category": "internal",
                "severity": ErrorSeverity.CRITICAL.value,
            },
        },
    )
