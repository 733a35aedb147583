import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import (
    CascadeFailure,
    DuplicateError,
    NotFoundError,
    ValidationError,
)


logger = logging.getLogger(__name__)


def _problem(
    *,
    code: str,
    message: str,
    status: int,
    trace_id: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = {
        "type": f"about:blank#{code}",
        "title": message,
        "status": status,
        "code": code,
        "message": message,
        "trace_id": trace_id,
    }
    if details:
        body["details"] = details
    response_headers = {"X-Trace-Id": trace_id}
    if headers:
        response_headers.update(headers)
    return JSONResponse(
        body,
        status_code=status,
        headers=response_headers,
        media_type="application/problem+json",
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        detail = exc.detail
        if isinstance(detail, dict):
            message = detail.get("message") or detail.get("error") or "HTTP error"
            return _problem(
                code="http_error",
                message=str(message),
                status=exc.status_code,
                trace_id=trace_id,
                details=detail,
                headers=exc.headers,
            )
        return _problem(
            code="http_error",
            message=str(detail),
            status=exc.status_code,
            trace_id=trace_id,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        return _problem(
            code="validation_error",
            message="Request validation failed",
            status=422,
            trace_id=trace_id,
            details={"errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):  # type: ignore[override]
        return _problem(
            code=exc.code,
            message=str(exc),
            status=404,
            trace_id=str(uuid.uuid4()),
            details={"entity": exc.entity, "key": str(exc.key)},
        )

    @app.exception_handler(DuplicateError)
    async def duplicate_handler(request: Request, exc: DuplicateError):  # type: ignore[override]
        return _problem(
            code=exc.code,
            message=str(exc),
            status=409,
            trace_id=str(uuid.uuid4()),
            details={"entity": exc.entity, "key": str(exc.key)},
        )

    @app.exception_handler(ValidationError)
    async def domain_validation_handler(request: Request, exc: ValidationError):  # type: ignore[override]
        return _problem(
            code=exc.code,
            message=str(exc),
            status=422,
            trace_id=str(uuid.uuid4()),
            details=exc.details(),
        )

    @app.exception_handler(CascadeFailure)
    async def cascade_failure_handler(request: Request, exc: CascadeFailure):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        logger.error("Client delete cascade failed: %s", exc, extra={"trace_id": trace_id})
        return _problem(
            code=exc.code,
            message=str(exc),
            status=503,
            trace_id=trace_id,
            details={"client_id": exc.client_id, "retriable": True},
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        logging.exception("Unhandled error: %s", exc)
        return _problem(
            code="internal_error",
            message="An unexpected error occurred",
            status=500,
            trace_id=trace_id,
        )
