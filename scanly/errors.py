import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


PROBLEM_MEDIA_TYPE = "application/problem+json"


class PermissionStoreError(RuntimeError):
    """The permission record store could not answer a lookup."""


def permission_error(action: str, resource: str) -> Dict[str, str]:
    """Return the body fragment used for 403 responses on a resource action."""

    return {
        "code": "PERMISSION_DENIED",
        "message": f"You don't have permission to {action} this {resource}",
        "resource": resource,
        "action": action,
        "hint": "Add a role_permissions row or adjust its scope",
    }


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
        media_type=PROBLEM_MEDIA_TYPE,
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        detail = exc.detail
        headers = getattr(exc, "headers", None)
        if isinstance(detail, dict):
            message = detail.get("message") or detail.get("error") or "HTTP error"
            return _problem(
                code=str(detail.get("code") or "http_error"),
                message=str(message),
                status=exc.status_code,
                trace_id=trace_id,
                details=detail,
                headers=headers,
            )
        if isinstance(detail, list):
            return _problem(
                code="http_error",
                message="HTTP error",
                status=exc.status_code,
                trace_id=trace_id,
                details={"errors": detail},
                headers=headers,
            )
        return _problem(
            code="http_error",
            message=str(detail),
            status=exc.status_code,
            trace_id=trace_id,
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        return _problem(
            code="validation_error",
            message="Request validation failed",
            status=422,
            trace_id=trace_id,
            details={"errors": exc.errors()},
        )

    @app.exception_handler(PermissionStoreError)
    async def store_exc_handler(request: Request, exc: PermissionStoreError):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        logging.getLogger(__name__).error("Permission store unavailable: %s", exc)
        return _problem(
            code="permission_store_unavailable",
            message="Permission data is temporarily unavailable",
            status=503,
            trace_id=trace_id,
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
