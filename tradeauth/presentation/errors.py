"""Client-facing rejection envelope.

Every token rejection, from the guard middleware or from a route dependency,
has the same JSON shape:

    {"success": false, "message": "Token has been revoked", "error_code": "TOKEN_REVOKED"}
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from tradeauth.core.enums import ErrorCode
from tradeauth.core.errors import DomainError


def rejection_status(code: ErrorCode) -> int:
    """HTTP status for a rejection code."""
    if code == ErrorCode.VALIDATION_FAILED:
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_401_UNAUTHORIZED


def rejection_body(error: DomainError) -> dict[str, Any]:
    return {
        "success": False,
        "message": error.message,
        "error_code": error.code.name,
    }


def rejection_response(error: DomainError) -> JSONResponse:
    """Build the JSON rejection for an error.

    Args:
        error: Domain error carrying the code and client-facing message.

    Returns:
        JSONResponse with status 400 for VALIDATION_FAILED, 401 otherwise.
    """
    return JSONResponse(
        status_code=rejection_status(error.code),
        content=rejection_body(error),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def rejection_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> Response:
    """Unwrap HTTPExceptions whose detail is a rejection envelope.

    Anything else gets FastAPI's default ``{"detail": ...}`` body.
    """
    if isinstance(exc.detail, dict) and "error_code" in exc.detail:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.detail,
            headers=exc.headers,
        )
    return await http_exception_handler(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Register the rejection envelope handler with the application."""
    app.add_exception_handler(StarletteHTTPException, rejection_exception_handler)
