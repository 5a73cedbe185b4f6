from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ipedge.errors import AppError, MethodNotAllowed, NotFound
from ipedge.logger import logger

_HTTP_ERRORS: dict[int, type[AppError]] = {
    status.HTTP_404_NOT_FOUND: NotFound,
    status.HTTP_405_METHOD_NOT_ALLOWED: MethodNotAllowed,
}


def _error_payload(code: str, message: str) -> dict[str, Any]:
    """Minimal error body: a machine-readable code and a stable message.

    Internal details (and the client's address) are never part of it.
    """
    return {"code": code, "message": message}


async def app_error_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map application errors to their HTTP status and error code."""
    logger.info(f"Request rejected path={request.url.path} method={request.method} code={exc.code}")
    return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.code, str(exc)))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing failures (unknown path, wrong method) in the same error shape."""
    error_cls = _HTTP_ERRORS.get(exc.status_code)
    if error_cls is not None:
        error = error_cls()
        code, message = error.code, str(error)
    else:
        code, message = "http_error", str(exc.detail)
    logger.info(f"Routing error path={request.url.path} method={request.method} code={code}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(code, message),
        headers=exc.headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected errors to return a structured 500 response."""
    logger.exception(
        f"Unhandled exception while processing request: {type(exc).__name__} "
        f"path={request.url.path} method={request.method}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_payload(AppError.code, AppError.default_message),
    )
