"""
Error taxonomy and the JSON error handlers.
Every error body is {"status": <int>, "error": <detail>} with the same HTTP status.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ProxyError(Exception):
    """Base class for errors reported to the caller."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class BadRequestError(ProxyError):
    status_code = status.HTTP_400_BAD_REQUEST


class ClientMismatchError(ProxyError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "client_ID does not match this proxy's client id"):
        super().__init__(detail)


class TokenNotFoundError(ProxyError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, detail: str = "No access token found"):
        super().__init__(detail)


class DuplicateTokenError(ProxyError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Access token already stored"):
        super().__init__(detail)


class UpstreamError(ProxyError):
    """EVE SSO answered with a non-2xx status, an unusable body, or the transport failed."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, detail: str, upstream_status: int | None = None):
        super().__init__(detail)
        self.upstream_status = upstream_status


class UpstreamTimeoutError(UpstreamError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT


def error_response(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": status_code, "error": detail})


def _validation_detail(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query"))
        msg = err.get("msg", "invalid")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError):
        if exc.status_code >= 500:
            logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
        else:
            logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
        return error_response(exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        detail = _validation_detail(exc)
        logger.info("%s %s -> 400: %s", request.method, request.url.path, detail)
        return error_response(status.HTTP_400_BAD_REQUEST, detail)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
