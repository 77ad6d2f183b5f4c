"""Request-context middleware and the single error-to-response mapping layer."""

from __future__ import annotations

from time import perf_counter
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from fastapi import status
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from app.core.config import settings
from app.core.errors import TodoAPIError
from app.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from fastapi import FastAPI
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = get_logger(__name__)
REQUEST_ID_HEADER = "X-Request-Id"
_REQUEST_ID_MAX_LENGTH = 128
_HEALTH_PATHS = frozenset({"/health", "/healthz", "/readyz"})
_INTERNAL_ERROR_DETAIL = "Internal Server Error"


def _json_safe(value: object) -> object:
    """Coerce validation-error fragments into JSON-serializable values."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return str(value)


def _header_request_id(raw_headers: Sequence[tuple[bytes, bytes]]) -> str | None:
    target = REQUEST_ID_HEADER.lower().encode("latin-1")
    for name, value in raw_headers:
        if name.lower() != target:
            continue
        candidate = value.decode("latin-1").strip()
        if candidate and len(candidate) <= _REQUEST_ID_MAX_LENGTH:
            return candidate
    return None


def _get_request_id(request: Request) -> str | None:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    return None


def _error_payload(*, detail: object, request_id: str | None) -> dict[str, object]:
    payload: dict[str, object] = {"detail": detail}
    if request_id is not None:
        payload["request_id"] = request_id
    return payload


def _error_response(
    request: Request,
    *,
    status_code: int,
    detail: object,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    request_id = _get_request_id(request)
    response_headers = dict(headers or {})
    if request_id is not None:
        response_headers[REQUEST_ID_HEADER] = request_id
    return JSONResponse(
        status_code=status_code,
        content=_error_payload(detail=detail, request_id=request_id),
        headers=response_headers,
    )


def _format_validation_errors(errors: Sequence[Any]) -> str:
    parts: list[str] = []
    for error in errors:
        if not isinstance(error, dict):
            parts.append(str(error))
            continue
        loc = [str(item) for item in error.get("loc", ()) if item != "body"]
        message = str(error.get("msg", "Invalid value"))
        parts.append(f"{'.'.join(loc)}: {message}" if loc else message)
    return "; ".join(parts) or "Invalid request payload"


class RequestContextMiddleware:
    """Assign a request id, echo it back, and log request timing."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _header_request_id(scope.get("headers", [])) or uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id
        path = scope.get("path", "")
        method = scope.get("method", "")
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        started = perf_counter()

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = int(message["status"])
                headers = list(message.get("headers", []))
                header_name = REQUEST_ID_HEADER.lower().encode("latin-1")
                if not any(name.lower() == header_name for name, _ in headers):
                    headers.append((header_name, request_id.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            self._log_request(
                method=method,
                path=path,
                status_code=status_code,
                request_id=request_id,
                duration_ms=(perf_counter() - started) * 1000,
            )

    @staticmethod
    def _log_request(
        *,
        method: str,
        path: str,
        status_code: int,
        request_id: str,
        duration_ms: float,
    ) -> None:
        if path in _HEALTH_PATHS and not settings.request_log_include_health:
            return
        extra = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "request_id": request_id,
            "duration_ms": round(duration_ms, 2),
        }
        slow_threshold_ms = settings.request_log_slow_ms
        if slow_threshold_ms and duration_ms >= slow_threshold_ms:
            logger.warning(
                "http.request.slow",
                extra={**extra, "slow_threshold_ms": slow_threshold_ms},
            )
            return
        logger.info("http.request.complete", extra=extra)


async def _request_validation_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    if not isinstance(exc, RequestValidationError):
        msg = "Expected RequestValidationError"
        raise TypeError(msg)
    errors = exc.errors()
    logger.info(
        "http.request.invalid",
        extra={"path": request.url.path, "errors": _json_safe(list(errors))},
    )
    return _error_response(
        request,
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=_format_validation_errors(errors),
    )


async def _response_validation_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    if not isinstance(exc, ResponseValidationError):
        msg = "Expected ResponseValidationError"
        raise TypeError(msg)
    logger.error(
        "http.response.invalid",
        extra={"path": request.url.path, "errors": _json_safe(list(exc.errors()))},
    )
    return _error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=_INTERNAL_ERROR_DETAIL,
    )


async def _http_exception_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    if not isinstance(exc, StarletteHTTPException):
        msg = "Expected StarletteHTTPException"
        raise TypeError(msg)
    return _error_response(
        request,
        status_code=exc.status_code,
        detail=exc.detail,
        headers=exc.headers,
    )


async def _todo_api_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, TodoAPIError):
        msg = "Expected TodoAPIError"
        raise TypeError(msg)
    headers: dict[str, str] = {}
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.warning(
            "http.request.store_error",
            extra={"path": request.url.path, "code": exc.code, "retryable": exc.retryable},
        )
    return _error_response(
        request,
        status_code=exc.status_code,
        detail=exc.detail,
        headers=headers,
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "http.request.unhandled",
        extra={"path": request.url.path, "error_type": exc.__class__.__name__},
        exc_info=exc,
    )
    return _error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=_INTERNAL_ERROR_DETAIL,
    )


def install_error_handling(app: FastAPI) -> None:
    """Register request-id middleware and every exception handler on `app`."""
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(RequestValidationError, _request_validation_exception_handler)
    app.add_exception_handler(ResponseValidationError, _response_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_exception_handler)
    app.add_exception_handler(TodoAPIError, _todo_api_error_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
