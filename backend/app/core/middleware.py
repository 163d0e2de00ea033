from __future__ import annotations

import logging
import time
import uuid

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import Settings
from app.core.exceptions import ErrorKind

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, settings: Settings) -> None:
        super().__init__(app)
        self._settings = settings

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        # Logbook responses are never cached.
        if request.url.path.startswith(f"{self._settings.api_prefix}/logbook"):
            response.headers.setdefault("Cache-Control", "no-store")
        if self._settings.security_enable_hsts:
            max_age = max(1, self._settings.security_hsts_max_age_seconds)
            response.headers.setdefault("Strict-Transport-Security", f"max-age={max_age}; includeSubDomains")
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized bodies before they reach the routes.

    Bulk imports (paths ending in ``/bulk``) get their own, larger allowance;
    every other request carries at most one logbook entry or comment.
    """

    def __init__(self, app, *, max_bytes: int, bulk_max_bytes: int) -> None:
        super().__init__(app)
        self._max_bytes = max(1, max_bytes)
        self._bulk_max_bytes = max(self._max_bytes, bulk_max_bytes)

    def _limit_for(self, path: str) -> int:
        return self._bulk_max_bytes if path.rstrip("/").endswith("/bulk") else self._max_bytes

    async def dispatch(self, request: Request, call_next) -> Response:
        raw_length = request.headers.get("content-length")
        if not raw_length:
            return await call_next(request)
        try:
            length = int(raw_length)
        except ValueError:
            length = 0
        limit = self._limit_for(request.url.path)
        if length > limit:
            logger.warning("Rejected %s %s: body of %d bytes exceeds %d", request.method, request.url.path, length, limit)
            return JSONResponse(
                status_code=413,
                content={
                    "error": ErrorKind.invalid_input.value,
                    "message": f"Request body too large ({length} bytes). Maximum allowed is {limit} bytes.",
                    "details": {"limit": limit},
                },
            )
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "[%s] %s %s -> %d (%.1f ms)",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response
