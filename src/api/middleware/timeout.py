"""
Request timeout middleware.

Bounds the total time spent on a request. A dashboard request can fan out
into several store reads (current and previous period, partial-day
recompute, roster), each with its own store timeout; this caps the sum.
Returns 504 in the same error shape as the other API errors.
"""

import asyncio
from collections.abc import Iterable

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

DEFAULT_EXCLUDED_PREFIXES = ("/health", "/docs", "/redoc", "/openapi.json")


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Enforce a maximum request duration, returning 504 on timeout."""

    def __init__(
        self,
        app,
        timeout_seconds: float = 30.0,
        excluded_prefixes: Iterable[str] = DEFAULT_EXCLUDED_PREFIXES,
    ):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds
        self.excluded_prefixes = tuple(excluded_prefixes)

    def _is_excluded(self, path: str) -> bool:
        return any(path.startswith(p) for p in self.excluded_prefixes)

    async def dispatch(self, request: Request, call_next):
        if self._is_excluded(request.url.path):
            return await call_next(request)

        try:
            async with asyncio.timeout(self.timeout_seconds):
                return await call_next(request)
        except TimeoutError:
            logger.warning(
                "request_timed_out",
                path=request.url.path,
                query=str(request.url.query),
                timeout_seconds=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={
                    "detail": "Request timed out",
                    "error_type": "timeout",
                    "timeout_seconds": self.timeout_seconds,
                },
            )
