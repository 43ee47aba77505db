"""Request middleware for context management and logging.

Every request gets its identifiers bound to the logging context before the
route runs:
- ``X-Request-ID`` (generated when absent, echoed on the response)
- ``X-Viewer-ID`` forwarded by the gateway after authentication
- trace ID from ``X-Trace-ID``, B3 or W3C ``traceparent``
- ``X-Correlation-ID``
"""

import time
from collections.abc import Awaitable, Callable, Mapping

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from campus_feed.core.context import (
    clear_context,
    set_correlation_id,
    set_request_id,
    set_trace_id,
    set_viewer_id,
)


logger = structlog.get_logger(__name__)


REQUEST_ID_HEADER = "X-Request-ID"
VIEWER_ID_HEADER = "X-Viewer-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"
TRACE_ID_HEADERS = ("X-Trace-ID", "X-B3-TraceId")
TRACEPARENT_HEADER = "traceparent"

DEFAULT_EXCLUDE_PATHS = ("/health",)


def trace_id_from_headers(headers: Mapping[str, str]) -> str | None:
    """Pick the trace ID from explicit headers, falling back to traceparent.

    traceparent format: ``{version}-{trace-id}-{parent-id}-{flags}``
    """
    for header in TRACE_ID_HEADERS:
        if value := headers.get(header):
            return value

    parts = (headers.get(TRACEPARENT_HEADER) or "").split("-")
    if len(parts) >= 2 and parts[1]:
        return parts[1]
    return None


def client_ip(request: Request) -> str | None:
    """Client address, honoring reverse proxy headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return request.client.host if request.client else None


def bind_request_context(headers: Mapping[str, str]) -> str:
    """Copy tracking headers into the context variables.

    Returns:
        The request ID in effect for this request.
    """
    request_id = set_request_id(headers.get(REQUEST_ID_HEADER))

    if trace_id := trace_id_from_headers(headers):
        set_trace_id(trace_id)
    if correlation_id := headers.get(CORRELATION_ID_HEADER):
        set_correlation_id(correlation_id)
    if viewer_id := headers.get(VIEWER_ID_HEADER):
        set_viewer_id(viewer_id)

    return request_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request identifiers to the log context and logs each request.

    Paths under ``exclude_paths`` (health checks by default) are served
    without request logs. The context is cleared once the response is sent.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or DEFAULT_EXCLUDE_PATHS)

    def is_excluded(self, path: str) -> bool:
        return path.startswith(self.exclude_paths)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        request_id = bind_request_context(request.headers)
        request.state.request_id = request_id

        log = logger.bind(method=request.method, path=request.url.path)
        should_log = self.log_requests and not self.is_excluded(request.url.path)
        if should_log:
            log.info(
                "request_started",
                query=str(request.query_params) or None,
                client_ip=client_ip(request),
            )

        try:
            response = await call_next(request)
        except Exception as e:
            log.exception(
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=_elapsed_ms(started),
            )
            raise
        else:
            if should_log:
                emit = log.warning if response.status_code >= 400 else log.info
                emit(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=_elapsed_ms(started),
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
