"""Access logging for the preview pages."""
import time
from collections.abc import Callable, Iterable
from typing import Awaitable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

logger = structlog.get_logger()


def request_event(request: Request) -> str:
    """Name the log event for a request by what the browser asked for.

    Args:
        request: Incoming HTTP request.

    Returns:
        One of page_request, fragment_request, asset_request or
        http_request.
    """
    if request.url.path == "/":
        return "page_request"
    if request.url.path == "/markdown":
        return "fragment_request"
    if request.headers.get("sec-fetch-dest") == "image":
        return "asset_request"
    return "http_request"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each page, fragment and image fetch as a structured event.

    Paths in quiet_paths (probes, the file index poll) pass through
    unlogged. WebSocket sessions bypass this middleware and are logged by
    the viewer session itself.
    """

    def __init__(self, app: ASGIApp, quiet_paths: Iterable[str] = ()) -> None:
        """Initialize middleware.

        Args:
            app: Wrapped ASGI application.
            quiet_paths: Exact request paths that are never logged.
        """
        super().__init__(app)
        self.quiet_paths = frozenset(quiet_paths)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.url.path in self.quiet_paths:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = round((time.perf_counter() - start) * 1000, 2)

        fields = {
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": elapsed,
            "htmx": "hx-request" in request.headers,
        }
        filename = request.query_params.get("filename")
        if filename:
            fields["filename"] = filename
        redirect = response.headers.get("hx-redirect") or response.headers.get("location")
        if redirect:
            fields["redirect"] = redirect

        log = logger.warning if response.status_code >= 500 else logger.debug
        log(request_event(request), **fields)

        return response
