"""Request correlation and latency logging middleware."""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from soundshelf.core.scan_state import ScanStateStore, get_scan_state_store


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request ID into the loguru context for the request's lifetime.

    The ID comes from the X-Request-ID header when present, otherwise an
    8-character UUID prefix is generated. It is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        with logger.contextualize(request_id=request_id):
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response


class SlowRequestMiddleware(BaseHTTPMiddleware):
    """Logs requests slower than a threshold, noting whether a scan was running.

    Reads must stay responsive while the indexer writes, so slow requests are
    tagged with the scan status to make contention visible in the logs.

    Attributes:
        slow_request_threshold: Time in seconds to consider a request slow.
    """

    def __init__(
        self,
        app,
        slow_request_threshold: float = 1.0,
        state_store: Optional[ScanStateStore] = None,
    ):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold
        self.state_store = state_store or get_scan_state_store()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time
        duration_ms = round(duration * 1000, 2)

        if duration > self.slow_request_threshold:
            scanning = self.state_store.snapshot().is_running
            logger.warning(
                f"SLOW REQUEST: {request.method} {request.url.path} took {duration_ms}ms "
                f"(threshold: {self.slow_request_threshold * 1000}ms, scan running: {scanning})"
            )
        else:
            logger.debug(
                f"{request.method} {request.url.path} - {duration_ms}ms - {response.status_code}"
            )

        response.headers["X-Process-Time"] = str(duration)
        return response
