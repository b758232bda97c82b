"""
Core middleware.
"""

import time
import uuid
from collections.abc import Callable

from django.http import HttpRequest, HttpResponse

from apps.core.logging import bind_contextvars, clear_contextvars, get_logger

logger = get_logger(__name__)

# Paths polled by the load balancer; logged at debug level only.
QUIET_PATHS = frozenset({"/health"})


class RequestLoggingMiddleware:
    """
    Binds a trace id to the logging context and logs one line per request.

    The trace id is taken from the load balancer's ``X-Amzn-Trace-Id``
    header when present.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        clear_contextvars()
        trace_id = request.headers.get("X-Amzn-Trace-Id") or uuid.uuid4().hex
        bind_contextvars(trace_id=trace_id, **{"http.method": request.method, "http.path": request.path})

        started = time.perf_counter()
        try:
            response = self.get_response(request)
            log = logger.debug if request.path in QUIET_PATHS else logger.info
            log(
                "request_finished",
                duration_ms=(time.perf_counter() - started) * 1000,
                **{"http.status_code": response.status_code},
            )
            return response
        finally:
            clear_contextvars()
