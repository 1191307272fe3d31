"""Per-request timing and monitoring glue for route handlers.

Usage inside a handler::

    with track_request(monitoring, "/api/users/{id}", "GET") as tracker:
        try:
            user = await service.get_user(user_id)
        except Exception as exc:
            return tracker.failure(exc, "retrieve user", "DATA_ACCESS_ERROR")
        tracker.succeeded = True
        return tracker.respond(envelope.success(user))

The sample is recorded when the ``with`` block exits, whatever the outcome.
"""

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from fastapi.responses import JSONResponse

from hello_api.core.exceptions import ApiError
from hello_api.schemas import envelope
from hello_api.services.monitoring import MonitoringService

logger = structlog.get_logger()


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestTracker:
    def __init__(self, endpoint: str, method: str):
        self.endpoint = endpoint
        self.method = method
        self.request_id = new_request_id()
        self.succeeded = False
        self._start = time.perf_counter()

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._start) * 1000)

    def respond(self, response: envelope.ApiResponse, status_code: int = 200) -> JSONResponse:
        """Stamp request id and execution time on the envelope and render it."""
        response.with_request_id(self.request_id).with_execution_time(self.elapsed_ms())
        return JSONResponse(status_code=status_code, content=response.to_dict())

    def failure(self, exc: Exception, action: str, code: str) -> JSONResponse:
        """Render a failed operation: ApiErrors keep their own status and code."""
        if isinstance(exc, ApiError):
            return self.respond(exc.to_response(), exc.status)

        logger.exception(
            "request_failed",
            endpoint=self.endpoint,
            method=self.method,
            request_id=self.request_id,
        )
        return self.respond(envelope.error(f"Failed to {action}: {exc}", code), 500)


@contextmanager
def track_request(
    monitoring: MonitoringService, endpoint: str, method: str
) -> Iterator[RequestTracker]:
    tracker = RequestTracker(endpoint, method)
    try:
        yield tracker
    finally:
        monitoring.record_request(
            endpoint, method, tracker.elapsed_ms(), tracker.succeeded, tracker.request_id
        )
