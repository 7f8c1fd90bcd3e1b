"""Request tracing middleware for correlation IDs and logging."""

import time
import uuid

import structlog

logger = structlog.get_logger()


class RequestTracingMiddleware:
    """Bind a correlation ID to the structlog context for every request.

    Logs request start and completion with timing, echoes the correlation
    and request IDs in the response headers, and logs unhandled exceptions
    before Django turns them into a 500 response.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request_id = str(uuid.uuid4())[:8]
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=self._get_client_ip(request),
        )
        logger.info("request_started")

        response = self.get_response(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        response["X-Correlation-ID"] = correlation_id
        response["X-Request-ID"] = request_id
        return response

    def process_exception(self, request, exception):
        logger.exception(
            "request_failed",
            error=str(exception),
            error_type=type(exception).__name__,
        )
        return None

    def _get_client_ip(self, request) -> str:
        forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
        if forwarded_for:
            # First entry is the original client.
            return forwarded_for.split(",")[0].strip()
        return request.META.get("REMOTE_ADDR") or "unknown"
