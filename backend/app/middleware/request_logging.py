"""
Request/response logging middleware for tracking API interactions.
"""
import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable

from app.core.logging_config import request_id_context

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log incoming requests and outgoing responses.

    Each request gets a request id (taken from ``X-Request-ID`` or generated)
    that is attached to every log line emitted while serving it and echoed
    back in the response headers.

    Admin tokens and join codes in the path are never logged beyond the path
    itself; request bodies are not logged.
    """

    # Paths too noisy to log at INFO
    QUIET_PATHS = ("/health", "/ping")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and log details.

        Args:
            request: Incoming request
            call_next: Next middleware/endpoint in chain

        Returns:
            Response from the endpoint
        """
        # Generate or extract request ID for correlation
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_context.set(request_id)

        start_time = time.time()
        method = request.method
        path = str(request.url.path)
        client_host = request.client.host if request.client else "unknown"
        quiet = path.endswith(self.QUIET_PATHS)

        if not quiet:
            logger.info(
                "Incoming request",
                extra={"method": method, "path": path, "client_host": client_host},
            )

        try:
            response = await call_next(request)

            # Calculate duration in milliseconds
            duration_ms = round((time.time() - start_time) * 1000, 2)
            status_code = response.status_code

            # Add request_id header to response for client-side correlation
            response.headers["X-Request-ID"] = request_id

            extra_fields = {
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "client_host": client_host,
            }

            if status_code >= 500:
                logger.error("Server error response", extra=extra_fields)
            elif status_code >= 400 and status_code not in (410, 425):
                logger.warning("Client error response", extra=extra_fields)
            elif quiet:
                logger.debug("Request completed", extra=extra_fields)
            else:
                # 410/425 are normal access decisions, not client errors
                logger.info("Request completed", extra=extra_fields)

            return response
        finally:
            request_id_context.reset(token)
