# src/core/logging_middleware.py

import logging
import uuid
from time import monotonic

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("http")

REQUEST_ID_HEADER = "x-request-id"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log with a request id echoed back to the caller."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        start = monotonic()
        response = await call_next(request)
        latency = monotonic() - start
        response.headers[REQUEST_ID_HEADER] = request_id
        # streamed responses are logged when headers go out, not when the body ends
        logger.info(
            "request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency": latency,
                "client_ip": request.client.host if request.client else "",
            },
        )
        return response
