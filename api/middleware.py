# ============================================================================
# File: api/middleware.py
# ============================================================================

import re
import time
import uuid
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
LATENCY_HEADER = "X-API-Latency-ms"

# Caller ids accepted as-is: 1-64 token characters
_REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._-]{1,64}")

QUIET_PATHS = {"/health"}


def resolve_request_id(incoming) -> str:
    """Reuse a well-formed caller id, otherwise mint a new one"""
    if incoming and _REQUEST_ID_PATTERN.fullmatch(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags every HTTP call to the migration API.

    Injects:
    - request_id on request.state and in the response headers, so route
      logs and run log lines can be correlated with the caller
    - api_latency_ms in the response headers

    Control calls (start, approve, complete) are logged at INFO; health
    probes only at DEBUG. WebSocket traffic does not pass through here.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        start_time = time.perf_counter()

        response: Response = await call_next(request)

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[LATENCY_HEADER] = str(latency_ms)

        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        logger.log(
            level,
            f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} ({latency_ms}ms)"
        )

        return response
