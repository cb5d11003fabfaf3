"""Request logging middleware.

Stamps each request with a short id (request.state.request_id, echoed back
as the X-Request-Id response header) and logs method, path, tenant, status
and latency once the response is ready.

Log format:
    INFO [POST] /api/v1/refunds ledger=3f0c… → 409 (18ms) req_a1b2c3d4e5f6
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("lc.request")

REQUEST_ID_HEADER = "X-Request-Id"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id
        ledger_id = request.headers.get("X-Ledger-Id", "-")

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "[%s] %s ledger=%s → %d (%.0fms) %s",
            request.method,
            request.url.path,
            ledger_id,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        return response
