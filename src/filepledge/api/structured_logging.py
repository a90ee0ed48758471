# src/filepledge/api/structured_logging.py
from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from filepledge.env import env_flag
from filepledge.util.jsonl_log import log_event

log = logging.getLogger("filepledge.http")


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Log one `http_request` event per request and echo x-request-id.

    FILEPLEDGE_LOG_REQUESTS=0 disables it.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self.enabled = env_flag("FILEPLEDGE_LOG_REQUESTS", True)

    async def dispatch(self, request: Request, call_next):
        if not self.enabled:
            return await call_next(request)

        t0 = time.monotonic()
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = rid
        fields = {
            "request_id": rid,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "",
        }
        try:
            response = await call_next(request)
        except Exception as e:
            log_event(log, "http_request", level=logging.ERROR, status=500,
                      duration_ms=int((time.monotonic() - t0) * 1000), error=f"{type(e).__name__}: {e}", **fields)
            raise
        response.headers.setdefault("x-request-id", rid)
        log_event(log, "http_request", status=response.status_code, duration_ms=int((time.monotonic() - t0) * 1000), **fields)
        return response
