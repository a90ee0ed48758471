# src/filepledge/api/security.py
from __future__ import annotations

from typing import Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from filepledge.api.errors import ApiError
from filepledge.env import env_flag, env_int

DEFAULT_MAX_REQUEST_BYTES = 64 * 1024
_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Answer 413 tx_too_large for bodies above FILEPLEDGE_MAX_REQUEST_BYTES.

    The declared Content-Length is checked first, then the buffered body of
    requests that carry one. FILEPLEDGE_SIZE_LIMIT_DISABLE=1 turns it off.
    """

    def __init__(
        self,
        app,
        *,
        max_bytes: Optional[int] = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health"),
    ) -> None:
        super().__init__(app)
        self.enabled = not env_flag("FILEPLEDGE_SIZE_LIMIT_DISABLE")
        self.max_bytes = max_bytes if max_bytes is not None else env_int(
            "FILEPLEDGE_MAX_REQUEST_BYTES", DEFAULT_MAX_REQUEST_BYTES, minimum=1
        )
        self.exempt_prefixes = exempt_prefixes

    def _rejection(self, size: int) -> JSONResponse:
        err = ApiError(413, "tx_too_large", "request body too large", {"bytes": size, "max_bytes": self.max_bytes})
        return JSONResponse(status_code=413, content=err.to_json())

    async def dispatch(self, request: Request, call_next):
        if not self.enabled or request.url.path.startswith(self.exempt_prefixes):
            return await call_next(request)

        declared = (request.headers.get("content-length") or "").strip()
        if declared.isdigit() and int(declared) > self.max_bytes:
            return self._rejection(int(declared))

        if request.method.upper() in _BODY_METHODS:
            size = len(await request.body())
            if size > self.max_bytes:
                return self._rejection(size)

        return await call_next(request)
