# src/filepledge/api/app.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from filepledge.api.errors import ApiError
from filepledge.api.routes_public import public_router
from filepledge.api.security import RequestSizeLimitMiddleware
from filepledge.api.structured_logging import RequestLogMiddleware
from filepledge.env import env_flag, env_str
from filepledge.runtime.block_loop import BlockProducerLoop
from filepledge.runtime.chain_config import ChainConfig, apply_chain_config_to_env, load_chain_config
from filepledge.runtime.executor_boot import build_executor as _build_executor
from filepledge.util.jsonl_log import configure_structured_logging


def build_executor(cfg: Optional[ChainConfig] = None):
    """Indirection so tests can monkeypatch `filepledge.api.app.build_executor`."""
    return _build_executor(cfg)


def _error_response(err: ApiError) -> JSONResponse:
    return JSONResponse(status_code=int(err.status_code), content=err.to_json())


async def _api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    return _error_response(exc)


async def _http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Router-level errors (unknown path, wrong method) share the API envelope.
    code = {404: "not_found", 405: "method_not_allowed"}.get(exc.status_code, "http_error")
    resp = _error_response(ApiError(exc.status_code, code, str(exc.detail), {}))
    for k, v in (exc.headers or {}).items():
        resp.headers[k] = v
    return resp


async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": ".".join(str(x) for x in e.get("loc", ())), "type": str(e.get("type", ""))} for e in exc.errors()]
    return _error_response(ApiError(422, "invalid_request", "request validation failed", {"errors": errors}))


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Start the block producer when FILEPLEDGE_BLOCK_LOOP_AUTOSTART is set and
    an executor is attached."""
    loop = None
    ex = getattr(app.state, "executor", None)
    if ex is not None and env_flag("FILEPLEDGE_BLOCK_LOOP_AUTOSTART"):
        loop = BlockProducerLoop(executor=ex)
        loop.start()
    app.state.block_loop = loop
    try:
        yield
    finally:
        if loop is not None:
            loop.stop()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    With boot_runtime the chain config is loaded and an executor attached;
    without it tests attach one to app.state themselves.
    """
    cfg: Optional[ChainConfig] = None
    if boot_runtime:
        cfg = load_chain_config()
        apply_chain_config_to_env(cfg)
        configure_structured_logging(cfg.log_level)
    mode = cfg.mode if cfg is not None else env_str("FILEPLEDGE_MODE", "prod").lower()

    docs = {} if mode != "prod" else {"docs_url": None, "redoc_url": None, "openapi_url": None}
    app = FastAPI(title="FilePledge Node API", lifespan=_lifespan, **docs)

    app.state.executor = build_executor(cfg) if boot_runtime else None
    app.state.block_loop = None

    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # Last added runs first: size limit, then request logging.
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)

    app.include_router(public_router)
    return app
